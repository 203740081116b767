"""Tests for emit, compose and the dispatch chain."""

import asyncio
import inspect

import pytest

from hookemitter import DispatchPayload, HookEmitter, InvalidArgument, InvalidState, Settled
from hookemitter.middleware import logging_hook
from hookemitter.registry import ListenerEntry


class TestEmitSync:
    """Synchronous listeners complete before emit returns."""

    def setup_method(self):
        self.emitter = HookEmitter()
        self.calls = []

    def test_no_listeners(self):
        result = self.emitter.emit("foo")
        assert isinstance(result, Settled)
        assert result.done()
        assert result.result() == DispatchPayload(type="foo", args=[])

    def test_single_listener_without_awaiting(self):
        self.emitter.on("foo", lambda next: self.calls.append("foo"))
        self.emitter.emit("foo")
        assert self.calls == ["foo"]

    def test_single_listener_with_values(self):
        def listener(num, abc, next):
            assert num == 123
            assert abc == "abc"
            assert callable(next)
            self.calls.append("foo")

        self.emitter.on("foo", listener)
        self.emitter.emit("foo", 123, "abc")
        assert self.calls == ["foo"]

    def test_multiple_listeners_without_awaiting(self):
        self.emitter.on("foo", lambda next: self.calls.append(1))
        self.emitter.on("foo", lambda next: self.calls.append(2))
        self.emitter.emit("foo")
        assert self.calls == [1, 2]

    def test_listener_added_during_emit_waits_for_next_emit(self):
        def foo(next):
            self.calls.append("foo")
            self.emitter.on("foo", foo)

        self.emitter.on("foo", foo)
        self.emitter.emit("foo")
        assert len(self.calls) == 1
        self.emitter.emit("foo")
        assert len(self.calls) == 3

    def test_priority_order(self):
        def record(name):
            return lambda next: self.calls.append(name)

        self.emitter.on("foo", 100, record("a"))
        self.emitter.on("foo", 50, record("b"))
        self.emitter.on("foo", -1, record("c"))
        self.emitter.on("foo", record("d"))
        self.emitter.on("foo", 150, record("e"))
        self.emitter.on("foo", -200, record("f"))

        self.emitter.emit("foo")

        assert self.calls == ["e", "a", "b", "d", "c", "f"]

    def test_equal_priority_keeps_registration_order(self):
        for name in ("first", "second", "third"):
            self.emitter.on("foo", 5, lambda next, name=name: self.calls.append(name))
        self.emitter.emit("foo")
        assert self.calls == ["first", "second", "third"]

    def test_returned_list_replaces_args(self):
        self.emitter.on("foo", lambda a, next: [a, a * 2])
        self.emitter.on("foo", lambda a, b, next: self.calls.append((a, b)))
        payload = self.emitter.emit("foo", 3).result()
        assert self.calls == [(3, 6)]
        assert payload.args == [3, 6]

    def test_falsy_return_keeps_args(self):
        self.emitter.on("foo", lambda a, next: None)
        self.emitter.on("foo", lambda a, next: [])
        self.emitter.on("foo", lambda a, next: self.calls.append(a))
        self.emitter.emit("foo", "kept")
        assert self.calls == ["kept"]

    def test_scalar_return_is_spread_as_single_argument(self):
        self.emitter.on("foo", lambda next: "only")
        self.emitter.on("foo", lambda value, next: self.calls.append(value))
        payload = self.emitter.emit("foo").result()
        assert self.calls == ["only"]
        assert payload.args == "only"

    def test_next_with_replacement_payload(self):
        def first(value, next):
            self.calls.append(("first", value))
            next(DispatchPayload(type="foo", args=["replaced"]))
            self.calls.append(("first-after", value))

        self.emitter.on("foo", first)
        self.emitter.on("foo", lambda value, next: self.calls.append(("second", value)))

        payload = self.emitter.emit("foo", "original").result()

        assert self.calls == [
            ("first", "original"),
            ("second", "replaced"),
            ("first-after", "original"),
        ]
        assert payload.args == ["replaced"]

    def test_next_without_result_forwards_payload(self):
        self.emitter.on("foo", lambda value, next: next())
        self.emitter.on("foo", lambda value, next: self.calls.append(value))
        self.emitter.emit("foo", "same")
        assert self.calls == ["same"]

    def test_next_called_multiple_times(self):
        records = []
        emitter = HookEmitter(sink=lambda message, fields: records.append(message))

        def listener(next):
            next()
            next()

        emitter.on("foo", listener)
        emitter.on("foo", lambda next: self.calls.append("second"))

        emitter.emit("foo").result()

        assert self.calls == ["second"]
        assert records.count("next_ignored") == 1

    def test_next_after_return_is_ignored(self):
        captured = []
        self.emitter.on("foo", lambda next: captured.append(next))
        self.emitter.on("foo", lambda next: self.calls.append("second"))
        self.emitter.emit("foo")
        captured[0]()
        assert self.calls == ["second"]

    def test_listener_error_rejects_and_halts(self):
        def broken(next):
            raise ValueError("bar")

        self.emitter.on("foo", broken)
        self.emitter.on("foo", lambda next: self.calls.append("after"))

        result = self.emitter.emit("foo")

        assert isinstance(result.exception(), ValueError)
        with pytest.raises(ValueError, match="bar"):
            result.result()
        assert self.calls == []

    def test_downstream_error_rejects_even_if_caught(self):
        def first(next):
            try:
                next().result()
            except KeyError:
                self.calls.append("caught")

        def second(next):
            raise KeyError("boom")

        self.emitter.on("foo", first)
        self.emitter.on("foo", second)

        result = self.emitter.emit("foo")

        assert self.calls == ["caught"]
        with pytest.raises(KeyError):
            result.result()

    @pytest.mark.parametrize("event", [None, 123, ""])
    def test_invalid_event(self, event):
        with pytest.raises(InvalidArgument, match="Expected event name to be a valid string."):
            self.emitter.emit(event)


class TestCompose:
    """Tests for compose and listener resolution."""

    def setup_method(self):
        self.emitter = HookEmitter()
        self.calls = []

    def test_callback_not_callable(self):
        with pytest.raises(InvalidArgument, match="Expected callback to be a function."):
            self.emitter.compose("foo", callback="foo")

    def test_callback_runs_last(self):
        self.emitter.on("foo", -100, lambda value, next: self.calls.append(("listener", value)))
        chain = self.emitter.compose("foo", callback=lambda value, next: self.calls.append(("callback", value)))
        chain("x")
        assert self.calls == [("listener", "x"), ("callback", "x")]

    def test_chain_is_reusable_and_resolves_each_call(self):
        chain = self.emitter.compose("foo")
        chain()
        self.emitter.on("foo", lambda next: self.calls.append("late"))
        chain()
        assert self.calls == ["late"]
        assert len(chain.listeners()) == 1

    def test_custom_transform(self):
        def bump(result, payload):
            return DispatchPayload(type=payload.type, args=[payload.args[0] + 1])

        self.emitter.on("foo", lambda n, next: self.calls.append(n))
        self.emitter.on("foo", lambda n, next: self.calls.append(n))
        payload = self.emitter.compose("foo", transform=bump)(1).result()
        assert self.calls == [1, 2]
        assert payload.args == [3]

    def test_listeners_not_a_list(self):
        self.emitter.registry._events["foo"] = "bar"
        with pytest.raises(InvalidState, match="Expected listeners to be a list."):
            self.emitter.emit("foo")

    def test_listeners_not_functions(self):
        self.emitter.registry._events["foo"] = ["bar"]
        with pytest.raises(InvalidState, match="Expected listener to be a function."):
            self.emitter.emit("foo")

    def test_entry_listener_not_callable(self):
        self.emitter.registry._events["foo"] = [ListenerEntry(listener="bar")]
        with pytest.raises(InvalidState, match="Expected listener to be a function."):
            self.emitter.compose("foo")()


class TestDiagnostics:
    """The injected sink observes the chain without changing it."""

    def test_sink_receives_chain_messages(self):
        records = []
        emitter = HookEmitter(sink=lambda message, fields: records.append((message, fields)))
        emitter.on("foo", lambda next: None)

        emitter.emit("foo")

        assert [message for message, _ in records] == ["chain_start", "listener_call", "chain_end"]
        assert records[0][1] == {"type": "foo", "listeners": 1}
        assert records[1][1] == {"type": "foo", "index": 0}

    def test_sink_receives_listener_errors(self):
        records = []
        emitter = HookEmitter(sink=lambda message, fields: records.append((message, fields)))

        def broken(next):
            raise RuntimeError("bar")

        emitter.on("foo", broken)
        emitter.emit("foo")

        message, fields = records[-1]
        assert message == "listener_error"
        assert fields["index"] == 0
        assert "bar" in fields["error"]

    def test_default_sink_is_logging_hook(self, monkeypatch):
        events = []

        def fake_log_event(event_type, payload=None):
            events.append(event_type)

        monkeypatch.setattr(logging_hook, "log_event", fake_log_event)

        HookEmitter().emit("foo")

        assert events == ["chain_start", "chain_end"]


class TestEmitAsync:
    """Listeners returning awaitables."""

    def setup_method(self):
        self.emitter = HookEmitter()
        self.calls = []

    @pytest.mark.asyncio
    async def test_single_async_listener(self):
        async def listener(next):
            await asyncio.sleep(0.01)
            self.calls.append("foo")

        self.emitter.on("foo", listener)
        result = self.emitter.emit("foo")

        assert isinstance(result, asyncio.Task)
        await result
        assert self.calls == ["foo"]

    @pytest.mark.asyncio
    async def test_async_listener_with_values(self):
        async def listener(num, abc, next):
            await asyncio.sleep(0)
            self.calls.append((num, abc))

        self.emitter.on("foo", listener)
        payload = await self.emitter.emit("foo", 123, "abc")

        assert self.calls == [(123, "abc")]
        assert payload == DispatchPayload(type="foo", args=[123, "abc"])

    @pytest.mark.asyncio
    async def test_await_synchronous_chain(self):
        self.emitter.on("foo", lambda n, next: [n + 1])
        payload = await self.emitter.emit("foo", 1)
        assert payload.args == [2]

    @pytest.mark.asyncio
    async def test_gather_settled_outcomes(self):
        self.emitter.on("foo", lambda n, next: [n * 10])
        first, second = await asyncio.gather(self.emitter.emit("foo", 1), self.emitter.emit("foo", 2))
        assert (first.args, second.args) == ([10], [20])

    @pytest.mark.asyncio
    async def test_mixed_sync_and_async_listeners(self):
        async def middle(next):
            await asyncio.sleep(0.01)
            self.calls.append("b")

        self.emitter.on("foo", lambda next: self.calls.append("a"))
        self.emitter.on("foo", middle)
        self.emitter.on("foo", lambda next: self.calls.append("c"))

        pending = self.emitter.emit("foo")
        assert self.calls == ["a"]

        await pending
        assert self.calls == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_async_listeners_with_next(self):
        count = 0

        async def first(abc, num, next):
            nonlocal count
            assert count == 0
            count += 1
            await next()
            assert count == 2
            count += 1

        async def second(abc, num, next):
            nonlocal count
            assert count == 1
            assert (abc, num) == ("abc", 123)
            count += 1

        self.emitter.on("foo", first)
        self.emitter.on("foo", second)

        await self.emitter.emit("foo", "abc", 123)

        assert count == 3

    @pytest.mark.asyncio
    async def test_deferred_next_with_replacement(self):
        async def first(value, next):
            await asyncio.sleep(0.01)
            return await next(DispatchPayload(type="foo", args=["changed"]))

        self.emitter.on("foo", first)
        self.emitter.on("foo", lambda value, next: self.calls.append(value))

        payload = await self.emitter.emit("foo", "original")

        assert self.calls == ["changed"]
        assert payload.args == ["changed"]

    @pytest.mark.asyncio
    async def test_async_return_replaces_args(self):
        async def first(value, next):
            return [value.upper()]

        self.emitter.on("foo", first)
        self.emitter.on("foo", lambda value, next: self.calls.append(value))

        await self.emitter.emit("foo", "abc")

        assert self.calls == ["ABC"]

    @pytest.mark.asyncio
    async def test_async_error_rejects_and_halts(self):
        async def broken(next):
            await asyncio.sleep(0)
            raise RuntimeError("bar")

        self.emitter.on("foo", broken)
        self.emitter.on("foo", lambda next: self.calls.append("after"))

        with pytest.raises(RuntimeError, match="bar"):
            await self.emitter.emit("foo")
        assert self.calls == []

    @pytest.mark.asyncio
    async def test_downstream_rejection_propagates_through_awaited_next(self):
        async def first(next):
            try:
                await next()
            except ValueError:
                self.calls.append("caught")

        def second(next):
            raise ValueError("boom")

        self.emitter.on("foo", first)
        self.emitter.on("foo", second)

        with pytest.raises(ValueError, match="boom"):
            await self.emitter.emit("foo")
        assert self.calls == ["caught"]

    @pytest.mark.asyncio
    async def test_chain_progresses_without_awaiting(self):
        async def listener(next):
            await asyncio.sleep(0)
            self.calls.append("done")

        self.emitter.on("foo", listener)
        task = self.emitter.emit("foo")

        await asyncio.sleep(0.05)

        assert task.done()
        assert self.calls == ["done"]

    @pytest.mark.asyncio
    async def test_concurrent_emits_are_independent(self):
        async def slow(value, next):
            await asyncio.sleep(0.02 if value == 1 else 0)
            self.calls.append(value)
            return [value * 10]

        self.emitter.on("foo", slow)

        first, second = await asyncio.gather(self.emitter.emit("foo", 1), self.emitter.emit("foo", 2))

        assert self.calls == [2, 1]
        assert first.args == [10]
        assert second.args == [20]


class TestEmitWithoutLoop:
    """Chains started from plain synchronous code, driven by asyncio.run."""

    def setup_method(self):
        self.emitter = HookEmitter()
        self.calls = []

    def test_synchronous_chain_runs_under_asyncio_run(self):
        self.emitter.on("foo", lambda n, next: [n + 1])
        payload = asyncio.run(self.emitter.emit("foo", 1))
        assert payload == DispatchPayload(type="foo", args=[2])

    def test_sync_side_effects_before_emit_returns(self):
        async def middle(next):
            await asyncio.sleep(0)
            self.calls.append("b")

        self.emitter.on("foo", lambda next: self.calls.append("a"))
        self.emitter.on("foo", middle)
        self.emitter.on("foo", lambda next: self.calls.append("c"))

        pending = self.emitter.emit("foo")
        assert inspect.iscoroutine(pending)
        assert self.calls == ["a"]

        asyncio.run(pending)
        assert self.calls == ["a", "b", "c"]

    def test_returned_next_with_async_downstream(self):
        async def second(value, next):
            await asyncio.sleep(0)
            self.calls.append(value)

        self.emitter.on("foo", lambda value, next: next())
        self.emitter.on("foo", second)

        payload = asyncio.run(self.emitter.emit("foo", 1))

        assert self.calls == [1]
        assert payload.args == [1]

    def test_awaited_next_shares_downstream_result(self):
        async def first(value, next):
            downstream = await next(DispatchPayload(type="foo", args=[value * 2]))
            self.calls.append(("first", downstream.args))

        async def second(value, next):
            await asyncio.sleep(0)
            self.calls.append(("second", value))

        self.emitter.on("foo", first)
        self.emitter.on("foo", second)

        payload = asyncio.run(self.emitter.emit("foo", 5))

        assert self.calls == [("second", 10), ("first", [10])]
        assert payload.args == [10]

    def test_async_error_propagates(self):
        async def broken(next):
            await asyncio.sleep(0)
            raise RuntimeError("bar")

        self.emitter.on("foo", lambda next: next())
        self.emitter.on("foo", broken)
        self.emitter.on("foo", lambda next: self.calls.append("after"))

        with pytest.raises(RuntimeError, match="bar"):
            asyncio.run(self.emitter.emit("foo"))
        assert self.calls == []

    def test_sync_error_propagates(self):
        def broken(next):
            raise ValueError("bar")

        self.emitter.on("foo", broken)

        with pytest.raises(ValueError, match="bar"):
            asyncio.run(self.emitter.emit("foo"))
