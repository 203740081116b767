"""
Dispatch engine.

Turns the listeners registered for an event (locally and on linked emitters)
into one ordered chain. Each listener is called with the stage payload's
args spread positionally, followed by a ``next`` continuation:

    def listener(name, count, next):
        ...                       # return a value, an awaitable, or call next()

Synchronous listeners that do not suspend run back to back before the caller
regains control; the chain only becomes asynchronous at the first listener
that returns an awaitable. The outcome of a chain is always awaitable: a
``Settled`` when it finished without suspending, otherwise an
``asyncio.Task``. Chains started outside an event loop hand back a coroutine,
so ``asyncio.run(emitter.emit(...))`` drives them.
"""

import asyncio
import inspect
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from hookemitter.errors import InvalidArgument, InvalidState
from hookemitter.registry import Listener

Transform = Callable[[Any, Any], Any]
Sink = Callable[[str, Optional[Dict[str, Any]]], None]


@dataclass
class DispatchPayload:
    type: str
    args: List[Any] = field(default_factory=list)


def default_transform(result: Any, payload: Any) -> DispatchPayload:
    """A truthy listener result becomes the args of the next stage."""
    return DispatchPayload(type=payload.type, args=result if result else payload.args)


def spread_args(payload: Any) -> List[Any]:
    args = payload.args
    if isinstance(args, (list, tuple)):
        return list(args)
    return [args]


class Settled(Coroutine):
    """Outcome of a chain that finished without suspending.

    Awaiting it returns the value or raises the error, so callers can treat
    it like any other awaitable. ``result()`` gives synchronous access. It is
    also an already-finished coroutine, so ``asyncio.run`` and
    ``asyncio.gather`` accept it directly.
    """

    __slots__ = ("_value", "_error")

    def __init__(self, value: Any = None, error: Optional[BaseException] = None) -> None:
        self._value = value
        self._error = error

    def done(self) -> bool:
        return True

    def result(self) -> Any:
        if self._error is not None:
            raise self._error
        return self._value

    def exception(self) -> Optional[BaseException]:
        return self._error

    def send(self, value: Any) -> Any:
        raise StopIteration(self.result())

    def throw(self, typ: Any, val: Any = None, tb: Any = None) -> Any:
        if val is None:
            raise typ
        raise val

    def close(self) -> None:
        pass

    def __await__(self):
        yield from ()
        return self.result()

    def __repr__(self) -> str:
        if self._error is not None:
            return f"<Settled error={self._error!r}>"
        return f"<Settled value={self._value!r}>"


class Deferred:
    """Stage outcome created while no event loop was running.

    The first await starts the coroutine as a task on the awaiting loop;
    every await after that shares the task, so the listener holding ``next``'s
    result and the engine converge on one value.
    """

    __slots__ = ("_coro", "_task")

    def __init__(self, coro: Coroutine) -> None:
        self._coro = coro
        self._task: Optional["asyncio.Task[Any]"] = None

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    def __await__(self):
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._coro)
        return self._task.__await__()

    async def wait(self) -> Any:
        return await self


Outcome = Union[Settled, Deferred, Awaitable[Any]]


def schedule(coro: Any) -> Awaitable[Any]:
    """Run ``coro`` as a task on the running loop, or defer it until first awaited."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        return Deferred(coro)
    return loop.create_task(coro)


def release(outcome: Outcome) -> Outcome:
    """Prepare an outcome for the caller; a ``Deferred`` becomes a plain coroutine."""
    if isinstance(outcome, Deferred):
        return outcome.wait()
    return outcome


def then(outcome: Outcome, fn: Callable[[Any], Any]) -> Outcome:
    """Apply ``fn`` to the value of ``outcome`` once it is available."""
    if isinstance(outcome, Settled):
        if outcome.exception() is not None:
            return outcome
        try:
            return Settled(fn(outcome.result()))
        except Exception as exc:
            return Settled(error=exc)

    async def _apply() -> Any:
        return fn(await outcome)

    return schedule(_apply())


def resolve_listeners(emitter: Any, event: str) -> List[Listener]:
    """Collect local then linked entries for ``event``, highest priority first.

    Ties keep collection order (local before linked, then insertion order).
    """
    sources = [emitter.registry.entries(event)]
    for link in emitter.links:
        sources.append(link.target.registry.entries(link.event_for(event)))

    collected = []
    for entries in sources:
        if not isinstance(entries, list):
            raise InvalidState("Expected listeners to be a list.")
        for entry in entries:
            if not callable(getattr(entry, "listener", None)):
                raise InvalidState("Expected listener to be a function.")
            collected.append(entry)

    collected.sort(key=lambda entry: entry.priority, reverse=True)
    return [entry.listener for entry in collected]


class Continuation:
    """The ``next`` callable passed to a listener.

    Only the first advancement of a stage counts, whether it comes from the
    listener calling ``next`` or from the engine moving on after the listener
    returned. Later calls are ignored and return the existing outcome.
    """

    def __init__(self, run: "_Run", payload: Any, index: int) -> None:
        self._run = run
        self.payload = payload
        self.index = index
        self.fired = False
        self.outcome: Optional[Outcome] = None

    @property
    def context(self) -> Any:
        """Payload of this stage; the ``HookContext`` in hook chains."""
        return self.payload

    def __call__(self, result: Any = None) -> Outcome:
        if self.fired:
            self._run.log("next_ignored", {"index": self.index})
            return self.outcome if self.outcome is not None else Settled(self.payload)
        self.fired = True
        self.outcome = self._run.step(result if result is not None else self.payload, self.index + 1)
        return self.outcome


class _Run:
    """State for one invocation of a chain: the listener list captured at start."""

    def __init__(self, chain: "Chain", listeners: List[Listener]) -> None:
        self.chain = chain
        self.listeners = listeners

    def log(self, message: str, fields: Optional[Dict[str, Any]] = None) -> None:
        record = {"type": self.chain.type}
        if fields:
            record.update(fields)
        self.chain.emitter.log(message, record)

    def fail(self, exc: Exception, index: int) -> Settled:
        self.log("listener_error", {"index": index, "error": repr(exc)})
        return Settled(error=exc)

    def step(self, payload: Any, index: int) -> Outcome:
        if index >= len(self.listeners):
            self.log("chain_end")
            return Settled(payload)

        listener = self.listeners[index]
        proceed = Continuation(self, payload, index)
        self.log("listener_call", {"index": index})
        try:
            result = listener(*spread_args(payload), proceed)
        except Exception as exc:
            return self.fail(exc, index)

        if isinstance(result, Settled):
            # already finished, typically ``return next()``
            if result.exception() is not None:
                return result
            result = result.result()
        if inspect.isawaitable(result):
            return schedule(self._finish(result, proceed))
        if proceed.fired:
            return proceed.outcome
        return self._advance(proceed, result)

    def _advance(self, proceed: Continuation, result: Any) -> Outcome:
        try:
            payload = self.chain.transform(result, proceed.payload)
        except Exception as exc:
            return self.fail(exc, proceed.index)
        proceed.fired = True
        proceed.outcome = self.step(payload, proceed.index + 1)
        return proceed.outcome

    async def _finish(self, pending: Awaitable[Any], proceed: Continuation) -> Any:
        try:
            result = await pending
        except Exception as exc:
            self.log("listener_error", {"index": proceed.index, "error": repr(exc)})
            raise
        if proceed.fired:
            return await proceed.outcome
        return await self._advance(proceed, result)


class Chain:
    """Reusable dispatcher for one event type, created by ``HookEmitter.compose``.

    Listeners are resolved on every call, so registrations made between calls
    are honoured while a running chain keeps the list it started with.
    """

    def __init__(
        self,
        emitter: Any,
        type: str,
        callback: Optional[Listener] = None,
        transform: Optional[Transform] = None,
    ) -> None:
        if callback is not None and not callable(callback):
            raise InvalidArgument("Expected callback to be a function.")
        self.emitter = emitter
        self.type = type
        self.callback = callback
        self.transform = transform if transform is not None else default_transform

    def listeners(self) -> List[Listener]:
        listeners = resolve_listeners(self.emitter, self.type)
        if self.callback is not None:
            listeners.append(self.callback)
        return listeners

    def run(self, payload: Any) -> Outcome:
        run = _Run(self, self.listeners())
        run.log("chain_start", {"listeners": len(run.listeners)})
        return release(run.step(payload, 0))

    def __call__(self, *args: Any) -> Outcome:
        return self.run(DispatchPayload(type=self.type, args=list(args)))


__all__ = [
    "Chain",
    "Continuation",
    "Deferred",
    "DispatchPayload",
    "Outcome",
    "Settled",
    "Sink",
    "default_transform",
    "release",
    "resolve_listeners",
    "schedule",
    "spread_args",
    "then",
]
