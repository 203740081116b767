"""
HookEmitter: the public surface over the registry, link table and dispatch engine.

Usage:
    from hookemitter import HookEmitter

    emitter = HookEmitter()
    emitter.on("saved", 10, lambda path, next: print(path))
    emitter.emit("saved", "notes.txt")

    run = emitter.hook("run", run)   # listeners on "run" see and rewrite its args
    result = await run("task")
"""

from typing import Any, Callable, List, Mapping, Optional

from hookemitter.dispatch import Chain, Outcome, Sink, Transform
from hookemitter.errors import InvalidArgument
from hookemitter.hook import make_hook
from hookemitter.links import LinkTable
from hookemitter.middleware import logging_hook
from hookemitter.registry import (
    Listener,
    ListenerEntry,
    ListenerRegistry,
    OnceListener,
    check_event_name,
    check_listener,
    check_priority,
    split_events,
)


class HookEmitter:
    """Emits events and hooks to synchronous and asynchronous listeners.

    ``sink`` receives engine diagnostics as ``sink(message, fields)``. When
    unset, ``logging_hook.log_event`` is used, which writes nothing until a
    log path is configured.
    """

    def __init__(self, sink: Optional[Sink] = None) -> None:
        self.registry = ListenerRegistry()
        self.links = LinkTable()
        self.sink = sink

    @property
    def events(self) -> Mapping[str, List[ListenerEntry]]:
        """Read-only view of the registered listeners by event name."""
        return self.registry.view()

    def log(self, message: str, fields: Optional[dict] = None) -> None:
        if self.sink is None:
            logging_hook.log_event(message, fields)
        else:
            self.sink(message, fields)

    def _listener_args(self, event: Any, priority: Any, listener: Any) -> tuple:
        check_event_name(event)
        if callable(priority) and listener is None:
            listener, priority = priority, 0
        check_priority(priority)
        check_listener(listener)
        return priority, listener

    def on(self, event: str, priority: Any = 0, listener: Optional[Listener] = None) -> "HookEmitter":
        """Add ``listener`` to one or more space-separated events.

        ``priority`` may be left out: ``on("a b", fn)``. Higher priorities run
        sooner; equal priorities run in registration order.
        """
        priority, listener = self._listener_args(event, priority, listener)
        for name in split_events(event):
            self.registry.add(name, listener, priority)
        return self

    def once(self, event: str, priority: Any = 0, listener: Optional[Listener] = None) -> "HookEmitter":
        """Like ``on`` but each named event fires the listener only once."""
        priority, listener = self._listener_args(event, priority, listener)
        for name in split_events(event):
            self.registry.add(name, OnceListener(self.registry, name, listener), priority)
        return self

    def off(self, event: str, listener: Optional[Listener] = None) -> "HookEmitter":
        """Remove the first matching ``listener``, or all listeners when omitted."""
        check_event_name(event)
        if listener is not None:
            check_listener(listener)
        for name in split_events(event):
            self.registry.remove(name, listener)
        return self

    def compose(
        self,
        type: str,
        callback: Optional[Listener] = None,
        transform: Optional[Transform] = None,
    ) -> Chain:
        return Chain(self, type, callback=callback, transform=transform)

    def emit(self, event: str, *args: Any) -> Outcome:
        """Run the listeners of ``event`` with ``args``.

        Returns an awaitable resolving to the final ``DispatchPayload``.
        Synchronous listeners have all run by the time this returns.
        """
        check_event_name(event)
        return self.compose(event)(*args)

    def hook(self, event: str, ctx: Any = None, fn: Optional[Callable[..., Any]] = None) -> Callable[..., Outcome]:
        """Wrap ``fn`` so the listeners of ``event`` run before it is called."""
        check_event_name(event)
        return make_hook(self, event, ctx, fn)

    def link(self, emitter: "HookEmitter", prefix: Optional[str] = None) -> "HookEmitter":
        """Also run ``emitter``'s listeners for ``prefix + event`` on every emission here."""
        if not isinstance(emitter, HookEmitter):
            raise InvalidArgument("Expected argument to be a HookEmitter.")
        if prefix is not None and not isinstance(prefix, str):
            raise InvalidArgument("Expected prefix to be a string.")
        self.links.add(emitter, prefix)
        return self

    def unlink(self, emitter: "HookEmitter") -> "HookEmitter":
        """Remove every link to ``emitter``."""
        if not isinstance(emitter, HookEmitter):
            raise InvalidArgument("Expected argument to be a HookEmitter.")
        self.links.remove(emitter)
        return self


__all__ = ["HookEmitter"]
