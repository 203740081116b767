"""
Listener registry for a single emitter.

Maps event names to the ordered list of ``ListenerEntry`` records registered
for them. Entries are appended in call order; sorting by priority happens at
dispatch time so the stored order is the tie-breaker.

Usage:
    registry = ListenerRegistry()
    registry.add("saved", on_saved, priority=10)
    registry.entries("saved")
"""

import functools
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional

from hookemitter.errors import InvalidArgument

Listener = Callable[..., Any]


@dataclass
class ListenerEntry:
    listener: Listener
    priority: float = 0


def check_event_name(event: Any) -> str:
    if not event or not isinstance(event, str):
        raise InvalidArgument("Expected event name to be a valid string.")
    return event


def check_priority(priority: Any) -> float:
    # bool is an int subclass but never a meaningful priority
    if isinstance(priority, bool) or not isinstance(priority, (int, float)):
        raise InvalidArgument("Expected priority to be a number.")
    return priority


def check_listener(listener: Any) -> Listener:
    if not callable(listener):
        raise InvalidArgument("Expected listener to be a function.")
    return listener


def split_events(event: str) -> List[str]:
    """Split a whitespace-separated event string into names, dropping blanks."""
    return event.split()


class OnceListener:
    """Self-removing adapter stored by ``once``.

    The first call removes this adapter (not the wrapped listener) from the
    registry, then forwards the call.
    """

    def __init__(self, registry: "ListenerRegistry", event: str, listener: Listener) -> None:
        functools.update_wrapper(self, listener)
        self.registry = registry
        self.event = event
        self.listener = listener

    def __call__(self, *args: Any) -> Any:
        self.registry.remove(self.event, self)
        return self.listener(*args)


class ListenerRegistry:
    """Per-emitter mapping of event name to listener entries.

    A name is present only while it has at least one entry.
    """

    def __init__(self) -> None:
        self._events: Dict[str, List[ListenerEntry]] = {}

    def add(self, event: str, listener: Listener, priority: float = 0) -> ListenerEntry:
        entry = ListenerEntry(listener=listener, priority=priority)
        self._events.setdefault(event, []).append(entry)
        return entry

    def remove(self, event: str, listener: Optional[Listener] = None) -> None:
        """Remove the first entry matching ``listener``, or every entry when omitted.

        Unknown events and listeners are ignored. A ``once`` adapter matches
        both itself and the listener it wraps.
        """
        if listener is None:
            self._events.pop(event, None)
            return

        entries = self._events.get(event)
        if not entries:
            return

        for i, entry in enumerate(entries):
            if entry.listener is listener or (
                isinstance(entry.listener, OnceListener) and entry.listener.listener is listener
            ):
                del entries[i]
                break

        if not entries:
            del self._events[event]

    def entries(self, event: str) -> Any:
        """Return the raw stored collection for ``event`` (empty list if absent)."""
        return self._events.get(event, [])

    def view(self) -> Mapping[str, List[ListenerEntry]]:
        return MappingProxyType(self._events)

    def __len__(self) -> int:
        return len(self._events)


__all__ = [
    "Listener",
    "ListenerEntry",
    "ListenerRegistry",
    "OnceListener",
    "check_event_name",
    "check_listener",
    "check_priority",
    "split_events",
]
