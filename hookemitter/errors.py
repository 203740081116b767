"""Exceptions raised by hookemitter.

All of them derive from ``TypeError`` as well as ``HookEmitterError`` so
callers can catch either the library base class or the builtin.
"""


class HookEmitterError(Exception):
    """Base error for all hookemitter exceptions."""


class InvalidArgument(HookEmitterError, TypeError):
    """Raised when an event name, priority, listener, callback or link target is invalid."""


class InvalidContext(HookEmitterError, TypeError):
    """Raised when a hook context is not an object."""


class InvalidState(HookEmitterError, TypeError):
    """Raised at dispatch time when the registry holds malformed entries."""


__all__ = ["HookEmitterError", "InvalidArgument", "InvalidContext", "InvalidState"]
