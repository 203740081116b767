"""Listener registration and dispatch: events, function hooks and linked emitters."""

from hookemitter.dispatch import Chain, Continuation, DispatchPayload, Settled
from hookemitter.emitter import HookEmitter
from hookemitter.errors import HookEmitterError, InvalidArgument, InvalidContext, InvalidState
from hookemitter.hook import HookContext
from hookemitter.registry import ListenerEntry

__all__ = [
    "Chain",
    "Continuation",
    "DispatchPayload",
    "HookContext",
    "HookEmitter",
    "HookEmitterError",
    "InvalidArgument",
    "InvalidContext",
    "InvalidState",
    "ListenerEntry",
    "Settled",
]
