"""
Function hooks.

``make_hook`` wraps a function so that every call first runs the listeners of
an event. Listeners receive the call's arguments positionally plus ``next``;
the shared ``HookContext`` is ``next.context``. A listener may rewrite
``context.args`` in place, or return a new ``HookContext`` that replaces the
current one for every later listener and for the final call.

Usage:
    def save(path, data):
        ...

    save = emitter.hook("save", save)

    def upper_path(path, data, next):
        next.context.args[0] = path.upper()

    emitter.on("save", upper_path)
    await save("notes.txt", b"...")
"""

import functools
import inspect
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional

from hookemitter.dispatch import Continuation, Outcome, Settled, release, then
from hookemitter.errors import InvalidArgument, InvalidContext

# values that cannot serve as a call context
_SCALARS = (str, bytes, bytearray, int, float, complex, bool)


@dataclass
class HookContext:
    type: str
    fn: Callable[..., Any]
    args: List[Any] = field(default_factory=list)
    ctx: Any = None
    result: Any = None


def hook_transform(result: Any, context: Any) -> Any:
    """A returned ``HookContext`` supersedes the current one; anything else is ignored."""
    return result if isinstance(result, HookContext) else context


async def _store_result(context: HookContext, pending: Any) -> HookContext:
    context.result = await pending
    return context


def make_hook(emitter: Any, event: str, ctx: Any = None, fn: Optional[Callable[..., Any]] = None) -> Callable[..., Outcome]:
    """Build the hooked version of ``fn`` for ``emitter``.

    ``ctx`` may be omitted (``make_hook(emitter, "x", fn)``). When given, it is
    passed as the first argument of ``fn``, the way a method receives ``self``.
    """
    if callable(ctx) and fn is None:
        fn, ctx = ctx, None

    if ctx is not None and isinstance(ctx, _SCALARS):
        raise InvalidContext("Expected context to be an object.")

    if not callable(fn):
        raise InvalidArgument("Expected hooked function to be a function.")

    def call_hooked(*args: Any) -> Any:
        # runs as the last stage; the context that reached it wins
        proceed: Continuation = args[-1]
        context = proceed.context
        emitter.log("hook_call", {"type": context.type})
        if context.ctx is not None:
            value = context.fn(context.ctx, *context.args)
        else:
            value = context.fn(*context.args)
        if isinstance(value, Settled):
            value = value.result()
        if inspect.isawaitable(value):
            return _store_result(context, value)
        context.result = value
        return context

    def unwrap(context: HookContext) -> Any:
        emitter.log("hook_result", {"type": context.type})
        return context.result

    @functools.wraps(fn)
    def wrapped(*args: Any) -> Outcome:
        context = HookContext(type=event, fn=fn, args=list(args), ctx=ctx)
        chain = emitter.compose(event, callback=call_hooked, transform=hook_transform)
        return release(then(chain.run(context), unwrap))

    return wrapped


__all__ = ["HookContext", "hook_transform", "make_hook"]
