"""Event dispatch for clusterdock.

Controllers call ``emit`` at every state transition. Whoever activated a
callback with ``use_callback`` receives the event; a callback may answer with
follow-up events, which are delivered after the current one (breadth first).

The active callback lives in a ContextVar, so asyncio tasks spawned inside a
``use_callback`` block (per-node verifications, for instance) keep reporting
to it. A nested block replaces the outer callback unless ``inherit=True``.

Example:
    from clusterdock.callback import use_callback
    from clusterdock.callbacks import EventHistory, log

    history = EventHistory()
    with use_callback(log), use_callback(history, inherit=True):
        await controller.verify_all()
"""

from __future__ import annotations

import functools
from collections import deque
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from clusterdock.events import ClusterdockEvent

type CallbackResult = ClusterdockEvent | Sequence[ClusterdockEvent] | None
type Callback = Callable[[ClusterdockEvent], CallbackResult]

_active: ContextVar[Callback | None] = ContextVar("clusterdock_callback", default=None)


def _follow_ups(result: CallbackResult) -> tuple[ClusterdockEvent, ...]:
    match result:
        case None:
            return ()
        case list() | tuple():
            return tuple(result)
        case _:
            return (result,)  # type: ignore[return-value]


def emit(event: ClusterdockEvent) -> None:
    """Deliver ``event`` (and any follow-ups) to the active callback, if any."""
    cb = _active.get()
    if cb is None:
        return

    pending: deque[ClusterdockEvent] = deque([event])
    while pending:
        pending.extend(_follow_ups(cb(pending.popleft())))


def compose(*callbacks: Callback) -> Callback:
    """Fan each event out to several callbacks, collecting their follow-ups."""
    if len(callbacks) == 1:
        return callbacks[0]

    def fan_out(event: ClusterdockEvent) -> list[ClusterdockEvent]:
        return [follow for cb in callbacks for follow in _follow_ups(cb(event))]

    return fan_out


@contextmanager
def use_callback(cb: Callback, *, inherit: bool = False) -> Iterator[None]:
    """Activate ``cb`` for the enclosed block.

    With ``inherit=True`` the callback already active keeps receiving events
    alongside ``cb``.
    """
    outer = _active.get()
    token = _active.set(compose(outer, cb) if inherit and outer is not None else cb)
    try:
        yield
    finally:
        _active.reset(token)


def only(*event_types: type) -> Callable[[Callback], Callback]:
    """Restrict a callback to the given event types.

    Example:
        @only(NodeVerified, CommitFailed)
        def on_result(event):
            print(event)
    """

    def decorator(cb: Callback) -> Callback:
        @functools.wraps(cb)
        def filtered(event: ClusterdockEvent) -> CallbackResult:
            return cb(event) if isinstance(event, event_types) else None

        return filtered

    return decorator


__all__ = [
    "Callback",
    "CallbackResult",
    "compose",
    "emit",
    "only",
    "use_callback",
]
