"""Deferred execution: run queued callbacks together on the next tick.

Callbacks queued during one synchronous burst run once, in FIFO order, at
the next opportunity. The primitive used to get there is picked per burst,
most immediate first:

1. the running asyncio event loop (``loop.call_soon``), which runs the batch
   as soon as the current task yields;
2. a host scheduler installed with set_scheduler(), e.g. a UI toolkit's
   "call after the current message" hook;
3. nothing: callbacks wait until flush() is called explicitly. This is the
   mode plain synchronous scripts and tests run in.

Thread safety: callbacks are expected to be queued from the thread that
flushes them. A host scheduler is the place to marshal from other threads.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import functools
import logging
from typing import Any, Callable

from depflow.errors import RunawayUpdateError, handle_error

logger = logging.getLogger("depflow.tick")

_callbacks: list[Callable[[], Any]] = []
_pending = False
# Loop a pending flush was handed to; a loop closed before running it
# must not leave the queue stuck.
_pending_loop: asyncio.AbstractEventLoop | None = None
_scheduler: Callable[[Callable[[], None]], Any] | None = None


def set_scheduler(scheduler: Callable[[Callable[[], None]], Any] | None) -> None:
    """Install the host scheduler used when no asyncio loop is running.

    ``scheduler(callback)`` must arrange for ``callback()`` to run later on
    the thread that owns the tracked state. Pass None to uninstall.

    Usage:
        depflow.set_scheduler(app.call_next)
    """
    global _scheduler
    _scheduler = scheduler


def flush() -> None:
    """Run every queued callback now, in FIFO order."""
    global _pending, _pending_loop
    _pending = False
    _pending_loop = None
    copies = _callbacks[:]
    _callbacks.clear()
    for i, callback in enumerate(copies):
        try:
            callback()
        except RunawayUpdateError:
            # Fatal: surface it, but keep the rest of the batch queued.
            _callbacks[:0] = copies[i + 1 :]
            if _callbacks:
                _request_flush()
            raise
        except Exception as exc:
            handle_error(exc, None, "next_tick")


def _request_flush() -> None:
    global _pending, _pending_loop
    if _pending and (_pending_loop is None or not _pending_loop.is_closed()):
        return
    _pending = False
    _pending_loop = None
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = None
    if loop is not None:
        _pending = True
        _pending_loop = loop
        loop.call_soon(flush)
    elif _scheduler is not None:
        _pending = True
        _scheduler(flush)
    else:
        logger.debug("No event loop or host scheduler; %d callbacks wait for flush()", len(_callbacks))


def next_tick(callback: Callable[..., Any] | None = None, *args: Any):
    """Queue ``callback(*args)`` for the next tick.

    Without a callback, returns a future resolving to None once everything
    queued before it has run: an awaitable asyncio future when called from a
    running loop, otherwise a concurrent.futures.Future.

    Usage:
        state["count"] += 1
        await next_tick()   # subscribers have re-run
    """
    future = None
    if callback is None:
        try:
            future = asyncio.get_running_loop().create_future()
        except RuntimeError:
            future = concurrent.futures.Future()

        def _resolve() -> None:
            if not future.done():
                future.set_result(None)

        _callbacks.append(_resolve)
    elif args:
        _callbacks.append(functools.partial(callback, *args))
    else:
        _callbacks.append(callback)
    _request_flush()
    return future


def pending_callbacks() -> int:
    return len(_callbacks)


def reset() -> None:
    """Forget queued callbacks and the host scheduler."""
    global _pending, _pending_loop
    _callbacks.clear()
    _pending = False
    _pending_loop = None
    set_scheduler(None)
