"""Batching scheduler: queued subscribers re-run once per tick.

A burst of synchronous mutations queues each affected subscriber at most
once. The queue is flushed on the next tick (see depflow.tick), sorted by
subscriber id so parents refresh before the children they create and the
order is reproducible. Subscribers queued while a flush is running are
slotted in by id and still run in that flush.

A subscriber that keeps re-queuing itself within one flush is a runaway
update cycle; after ``config.max_update_count`` re-runs the flush is aborted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from depflow.config import config
from depflow.errors import RunawayUpdateError
from depflow.tick import next_tick

if TYPE_CHECKING:
    from depflow.subscriber import Subscriber

logger = logging.getLogger("depflow.scheduler")

_queue: list[Subscriber] = []
_has: set[int] = set()
_circular: dict[int, int] = {}
_waiting = False
_flushing = False
_index = 0


def reset() -> None:
    """Drop all queued work and return to the idle state."""
    global _waiting, _flushing, _index
    _queue.clear()
    _has.clear()
    _circular.clear()
    _waiting = _flushing = False
    _index = 0


def queue_job(subscriber: Subscriber) -> None:
    """Queue a subscriber for the next flush. Already queued ones are skipped."""
    global _waiting
    if subscriber.id in _has:
        return
    _has.add(subscriber.id)
    if not _flushing:
        _queue.append(subscriber)
    else:
        # Already flushing: splice in by id, but never before the current job.
        i = len(_queue) - 1
        while i > _index and _queue[i].id > subscriber.id:
            i -= 1
        _queue.insert(i + 1, subscriber)
    if not _waiting:
        _waiting = True
        if not config.async_flush:
            flush_queue()
            return
        next_tick(flush_queue)


def flush_queue() -> None:
    """Run every queued subscriber in ascending id order."""
    global _flushing, _index
    _flushing = True
    _queue.sort(key=lambda s: s.id)
    logger.debug("Flushing %d queued subscribers", len(_queue))
    try:
        _index = 0
        while _index < len(_queue):
            subscriber = _queue[_index]
            if subscriber.before is not None:
                subscriber.before()
            _has.discard(subscriber.id)
            subscriber.run()
            if subscriber.id in _has:
                count = _circular.get(subscriber.id, 0) + 1
                _circular[subscriber.id] = count
                if count > config.max_update_count:
                    _abort_runaway(subscriber)
                    break
            _index += 1
    finally:
        reset()


def _abort_runaway(subscriber: Subscriber) -> None:
    message = (
        f'Infinite update loop in subscriber "{subscriber.expression}": re-queued more '
        f"than {config.max_update_count} times in one flush."
    )
    if not config.production:
        raise RunawayUpdateError(message)
    logger.error("%s Flush aborted.", message)


def get_pending_count() -> int:
    """Number of subscribers waiting to run. Useful for testing."""
    return len(_queue)
