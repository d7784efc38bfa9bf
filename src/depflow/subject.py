"""Subjects: per-property change broadcasters.

A Subject keeps an ordered, duplicate-free list of Subscribers. Reads call
depend(), which hands the Subject to the currently evaluating Subscriber;
writes call notify(), which tells every Subscriber to update.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from depflow import _anchor
from depflow._tracking import get_stack
from depflow.config import config

if TYPE_CHECKING:
    from depflow.subscriber import Subscriber


class Subject:
    __slots__ = ("id", "subs")
    __reactive_skip__ = True

    def __init__(self) -> None:
        self.id = _anchor.new_subject_id()
        self.subs: list[Subscriber] = []

    def subscribe(self, subscriber: Subscriber) -> None:
        if subscriber not in self.subs:
            self.subs.append(subscriber)

    def unsubscribe(self, subscriber: Subscriber) -> None:
        try:
            self.subs.remove(subscriber)
        except ValueError:
            pass  # already removed

    def depend(self) -> None:
        """Record a read of this Subject by the evaluating Subscriber."""
        subscriber = get_stack().current
        if subscriber is not None:
            subscriber.add_dependency(self)

    def notify(self) -> None:
        """Tell every subscriber that this Subject changed."""
        # Snapshot: updates may subscribe or unsubscribe while we iterate.
        subs = list(self.subs)
        if not config.async_flush:
            # The scheduler sorts queued jobs itself; a synchronous flush
            # has to get parent-before-child ordering here.
            subs.sort(key=lambda s: s.id)
        for sub in subs:
            sub.update()

    def __repr__(self) -> str:
        return f"Subject(id={self.id}, subs={len(self.subs)})"
