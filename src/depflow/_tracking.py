"""Dependency tracking context: which Subscriber is evaluating right now.

Evaluation pushes a Subscriber onto the active SubscriberStack; any tracked
read performed meanwhile reports itself to ``stack.current``. Nested
evaluations (a computation that synchronously triggers another) push on top
and popping restores the parent.

The active stack itself is selected through a contextvar, so an isolated
stack can be installed for a block with use_stack().
"""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from typing import TYPE_CHECKING, Iterator

if TYPE_CHECKING:
    from depflow.subscriber import Subscriber


class SubscriberStack:
    """A stack of evaluating Subscribers. ``None`` entries pause tracking."""

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[Subscriber | None] = []

    @property
    def current(self) -> Subscriber | None:
        return self._items[-1] if self._items else None

    def push(self, subscriber: Subscriber | None) -> None:
        self._items.append(subscriber)

    def pop(self) -> Subscriber | None:
        """Pop the top entry and return the restored parent, if any."""
        self._items.pop()
        return self.current

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"SubscriberStack(depth={len(self._items)})"


_default_stack = SubscriberStack()

active_stack: contextvars.ContextVar[SubscriberStack] = contextvars.ContextVar(
    "active_stack", default=_default_stack
)


def get_stack() -> SubscriberStack:
    return active_stack.get()


@contextmanager
def use_stack(stack: SubscriberStack | None = None) -> Iterator[SubscriberStack]:
    """Run a block against its own SubscriberStack.

    Usage:
        with use_stack() as stack:
            sub = Subscriber(lambda: state["a"])
            assert stack.current is None
    """
    stack = SubscriberStack() if stack is None else stack
    token = active_stack.set(stack)
    try:
        yield stack
    finally:
        active_stack.reset(token)


@contextmanager
def untracked() -> Iterator[None]:
    """Suspend dependency collection for the duration of the block."""
    stack = get_stack()
    stack.push(None)
    try:
        yield
    finally:
        stack.pop()
