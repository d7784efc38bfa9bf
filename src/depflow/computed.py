"""Computed values: derived state with automatic dependency tracking.

A Computed wraps a lazy Subscriber. A change to any dependency only marks
it dirty; the function re-runs on the next read. Reading a Computed inside
another evaluation makes the reader depend on the Computed's own
dependencies, so changes propagate through chains of computed values.
"""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from depflow._tracking import get_stack
from depflow.subscriber import Subscriber

T = TypeVar("T")


class Computed(Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_subscriber",)
    __reactive_skip__ = True

    def __init__(self, fn: Callable[[], T]) -> None:
        self._subscriber = Subscriber(fn, lazy=True)

    def get(self) -> T:
        """Read the computed value. Recomputes if dirty."""
        sub = self._subscriber
        if not sub.active:
            return sub.value
        if sub.dirty:
            sub.evaluate()
        if get_stack().current is not None:
            sub.depend()
        return sub.value

    def __call__(self) -> T:
        return self.get()

    @property
    def dirty(self) -> bool:
        return self._subscriber.dirty

    def dispose(self) -> None:
        """Disconnect from all dependencies. The last value stays readable."""
        self._subscriber.teardown()

    def __repr__(self) -> str:
        sub = self._subscriber
        state = "dirty" if sub.dirty else f"cached={sub.value!r}"
        return f"Computed({sub.expression}, {state})"


def computed(fn: Callable[[], T]) -> Computed[T]:
    """Decorator/factory to create a Computed from a function.

    Usage:
        state = reactive({"count": 0})

        @computed
        def doubled():
            return state["count"] * 2

        doubled()  # 0
        state["count"] = 5
        doubled()  # 10
    """
    return Computed(fn)
