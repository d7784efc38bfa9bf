"""Tracked lists.

Per-index interception would need a TrackedProperty per slot, so lists are
tracked at the operation level instead: every mutating method runs the
native list operation, makes any inserted items trackable, then notifies the
list's structural Subject exactly once.

Builtin ``list`` refuses ``__class__`` assignment, so tracking a list means
wrapping it: reactive() converts a plain list into a ReactiveList when it
enters tracked state.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, MutableSequence
from typing import Any, Callable

from depflow import observer


class ReactiveList(MutableSequence):
    """A list that tracks reads and notifies on mutation.

    Reads (indexing, iteration, ``len``, ``in``) register a dependency on the
    structural Subject. Mutations (append, insert, pop, remove, splice, sort,
    reverse, item and slice assignment, ``del``) notify it.
    """

    __reactive_skip__ = True

    def __init__(self, items: Iterable = ()) -> None:
        self._items: list = []
        ob = observer.Observer(self)
        self._items = ob.observe_array(items)

    def _track(self) -> None:
        self.__ob__.subject.depend()

    def _notify(self) -> None:
        self.__ob__.subject.notify()

    def _inserted(self, items: Iterable) -> list:
        return self.__ob__.observe_array(items)

    def _pad(self, index: int) -> None:
        """Grow with ``None`` so that ``index`` is at most ``len(self)``. Silent."""
        missing = index - len(self._items)
        if missing > 0:
            self._items.extend([None] * missing)

    # --- Read operations (track) ---

    def __getitem__(self, index):
        self._track()
        return self._items[index]

    def __len__(self) -> int:
        self._track()
        return len(self._items)

    def __iter__(self) -> Iterator:
        self._track()
        return iter(self._items)

    def __contains__(self, item: Any) -> bool:
        self._track()
        return item in self._items

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReactiveList):
            other = other._items
        if not isinstance(other, list):
            return NotImplemented
        self._track()
        return self._items == other

    # --- Write operations (notify) ---

    def append(self, item: Any) -> None:
        self._items.append(self._inserted([item])[0])
        self._notify()

    def extend(self, items: Iterable) -> None:
        self._items.extend(self._inserted(items))
        self._notify()

    def insert(self, index: int, item: Any) -> None:
        self._items.insert(index, self._inserted([item])[0])
        self._notify()

    def pop(self, index: int = -1) -> Any:
        result = self._items.pop(index)
        self._notify()
        return result

    def remove(self, item: Any) -> None:
        self._items.remove(item)
        self._notify()

    def clear(self) -> None:
        self._items.clear()
        self._notify()

    def sort(self, *, key: Callable[[Any], Any] | None = None, reverse: bool = False) -> None:
        self._items.sort(key=key, reverse=reverse)
        self._notify()

    def reverse(self) -> None:
        self._items.reverse()
        self._notify()

    def splice(self, start: int, delete_count: int | None = None, *items: Any) -> list:
        """Remove ``delete_count`` items at ``start``, insert ``items`` there.

        Returns the removed items. Negative ``start`` counts from the end.
        """
        size = len(self._items)
        start = max(size + start, 0) if start < 0 else min(start, size)
        if delete_count is None:
            delete_count = size - start
        delete_count = max(0, min(delete_count, size - start))
        removed = self._items[start : start + delete_count]
        self._items[start : start + delete_count] = self._inserted(items)
        self._notify()
        return removed

    def __setitem__(self, index, value) -> None:
        if isinstance(index, slice):
            self._items[index] = self._inserted(value)
        else:
            self._items[index] = self._inserted([value])[0]
        self._notify()

    def __delitem__(self, index) -> None:
        del self._items[index]
        self._notify()

    def __iadd__(self, items: Iterable) -> ReactiveList:
        self.extend(items)
        return self

    def __repr__(self) -> str:
        return f"ReactiveList({self._items!r})"
