"""Store: a root state object with subscriber lifecycle.

A Store tracks ``data`` as a root state object and owns every subscriber it
creates. Its key set is fixed at construction: adding or deleting keys at
runtime is refused with a warning, so declare everything upfront. dispose()
tears all of its subscribers down at once.
"""

from __future__ import annotations

from typing import Any, Callable

from depflow.observer import get_observer, observe, reactive, set_property, to_raw
from depflow.reaction import autorun, watch
from depflow.subscriber import Subscriber, parse_path


class Store:
    """Root state container with subscriber lifecycle."""

    def __init__(self, data: dict | None = None) -> None:
        self.state = reactive({} if data is None else data)
        observe(self.state, as_root=True)
        self._subscribers: list[Subscriber] = []
        self._disposed = False

    def get(self, path: str) -> Any:
        """Read a dotted path, e.g. ``store.get("user.name")``. Tracked."""
        getter = parse_path(path)
        return getter(self.state) if getter is not None else None

    def set(self, key: str, value: Any) -> None:
        set_property(self.state, key, value)

    def update(self, values: dict) -> None:
        for key, value in values.items():
            self.set(key, value)

    def watch(self, expr: str | Callable[[], Any], callback, **options) -> Subscriber:
        """Watch a dotted path (resolved against the state) or a function."""
        sub = watch(expr, callback, context=self.state, **options)
        self._subscribers.append(sub)
        return sub

    def autorun(self, fn: Callable[[], Any], **options) -> Subscriber:
        sub = autorun(fn, **options)
        self._subscribers.append(sub)
        return sub

    def unwatch(self, sub: Subscriber) -> None:
        sub.teardown()
        try:
            self._subscribers.remove(sub)
        except ValueError:
            pass

    def snapshot(self) -> dict:
        """Plain-dict copy of the current state."""
        return to_raw(self.state)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        for sub in self._subscribers:
            sub.teardown()
        self._subscribers.clear()
        ob = get_observer(self.state)
        if ob is not None:
            ob.root_count -= 1
