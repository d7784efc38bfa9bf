"""Subscribers: tracked computations.

A Subscriber evaluates a function (or a dotted path against a context
object), records every Subject read during the evaluation, and re-evaluates
when one of them notifies. Dependencies are diffed between rounds with two
generations of bookkeeping that are swapped, not reallocated:

    deps / dep_ids          subjects read in the last completed round
    new_deps / new_dep_ids  subjects read in the round being evaluated

Modes:
    lazy  - mark dirty on change; recompute on next read (computed values)
    sync  - re-run immediately on change instead of queueing
    deep  - also depend on everything reachable from the result
    user  - user code: errors are reported through handle_error()
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from depflow import _anchor
from depflow._tracking import get_stack
from depflow.errors import handle_error, warn
from depflow.observer import is_value_type, same_value, traverse
from depflow.scheduler import queue_job
from depflow.subject import Subject

logger = logging.getLogger("depflow.subscriber")

_BAIL_RE = re.compile(r"[^\w.]")


def parse_path(path: str) -> Callable[[Any], Any] | None:
    """Compile ``"a.b.0.c"`` into a getter, or None for anything but dotted names."""
    if _BAIL_RE.search(path):
        return None
    segments = path.split(".")

    def getter(obj: Any) -> Any:
        for segment in segments:
            if obj is None:
                return None
            if isinstance(obj, Mapping):
                obj = obj.get(segment)
            elif isinstance(obj, Sequence) and not isinstance(obj, str) and segment.isdigit():
                index = int(segment)
                obj = obj[index] if index < len(obj) else None
            else:
                obj = getattr(obj, segment, None)
        return obj

    return getter


def _noop() -> None:
    return None


class Subscriber:
    __reactive_skip__ = True

    def __init__(
        self,
        expr: Callable[[], Any] | str,
        callback: Callable[[Any, Any], Any] | None = None,
        *,
        context: Any = None,
        lazy: bool = False,
        deep: bool = False,
        user: bool = False,
        sync: bool = False,
        before: Callable[[], Any] | None = None,
    ) -> None:
        self.context = context
        self.callback = callback
        self.lazy = lazy
        self.deep = deep
        self.user = user
        self.sync = sync
        self.before = before
        self.id = _anchor.new_subscriber_id()  # also the flush order
        self.active = True
        self.dirty = lazy
        self.deps: list[Subject] = []
        self.new_deps: list[Subject] = []
        self.dep_ids: set[int] = set()
        self.new_dep_ids: set[int] = set()

        if callable(expr):
            self.expression = getattr(expr, "__qualname__", repr(expr))
            self.getter: Callable[[], Any] = expr
        else:
            self.expression = expr
            path_getter = parse_path(expr)
            if path_getter is None:
                self.getter = _noop
                warn(
                    f'Failed watching path: "{expr}". Subscribers only accept simple '
                    "dot-delimited paths. For full control, use a function instead.",
                    context,
                )
            else:
                self.getter = lambda: path_getter(self.context)

        self.value = None if lazy else self.get()

    def get(self) -> Any:
        """Evaluate the getter and re-collect dependencies."""
        stack = get_stack()
        stack.push(self)
        value = None
        try:
            value = self.getter()
        except Exception as exc:
            if not self.user:
                raise
            handle_error(exc, self.context, f'getter for subscriber "{self.expression}"')
        finally:
            # Touch every nested property so deep watchers track them all.
            if self.deep:
                traverse(value)
            stack.pop()
            self.cleanup_deps()
        return value

    def add_dependency(self, subject: Subject) -> None:
        sid = subject.id
        if sid not in self.new_dep_ids:
            self.new_dep_ids.add(sid)
            self.new_deps.append(subject)
            if sid not in self.dep_ids:
                subject.subscribe(self)

    def cleanup_deps(self) -> None:
        """Drop subjects not read this round, then swap generations."""
        for dep in self.deps:
            if dep.id not in self.new_dep_ids:
                dep.unsubscribe(self)
        self.dep_ids, self.new_dep_ids = self.new_dep_ids, self.dep_ids
        self.new_dep_ids.clear()
        self.deps, self.new_deps = self.new_deps, self.deps
        self.new_deps.clear()

    def update(self) -> None:
        """Called by a Subject when one of our dependencies changed."""
        if self.lazy:
            self.dirty = True
        elif self.sync:
            self.run()
        else:
            queue_job(self)

    def run(self) -> None:
        """Scheduler job: re-evaluate and fire the callback on change."""
        if not self.active:
            return
        value = self.get()
        # Mutable values may have changed in place, so they always fire.
        if not same_value(value, self.value) or not is_value_type(value) or self.deep:
            old_value = self.value
            self.value = value
            if self.callback is None:
                return
            if self.user:
                try:
                    self.callback(value, old_value)
                except Exception as exc:
                    handle_error(exc, self.context, f'callback for subscriber "{self.expression}"')
            else:
                self.callback(value, old_value)

    def evaluate(self) -> None:
        """Recompute a lazy subscriber's value."""
        self.value = self.get()
        self.dirty = False

    def depend(self) -> None:
        """Make the evaluating subscriber depend on everything we depend on."""
        for dep in self.deps:
            dep.depend()

    def teardown(self) -> None:
        """Unsubscribe from every subject. Permanent and idempotent."""
        if not self.active:
            return
        for dep in self.deps:
            dep.unsubscribe(self)
        self.active = False
        logger.debug("Tore down subscriber %d (%s)", self.id, self.expression)

    def __repr__(self) -> str:
        state = "active" if self.active else "torn down"
        return f"Subscriber({self.id}, {self.expression!r}, {state})"
