"""Reactions: side effects triggered by tracked state changes.

Three flavors, all returning the underlying Subscriber (call ``teardown()``
to stop it):

- autorun(fn): runs fn immediately, re-runs it when anything it read changes.
  Errors propagate, like any internal computation.
- watch(source, callback): tracks ``source`` (a function or a dotted path
  resolved against ``context``) and calls ``callback(new, old)`` on change.
- reaction(data_fn, effect_fn): like watch, with a one-argument effect.

watch and reaction run user code: their errors are reported through
handle_error() and never break the flush.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from depflow._tracking import untracked
from depflow.errors import handle_error
from depflow.subscriber import Subscriber

T = TypeVar("T")


def autorun(fn: Callable[[], Any], *, sync: bool = False) -> Subscriber:
    """Run fn immediately, then re-run on the next tick after any change.

    Usage:
        state = reactive({"count": 0})
        log = []

        runner = autorun(lambda: log.append(state["count"]))
        # log == [0], ran immediately

        state["count"] = 1
        flush()
        # log == [0, 1]

        runner.teardown()
    """
    return Subscriber(fn, sync=sync)


def watch(
    source: Callable[[], T] | str,
    callback: Callable[[T, T | None], Any],
    *,
    context: Any = None,
    deep: bool = False,
    immediate: bool = False,
    sync: bool = False,
) -> Subscriber:
    """Call ``callback(new, old)`` whenever ``source`` produces a new value.

    With ``immediate`` the callback also fires once right away with
    ``old`` set to None.
    """
    sub = Subscriber(source, callback, context=context, user=True, deep=deep, sync=sync)
    if immediate:
        with untracked():
            try:
                callback(sub.value, None)
            except Exception as exc:
                handle_error(exc, context, f'callback for immediate subscriber "{sub.expression}"')
    return sub


def reaction(
    data_fn: Callable[[], T],
    effect_fn: Callable[[T], Any],
    *,
    fire_immediately: bool = False,
    sync: bool = False,
) -> Subscriber:
    """Track data_fn; call effect_fn with its result when the result changes.

    Unlike autorun, effect_fn only fires when data_fn's *return value* changes,
    not on every dependency notification.

    Usage:
        state = reactive({"first": "Alice", "last": "Smith"})

        effects = []
        r = reaction(
            lambda: f"{state['first']} {state['last']}",
            lambda name: effects.append(name),
        )
        # effects == [] because data_fn ran to establish deps, effect didn't fire

        state["first"] = "Bob"
        flush()
        # effects == ["Bob Smith"]

        r.teardown()
    """
    return watch(
        data_fn,
        lambda value, _old: effect_fn(value),
        immediate=fire_immediately,
        sync=sync,
    )
