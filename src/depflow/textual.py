"""Textual integration for depflow. Opt-in, requires textual.

bind(app) hands depflow's tick to the app: flushes run on the app's message
loop, and flushes requested from worker threads are marshaled to it.
The guarded reaction()/autorun() variants skip their effects while the
widget tree is paused or the app is not running, and treat NoMatches from
widget queries as "nothing to update".
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from depflow import tick
from depflow._tracking import get_stack
from depflow.reaction import autorun as _autorun, reaction as _reaction

# Module-owned pause state, keyed by id(app) so multiple apps work in tests.
_paused_apps: set[int] = set()


def bind(app) -> None:
    """Schedule depflow flushes on ``app``'s message loop."""
    main = threading.get_ident()

    def _schedule(callback):
        if threading.get_ident() != main:
            app.call_from_thread(callback)
        else:
            app.call_next(callback)

    tick.set_scheduler(_schedule)


def unbind() -> None:
    tick.set_scheduler(None)


@contextmanager
def pause(app):
    """Suspend guarded reactions during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def reaction(app, data_fn, effect_fn, *, fire_immediately=False):
    """reaction() whose effect only runs while the app is safe to query."""

    def _guarded(value):
        if not is_safe(app):
            return
        try:
            effect_fn(value)
        except NoMatches:
            pass

    return _reaction(data_fn, _guarded, fire_immediately=fire_immediately)


def autorun(app, fn):
    """autorun() that skips runs while the app is unsafe and ignores NoMatches."""

    def _guarded():
        if not is_safe(app):
            # Keep last round's dependencies so the next change still re-runs us.
            runner = get_stack().current
            if runner is not None:
                runner.depend()
            return
        try:
            fn()
        except NoMatches:
            pass

    return _autorun(_guarded)
