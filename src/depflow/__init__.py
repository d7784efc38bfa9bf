"""depflow: fine-grained reactive dependency tracking for Python."""

from importlib.metadata import version as _version

__version__ = _version("depflow")

from depflow.config import config
from depflow.errors import ReactivityError, RunawayUpdateError
from depflow._tracking import SubscriberStack, untracked, use_stack
from depflow.subject import Subject
from depflow.observer import (
    Observer,
    ReactiveDict,
    TrackedProperty,
    define_reactive,
    delete_property,
    observe,
    reactive,
    set_property,
    to_raw,
)
from depflow.collection import ReactiveList
from depflow.subscriber import Subscriber
from depflow.scheduler import get_pending_count
from depflow.tick import flush, next_tick, set_scheduler
from depflow.computed import Computed, computed
from depflow.reaction import autorun, reaction, watch
from depflow.store import Store
# textual NOT auto-imported: opt-in only

__all__ = [
    "config",
    "ReactivityError",
    "RunawayUpdateError",
    "SubscriberStack",
    "untracked",
    "use_stack",
    "Subject",
    "Observer",
    "ReactiveDict",
    "ReactiveList",
    "TrackedProperty",
    "define_reactive",
    "delete_property",
    "observe",
    "reactive",
    "set_property",
    "to_raw",
    "Subscriber",
    "get_pending_count",
    "flush",
    "next_tick",
    "set_scheduler",
    "Computed",
    "computed",
    "autorun",
    "reaction",
    "watch",
    "Store",
]
