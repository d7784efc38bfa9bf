"""Process-wide identity counters for Subjects and Subscribers.

Subscriber ids double as the flush order: a Subscriber created earlier
always sorts before one created later, so parents refresh before children.
"""

import itertools

# itertools.count is thread-safe (C-level GIL atomic)
_subject_ids = itertools.count()
_subscriber_ids = itertools.count(1)


def new_subject_id() -> int:
    return next(_subject_ids)


def new_subscriber_id() -> int:
    return next(_subscriber_ids)
