"""Error types plus the central warning and error-reporting hooks.

User code that fails inside a watcher is never allowed to escape into the
flush loop; it is routed through handle_error() instead, which calls
``config.error_handler`` when one is installed and logs otherwise.
"""

from __future__ import annotations

import logging
from typing import Any

from depflow.config import config

logger = logging.getLogger("depflow.errors")


class ReactivityError(Exception):
    """Base class for errors raised by depflow itself."""


class RunawayUpdateError(ReactivityError):
    """A subscriber kept re-queuing itself within a single flush."""


def warn(message: str, context: Any = None) -> None:
    """Report a non-fatal misuse. Silent in production."""
    if config.production or config.silent:
        return
    if config.warn_handler is not None:
        config.warn_handler(message, context)
        return
    if context is not None:
        logger.warning("%s (in %r)", message, context)
    else:
        logger.warning("%s", message)


def handle_error(exc: BaseException, context: Any, info: str) -> None:
    """Report an exception raised by user code. Never re-raises."""
    if config.error_handler is not None:
        try:
            config.error_handler(exc, context, info)
            return
        except Exception as handler_exc:
            if handler_exc is not exc:
                logger.exception("Error in config.error_handler while handling %s", info)
    logger.error("Error in %s", info, exc_info=(type(exc), exc, exc.__traceback__))
