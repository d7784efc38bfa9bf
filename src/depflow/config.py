"""Runtime configuration.

A single mutable ``config`` object is read from the environment at import:

    DEPFLOW_ENV=production         silence warnings, soften runaway-loop handling
    DEPFLOW_ASYNC=0                flush queued subscribers synchronously
    DEPFLOW_MAX_UPDATE_COUNT=100   re-runs of one subscriber allowed per flush

Fields can be changed at runtime; they are read on every use.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Callable, Mapping

ErrorHandler = Callable[[BaseException, Any, str], None]
WarnHandler = Callable[[str, Any], None]

_FALSY = {"0", "false", "no", "off", ""}


def _flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() not in _FALSY


@dataclass
class Config:
    production: bool = False
    async_flush: bool = True
    max_update_count: int = 100
    silent: bool = False
    error_handler: ErrorHandler | None = None
    warn_handler: WarnHandler | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Config:
        env = os.environ if environ is None else environ
        return cls(
            production=env.get("DEPFLOW_ENV", "").strip().lower() == "production",
            async_flush=_flag(env.get("DEPFLOW_ASYNC"), True),
            max_update_count=int(env.get("DEPFLOW_MAX_UPDATE_COUNT", "100")),
        )


config = Config.from_env()


def reset_config(environ: Mapping[str, str] | None = None) -> None:
    """Restore ``config`` in place to the environment defaults."""
    fresh = Config.from_env(environ)
    for f in fields(Config):
        setattr(config, f.name, getattr(fresh, f.name))
