"""Logging set-up for command-line entry points."""

from __future__ import annotations

import logging

from .env import optional_env_var
from .errors import ConfigurationError

LOG_LEVEL_ENV = "PRAISEPLAN_LOG_LEVEL"
# per-request chatter from the HTTP stack
_TRANSPORT_LOGGERS = ("httpx", "httpcore")


def resolve_log_level(default: int = logging.INFO) -> int:
    raw = optional_env_var(LOG_LEVEL_ENV)
    if raw is None:
        return default
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelNamesMapping().get(raw.upper())
    if level is None:
        raise ConfigurationError(f"{LOG_LEVEL_ENV} must be a logging level, got {raw!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    ``level`` falls back to ``PRAISEPLAN_LOG_LEVEL`` and then INFO. Transport
    loggers stay at WARNING unless DEBUG output was asked for. Pass ``force=True``
    to reconfigure during tests.
    """

    effective = resolve_log_level() if level is None else level
    logging.basicConfig(
        level=effective,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    transport_level = logging.DEBUG if effective <= logging.DEBUG else logging.WARNING
    for name in _TRANSPORT_LOGGERS:
        logging.getLogger(name).setLevel(transport_level)
