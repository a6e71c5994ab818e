"""Shared logging helpers for rowgraph."""

from __future__ import annotations

import logging

from .env import env_value
from .errors import ConfigurationError

LOG_LEVEL_ENV = "ROWGRAPH_LOG_LEVEL"


def resolve_log_level(name: str | None = None) -> int:
    """Translate a level name (or ``ROWGRAPH_LOG_LEVEL``) into a logging level."""

    raw = name if name is not None else env_value(LOG_LEVEL_ENV)
    if raw is None:
        return logging.INFO
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        setting = LOG_LEVEL_ENV if name is None else "log level"
        raise ConfigurationError(f"Unknown log level: {raw!r}", setting=setting)
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once with sensible defaults.

    Parameters mirror ``logging.basicConfig`` with a simplified contract: the level
    defaults to ``ROWGRAPH_LOG_LEVEL`` (INFO when unset) and the format is terse
    enough for CLI output. Pass ``force=True`` to reconfigure during tests.
    """

    logging.basicConfig(
        level=resolve_log_level() if level is None else level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
