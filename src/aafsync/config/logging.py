"""Logging setup for the command line and scheduled runs."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import ConfigurationError

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
NOISY_LOGGERS: Final[tuple[str, ...]] = ("alembic.runtime.migration", "sqlalchemy.engine")


def resolve_log_level(level: int | None = None) -> int:
    """Return ``level``, else ``AAFSYNC_LOG_LEVEL`` (a level name), else INFO."""

    if level is not None:
        return level
    name = (os.getenv("AAFSYNC_LOG_LEVEL") or "").strip().upper()
    if not name:
        return logging.INFO
    resolved = logging.getLevelNamesMapping().get(name)
    if resolved is None:
        raise ConfigurationError(
            f"AAFSYNC_LOG_LEVEL is not a logging level: {name!r}", variables=("AAFSYNC_LOG_LEVEL",)
        )
    return resolved


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    Migration and engine chatter stays at WARNING unless the run itself logs at
    DEBUG. Pass ``force=True`` to reconfigure an already configured root logger.
    """

    effective = resolve_log_level(level)
    logging.basicConfig(
        level=effective,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        force=force,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(
            logging.DEBUG if effective <= logging.DEBUG else logging.WARNING
        )
