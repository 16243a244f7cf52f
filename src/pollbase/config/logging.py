"""Logging setup shared by the CLI and the migration environment."""

from __future__ import annotations

import logging
import os
from typing import Final

from .errors import InvalidConfigurationValue

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# chatty below WARNING unless the whole run is at DEBUG
_LIBRARY_LOGGERS: Final[tuple[str, ...]] = ("sqlalchemy.engine", "alembic.runtime.migration")


def resolve_log_level(value: str | None, default: int = logging.INFO) -> int:
    """Map a level name (``debug``, ``WARNING``) or number to a logging level."""

    if value is None or not value.strip():
        return default
    cleaned = value.strip()
    if cleaned.isdigit():
        return int(cleaned)
    level = logging.getLevelNamesMapping().get(cleaned.upper())
    if level is None:
        raise InvalidConfigurationValue("POLLBASE_LOG_LEVEL", value, "a logging level name")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger once.

    Without an explicit ``level`` the ``POLLBASE_LOG_LEVEL`` variable decides,
    defaulting to INFO. Pass ``force=True`` to reconfigure an already
    configured root logger.
    """

    active = level if level is not None else resolve_log_level(os.getenv("POLLBASE_LOG_LEVEL"))
    logging.basicConfig(level=active, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    library_level = logging.DEBUG if active <= logging.DEBUG else logging.WARNING
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
