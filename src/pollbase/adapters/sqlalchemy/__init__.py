"""SQLAlchemy adapter package for pollbase."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyCleanPollRepository,
    SqlAlchemyRawPollRepository,
    SqlAlchemyReferenceRepository,
    SqlAlchemyTableStatsRepository,
)
from .unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    StartupError,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyCleanPollRepository",
    "SqlAlchemyIngestUnitOfWork",
    "SqlAlchemyRawPollRepository",
    "SqlAlchemyReferenceRepository",
    "SqlAlchemyTableStatsRepository",
    "StartupError",
    "create_all_tables",
    "mapper_registry",
    "shutdown",
    "start_mappers",
    "startup",
]
