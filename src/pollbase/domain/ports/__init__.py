"""Ports (protocols) implemented by adapters."""

from __future__ import annotations

from .persistence import (
    CleanPollRepository,
    RawPollRepository,
    ReferenceRepository,
    TableStatsRepository,
)
from .unit_of_work import RepositoryCollection, UnitOfWork

__all__ = [
    "CleanPollRepository",
    "RawPollRepository",
    "ReferenceRepository",
    "RepositoryCollection",
    "TableStatsRepository",
    "UnitOfWork",
]
