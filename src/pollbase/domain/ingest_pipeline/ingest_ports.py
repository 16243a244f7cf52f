"""Repository bundle used by the cleaning pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from pollbase.domain.ports.unit_of_work import RepositoryCollection, UnitOfWork

if TYPE_CHECKING:
    from pollbase.domain.ports.persistence import (
        CleanPollRepository,
        RawPollRepository,
        ReferenceRepository,
        TableStatsRepository,
    )


@dataclass(slots=True)
class IngestRepositories(RepositoryCollection):
    """Repositories required by the batch runner and the upsert engine."""

    raw_polls: RawPollRepository
    clean_polls: CleanPollRepository
    references: ReferenceRepository
    stats: TableStatsRepository


type IngestUnitOfWork = UnitOfWork[IngestRepositories]
