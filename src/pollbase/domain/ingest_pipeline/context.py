"""Shared context structures for the cleaning pipeline (record + batch state)."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pollbase.domain.model import RecordState, UpsertOutcome

from .state import advance

if TYPE_CHECKING:
    from datetime import date

    from pollbase.config import PipelineConfig
    from pollbase.domain.errors import PipelineError
    from pollbase.domain.model import (
        DateRange,
        PollCandidate,
        RawPoll,
        ReferenceSnapshot,
        RespondentCount,
    )

    from .deduplication import UpsertEngine
    from .normalization import PartyResultsParse
    from .resolution import EntityResolver

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FieldFailure:
    """A recorded, non-fatal problem with one field of a raw record."""

    field: str
    error: str
    detail: str

    @classmethod
    def from_error(cls, field_name: str, error: PipelineError) -> FieldFailure:
        return cls(field=field_name, error=type(error).__name__, detail=str(error))

    def __str__(self) -> str:
        return f"{self.field}: {self.error} ({self.detail})"


@dataclass(slots=True)
class NormalizedFields:
    """Typed values produced by the field normalizers."""

    publish_date: date | None = None
    survey_period: DateRange | None = None
    respondents: RespondentCount | None = None
    party_results: PartyResultsParse | None = None


@dataclass(slots=True)
class RecordContext:
    """Mutable state of one raw record travelling through the phases."""

    raw: RawPoll
    state: RecordState = RecordState.UNPROCESSED
    fields: NormalizedFields = field(default_factory=NormalizedFields)
    failures: list[FieldFailure] = field(default_factory=list["FieldFailure"])
    candidate: PollCandidate | None = None
    outcome: UpsertOutcome | None = None
    clean_poll_id: int | None = None
    rejection: str | None = None

    @property
    def raw_id(self) -> int | None:
        return self.raw.id

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    def transition(self, target: RecordState) -> None:
        self.state = advance(self.state, target)

    def record_failure(self, field_name: str, error: PipelineError) -> None:
        failure = FieldFailure.from_error(field_name, error)
        self.failures.append(failure)
        log.warning("Raw poll %s: %s", self.raw_id, failure)

    def reject(self, reason: str) -> None:
        self.transition(RecordState.REJECTED)
        self.rejection = reason
        log.warning("Raw poll %s rejected: %s", self.raw_id, reason)

    def failed_fields(self) -> dict[str, list[FieldFailure]]:
        grouped: dict[str, list[FieldFailure]] = {}
        for failure in self.failures:
            grouped.setdefault(failure.field, []).append(failure)
        return grouped

    def status_detail(self) -> str | None:
        if self.rejection is not None:
            return self.rejection
        if not self.failures:
            return None
        return "; ".join(str(failure) for failure in self.failures)


@dataclass(slots=True)
class PipelineContext:
    """Batch-wide, read-mostly context shared by all records of one run."""

    snapshot: ReferenceSnapshot
    resolver: EntityResolver
    config: PipelineConfig
    upsert_engine: UpsertEngine | None = None


@dataclass(slots=True)
class BatchSummary:
    """Aggregate outcome counts of one batch."""

    snapshot_version: str = ""
    inserted: int = 0
    updated: int = 0
    unchanged: int = 0
    rejected: int = 0
    upsert_failed: int = 0
    cancelled: bool = False
    field_failures: Counter[str] = field(default_factory=Counter[str])

    @property
    def total(self) -> int:
        return self.inserted + self.updated + self.unchanged + self.rejected + self.upsert_failed

    @property
    def processed(self) -> int:
        return self.inserted + self.updated + self.unchanged

    def add(self, record: RecordContext) -> None:
        for failure in record.failures:
            self.field_failures[failure.error] += 1
        match record.state:
            case RecordState.REJECTED:
                self.rejected += 1
            case RecordState.UPSERT_FAILED:
                self.upsert_failed += 1
            case RecordState.UPSERTED:
                self._add_outcome(record.outcome)
            case _:
                raise ValueError(f"Record {record.raw_id} finished in non-terminal state {record.state}")

    def _add_outcome(self, outcome: UpsertOutcome | None) -> None:
        match outcome:
            case UpsertOutcome.INSERTED:
                self.inserted += 1
            case UpsertOutcome.UPDATED:
                self.updated += 1
            case UpsertOutcome.UNCHANGED:
                self.unchanged += 1
            case None:
                raise ValueError("Upserted record without an outcome")
