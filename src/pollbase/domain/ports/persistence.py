"""Ports for persisting raw, clean and reference data."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

    from pollbase.domain.model import (
        CleanPoll,
        RawPoll,
        RawPollStatus,
        RecordState,
        ReferenceAlias,
        ReferenceEntity,
        ReferenceSnapshot,
        ResultValue,
        ScopeAlias,
    )
    from pollbase.domain.queries import CleanPollFilter, ResultFilter, ResultRow


@runtime_checkable
class RawPollRepository(Protocol):
    """Append-only store of scraped records plus their processing status."""

    def add(self, raw: RawPoll) -> None: ...

    def get(self, raw_id: int) -> RawPoll | None: ...

    def select_for_processing(
        self,
        *,
        ids: Sequence[int] | None = None,
        limit: int | None = None,
        include_failed: bool = False,
        include_processed: bool = False,
    ) -> list[RawPoll]: ...

    def status_for(self, raw_id: int) -> RawPollStatus | None: ...

    def record_status(
        self,
        raw_id: int,
        state: RecordState,
        *,
        detail: str | None = None,
        clean_poll_id: int | None = None,
    ) -> RawPollStatus: ...

    def by_source(self, source_url: str) -> list[RawPoll]: ...

    def latest(self, count: int) -> list[RawPoll]: ...


@runtime_checkable
class CleanPollRepository(Protocol):
    """Store of clean polls keyed by their identity token."""

    def add(self, poll: CleanPoll) -> None: ...

    def get(self, poll_id: int) -> CleanPoll | None: ...

    def get_by_identity(self, key_token: str) -> CleanPoll | None: ...

    def replace_results(self, poll: CleanPoll, results: Sequence[ResultValue]) -> None: ...

    def query(self, poll_filter: CleanPollFilter) -> list[CleanPoll]: ...

    def results_view(self, result_filter: ResultFilter) -> list[ResultRow]: ...


@runtime_checkable
class ReferenceRepository(Protocol):
    """Reference tables: read as a snapshot, written by the seed loader."""

    def snapshot(self) -> ReferenceSnapshot: ...

    def save_entity(self, entity: ReferenceEntity) -> None: ...

    def save_alias(self, alias: ReferenceAlias) -> bool: ...

    def save_scope_alias(self, alias: ScopeAlias) -> bool: ...


@runtime_checkable
class TableStatsRepository(Protocol):
    """Row counts per table for operational reporting."""

    def row_counts(self) -> dict[str, int]: ...
