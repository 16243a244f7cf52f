"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from sqlalchemy import create_engine

from pollbase.adapters.raw_import import iter_raw_polls
from pollbase.adapters.reference import SeedReport, load_reference_seed, seed_references
from pollbase.adapters.sqlalchemy.migrations import current_revision, upgrade_head
from pollbase.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    configured_engine,
    is_started,
    startup,
)
from pollbase.config import get_pipeline_config
from pollbase.domain.ingest_pipeline import inspect_record, run_batch

if TYPE_CHECKING:
    import threading
    from collections.abc import Sequence
    from pathlib import Path

    from pollbase.config import PipelineConfig
    from pollbase.domain.ingest_pipeline import BatchSummary, IngestUnitOfWork, InspectionReport
    from pollbase.domain.model import CleanPoll, RawPoll, ReferenceSnapshot
    from pollbase.domain.queries import CleanPollFilter, ResultFilter, ResultRow

UnitOfWorkFactory = Callable[[], "IngestUnitOfWork"]


log = getLogger(__name__)


def _unit_of_work_factory(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyIngestUnitOfWork


@dataclass(slots=True)
class FullRunResult:
    imported: int
    seed: SeedReport | None
    summary: BatchSummary


def import_raw_polls(path: Path, *, unit_of_work_factory: UnitOfWorkFactory | None = None) -> int:
    """Append every record of a JSON Lines file to the raw table in one transaction."""

    factory = _unit_of_work_factory(unit_of_work_factory)
    count = 0
    with factory() as uow:
        for raw in iter_raw_polls(path):
            uow.repositories.raw_polls.add(raw)
            count += 1
        uow.commit()
    log.info("Imported %d raw polls from %s", count, path)
    return count


def seed_reference_data(
    path: Path, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> SeedReport:
    """Load the TOML seed file and upsert its entities and aliases."""

    seed = load_reference_seed(path)
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        report = seed_references(seed, uow.repositories.references)
        uow.commit()
    return report


def clean_only(
    *,
    ids: Sequence[int] | None = None,
    limit: int | None = None,
    retry_failed: bool = False,
    reprocess: bool = False,
    workers: int | None = None,
    cancel: threading.Event | None = None,
    config: PipelineConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> BatchSummary:
    """Run the cleaning pipeline over the selected raw records."""

    return run_batch(
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        config=config or get_pipeline_config(),
        ids=ids,
        limit=limit,
        include_failed=retry_failed,
        include_processed=reprocess,
        workers=workers,
        cancel=cancel,
    )


def run_full_pipeline(
    *,
    raw_path: Path | None = None,
    reference_path: Path | None = None,
    retry_failed: bool = False,
    workers: int | None = None,
    cancel: threading.Event | None = None,
    config: PipelineConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> FullRunResult:
    """Optionally seed references and import raw records, then clean."""

    factory = _unit_of_work_factory(unit_of_work_factory)
    seed = (
        seed_reference_data(reference_path, unit_of_work_factory=factory)
        if reference_path is not None
        else None
    )
    imported = (
        import_raw_polls(raw_path, unit_of_work_factory=factory) if raw_path is not None else 0
    )
    summary = clean_only(
        retry_failed=retry_failed,
        workers=workers,
        cancel=cancel,
        config=config,
        unit_of_work_factory=factory,
    )
    return FullRunResult(imported=imported, seed=seed, summary=summary)


def inspect_raw_record(
    raw_id: int,
    *,
    config: PipelineConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> InspectionReport:
    """Show what cleaning ``raw_id`` would do; nothing is written."""

    return inspect_record(
        raw_id,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        config=config or get_pipeline_config(),
    )


def report_row_counts(*, unit_of_work_factory: UnitOfWorkFactory | None = None) -> dict[str, int]:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        return uow.repositories.stats.row_counts()


def migrate(*, database_uri: str | None = None) -> str | None:
    """Upgrade the schema to head and return the resulting revision."""

    if database_uri is not None:
        upgrade_head(database_uri=database_uri)
        engine = create_engine(database_uri, future=True)
        try:
            return current_revision(engine)
        finally:
            engine.dispose()

    _unit_of_work_factory(None)
    engine = configured_engine()
    if engine is None:
        return None
    upgrade_head(engine=engine)
    return current_revision(engine)


# Read side -------------------------------------------------------------------


def query_clean_polls(
    poll_filter: CleanPollFilter, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> list[CleanPoll]:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        return uow.repositories.clean_polls.query(poll_filter)


def query_results(
    result_filter: ResultFilter, *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> list[ResultRow]:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        return uow.repositories.clean_polls.results_view(result_filter)


def find_raw_polls(
    *,
    raw_id: int | None = None,
    source_url: str | None = None,
    latest: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[RawPoll]:
    """Look raw records up by exactly one of id, source URL or recency."""

    selectors = [value for value in (raw_id, source_url, latest) if value is not None]
    if len(selectors) != 1:
        raise ValueError("Pass exactly one of raw_id, source_url or latest")

    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        raw_polls = uow.repositories.raw_polls
        if raw_id is not None:
            found = raw_polls.get(raw_id)
            return [found] if found is not None else []
        if source_url is not None:
            return raw_polls.by_source(source_url)
        return raw_polls.latest(latest or 0)


def reference_snapshot(
    *, unit_of_work_factory: UnitOfWorkFactory | None = None
) -> ReferenceSnapshot:
    factory = _unit_of_work_factory(unit_of_work_factory)
    with factory() as uow:
        return uow.repositories.references.snapshot()
