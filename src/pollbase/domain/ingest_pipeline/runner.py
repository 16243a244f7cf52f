"""Entry points for running the cleaning pipeline over raw records."""

from __future__ import annotations

import logging
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pollbase.config.pipeline import PipelineConfig
from pollbase.domain.errors import RawPollNotFound, StorageError
from pollbase.domain.model import RecordState

from .context import BatchSummary, PipelineContext, RecordContext
from .deduplication import DEFAULT_KEYED_LOCK, UpsertEngine, UpsertPhase
from .normalization import NormalizationPhase
from .orchestrator import IngestionPipeline
from .resolution import EntityResolver, ResolutionPhase

if TYPE_CHECKING:
    import threading
    from collections.abc import Callable, Sequence

    from pollbase.domain.model import (
        PollCandidate,
        RawPoll,
        RawPollStatus,
        ReferenceSnapshot,
        UpsertOutcome,
    )

    from .context import FieldFailure, NormalizedFields
    from .deduplication import KeyedLock
    from .ingest_ports import IngestUnitOfWork

log = logging.getLogger(__name__)

type UnitOfWorkFactory = Callable[[], IngestUnitOfWork]


def default_pipeline() -> IngestionPipeline:
    return IngestionPipeline(phases=(NormalizationPhase(), ResolutionPhase(), UpsertPhase()))


def inspection_pipeline() -> IngestionPipeline:
    """Normalization and resolution only; nothing is written."""

    return IngestionPipeline(phases=(NormalizationPhase(), ResolutionPhase()))


def load_snapshot(unit_of_work_factory: UnitOfWorkFactory) -> ReferenceSnapshot:
    with unit_of_work_factory() as uow:
        return uow.repositories.references.snapshot()


def build_context(
    snapshot: ReferenceSnapshot,
    config: PipelineConfig,
    *,
    upsert_engine: UpsertEngine | None = None,
) -> PipelineContext:
    resolver = EntityResolver(snapshot, min_containment_length=config.min_containment_length)
    return PipelineContext(
        snapshot=snapshot, resolver=resolver, config=config, upsert_engine=upsert_engine
    )


def run_batch(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    config: PipelineConfig | None = None,
    ids: Sequence[int] | None = None,
    limit: int | None = None,
    include_failed: bool = False,
    include_processed: bool = False,
    workers: int | None = None,
    cancel: threading.Event | None = None,
    snapshot: ReferenceSnapshot | None = None,
    pipeline: IngestionPipeline | None = None,
    locks: KeyedLock | None = None,
) -> BatchSummary:
    """Clean every selected raw record and return the outcome counts.

    The reference snapshot is taken once, before the first record. Each record
    runs in isolation: unexpected errors reject that record only. Setting
    ``cancel`` stops pulling new records; records already started finish.
    """

    active_config = config or PipelineConfig()
    active_snapshot = snapshot or load_snapshot(unit_of_work_factory)
    active_pipeline = pipeline or default_pipeline()
    engine = UpsertEngine(
        unit_of_work_factory, locks if locks is not None else DEFAULT_KEYED_LOCK
    )
    context = build_context(active_snapshot, active_config, upsert_engine=engine)

    effective_limit = limit if limit is not None else (active_config.batch_limit or None)
    with unit_of_work_factory() as uow:
        raws = uow.repositories.raw_polls.select_for_processing(
            ids=ids,
            limit=effective_limit,
            include_failed=include_failed,
            include_processed=include_processed,
        )

    worker_count = max(1, workers if workers is not None else active_config.workers)
    summary = BatchSummary(snapshot_version=active_snapshot.version)
    log.info(
        "Cleaning %d raw polls with %d worker(s) against reference snapshot %s",
        len(raws),
        worker_count,
        active_snapshot.version,
    )

    def process(raw: RawPoll) -> RecordContext:
        return _process_record(raw, active_pipeline, context, unit_of_work_factory)

    if worker_count == 1:
        for raw in raws:
            if cancel is not None and cancel.is_set():
                summary.cancelled = True
                break
            summary.add(process(raw))
    else:
        _run_threaded(raws, process, summary, worker_count=worker_count, cancel=cancel)

    log.info(
        "Cleaning finished: inserted=%d updated=%d unchanged=%d rejected=%d "
        "upsert_failed=%d cancelled=%s",
        summary.inserted,
        summary.updated,
        summary.unchanged,
        summary.rejected,
        summary.upsert_failed,
        summary.cancelled,
    )
    return summary


def _run_threaded(
    raws: Sequence[RawPoll],
    process: Callable[[RawPoll], RecordContext],
    summary: BatchSummary,
    *,
    worker_count: int,
    cancel: threading.Event | None,
) -> None:
    pending: set[Future[RecordContext]] = set()
    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="pollbase-clean") as pool:
        for raw in raws:
            if cancel is not None and cancel.is_set():
                summary.cancelled = True
                break
            # keep at most one queued record per worker so cancellation is prompt
            while len(pending) >= worker_count:
                done, pending = wait(pending, return_when=FIRST_COMPLETED)
                for future in done:
                    summary.add(future.result())
            pending.add(pool.submit(process, raw))
        for future in pending:
            summary.add(future.result())


def _process_record(
    raw: RawPoll,
    pipeline: IngestionPipeline,
    context: PipelineContext,
    unit_of_work_factory: UnitOfWorkFactory,
) -> RecordContext:
    record = RecordContext(raw=raw)
    try:
        pipeline.run(record, context=context)
    except Exception as exc:  # noqa: BLE001
        log.exception("Raw poll %s: unexpected error in state %s", raw.id, record.state)
        _reject_unexpected(record, exc)

    if raw.id is not None:
        _store_status(record, raw.id, unit_of_work_factory)
    return record


def _reject_unexpected(record: RecordContext, exc: Exception) -> None:
    if record.is_terminal:
        return
    if record.state is RecordState.UNPROCESSED:
        record.transition(RecordState.NORMALIZING)
    record.reject(f"unexpected error: {type(exc).__name__}: {exc}")


def _store_status(
    record: RecordContext,
    raw_id: int,
    unit_of_work_factory: UnitOfWorkFactory,
) -> None:
    try:
        with unit_of_work_factory() as uow:
            uow.repositories.raw_polls.record_status(
                raw_id,
                record.state,
                detail=record.status_detail(),
                clean_poll_id=record.clean_poll_id,
            )
            uow.commit()
    except StorageError:
        log.exception("Raw poll %s: could not store state %s", raw_id, record.state)


@dataclass(frozen=True, slots=True)
class InspectionReport:
    """What cleaning one raw record would do, computed without writing."""

    raw: RawPoll
    status: RawPollStatus | None
    state: RecordState
    fields: NormalizedFields
    failures: tuple[FieldFailure, ...]
    rejection: str | None
    candidate: PollCandidate | None
    planned_outcome: UpsertOutcome | None
    existing_poll_id: int | None
    snapshot_version: str

    def failed_fields(self) -> dict[str, list[FieldFailure]]:
        grouped: dict[str, list[FieldFailure]] = {}
        for failure in self.failures:
            grouped.setdefault(failure.field, []).append(failure)
        return grouped


def inspect_record(
    raw_id: int,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    config: PipelineConfig | None = None,
    snapshot: ReferenceSnapshot | None = None,
) -> InspectionReport:
    """Run normalization, resolution and an upsert plan for one raw record."""

    with unit_of_work_factory() as uow:
        raw = uow.repositories.raw_polls.get(raw_id)
        status = uow.repositories.raw_polls.status_for(raw_id)
    if raw is None:
        raise RawPollNotFound(raw_id)

    active_snapshot = snapshot or load_snapshot(unit_of_work_factory)
    context = build_context(active_snapshot, config or PipelineConfig())
    record = inspection_pipeline().run(RecordContext(raw=raw), context=context)

    planned: UpsertOutcome | None = None
    existing_id: int | None = None
    if record.candidate is not None:
        planned, existing = UpsertEngine(unit_of_work_factory).preview(record.candidate)
        existing_id = existing.id if existing is not None else None

    return InspectionReport(
        raw=raw,
        status=status,
        state=record.state,
        fields=record.fields,
        failures=tuple(record.failures),
        rejection=record.rejection,
        candidate=record.candidate,
        planned_outcome=planned,
        existing_poll_id=existing_id,
        snapshot_version=active_snapshot.version,
    )
