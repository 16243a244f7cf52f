from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date
from typing import TYPE_CHECKING

import pytest

from pollbase.domain.errors import StorageError, UpsertFailed
from pollbase.domain.ingest_pipeline import (
    KeyedLock,
    RecordContext,
    UpsertEngine,
    UpsertPhase,
    plan_upsert,
)
from pollbase.domain.model import (
    CleanPoll,
    PollCandidate,
    RecordState,
    ResultValue,
    Scope,
    UpsertOutcome,
)
from tests.helpers.fake_storage import FakeStore
from tests.helpers.raw_polls import make_raw_poll

if TYPE_CHECKING:
    from pollbase.domain.ingest_pipeline import PipelineContext


def _candidate(**overrides: object) -> PollCandidate:
    candidate = PollCandidate(
        publish_date=date(2024, 6, 24),
        raw_id=1,
        survey_date_start=date(2024, 6, 18),
        survey_date_end=date(2024, 6, 24),
        respondents=1005,
        institute_id=1,
        provider_id=1,
        scope=Scope.FEDERAL,
        results=(ResultValue(party_id=1, percentage=30.5), ResultValue(party_id=2, percentage=15.0)),
    )
    return replace(candidate, **overrides)  # pyright: ignore[reportArgumentType]


def _engine(store: FakeStore, **kwargs: object) -> UpsertEngine:
    return UpsertEngine(store.factory, KeyedLock(), **kwargs)  # pyright: ignore[reportArgumentType]


def test_plan_upsert_compares_content_and_results() -> None:
    stored = CleanPoll.from_candidate(_candidate())

    assert plan_upsert(_candidate(), None) is UpsertOutcome.INSERTED
    assert plan_upsert(_candidate(), stored) is UpsertOutcome.UNCHANGED
    assert plan_upsert(_candidate(respondents=1010), stored) is UpsertOutcome.UPDATED
    assert plan_upsert(_candidate(results=()), stored) is UpsertOutcome.UPDATED


def test_plan_upsert_ignores_raw_id_and_result_order() -> None:
    stored = CleanPoll.from_candidate(_candidate())
    reordered = _candidate(
        raw_id=99,
        results=(ResultValue(party_id=2, percentage=15.0), ResultValue(party_id=1, percentage=30.5)),
    )

    assert plan_upsert(reordered, stored) is UpsertOutcome.UNCHANGED


def test_upsert_inserts_then_skips_identical_candidates() -> None:
    store = FakeStore.create()
    engine = _engine(store)

    first = engine.upsert(_candidate())
    second = engine.upsert(_candidate(raw_id=2))

    assert first.outcome is UpsertOutcome.INSERTED
    assert second.outcome is UpsertOutcome.UNCHANGED
    assert second.poll_id == first.poll_id
    assert store.repositories.clean_polls.writes == 1
    assert store.commits == 1


def test_upsert_updates_changed_content_in_place() -> None:
    store = FakeStore.create()
    engine = _engine(store)
    inserted = engine.upsert(_candidate())

    updated = engine.upsert(
        _candidate(respondents=1010, results=(ResultValue(party_id=1, percentage=31.0),))
    )

    assert updated.outcome is UpsertOutcome.UPDATED
    assert updated.poll_id == inserted.poll_id
    (poll,) = store.polls
    assert poll.respondents == 1010
    assert poll.result_values == frozenset({ResultValue(party_id=1, percentage=31.0)})
    assert poll.updated_at is not None


def test_identity_key_separates_polls() -> None:
    store = FakeStore.create()
    engine = _engine(store)

    engine.upsert(_candidate())
    other = engine.upsert(_candidate(provider_id=2))

    assert other.outcome is UpsertOutcome.INSERTED
    assert len(store.polls) == 2


def test_identity_conflict_is_reevaluated_against_the_stored_row() -> None:
    store = FakeStore.create()
    store.repositories.clean_polls.competitors.append(CleanPoll.from_candidate(_candidate()))
    engine = _engine(store)

    result = engine.upsert(_candidate())

    assert result.outcome is UpsertOutcome.UNCHANGED
    assert len(store.polls) == 1
    assert store.rollbacks == 1


def test_identity_conflict_beyond_retry_budget_fails() -> None:
    store = FakeStore.create()
    store.repositories.clean_polls.competitors.append(CleanPoll.from_candidate(_candidate()))
    engine = _engine(store, max_conflict_retries=0)

    with pytest.raises(UpsertFailed):
        engine.upsert(_candidate())


def test_storage_errors_become_upsert_failures() -> None:
    store = FakeStore.create()
    store.repositories.clean_polls.failures.append(StorageError("disk I/O error"))
    engine = _engine(store)

    with pytest.raises(UpsertFailed) as excinfo:
        engine.upsert(_candidate())

    assert excinfo.value.reason == "disk I/O error"
    assert store.polls == []
    assert store.commits == 0


def test_concurrent_upserts_of_one_key_insert_once() -> None:
    store = FakeStore.create()
    locks = KeyedLock()
    engine = UpsertEngine(store.factory, locks)  # pyright: ignore[reportArgumentType]

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(lambda _: engine.upsert(_candidate()).outcome, range(16)))

    assert outcomes.count(UpsertOutcome.INSERTED) == 1
    assert outcomes.count(UpsertOutcome.UNCHANGED) == 15
    assert len(store.polls) == 1
    assert len(locks) == 0


def test_keyed_lock_only_blocks_the_same_key() -> None:
    locks = KeyedLock()
    entered = threading.Event()

    def hold_other_key() -> None:
        with locks.hold("b"):
            entered.set()

    with locks.hold("a"):
        assert len(locks) == 1
        worker = threading.Thread(target=hold_other_key)
        worker.start()
        assert entered.wait(timeout=5)
        worker.join()

    assert len(locks) == 0


def test_upsert_phase_records_outcome(pipeline_context: PipelineContext) -> None:
    store = FakeStore.create()
    pipeline_context.upsert_engine = _engine(store)
    record = RecordContext(raw=make_raw_poll(id=1), state=RecordState.RESOLVING)
    record.candidate = _candidate()

    UpsertPhase().run(record, context=pipeline_context)

    assert record.state is RecordState.UPSERTED
    assert record.outcome is UpsertOutcome.INSERTED
    assert record.clean_poll_id == store.polls[0].id


def test_upsert_phase_marks_failed_upserts(pipeline_context: PipelineContext) -> None:
    store = FakeStore.create()
    store.repositories.clean_polls.failures.append(StorageError("database is locked"))
    pipeline_context.upsert_engine = _engine(store)
    record = RecordContext(raw=make_raw_poll(id=1), state=RecordState.RESOLVING)
    record.candidate = _candidate()

    UpsertPhase().run(record, context=pipeline_context)

    assert record.state is RecordState.UPSERT_FAILED
    assert record.rejection == "database is locked"
    assert record.outcome is None
