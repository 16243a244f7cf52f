from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING

import pytest

from pollbase import app
from pollbase.adapters.sqlalchemy.unit_of_work import shutdown
from pollbase.domain.model import RecordState, Scope, UpsertOutcome
from pollbase.domain.queries import CleanPollFilter, ResultFilter

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from pollbase.adapters.sqlalchemy import SqlAlchemyIngestUnitOfWork

    type Factory = Callable[[], SqlAlchemyIngestUnitOfWork]


@pytest.fixture
def cleaned(seeded_unit_of_work: Factory, data_dir: Path) -> Factory:
    app.import_raw_polls(data_dir / "raw_polls.jsonl", unit_of_work_factory=seeded_unit_of_work)
    app.clean_only(unit_of_work_factory=seeded_unit_of_work)
    return seeded_unit_of_work


def test_run_full_pipeline_seeds_imports_and_cleans(
    sqlite_unit_of_work: Factory, data_dir: Path
) -> None:
    result = app.run_full_pipeline(
        raw_path=data_dir / "raw_polls.jsonl",
        reference_path=data_dir / "reference.toml",
        unit_of_work_factory=sqlite_unit_of_work,
    )

    assert result.imported == 3
    assert result.seed is not None
    assert result.seed.entities == 18
    summary = result.summary
    assert (summary.inserted, summary.rejected, summary.total) == (2, 1, 3)


def test_cleaned_polls_carry_resolved_references(cleaned: Factory) -> None:
    polls = app.query_clean_polls(CleanPollFilter(), unit_of_work_factory=cleaned)

    assert [poll.institute_id for poll in polls] == [2, 1]
    infratest, forsa = polls
    assert infratest.publish_date == date(2024, 6, 25)
    assert (infratest.election_id, infratest.method_id, infratest.respondents) == (2, 2, 1228)
    assert {(result.party_id, result.percentage) for result in infratest.results} == {
        (1, 31.0),
        (2, 14.5),
        (3, 16.0),
        (4, 13.0),
    }
    assert forsa.scope is Scope.FEDERAL
    assert (forsa.election_id, forsa.method_id, forsa.provider_id) == (2, 1, 1)
    assert forsa.survey_date_start == date(2024, 6, 18)
    assert len(forsa.results) == 6


def test_cleaning_twice_changes_nothing(cleaned: Factory) -> None:
    before = app.report_row_counts(unit_of_work_factory=cleaned)

    summary = app.clean_only(reprocess=True, unit_of_work_factory=cleaned)

    assert (summary.unchanged, summary.rejected, summary.inserted, summary.updated) == (2, 1, 0, 0)
    after = app.report_row_counts(unit_of_work_factory=cleaned)
    assert after == before
    assert after["clean_poll"] == 2
    assert after["poll_result"] == 10


def test_rejected_records_can_be_retried(cleaned: Factory) -> None:
    untouched = app.clean_only(unit_of_work_factory=cleaned)
    retried = app.clean_only(retry_failed=True, unit_of_work_factory=cleaned)

    assert untouched.total == 0
    assert (retried.rejected, retried.total) == (1, 1)


def test_results_view_filters_by_party(cleaned: Factory) -> None:
    rows = app.query_results(ResultFilter(party_id=1), unit_of_work_factory=cleaned)
    state_rows = app.query_results(
        ResultFilter(polls=CleanPollFilter(scope=Scope.STATE)), unit_of_work_factory=cleaned
    )

    assert [(row.publish_date, row.percentage) for row in rows] == [
        (date(2024, 6, 25), 31.0),
        (date(2024, 6, 24), 30.5),
    ]
    assert state_rows == []


def test_inspect_raw_record_explains_rejection(cleaned: Factory) -> None:
    report = app.inspect_raw_record(3, unit_of_work_factory=cleaned)

    assert report.status is not None
    assert report.status.state is RecordState.REJECTED
    assert report.state is RecordState.REJECTED
    assert list(report.failed_fields()) == ["publish_date"]


def test_inspect_raw_record_plans_unchanged_for_stored_poll(cleaned: Factory) -> None:
    report = app.inspect_raw_record(1, unit_of_work_factory=cleaned)

    assert report.planned_outcome is UpsertOutcome.UNCHANGED
    assert report.existing_poll_id is not None


def test_find_raw_polls_requires_exactly_one_selector(cleaned: Factory) -> None:
    by_source = app.find_raw_polls(
        source_url="https://example.org/forsa", unit_of_work_factory=cleaned
    )
    latest = app.find_raw_polls(latest=2, unit_of_work_factory=cleaned)
    by_id = app.find_raw_polls(raw_id=42, unit_of_work_factory=cleaned)

    assert [raw.id for raw in by_source] == [1]
    assert len(latest) == 2
    assert by_id == []
    with pytest.raises(ValueError, match="exactly one"):
        app.find_raw_polls(unit_of_work_factory=cleaned)
    with pytest.raises(ValueError, match="exactly one"):
        app.find_raw_polls(raw_id=1, latest=1, unit_of_work_factory=cleaned)


def test_reference_snapshot_reflects_seed(seeded_unit_of_work: Factory) -> None:
    snapshot = app.reference_snapshot(unit_of_work_factory=seeded_unit_of_work)

    assert len(snapshot.parties) == 7
    assert snapshot.version


def test_migrate_reports_head_revision(tmp_path: Path) -> None:
    revision = app.migrate(database_uri=f"sqlite+pysqlite:///{tmp_path / 'migrated.db'}")

    assert revision == "0001"


def test_services_start_the_adapter_on_demand(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    shutdown()
    monkeypatch.setenv("DATABASE_URI", f"sqlite+pysqlite:///{tmp_path / 'on-demand.db'}")
    try:
        counts = app.report_row_counts()
    finally:
        shutdown()

    assert counts["raw_poll"] == 0
