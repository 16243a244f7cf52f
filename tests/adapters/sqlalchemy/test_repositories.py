"""Tests for SQLAlchemy repositories."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

from sqlalchemy.orm import Session  # noqa: TC002

from pollbase.adapters.sqlalchemy.repositories import (
    SqlAlchemyCleanPollRepository,
    SqlAlchemyRawPollRepository,
    SqlAlchemyReferenceRepository,
    SqlAlchemyTableStatsRepository,
)
from pollbase.domain.model import (
    CleanPoll,
    Election,
    Institute,
    PollCandidate,
    RecordState,
    ReferenceAlias,
    ReferenceKind,
    ResultValue,
    Scope,
    ScopeAlias,
)
from pollbase.domain.queries import CleanPollFilter, ResultFilter
from tests.helpers.raw_polls import make_raw_poll


def _store_poll(
    repository: SqlAlchemyCleanPollRepository,
    *,
    publish_date: date,
    institute_id: int,
    results: tuple[ResultValue, ...] = (),
) -> CleanPoll:
    poll = CleanPoll.from_candidate(
        PollCandidate(
            publish_date=publish_date,
            institute_id=institute_id,
            scope=Scope.FEDERAL,
            results=results,
        )
    )
    repository.add(poll)
    return poll


def test_raw_poll_selection_follows_status(sqlite_session: Session) -> None:
    repository = SqlAlchemyRawPollRepository(sqlite_session)
    raws = [make_raw_poll(source_url=f"https://example.org/{index}") for index in range(4)]
    for raw in raws:
        repository.add(raw)
    ids = [raw.id for raw in raws]
    assert None not in ids
    repository.record_status(ids[1], RecordState.UPSERTED, clean_poll_id=7)
    repository.record_status(ids[2], RecordState.REJECTED, detail="no date")
    sqlite_session.commit()

    def selected(**kwargs: object) -> list[int | None]:
        found = repository.select_for_processing(**kwargs)  # pyright: ignore[reportArgumentType]
        return [raw.id for raw in found]

    assert selected() == [ids[0], ids[3]]
    assert selected(include_failed=True) == [ids[0], ids[2], ids[3]]
    assert selected(include_processed=True) == ids
    assert selected(ids=[ids[1], ids[3]]) == [ids[3]]
    assert selected(limit=1) == [ids[0]]


def test_record_status_counts_attempts(sqlite_session: Session) -> None:
    repository = SqlAlchemyRawPollRepository(sqlite_session)
    raw = make_raw_poll()
    repository.add(raw)
    assert raw.id is not None

    repository.record_status(raw.id, RecordState.REJECTED, detail="no date")
    status = repository.record_status(raw.id, RecordState.UPSERTED, clean_poll_id=3)
    sqlite_session.commit()

    assert status.attempts == 2
    assert status.detail is None
    stored = repository.status_for(raw.id)
    assert stored is not None
    assert stored.state is RecordState.UPSERTED
    assert stored.clean_poll_id == 3
    assert stored.updated_at.tzinfo is not None


def test_raw_poll_lookup_by_source_and_recency(sqlite_session: Session) -> None:
    repository = SqlAlchemyRawPollRepository(sqlite_session)
    base = datetime(2024, 6, 1, tzinfo=UTC)
    for offset, url in enumerate(["https://a", "https://b", "https://a"]):
        raw = make_raw_poll(source_url=url)
        raw.retrieved_at = base + timedelta(hours=offset)
        repository.add(raw)
    sqlite_session.commit()

    assert len(repository.by_source("https://a")) == 2
    assert [raw.source_url for raw in repository.latest(2)] == ["https://a", "https://b"]


def test_clean_poll_identity_lookup_and_result_replacement(sqlite_session: Session) -> None:
    repository = SqlAlchemyCleanPollRepository(sqlite_session)
    poll = _store_poll(
        repository,
        publish_date=date(2024, 6, 24),
        institute_id=1,
        results=(ResultValue(party_id=1, percentage=30.5), ResultValue(party_id=2, percentage=15.0)),
    )
    sqlite_session.commit()

    found = repository.get_by_identity(poll.key_token)
    assert found is poll

    repository.replace_results(
        poll, [ResultValue(party_id=2, percentage=16.0), ResultValue(party_id=3, percentage=17.0)]
    )
    sqlite_session.commit()
    sqlite_session.expire_all()

    reloaded = repository.get(poll.id or 0)
    assert reloaded is not None
    assert reloaded.result_values == frozenset(
        {ResultValue(party_id=2, percentage=16.0), ResultValue(party_id=3, percentage=17.0)}
    )
    assert repository.get_by_identity("missing") is None


def test_clean_poll_query_and_results_view(sqlite_session: Session) -> None:
    repository = SqlAlchemyCleanPollRepository(sqlite_session)
    _store_poll(
        repository,
        publish_date=date(2024, 6, 1),
        institute_id=1,
        results=(ResultValue(party_id=1, percentage=30.0),),
    )
    _store_poll(
        repository,
        publish_date=date(2024, 6, 8),
        institute_id=2,
        results=(ResultValue(party_id=1, percentage=31.0), ResultValue(party_id=2, percentage=15.0)),
    )
    sqlite_session.commit()

    newest_first = repository.query(CleanPollFilter())
    from_institute = repository.query(CleanPollFilter(institute_id=1))
    in_june_first_week = repository.query(
        CleanPollFilter(published_from=date(2024, 6, 1), published_to=date(2024, 6, 7))
    )
    union_rows = repository.results_view(ResultFilter(party_id=1))

    assert [poll.publish_date for poll in newest_first] == [date(2024, 6, 8), date(2024, 6, 1)]
    assert [poll.institute_id for poll in from_institute] == [1]
    assert len(in_june_first_week) == 1
    assert [(row.publish_date, row.percentage) for row in union_rows] == [
        (date(2024, 6, 8), 31.0),
        (date(2024, 6, 1), 30.0),
    ]
    assert union_rows[0].scope is Scope.FEDERAL


def test_reference_repository_builds_snapshot(sqlite_session: Session) -> None:
    repository = SqlAlchemyReferenceRepository(sqlite_session)
    repository.save_entity(Institute(id=1, name="Forsa", short_name="forsa"))
    repository.save_entity(
        Election(id=1, name="Europawahl 2024", election_date=date(2024, 6, 9), scope=Scope.EUROPEAN)
    )
    assert repository.save_alias(
        ReferenceAlias(kind=ReferenceKind.INSTITUTE, entity_id=1, alias="Forsa GmbH")
    )
    assert repository.save_scope_alias(ScopeAlias(alias="EU", scope=Scope.EUROPEAN))
    sqlite_session.commit()

    snapshot = repository.snapshot()

    assert snapshot.aliases_for(ReferenceKind.INSTITUTE)[1] == frozenset(
        {"Forsa", "forsa", "Forsa GmbH"}
    )
    assert "EU" in snapshot.scope_aliases[Scope.EUROPEAN]
    assert snapshot.elections[0].scope is Scope.EUROPEAN
    assert snapshot.version


def test_save_entity_updates_existing_rows(sqlite_session: Session) -> None:
    repository = SqlAlchemyReferenceRepository(sqlite_session)
    repository.save_entity(Institute(id=1, name="Forsa"))
    repository.save_entity(Institute(id=1, name="Forsa", short_name="forsa"))
    sqlite_session.commit()

    (institute,) = repository.snapshot().institutes
    assert institute.short_name == "forsa"


def test_save_alias_skips_known_and_repoints_moved_aliases(sqlite_session: Session) -> None:
    repository = SqlAlchemyReferenceRepository(sqlite_session)

    def party_alias(entity_id: int, alias: str) -> bool:
        return repository.save_alias(
            ReferenceAlias(kind=ReferenceKind.PARTY, entity_id=entity_id, alias=alias)
        )

    first = party_alias(1, "Union")
    same = party_alias(1, "UNION")
    moved = party_alias(2, "union")
    other_kind = repository.save_alias(
        ReferenceAlias(kind=ReferenceKind.INSTITUTE, entity_id=1, alias="Union")
    )
    sqlite_session.commit()

    assert (first, same, moved, other_kind) == (True, False, True, True)
    stats = SqlAlchemyTableStatsRepository(sqlite_session).row_counts()
    assert stats["reference_alias"] == 2
