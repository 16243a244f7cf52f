"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pollbase.adapters.sqlalchemy.mappings import (
    clean_poll_table,
    mapper_registry,
    poll_result_table,
    raw_poll_status_table,
    raw_poll_table,
    reference_alias_table,
)
from pollbase.domain.errors import IdentityConflict, StorageError
from pollbase.domain.ingest_pipeline.resolution import normalize_alias
from pollbase.domain.model import (
    RETRYABLE_STATES,
    CleanPoll,
    Election,
    Institute,
    Method,
    Party,
    PollResult,
    Provider,
    RawPoll,
    RawPollStatus,
    RecordState,
    ReferenceAlias,
    ReferenceSnapshot,
    ScopeAlias,
)
from pollbase.domain.queries import ResultRow

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence

    from sqlalchemy.orm import Session
    from sqlalchemy.sql.elements import ColumnElement

    from pollbase.domain.model import ReferenceEntity, ResultValue
    from pollbase.domain.queries import CleanPollFilter, ResultFilter


def flush(session: Session) -> None:
    """Flush pending changes, translating driver errors to domain errors."""

    try:
        session.flush()
    except IntegrityError as exc:
        raise IdentityConflict(str(exc.orig)) from exc
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc


@contextmanager
def reading() -> Iterator[None]:
    """Surface driver errors raised by queries as ``StorageError``."""

    try:
        yield
    except SQLAlchemyError as exc:
        raise StorageError(str(exc)) from exc


class SqlAlchemyRawPollRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, raw: RawPoll) -> None:
        self.session.add(raw)
        flush(self.session)

    def get(self, raw_id: int) -> RawPoll | None:
        with reading():
            return self.session.get(RawPoll, raw_id)

    def select_for_processing(
        self,
        *,
        ids: Sequence[int] | None = None,
        limit: int | None = None,
        include_failed: bool = False,
        include_processed: bool = False,
    ) -> list[RawPoll]:
        stmt = select(RawPoll).outerjoin(
            raw_poll_status_table, raw_poll_status_table.c.raw_id == raw_poll_table.c.id
        )
        if ids is not None:
            stmt = stmt.where(raw_poll_table.c.id.in_(list(ids)))
        if not include_processed:
            states = {RecordState.UNPROCESSED}
            if include_failed:
                states |= RETRYABLE_STATES
            stmt = stmt.where(
                or_(
                    raw_poll_status_table.c.state.is_(None),
                    raw_poll_status_table.c.state.in_(sorted(states)),
                )
            )
        stmt = stmt.order_by(raw_poll_table.c.id)
        if limit:
            stmt = stmt.limit(limit)
        with reading():
            return list(self.session.execute(stmt).scalars())

    def status_for(self, raw_id: int) -> RawPollStatus | None:
        with reading():
            return self.session.get(RawPollStatus, raw_id)

    def record_status(
        self,
        raw_id: int,
        state: RecordState,
        *,
        detail: str | None = None,
        clean_poll_id: int | None = None,
    ) -> RawPollStatus:
        status = self.status_for(raw_id)
        if status is None:
            status = RawPollStatus(raw_id=raw_id)
            self.session.add(status)
        status.record_attempt(state, detail=detail, clean_poll_id=clean_poll_id)
        return status

    def by_source(self, source_url: str) -> list[RawPoll]:
        stmt = (
            select(RawPoll)
            .where(raw_poll_table.c.source_url == source_url)
            .order_by(raw_poll_table.c.id)
        )
        with reading():
            return list(self.session.execute(stmt).scalars())

    def latest(self, count: int) -> list[RawPoll]:
        stmt = (
            select(RawPoll)
            .order_by(raw_poll_table.c.retrieved_at.desc(), raw_poll_table.c.id.desc())
            .limit(count)
        )
        with reading():
            return list(self.session.execute(stmt).scalars())


def _poll_conditions(poll_filter: CleanPollFilter) -> list[ColumnElement[bool]]:
    columns = clean_poll_table.c
    conditions: list[ColumnElement[bool]] = []
    if poll_filter.scope is not None:
        conditions.append(columns.scope == poll_filter.scope)
    if poll_filter.institute_id is not None:
        conditions.append(columns.institute_id == poll_filter.institute_id)
    if poll_filter.provider_id is not None:
        conditions.append(columns.provider_id == poll_filter.provider_id)
    if poll_filter.election_id is not None:
        conditions.append(columns.election_id == poll_filter.election_id)
    if poll_filter.method_id is not None:
        conditions.append(columns.method_id == poll_filter.method_id)
    if poll_filter.published_from is not None:
        conditions.append(columns.publish_date >= poll_filter.published_from)
    if poll_filter.published_to is not None:
        conditions.append(columns.publish_date <= poll_filter.published_to)
    return conditions


class SqlAlchemyCleanPollRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, poll: CleanPoll) -> None:
        self.session.add(poll)
        flush(self.session)

    def get(self, poll_id: int) -> CleanPoll | None:
        with reading():
            return self.session.get(CleanPoll, poll_id)

    def get_by_identity(self, key_token: str) -> CleanPoll | None:
        stmt = select(CleanPoll).where(clean_poll_table.c.key_token == key_token)
        with reading():
            return self.session.execute(stmt).scalar_one_or_none()

    def replace_results(self, poll: CleanPoll, results: Sequence[ResultValue]) -> None:
        """Swap the whole result set of ``poll``; the caller commits."""

        poll.results.clear()
        # deletes must reach the database before rows with the same key return
        flush(self.session)
        poll.results.extend(
            PollResult(party_id=value.party_id, percentage=value.percentage) for value in results
        )
        flush(self.session)

    def query(self, poll_filter: CleanPollFilter) -> list[CleanPoll]:
        stmt = (
            select(CleanPoll)
            .where(*_poll_conditions(poll_filter))
            .order_by(clean_poll_table.c.publish_date.desc(), clean_poll_table.c.id)
            .offset(poll_filter.offset)
        )
        if poll_filter.limit is not None:
            stmt = stmt.limit(poll_filter.limit)
        with reading():
            return list(self.session.execute(stmt).scalars())

    def results_view(self, result_filter: ResultFilter) -> list[ResultRow]:
        polls = clean_poll_table.c
        results = poll_result_table.c
        stmt = (
            select(
                polls.id,
                polls.publish_date,
                polls.institute_id,
                polls.provider_id,
                polls.election_id,
                polls.scope,
                results.party_id,
                results.percentage,
            )
            .join_from(clean_poll_table, poll_result_table, results.poll_id == polls.id)
            .where(*_poll_conditions(result_filter.polls))
            .order_by(polls.publish_date.desc(), polls.id, results.party_id)
            .offset(result_filter.polls.offset)
        )
        if result_filter.party_id is not None:
            stmt = stmt.where(results.party_id == result_filter.party_id)
        if result_filter.polls.limit is not None:
            stmt = stmt.limit(result_filter.polls.limit)
        with reading():
            rows = self.session.execute(stmt).all()
        return [
            ResultRow(
                poll_id=row.id,
                publish_date=row.publish_date,
                institute_id=row.institute_id,
                provider_id=row.provider_id,
                election_id=row.election_id,
                scope=row.scope,
                party_id=row.party_id,
                percentage=row.percentage,
            )
            for row in rows
        ]


class SqlAlchemyReferenceRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def snapshot(self) -> ReferenceSnapshot:
        def load[TEntity](entity_cls: type[TEntity]) -> list[TEntity]:
            with reading():
                return list(self.session.execute(select(entity_cls)).scalars())

        return ReferenceSnapshot.build(
            institutes=load(Institute),
            parties=load(Party),
            providers=load(Provider),
            methods=load(Method),
            elections=load(Election),
            aliases=load(ReferenceAlias),
            scope_aliases=load(ScopeAlias),
        )

    def save_entity(self, entity: ReferenceEntity) -> None:
        """Insert or update the row with ``entity.id``."""

        self.session.merge(entity)
        flush(self.session)

    def save_alias(self, alias: ReferenceAlias) -> bool:
        """Store ``alias``; return False when it was already bound to that entity.

        An alias whose normalized spelling is bound to another entity of the
        same kind is moved to ``alias.entity_id``.
        """

        normalized = normalize_alias(alias.alias)
        stmt = select(ReferenceAlias).where(reference_alias_table.c.kind == alias.kind)
        with reading():
            candidates = list(self.session.execute(stmt).scalars())
        for existing in candidates:
            if normalize_alias(existing.alias) != normalized:
                continue
            if existing.entity_id == alias.entity_id:
                return False
            existing.entity_id = alias.entity_id
            flush(self.session)
            return True
        self.session.add(alias)
        flush(self.session)
        return True

    def save_scope_alias(self, alias: ScopeAlias) -> bool:
        normalized = normalize_alias(alias.alias)
        with reading():
            candidates = list(self.session.execute(select(ScopeAlias)).scalars())
        for existing in candidates:
            if normalize_alias(existing.alias) != normalized:
                continue
            if existing.scope == alias.scope:
                return False
            existing.scope = alias.scope
            flush(self.session)
            return True
        self.session.add(alias)
        flush(self.session)
        return True


class SqlAlchemyTableStatsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def row_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for table in mapper_registry.metadata.sorted_tables:
            stmt = select(func.count()).select_from(table)
            with reading():
                counts[table.name] = int(self.session.execute(stmt).scalar_one())
        return counts
