"""SQLAlchemy-backed unit of work for the cleaning pipeline.

The adapter owns one engine per process. ``startup`` builds it (or adopts a
caller's engine), maps the domain classes and migrates the schema to head;
every unit of work then opens its own session, so worker threads never share
one.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Literal, Self

from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pollbase.adapters.sqlalchemy.mappings import start_mappers
from pollbase.adapters.sqlalchemy.migrations import upgrade_head
from pollbase.adapters.sqlalchemy.repositories import (
    SqlAlchemyCleanPollRepository,
    SqlAlchemyRawPollRepository,
    SqlAlchemyReferenceRepository,
    SqlAlchemyTableStatsRepository,
)
from pollbase.config import get_database_config
from pollbase.domain.errors import IdentityConflict, StorageError
from pollbase.domain.ingest_pipeline.ingest_ports import IngestRepositories
from pollbase.domain.ports.unit_of_work import RepositoryCollection

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """The poll store was used before ``startup()`` or started twice."""


@dataclass(slots=True)
class _Store:
    engine: Engine
    sessions: sessionmaker[Session]


_store: _Store | None = None


def _create_engine(database_uri: str | None) -> Engine:
    config = get_database_config()
    if database_uri is not None:
        config = replace(config, uri=database_uri)
    return create_engine(config.uri, future=True, **config.engine_options())


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Open the poll store, migrate it to head and prepare the session factory."""

    global _store  # noqa: PLW0603
    if _store is not None and not force:
        raise StartupError("Poll store already started. Pass force=True to reconfigure.")

    resolved = engine or _create_engine(database_uri)
    start_mappers()
    upgrade_head(engine=resolved)
    if _store is not None and _store.engine is not resolved:
        _store.engine.dispose()
    _store = _Store(engine=resolved, sessions=sessionmaker(bind=resolved, expire_on_commit=False))
    log.info("Poll store ready at %s", resolved.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _store.engine if _store is not None else None


def is_started() -> bool:
    return _store is not None


def shutdown() -> None:
    """Dispose the engine and forget it (tests call this between cases)."""

    global _store  # noqa: PLW0603
    if _store is not None:
        _store.engine.dispose()
    _store = None


def _sessions() -> sessionmaker[Session]:
    if _store is None:
        raise StartupError(
            "Poll store not started. Call pollbase.adapters.sqlalchemy.unit_of_work.startup() "
            "before opening a unit of work."
        )
    return _store.sessions


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """One session, one transaction; subclasses decide which repositories it exposes."""

    def __init__(self) -> None:
        self._sessions = _sessions()
        self._session: Session | None = None
        self._repositories: TRepositories | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> Self:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self._sessions()
        self._repositories = self._build_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._session

    @property
    def repositories(self) -> TRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work used outside its with-block")
        return self._repositories

    def commit(self) -> None:
        """Commit; a unique-key violation surfaces as ``IdentityConflict``."""

        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise IdentityConflict(str(exc.orig)) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageError(str(exc)) from exc

    def rollback(self) -> None:
        self.session.rollback()


class SqlAlchemyIngestUnitOfWork(BaseSqlAlchemyUnitOfWork[IngestRepositories]):
    """Unit of work for the cleaning pipeline, loaders and read-side queries."""

    def _build_repositories(self, session: Session) -> IngestRepositories:
        return IngestRepositories(
            raw_polls=SqlAlchemyRawPollRepository(session),
            clean_polls=SqlAlchemyCleanPollRepository(session),
            references=SqlAlchemyReferenceRepository(session),
            stats=SqlAlchemyTableStatsRepository(session),
        )


if TYPE_CHECKING:
    from pollbase.domain.ingest_pipeline.ingest_ports import IngestUnitOfWork

    _uow_check: IngestUnitOfWork = SqlAlchemyIngestUnitOfWork()
