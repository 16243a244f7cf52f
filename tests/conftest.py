from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from pollbase.adapters.sqlalchemy import start_mappers
from pollbase.adapters.sqlalchemy.migrations import upgrade_head
from pollbase.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyIngestUnitOfWork,
    shutdown,
    startup,
)
from pollbase.app import seed_reference_data
from pollbase.config import PipelineConfig
from pollbase.domain.ingest_pipeline import build_context
from tests.helpers.raw_polls import make_snapshot

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from pollbase.domain.ingest_pipeline import PipelineContext
    from pollbase.domain.model import ReferenceSnapshot

DATA_DIR = Path(__file__).resolve().parent / "data"


@pytest.fixture(scope="session")
def data_dir() -> Path:
    return DATA_DIR


@pytest.fixture
def snapshot() -> ReferenceSnapshot:
    return make_snapshot()


@pytest.fixture
def pipeline_context(snapshot: ReferenceSnapshot) -> PipelineContext:
    return build_context(snapshot, PipelineConfig())


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyIngestUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyIngestUnitOfWork:
        return SqlAlchemyIngestUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def file_unit_of_work(tmp_path: Path) -> Iterator[Callable[[], SqlAlchemyIngestUnitOfWork]]:
    """File-backed store; needed whenever several threads share the database."""

    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'pollbase.db'}", future=True)
    startup(engine=engine, force=True)

    def factory() -> SqlAlchemyIngestUnitOfWork:
        return SqlAlchemyIngestUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def seeded_unit_of_work(
    sqlite_unit_of_work: Callable[[], SqlAlchemyIngestUnitOfWork],
) -> Callable[[], SqlAlchemyIngestUnitOfWork]:
    seed_reference_data(DATA_DIR / "reference.toml", unit_of_work_factory=sqlite_unit_of_work)
    return sqlite_unit_of_work
