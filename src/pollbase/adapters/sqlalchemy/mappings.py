"""SQLAlchemy mapping metadata for the pollbase domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from functools import cache
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    orm,
)
from sqlalchemy.orm import configure_mappers, relationship

from pollbase.domain.model import (
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
    ReferenceKind,
    Scope,
    ScopeAlias,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


def _enum(enum_cls: type[StrEnum]) -> Enum:
    # store the lowercase values, which are also the CLI and seed-file spelling
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [member.value for member in members],
        validate_strings=True,
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Reference tables ------------------------------------------------------------

institute_table = Table(
    "institute",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String, nullable=False, unique=True),
    Column("short_name", String, nullable=True),
)

party_table = Table(
    "party",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String, nullable=False, unique=True),
    Column("short_name", String, nullable=True),
    Column("color", String, nullable=True),
)

provider_table = Table(
    "provider",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String, nullable=False, unique=True),
)

method_table = Table(
    "method",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String, nullable=False, unique=True),
    Column("description", String, nullable=True),
)

election_table = Table(
    "election",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=False),
    Column("name", String, nullable=False, unique=True),
    Column("election_date", Date, nullable=True),
    Column("scope", _enum(Scope), nullable=True),
)

reference_alias_table = Table(
    "reference_alias",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("kind", _enum(ReferenceKind), nullable=False),
    Column("entity_id", Integer, nullable=False),
    Column("alias", String, nullable=False),
    UniqueConstraint("kind", "alias"),
)

scope_alias_table = Table(
    "scope_alias",
    mapper_registry.metadata,
    Column("alias", String, primary_key=True),
    Column("scope", _enum(Scope), nullable=False),
)

# Raw tables ------------------------------------------------------------------

raw_poll_table = Table(
    "raw_poll",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("publish_date_text", String, nullable=True),
    Column("survey_period_text", String, nullable=True),
    Column("respondents_text", String, nullable=True),
    Column("party_results_text", String, nullable=True),
    Column("institute_name_text", String, nullable=True),
    Column("provider_name_text", String, nullable=True),
    Column("scope_text", String, nullable=True),
    Column("election_ref_text", String, nullable=True),
    Column("method_ref_text", String, nullable=True),
    Column("source_url", String, nullable=True),
    Column("retrieved_at", UTCDateTime(), nullable=False),
    Index(None, "source_url"),
    Index(None, "retrieved_at"),
    sqlite_autoincrement=True,
)

raw_poll_status_table = Table(
    "raw_poll_status",
    mapper_registry.metadata,
    Column(
        "raw_id",
        Integer,
        ForeignKey("raw_poll.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("state", _enum(RecordState), nullable=False),
    Column("attempts", Integer, nullable=False, default=0),
    Column("detail", String, nullable=True),
    Column("clean_poll_id", Integer, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index(None, "state"),
)

# Clean tables ----------------------------------------------------------------

clean_poll_table = Table(
    "clean_poll",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True),
    Column("key_token", String, nullable=False, unique=True),
    Column("raw_id", Integer, nullable=True),
    Column("publish_date", Date, nullable=False),
    Column("survey_date_start", Date, nullable=True),
    Column("survey_date_end", Date, nullable=True),
    Column("respondents", Integer, nullable=True),
    Column("institute_id", Integer, ForeignKey("institute.id"), nullable=True),
    Column("provider_id", Integer, ForeignKey("provider.id"), nullable=True),
    Column("election_id", Integer, ForeignKey("election.id"), nullable=True),
    Column("method_id", Integer, ForeignKey("method.id"), nullable=True),
    Column("scope", _enum(Scope), nullable=True),
    Column("source_url", String, nullable=True),
    Column("updated_at", UTCDateTime(), nullable=True),
    CheckConstraint("respondents IS NULL OR respondents > 0", name="respondents_positive"),
    CheckConstraint(
        "survey_date_start IS NULL OR survey_date_end IS NULL "
        "OR survey_date_start <= survey_date_end",
        name="survey_period_ordered",
    ),
    Index(None, "publish_date"),
)

poll_result_table = Table(
    "poll_result",
    mapper_registry.metadata,
    Column(
        "poll_id",
        Integer,
        ForeignKey("clean_poll.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("party_id", Integer, ForeignKey("party.id"), primary_key=True),
    Column("percentage", Float, nullable=False),
    CheckConstraint("percentage >= 0 AND percentage <= 100", name="percentage_range"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(Institute, institute_table)
    mapper_registry.map_imperatively(Party, party_table)
    mapper_registry.map_imperatively(Provider, provider_table)
    mapper_registry.map_imperatively(Method, method_table)
    mapper_registry.map_imperatively(Election, election_table)
    mapper_registry.map_imperatively(ReferenceAlias, reference_alias_table)
    mapper_registry.map_imperatively(ScopeAlias, scope_alias_table)

    mapper_registry.map_imperatively(RawPoll, raw_poll_table)
    mapper_registry.map_imperatively(RawPollStatus, raw_poll_status_table)

    mapper_registry.map_imperatively(PollResult, poll_result_table)
    mapper_registry.map_imperatively(
        CleanPoll,
        clean_poll_table,
        properties={
            "results": relationship(
                PollResult,
                cascade="all, delete-orphan",
                lazy="selectin",
                order_by=poll_result_table.c.party_id,
            ),
        },
    )

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
