"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

SCOPE = sa.Enum("federal", "state", "european", "municipal", name="scope", native_enum=False)
REFERENCE_KIND = sa.Enum(
    "institute", "party", "provider", "method", "election", name="referencekind", native_enum=False
)
RECORD_STATE = sa.Enum(
    "unprocessed",
    "normalizing",
    "resolving",
    "rejected",
    "upserted",
    "upsert_failed",
    name="recordstate",
    native_enum=False,
)


def upgrade() -> None:
    op.create_table(
        "institute",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("short_name", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_institute")),
        sa.UniqueConstraint("name", name=op.f("uq_institute_name")),
    )
    op.create_table(
        "party",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("short_name", sa.String(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_party")),
        sa.UniqueConstraint("name", name=op.f("uq_party_name")),
    )
    op.create_table(
        "provider",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_provider")),
        sa.UniqueConstraint("name", name=op.f("uq_provider_name")),
    )
    op.create_table(
        "method",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_method")),
        sa.UniqueConstraint("name", name=op.f("uq_method_name")),
    )
    op.create_table(
        "election",
        sa.Column("id", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("election_date", sa.Date(), nullable=True),
        sa.Column("scope", SCOPE, nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_election")),
        sa.UniqueConstraint("name", name=op.f("uq_election_name")),
    )
    op.create_table(
        "reference_alias",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("kind", REFERENCE_KIND, nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("alias", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_reference_alias")),
        sa.UniqueConstraint("kind", "alias", name=op.f("uq_reference_alias_kind")),
    )
    op.create_table(
        "scope_alias",
        sa.Column("alias", sa.String(), nullable=False),
        sa.Column("scope", SCOPE, nullable=False),
        sa.PrimaryKeyConstraint("alias", name=op.f("pk_scope_alias")),
    )
    op.create_table(
        "raw_poll",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("publish_date_text", sa.String(), nullable=True),
        sa.Column("survey_period_text", sa.String(), nullable=True),
        sa.Column("respondents_text", sa.String(), nullable=True),
        sa.Column("party_results_text", sa.String(), nullable=True),
        sa.Column("institute_name_text", sa.String(), nullable=True),
        sa.Column("provider_name_text", sa.String(), nullable=True),
        sa.Column("scope_text", sa.String(), nullable=True),
        sa.Column("election_ref_text", sa.String(), nullable=True),
        sa.Column("method_ref_text", sa.String(), nullable=True),
        sa.Column("source_url", sa.String(), nullable=True),
        sa.Column("retrieved_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_raw_poll")),
        sqlite_autoincrement=True,
    )
    op.create_index(op.f("ix_raw_poll_source_url"), "raw_poll", ["source_url"])
    op.create_index(op.f("ix_raw_poll_retrieved_at"), "raw_poll", ["retrieved_at"])
    op.create_table(
        "raw_poll_status",
        sa.Column("raw_id", sa.Integer(), nullable=False),
        sa.Column("state", RECORD_STATE, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("detail", sa.String(), nullable=True),
        sa.Column("clean_poll_id", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["raw_id"],
            ["raw_poll.id"],
            name=op.f("fk_raw_poll_status_raw_id_raw_poll"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("raw_id", name=op.f("pk_raw_poll_status")),
    )
    op.create_index(op.f("ix_raw_poll_status_state"), "raw_poll_status", ["state"])
    op.create_table(
        "clean_poll",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("key_token", sa.String(), nullable=False),
        sa.Column("raw_id", sa.Integer(), nullable=True),
        sa.Column("publish_date", sa.Date(), nullable=False),
        sa.Column("survey_date_start", sa.Date(), nullable=True),
        sa.Column("survey_date_end", sa.Date(), nullable=True),
        sa.Column("respondents", sa.Integer(), nullable=True),
        sa.Column("institute_id", sa.Integer(), nullable=True),
        sa.Column("provider_id", sa.Integer(), nullable=True),
        sa.Column("election_id", sa.Integer(), nullable=True),
        sa.Column("method_id", sa.Integer(), nullable=True),
        sa.Column("scope", SCOPE, nullable=True),
        sa.Column("source_url", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "respondents IS NULL OR respondents > 0",
            name=op.f("ck_clean_poll_respondents_positive"),
        ),
        sa.CheckConstraint(
            "survey_date_start IS NULL OR survey_date_end IS NULL "
            "OR survey_date_start <= survey_date_end",
            name=op.f("ck_clean_poll_survey_period_ordered"),
        ),
        sa.ForeignKeyConstraint(
            ["institute_id"], ["institute.id"], name=op.f("fk_clean_poll_institute_id_institute")
        ),
        sa.ForeignKeyConstraint(
            ["provider_id"], ["provider.id"], name=op.f("fk_clean_poll_provider_id_provider")
        ),
        sa.ForeignKeyConstraint(
            ["election_id"], ["election.id"], name=op.f("fk_clean_poll_election_id_election")
        ),
        sa.ForeignKeyConstraint(
            ["method_id"], ["method.id"], name=op.f("fk_clean_poll_method_id_method")
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_clean_poll")),
        sa.UniqueConstraint("key_token", name=op.f("uq_clean_poll_key_token")),
    )
    op.create_index(op.f("ix_clean_poll_publish_date"), "clean_poll", ["publish_date"])
    op.create_table(
        "poll_result",
        sa.Column("poll_id", sa.Integer(), nullable=False),
        sa.Column("party_id", sa.Integer(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.CheckConstraint(
            "percentage >= 0 AND percentage <= 100",
            name=op.f("ck_poll_result_percentage_range"),
        ),
        sa.ForeignKeyConstraint(
            ["poll_id"],
            ["clean_poll.id"],
            name=op.f("fk_poll_result_poll_id_clean_poll"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["party_id"], ["party.id"], name=op.f("fk_poll_result_party_id_party")
        ),
        sa.PrimaryKeyConstraint("poll_id", "party_id", name=op.f("pk_poll_result")),
    )


def downgrade() -> None:
    op.drop_table("poll_result")
    op.drop_index(op.f("ix_clean_poll_publish_date"), table_name="clean_poll")
    op.drop_table("clean_poll")
    op.drop_index(op.f("ix_raw_poll_status_state"), table_name="raw_poll_status")
    op.drop_table("raw_poll_status")
    op.drop_index(op.f("ix_raw_poll_retrieved_at"), table_name="raw_poll")
    op.drop_index(op.f("ix_raw_poll_source_url"), table_name="raw_poll")
    op.drop_table("raw_poll")
    op.drop_table("scope_alias")
    op.drop_table("reference_alias")
    op.drop_table("election")
    op.drop_table("method")
    op.drop_table("provider")
    op.drop_table("party")
    op.drop_table("institute")
