"""Alembic environment for the poll store.

``upgrade_head`` passes an open connection through
``config.attributes["connection"]``; the ``alembic`` command line falls back
to ``sqlalchemy.url`` or the configured ``DATABASE_URI``.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from alembic import context
from sqlalchemy import create_engine, pool

from pollbase.adapters.sqlalchemy import mapper_registry, start_mappers
from pollbase.config import configure_logging, get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection

config = context.config

# keep the caller's logging setup when run from the CLI or the test suite
if not logging.getLogger().handlers:
    configure_logging()

log = logging.getLogger("alembic.env")

start_mappers()

# batch mode lets SQLite rebuild tables for ALTER operations
MIGRATION_OPTIONS: dict[str, Any] = {
    "target_metadata": mapper_registry.metadata,
    "render_as_batch": True,
    "compare_type": True,
    "compare_server_default": True,
}


def _database_url() -> str:
    return config.get_main_option("sqlalchemy.url") or get_database_config().uri


def _migrate(connection: Connection) -> None:
    log.debug("Migrating %s", connection.engine.url.render_as_string(hide_password=True))
    context.configure(connection=connection, **MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_offline() -> None:
    """Emit the migration SQL for ``--sql`` without connecting."""

    context.configure(url=_database_url(), literal_binds=True, **MIGRATION_OPTIONS)
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    passed: Connection | None = config.attributes.get("connection")
    if passed is not None:
        _migrate(passed)
        return

    engine = create_engine(_database_url(), poolclass=pool.NullPool, future=True)
    try:
        with engine.connect() as connection:
            _migrate(connection)
    finally:
        engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
