"""Run the bundled alembic migrations without an ``alembic.ini``."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Final

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory

from pollbase.config import get_database_config

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

MIGRATIONS_PATH: Final[Path] = Path(__file__).resolve().parent

log = logging.getLogger(__name__)


def _alembic_config(database_uri: str | None = None) -> Config:
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_PATH))
    if database_uri is not None:
        config.set_main_option("sqlalchemy.url", database_uri)
    return config


def head_revision() -> str | None:
    """Newest revision shipped with this package."""

    return ScriptDirectory.from_config(_alembic_config()).get_current_head()


def upgrade_head(*, engine: Engine | None = None, database_uri: str | None = None) -> None:
    """Upgrade ``engine`` (or the database at ``database_uri``) to the newest revision."""

    log.info("Upgrading poll store schema to %s", head_revision())
    if engine is None:
        command.upgrade(_alembic_config(database_uri or get_database_config().uri), "head")
        return

    config = _alembic_config()
    with engine.begin() as connection:
        config.attributes["connection"] = connection
        command.upgrade(config, "head")


def current_revision(engine: Engine) -> str | None:
    """Revision stamped in the database; ``None`` for an empty one."""

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
