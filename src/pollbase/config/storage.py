"""Where the poll store lives and how to connect to it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_bool_env, optional_float_env

APP_DIR_NAME: Final[str] = "pollbase"
DEFAULT_DB_FILENAME: Final[str] = "pollbase.db"
DEFAULT_SQLITE_TIMEOUT: Final[float] = 30.0


def platform_data_home() -> Path:
    """``%LOCALAPPDATA%`` on Windows, ``$XDG_DATA_HOME`` or ``~/.local/share`` elsewhere."""

    if os.name == "nt":
        configured = os.getenv("LOCALAPPDATA")
        return Path(configured) if configured else Path.home() / "AppData" / "Local"
    configured = os.getenv("XDG_DATA_HOME")
    return Path(configured) if configured else Path.home() / ".local" / "share"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    @property
    def database_path(self) -> Path:
        return self.data_dir.expanduser().resolve() / self.database_filename

    def sqlite_uri(self, *, create_dir: bool = True) -> str:
        path = self.database_path
        if create_dir:
            path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{path}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings for the poll store.

    ``sqlite_timeout`` is how long a SQLite connection waits for another
    writer's lock; threaded cleaning against a file database depends on it.
    """

    uri: str
    echo: bool = False
    sqlite_timeout: float = DEFAULT_SQLITE_TIMEOUT

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, object]:
        options: dict[str, object] = {"echo": self.echo}
        if self.is_sqlite:
            options["connect_args"] = {"timeout": self.sqlite_timeout}
        return options


def get_storage_config() -> StorageConfig:
    configured = os.getenv("POLLBASE_DATA_DIR")
    data_dir = Path(configured) if configured else platform_data_home() / APP_DIR_NAME
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` if set, else a SQLite file in the data directory."""

    uri = os.getenv("DATABASE_URI") or (storage or get_storage_config()).sqlite_uri()
    return DatabaseConfig(
        uri=uri,
        echo=optional_bool_env("POLLBASE_SQL_ECHO"),
        sqlite_timeout=optional_float_env(
            "POLLBASE_SQLITE_TIMEOUT", DEFAULT_SQLITE_TIMEOUT, minimum=0.0
        ),
    )
