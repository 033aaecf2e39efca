"""Location of the directory database.

``DATABASE_URI`` points at any database SQLAlchemy can reach. Without it the
directory lives in a sqlite file under ``AAFSYNC_DATA_DIR``, which defaults to
``$XDG_DATA_HOME/aafsync``.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from .errors import ConfigurationError

APP_DIR_NAME: Final[str] = "aafsync"
DIRECTORY_DB_FILENAME: Final[str] = "directory.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path

    @property
    def directory_db_path(self) -> Path:
        return self.data_dir.expanduser().resolve() / DIRECTORY_DB_FILENAME

    def database_uri(self) -> str:
        path = self.directory_db_path
        path.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{path}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _default_data_dir() -> Path:
    base = os.getenv("XDG_DATA_HOME")
    base_path = Path(base) if base else Path.home() / ".local" / "share"
    return base_path / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = (os.getenv("AAFSYNC_DATA_DIR") or "").strip()
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    env_uri = (os.getenv("DATABASE_URI") or "").strip()
    if not env_uri:
        return DatabaseConfig(uri=(storage or get_storage_config()).database_uri())
    try:
        make_url(env_uri)
    except ArgumentError as exc:
        raise ConfigurationError(
            f"DATABASE_URI is not a database URL: {env_uri!r}", variables=("DATABASE_URI",)
        ) from exc
    return DatabaseConfig(uri=env_uri)


def get_database_uri() -> str:
    return get_database_config().uri
