"""Where rowgraph keeps its database unless told otherwise."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_flag, env_value

APP_DIR_NAME: Final[str] = "rowgraph"
DEFAULT_DB_FILENAME: Final[str] = "rowgraph.db"

DATA_DIR_ENV: Final[str] = "ROWGRAPH_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "ROWGRAPH_DATABASE_URI"
ECHO_SQL_ENV: Final[str] = "ROWGRAPH_ECHO_SQL"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Data directory holding the default SQLite file."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def resolve_data_dir(self) -> Path:
        return self.data_dir.expanduser().resolve()

    def database_uri(self) -> str:
        """SQLite URI for the store file, creating the data directory on demand."""

        data_dir = self.resolve_data_dir()
        data_dir.mkdir(parents=True, exist_ok=True)
        return f"sqlite+pysqlite:///{data_dir / self.database_filename}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Arguments for ``create_engine``: the URI and whether SQL is echoed."""

    uri: str
    echo: bool = False


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return (base_path / APP_DIR_NAME).expanduser().resolve()


def get_storage_config() -> StorageConfig:
    env_dir = env_value(DATA_DIR_ENV)
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """Prefer ``ROWGRAPH_DATABASE_URI``; otherwise use the SQLite file in the data dir."""

    echo = env_flag(ECHO_SQL_ENV)
    uri = env_value(DATABASE_URI_ENV)
    if uri is None:
        uri = (storage or get_storage_config()).database_uri()
    return DatabaseConfig(uri=uri, echo=echo)
