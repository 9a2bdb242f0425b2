"""Location of the local database."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_bool, optional_env_var

DATA_DIR_ENV: Final[str] = "PRAISEPLAN_DATA_DIR"
DATABASE_URI_ENV: Final[str] = "DATABASE_URI"
SQL_ECHO_ENV: Final[str] = "PRAISEPLAN_SQL_ECHO"
DEFAULT_DB_FILENAME: Final[str] = "praiseplan.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    """Directory holding the local SQLite file."""

    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    @property
    def database_path(self) -> Path:
        return self.data_dir / self.database_filename

    def prepare(self) -> Path:
        """Create the data directory if needed and return the database path."""

        self.data_dir.mkdir(parents=True, exist_ok=True)
        return self.database_path


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")


def default_data_dir() -> Path:
    if sys.platform == "win32":
        base = os.getenv("LOCALAPPDATA")
        root = Path(base) if base else Path.home() / "AppData" / "Local"
    else:
        base = os.getenv("XDG_DATA_HOME")
        root = Path(base) if base else Path.home() / ".local" / "share"
    return root / "praiseplan"


def get_storage_config() -> StorageConfig:
    configured = optional_env_var(DATA_DIR_ENV)
    data_dir = Path(configured) if configured else default_data_dir()
    return StorageConfig(data_dir=data_dir.expanduser().resolve())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    """``DATABASE_URI`` wins; otherwise a SQLite file in the data directory."""

    echo = env_bool(SQL_ECHO_ENV, default=False)
    uri = optional_env_var(DATABASE_URI_ENV)
    if uri is None:
        path = (storage or get_storage_config()).prepare()
        uri = f"sqlite+pysqlite:///{path}"
    return DatabaseConfig(uri=uri, echo=echo)
