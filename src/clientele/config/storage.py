"""Where the customer store lives and how to connect to it."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import env_bool

APP_DIR_NAME: Final[str] = "clientele"
DEFAULT_DB_FILENAME: Final[str] = "clientele.db"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME

    def ensure_data_dir(self) -> Path:
        data_dir = self.data_dir.expanduser().resolve()
        data_dir.mkdir(parents=True, exist_ok=True)
        return data_dir

    def database_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.ensure_data_dir() / self.database_filename}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    """Connection settings for the SQL customer store."""

    uri: str
    echo: bool = False

    @property
    def is_sqlite(self) -> bool:
        return self.uri.startswith("sqlite")

    def engine_options(self) -> dict[str, object]:
        """Keyword arguments for ``sqlalchemy.create_engine``."""

        options: dict[str, object] = {"future": True, "echo": self.echo}
        if self.is_sqlite:
            # resolutions run on worker threads that share the engine
            options["connect_args"] = {"check_same_thread": False}
        else:
            options["pool_pre_ping"] = True
        return options


def _default_data_dir() -> Path:
    if os.name == "nt":
        base = os.getenv("LOCALAPPDATA")
        base_path = Path(base) if base else (Path.home() / "AppData" / "Local")
    else:
        base = os.getenv("XDG_DATA_HOME")
        base_path = Path(base) if base else (Path.home() / ".local" / "share")
    return base_path / APP_DIR_NAME


def get_storage_config() -> StorageConfig:
    env_dir = os.getenv("CLIENTELE_DATA_DIR")
    return StorageConfig(data_dir=Path(env_dir) if env_dir else _default_data_dir())


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    echo = env_bool("CLIENTELE_DB_ECHO")
    env_uri = os.getenv("DATABASE_URI")
    if env_uri:
        return DatabaseConfig(uri=env_uri, echo=echo)
    storage_config = storage or get_storage_config()
    return DatabaseConfig(uri=storage_config.database_uri(), echo=echo)


def get_database_uri() -> str:
    return get_database_config().uri
