from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from clientele.config import DatabaseConfig, storage


def test_get_database_uri_uses_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "sqlite:///override.db")

    uri = storage.get_database_uri()

    assert uri == "sqlite:///override.db"


def test_get_database_uri_creates_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("CLIENTELE_DATA_DIR", str(tmp_path / "data-dir"))

    uri = storage.get_database_uri()

    expected_path = (tmp_path / "data-dir" / storage.DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()


def test_default_data_dir_follows_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv("CLIENTELE_DATA_DIR", raising=False)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    config = storage.get_storage_config()

    assert config.data_dir == tmp_path / storage.APP_DIR_NAME


def test_database_echo_flag(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://db/clientele")
    monkeypatch.setenv("CLIENTELE_DB_ECHO", "true")

    config = storage.get_database_config()

    assert config.echo is True
    assert not config.is_sqlite


def test_engine_options_depend_on_backend() -> None:
    sqlite = DatabaseConfig(uri="sqlite+pysqlite:///:memory:").engine_options()
    postgres = DatabaseConfig(uri="postgresql+psycopg://db/clientele").engine_options()

    assert sqlite["connect_args"] == {"check_same_thread": False}
    assert "pool_pre_ping" not in sqlite
    assert postgres["pool_pre_ping"] is True
    assert "connect_args" not in postgres
