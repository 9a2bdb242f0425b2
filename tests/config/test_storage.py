from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest  # noqa: TC002

from praiseplan.config import storage


def test_storage_config_prefers_explicit_env(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv(storage.DATA_DIR_ENV, str(custom))

    config = storage.get_storage_config()

    assert config.data_dir == custom.resolve()
    assert config.database_path == custom.resolve() / storage.DEFAULT_DB_FILENAME


def test_default_data_dir_follows_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(storage.sys, "platform", "linux")
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))

    assert storage.default_data_dir() == tmp_path / "praiseplan"


def test_database_uri_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(storage.DATABASE_URI_ENV, "postgresql+psycopg://db/praise")
    monkeypatch.delenv(storage.SQL_ECHO_ENV, raising=False)

    config = storage.get_database_config()

    assert config == storage.DatabaseConfig(uri="postgresql+psycopg://db/praise")
    assert not config.is_sqlite


def test_database_config_creates_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.delenv(storage.DATABASE_URI_ENV, raising=False)
    monkeypatch.setenv(storage.DATA_DIR_ENV, str(tmp_path / "data-dir"))
    monkeypatch.setenv(storage.SQL_ECHO_ENV, "yes")

    config = storage.get_database_config()

    expected_path = (tmp_path / "data-dir" / storage.DEFAULT_DB_FILENAME).resolve()
    assert config.uri == f"sqlite+pysqlite:///{expected_path}"
    assert config.echo is True
    assert config.is_sqlite
    assert expected_path.parent.exists()
