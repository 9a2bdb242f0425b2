from __future__ import annotations

import os
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine  # noqa: TC002

from praiseplan.adapters.sqlalchemy import (
    build_sqlalchemy_gateway,
    create_all_tables,
    shutdown,
    startup,
)

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path

    from praiseplan.domain.ports.persistence import PersistenceGateway


@pytest.fixture
def sqlite_engine(tmp_path: Path) -> Iterator[Engine]:
    # a file, so collections working from several threads share one database
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'praiseplan.db'}")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_gateway(sqlite_engine: Engine) -> Iterator[PersistenceGateway]:
    startup(engine=sqlite_engine, force=True)
    try:
        yield build_sqlalchemy_gateway()
    finally:
        shutdown()


@pytest.fixture
def service_id() -> UUID:
    return uuid4()


@pytest.fixture
def no_hosted_store(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("PRAISEPLAN_STORE_URL", raising=False)
    monkeypatch.delenv("PRAISEPLAN_STORE_KEY", raising=False)
