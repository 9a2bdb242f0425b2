"""The process-wide database binding behind the SQLAlchemy gateway.

``startup`` binds one engine (creating the schema on it), ``shutdown`` releases
it, and ``build_sqlalchemy_gateway`` hands out collections sharing its session
factory. Nothing here opens a connection until a collection is used.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import create_engine, event, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from praiseplan.config import DatabaseConfig, get_database_config
from praiseplan.domain.ports.persistence import PersistenceGateway

from .collections import (
    SqlAlchemyRosterAssignmentCollection,
    SqlAlchemySetlistEntryCollection,
    SqlAlchemyVolunteerCollection,
)
from .mappings import create_all_tables

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """The database binding was used before ``startup`` or started twice."""


@dataclass(frozen=True, slots=True)
class _Binding:
    engine: Engine
    sessions: sessionmaker[Session]


_binding: _Binding | None = None


def _current() -> _Binding:
    if _binding is None:
        raise StartupError("No database bound; call startup() before building a gateway")
    return _binding


def _create_engine(config: DatabaseConfig) -> Engine:
    options: dict[str, Any] = {}
    if config.is_sqlite and make_url(config.uri).database in (None, "", ":memory:"):
        # collections run in worker threads; they must all see the one database
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    engine = create_engine(config.uri, echo=config.echo, **options)
    if config.is_sqlite:
        # SQLite ignores REFERENCES clauses unless asked per connection
        @event.listens_for(engine, "connect")
        def _foreign_keys_on(dbapi_connection, _record) -> None:  # noqa: ANN001
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind ``engine`` (or one built from configuration) and create missing tables.

    A second call raises ``StartupError`` unless ``force`` is set, in which case
    the new engine replaces the old one without disposing it.
    """

    global _binding  # noqa: PLW0603
    if _binding is not None and not force:
        raise StartupError("Database already bound; pass force=True to rebind")

    if engine is None:
        config = DatabaseConfig(uri=database_uri) if database_uri else get_database_config()
        engine = _create_engine(config)
    create_all_tables(engine)
    _binding = _Binding(engine=engine, sessions=sessionmaker(bind=engine, expire_on_commit=False))


def shutdown() -> None:
    global _binding  # noqa: PLW0603
    if _binding is not None:
        _binding.engine.dispose()
    _binding = None


def is_started() -> bool:
    return _binding is not None


def configured_engine() -> Engine | None:
    return None if _binding is None else _binding.engine


def build_sqlalchemy_gateway() -> PersistenceGateway:
    sessions = _current().sessions
    return PersistenceGateway(
        setlist_entries=SqlAlchemySetlistEntryCollection(sessions),
        roster_assignments=SqlAlchemyRosterAssignmentCollection(sessions),
        volunteers=SqlAlchemyVolunteerCollection(sessions),
    )
