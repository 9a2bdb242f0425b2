"""SQLAlchemy adapter package for PraisePlan."""

from __future__ import annotations

from .collections import (
    SqlAlchemyCollection,
    SqlAlchemyRosterAssignmentCollection,
    SqlAlchemySetlistEntryCollection,
    SqlAlchemyVolunteerCollection,
)
from .engine import (
    StartupError,
    build_sqlalchemy_gateway,
    configured_engine,
    is_started,
    shutdown,
    startup,
)
from .mappings import create_all_tables, metadata

__all__ = [
    "SqlAlchemyCollection",
    "SqlAlchemyRosterAssignmentCollection",
    "SqlAlchemySetlistEntryCollection",
    "SqlAlchemyVolunteerCollection",
    "StartupError",
    "build_sqlalchemy_gateway",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "shutdown",
    "startup",
]
