"""SQLAlchemy table metadata for setlists and rosters."""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    UniqueConstraint,
    Uuid,
)

from praiseplan.domain.model import RosterAssignment, SetlistEntry, Volunteer

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]

metadata = MetaData(
    naming_convention={
        "ix": "ix_%(column_0_label)s",
        "uq": "uq_%(table_name)s_%(column_0_N_name)s",
        "ck": "ck_%(table_name)s_%(constraint_name)s",
        "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
        "pk": "pk_%(table_name)s",
    }
)

setlist_entry_table = Table(
    "setlist_entries",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("service_id", UUIDColumnType, nullable=False, index=True),
    Column("song_id", UUIDColumnType, nullable=False),
    Column("position", Integer, nullable=False),
    Column("notes", String, nullable=True),
    UniqueConstraint("service_id", "position"),
)

volunteer_table = Table(
    "volunteers",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("service_id", UUIDColumnType, nullable=False, index=True),
    Column("user_id", UUIDColumnType, nullable=False),
    UniqueConstraint("service_id", "user_id"),
)

roster_assignment_table = Table(
    "roster_assignments",
    metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("service_id", UUIDColumnType, nullable=False, index=True),
    Column(
        "volunteer_id",
        UUIDColumnType,
        ForeignKey("volunteers.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("instrument_id", String, nullable=False),
    # backstop for the per-service case; wider scopes are checked by the guard
    UniqueConstraint("service_id", "instrument_id"),
)


def create_all_tables(engine: Engine) -> None:
    log.debug("Creating tables on %s", engine.url)
    metadata.create_all(engine)


# Row translation -------------------------------------------------------------


def setlist_entry_from_row(row: Mapping[str, Any]) -> SetlistEntry:
    return SetlistEntry(
        id=row["id"],
        service_id=row["service_id"],
        song_id=row["song_id"],
        position=row["position"],
        notes=row["notes"],
    )


def setlist_entry_to_row(entry: SetlistEntry) -> dict[str, object]:
    return {
        "id": entry.id,
        "service_id": entry.service_id,
        "song_id": entry.song_id,
        "position": entry.position,
        "notes": entry.notes,
    }


def volunteer_from_row(row: Mapping[str, Any]) -> Volunteer:
    return Volunteer(id=row["id"], service_id=row["service_id"], user_id=row["user_id"])


def volunteer_to_row(volunteer: Volunteer) -> dict[str, object]:
    return {"id": volunteer.id, "service_id": volunteer.service_id, "user_id": volunteer.user_id}


def roster_assignment_from_row(row: Mapping[str, Any]) -> RosterAssignment:
    return RosterAssignment(
        id=row["id"],
        service_id=row["service_id"],
        volunteer_id=row["volunteer_id"],
        instrument_id=row["instrument_id"],
    )


def roster_assignment_to_row(assignment: RosterAssignment) -> dict[str, object]:
    return {
        "id": assignment.id,
        "service_id": assignment.service_id,
        "volunteer_id": assignment.volunteer_id,
        "instrument_id": assignment.instrument_id,
    }
