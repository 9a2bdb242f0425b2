"""Domain port definitions for adapters."""

from __future__ import annotations

from .persistence import (
    Collection,
    PersistenceGateway,
    PositionBatchWriter,
    RosterAssignmentCollection,
    SetlistEntryCollection,
    VolunteerCollection,
)

__all__ = [
    "Collection",
    "PersistenceGateway",
    "PositionBatchWriter",
    "RosterAssignmentCollection",
    "SetlistEntryCollection",
    "VolunteerCollection",
]
