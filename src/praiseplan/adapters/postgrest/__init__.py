"""PostgREST adapter for the hosted store."""

from __future__ import annotations

from .client import (
    PostgrestCollection,
    build_postgrest_gateway,
    default_resilience_config,
    open_postgrest_gateway,
)
from .schema import ErrorResponse, RosterAssignmentRow, SetlistEntryRow, VolunteerRow
from .translator import (
    dump_roster_assignment,
    dump_setlist_entry,
    dump_volunteer,
    parse_roster_assignment,
    parse_setlist_entry,
    parse_volunteer,
)

__all__ = [
    "ErrorResponse",
    "PostgrestCollection",
    "RosterAssignmentRow",
    "SetlistEntryRow",
    "VolunteerRow",
    "build_postgrest_gateway",
    "default_resilience_config",
    "dump_roster_assignment",
    "dump_setlist_entry",
    "dump_volunteer",
    "open_postgrest_gateway",
    "parse_roster_assignment",
    "parse_setlist_entry",
    "parse_volunteer",
]
