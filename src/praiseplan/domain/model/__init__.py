"""Domain entities."""

from __future__ import annotations

from .base import new_id
from .roster import AssignmentScope, RosterAssignment, Volunteer
from .setlist import SetlistEntry, is_contiguous, renumber

__all__ = [
    "AssignmentScope",
    "RosterAssignment",
    "SetlistEntry",
    "Volunteer",
    "is_contiguous",
    "new_id",
    "renumber",
]
