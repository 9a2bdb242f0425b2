"""Roster management: volunteers and exclusive instrument assignments."""

from __future__ import annotations

from .guard import ResourceAssignmentGuard
from .loader import Roster, RosterLoader
from .volunteers import VolunteerRegistry

__all__ = ["ResourceAssignmentGuard", "Roster", "RosterLoader", "VolunteerRegistry"]
