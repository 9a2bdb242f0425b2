"""Roster entities: volunteers and their instrument claims."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

from .base import new_id

if TYPE_CHECKING:
    from uuid import UUID


class AssignmentScope(StrEnum):
    """How far an instrument claim excludes other volunteers."""

    LOADED = "loaded"  # every service whose roster is currently loaded
    SERVICE = "service"  # the volunteer's own service only


@dataclass(frozen=True, slots=True, kw_only=True)
class Volunteer:
    """A user signed up to serve in one service."""

    id: UUID = field(default_factory=new_id)
    service_id: UUID
    user_id: UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class RosterAssignment:
    """One volunteer's claim on one instrument/role.

    ``service_id`` duplicates the volunteer's service so rosters can be fetched
    per service without joining through volunteers.
    """

    id: UUID = field(default_factory=new_id)
    service_id: UUID
    volunteer_id: UUID
    instrument_id: str
