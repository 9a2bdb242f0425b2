"""Volunteer sign-up and withdrawal."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from praiseplan.domain.model import Volunteer

if TYPE_CHECKING:
    from uuid import UUID

    from .loader import RosterLoader

log = logging.getLogger(__name__)


@dataclass(slots=True)
class VolunteerRegistry:
    loader: RosterLoader

    async def sign_up(self, service_id: UUID, user_id: UUID) -> Volunteer:
        """Add a user to a service's roster; signing up twice returns the same volunteer."""

        volunteers = self.loader.gateway.volunteers
        existing = await volunteers.find({"service_id": service_id, "user_id": user_id})
        if existing:
            return existing[0]
        volunteer = await volunteers.insert(Volunteer(service_id=service_id, user_id=user_id))
        log.info("User %s signed up for service %s", user_id, service_id)
        return volunteer

    async def withdraw(self, volunteer: Volunteer) -> None:
        """Release every instrument the volunteer holds, then remove them from the roster."""

        guard = self.loader.guard
        if not guard.is_loaded(volunteer.service_id):
            await self.loader.load(volunteer.service_id)
        for assignment in guard.assignments_of(volunteer.id):
            await guard.unassign(volunteer.id, assignment.instrument_id)
        await self.loader.gateway.volunteers.delete(volunteer.id)
        log.info("Volunteer %s withdrew from service %s", volunteer.id, volunteer.service_id)
