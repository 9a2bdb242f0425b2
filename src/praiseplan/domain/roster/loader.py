"""Fetch service rosters and feed them to the assignment guard."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from praiseplan.domain.model import RosterAssignment, Volunteer
    from praiseplan.domain.ports.persistence import PersistenceGateway

    from .guard import ResourceAssignmentGuard

log = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Roster:
    """Volunteers of one service and the instruments they hold."""

    service_id: UUID
    volunteers: tuple[Volunteer, ...]
    assignments: tuple[RosterAssignment, ...]

    def instruments_of(self, volunteer_id: UUID) -> list[str]:
        return sorted(a.instrument_id for a in self.assignments if a.volunteer_id == volunteer_id)


@dataclass(slots=True)
class RosterLoader:
    gateway: PersistenceGateway
    guard: ResourceAssignmentGuard

    async def load(self, service_id: UUID) -> Roster:
        volunteers, assignments = await asyncio.gather(
            self.gateway.volunteers.find({"service_id": service_id}),
            self.guard.refresh(
                service_id,
                lambda: self.gateway.roster_assignments.find({"service_id": service_id}),
            ),
        )
        log.info(
            "Loaded roster for service %s: volunteers=%d, assignments=%d",
            service_id,
            len(volunteers),
            len(assignments),
        )
        return Roster(
            service_id=service_id,
            volunteers=tuple(volunteers),
            assignments=tuple(assignments),
        )

    async def load_many(self, service_ids: Iterable[UUID]) -> list[Roster]:
        """Load several rosters concurrently; the guard serialises the merges."""

        return list(await asyncio.gather(*(self.load(service_id) for service_id in service_ids)))
