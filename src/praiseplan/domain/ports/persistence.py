"""Ports for the row-at-a-time persistence gateway."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from praiseplan.domain.model import RosterAssignment, SetlistEntry, Volunteer

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID


@runtime_checkable
class Collection[TEntity](Protocol):
    """Filtered read plus single-row writes on one entity collection.

    Failures are reported with the errors in ``praiseplan.domain.errors``:
    ``UniqueConstraintError`` for constraint violations, ``NotFoundError`` when the
    target row is gone, ``NetworkOrTimeoutError`` for transport faults.
    """

    async def find(
        self,
        filters: Mapping[str, object],
        *,
        order_by: str | None = None,
    ) -> list[TEntity]: ...

    async def insert(self, entity: TEntity) -> TEntity: ...

    async def update(self, entity_id: UUID, changes: Mapping[str, object]) -> None: ...

    async def delete(self, entity_id: UUID) -> None: ...


@runtime_checkable
class PositionBatchWriter(Protocol):
    """Optional capability: rewrite many setlist positions in one transaction."""

    async def write_positions(self, service_id: UUID, positions: Mapping[UUID, int]) -> None: ...


type SetlistEntryCollection = Collection[SetlistEntry]
type RosterAssignmentCollection = Collection[RosterAssignment]
type VolunteerCollection = Collection[Volunteer]


@dataclass(slots=True, frozen=True)
class PersistenceGateway:
    """The collections the scheduling core reads and writes."""

    setlist_entries: SetlistEntryCollection
    roster_assignments: RosterAssignmentCollection
    volunteers: VolunteerCollection
