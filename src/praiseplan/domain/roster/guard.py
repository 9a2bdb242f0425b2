"""Client-side exclusivity for instrument/role claims.

The store does not stop two volunteers from claiming the same instrument, so the
guard keeps every assignment of every loaded roster in one pool and refuses a new
claim that would duplicate one already held. Claims are recorded only after the
store confirms them; the pool never shows a half-applied assignment.

The pool is shared by every service view and may be fed by concurrent roster
loads, so all mutations are serialised on one lock. A refresh holds that lock
while it reads the store, so a claim confirmed during the read cannot be lost
when the fetched slice replaces the old one.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import UUID

from praiseplan.domain.errors import AlreadyAssignedError, NotFoundError, UniqueConstraintError
from praiseplan.domain.model import AssignmentScope, RosterAssignment

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from praiseplan.domain.ports.persistence import RosterAssignmentCollection

log = logging.getLogger(__name__)


@dataclass(slots=True)
class ResourceAssignmentGuard:
    collection: RosterAssignmentCollection
    scope: AssignmentScope = AssignmentScope.LOADED
    # service_id -> assignment_id -> assignment
    _by_service: dict[UUID, dict[UUID, RosterAssignment]] = field(
        default_factory=dict[UUID, dict[UUID, RosterAssignment]], init=False, repr=False
    )
    # instrument_id -> assignment_id -> assignment
    _by_instrument: dict[str, dict[UUID, RosterAssignment]] = field(
        default_factory=dict[str, dict[UUID, RosterAssignment]], init=False, repr=False
    )
    _loaded: set[UUID] = field(default_factory=set[UUID], init=False, repr=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False, repr=False)

    # Queries -----------------------------------------------------------------

    @property
    def loaded_services(self) -> frozenset[UUID]:
        return frozenset(self._loaded)

    def is_loaded(self, service_id: UUID) -> bool:
        return service_id in self._loaded

    def is_available(self, instrument_id: str, *, service_id: UUID | None = None) -> bool:
        """True iff no assignment in scope references ``instrument_id``.

        ``service_id`` is required for :attr:`AssignmentScope.SERVICE` and ignored
        otherwise.
        """

        return self.holder(instrument_id, service_id=service_id) is None

    def holder(
        self,
        instrument_id: str,
        *,
        service_id: UUID | None = None,
    ) -> RosterAssignment | None:
        holders = self._by_instrument.get(instrument_id)
        if not holders:
            return None
        if self.scope is AssignmentScope.SERVICE:
            if service_id is None:
                raise ValueError("service_id is required when assignments are scoped per service")
            return next((a for a in holders.values() if a.service_id == service_id), None)
        return next(iter(holders.values()))

    def assignments_for(self, service_id: UUID) -> list[RosterAssignment]:
        return list(self._by_service.get(service_id, {}).values())

    def assignments_of(self, volunteer_id: UUID) -> list[RosterAssignment]:
        return [
            assignment
            for assignments in self._by_service.values()
            for assignment in assignments.values()
            if assignment.volunteer_id == volunteer_id
        ]

    # Mutations ---------------------------------------------------------------

    async def assign(
        self,
        service_id: UUID,
        volunteer_id: UUID,
        instrument_id: str,
    ) -> RosterAssignment:
        """Claim ``instrument_id`` for a volunteer, or fail fast if it is taken."""

        async with self._lock:
            holder = self.holder(instrument_id, service_id=service_id)
            if holder is not None:
                log.info(
                    "Refused %s for volunteer %s: held by volunteer %s",
                    instrument_id,
                    volunteer_id,
                    holder.volunteer_id,
                )
                raise AlreadyAssignedError(instrument_id, holder=holder)

            candidate = RosterAssignment(
                service_id=service_id,
                volunteer_id=volunteer_id,
                instrument_id=instrument_id,
            )
            try:
                stored = await self.collection.insert(candidate)
            except UniqueConstraintError as exc:
                # someone outside the loaded pool got there first
                raise AlreadyAssignedError(instrument_id) from exc
            self._remember(stored)
            return stored

    async def unassign(self, volunteer_id: UUID, instrument_id: str) -> None:
        """Release a claim once the store confirms, or once it reports the row gone.

        A row already missing from the store still raises ``NotFoundError``, but
        the stale claim is dropped first so the instrument is free again.
        """

        async with self._lock:
            assignment = next(
                (
                    a
                    for a in self._by_instrument.get(instrument_id, {}).values()
                    if a.volunteer_id == volunteer_id
                ),
                None,
            )
            if assignment is None:
                raise NotFoundError(
                    f"Volunteer {volunteer_id} holds no loaded assignment for {instrument_id!r}"
                )
            try:
                await self.collection.delete(assignment.id)
            except NotFoundError:
                # already gone from the store; keeping it would block the instrument
                self._forget(assignment)
                log.warning(
                    "Assignment %s of volunteer %s was already deleted from the store",
                    assignment.id,
                    volunteer_id,
                )
                raise
            self._forget(assignment)

    async def load_roster(
        self,
        service_id: UUID,
        assignments: Iterable[RosterAssignment],
    ) -> None:
        """Merge an already fetched list of one service's assignments into the pool.

        The service's previous slice is replaced; slices of other services are
        kept, so availability stays correct while only some rosters are loaded.
        Prefer :meth:`refresh` when the fetch has not happened yet.
        """

        fresh = self._check_slice(service_id, assignments)
        async with self._lock:
            self._replace_slice(service_id, fresh)

    async def refresh(
        self,
        service_id: UUID,
        fetch: Callable[[], Awaitable[Iterable[RosterAssignment]]],
    ) -> list[RosterAssignment]:
        """Fetch one service's assignments and replace its slice, both under the lock.

        Claims wait for the fetch to finish, so the slice never drops a claim the
        store confirmed after the read started.
        """

        async with self._lock:
            fresh = self._check_slice(service_id, await fetch())
            self._replace_slice(service_id, fresh)
        return fresh

    async def unload_roster(self, service_id: UUID) -> None:
        async with self._lock:
            self._drop_service(service_id)

    # Internals ---------------------------------------------------------------

    @staticmethod
    def _check_slice(
        service_id: UUID,
        assignments: Iterable[RosterAssignment],
    ) -> list[RosterAssignment]:
        fresh = list(assignments)
        for assignment in fresh:
            if assignment.service_id != service_id:
                raise ValueError(
                    f"Assignment {assignment.id} belongs to service {assignment.service_id}, "
                    f"not {service_id}"
                )
        return fresh

    def _replace_slice(self, service_id: UUID, fresh: list[RosterAssignment]) -> None:
        self._drop_service(service_id)
        self._by_service[service_id] = {}
        for assignment in fresh:
            self._remember(assignment)
        self._loaded.add(service_id)
        log.debug("Loaded %d assignments for service %s", len(fresh), service_id)

    def _remember(self, assignment: RosterAssignment) -> None:
        self._by_service.setdefault(assignment.service_id, {})[assignment.id] = assignment
        self._by_instrument.setdefault(assignment.instrument_id, {})[assignment.id] = assignment

    def _forget(self, assignment: RosterAssignment) -> None:
        self._by_service.get(assignment.service_id, {}).pop(assignment.id, None)
        holders = self._by_instrument.get(assignment.instrument_id)
        if holders is not None:
            holders.pop(assignment.id, None)
            if not holders:
                del self._by_instrument[assignment.instrument_id]

    def _drop_service(self, service_id: UUID) -> None:
        self._loaded.discard(service_id)
        for assignment in list(self._by_service.pop(service_id, {}).values()):
            self._forget(assignment)
