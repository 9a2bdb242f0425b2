"""In-memory collections with failure injection for domain tests."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING
from uuid import uuid4

from praiseplan.domain.errors import NotFoundError, UniqueConstraintError
from praiseplan.domain.model import RosterAssignment, SetlistEntry, Volunteer

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from uuid import UUID

type FailureRule = Callable[[str, UUID, Mapping[str, object]], BaseException | None]


@dataclass(frozen=True, slots=True)
class WriteCall:
    op: str
    entity_id: UUID
    changes: Mapping[str, object]


class InMemoryCollection[TEntity: (SetlistEntry, RosterAssignment, Volunteer)]:
    """Rows held in a dict; records every write attempt before applying it."""

    def __init__(
        self,
        rows: Iterable[TEntity] = (),
        *,
        unique_on: tuple[str, ...] = (),
    ) -> None:
        self.rows: dict[UUID, TEntity] = {row.id: row for row in rows}
        self.unique_on = unique_on
        self.writes: list[WriteCall] = []
        self.finds = 0
        self.fail: FailureRule | None = None
        self.delay = 0.0
        # pause after reading, so writes can land while a fetch is in flight
        self.find_delay = 0.0
        self.in_flight = 0
        self.max_in_flight = 0

    async def find(
        self,
        filters: Mapping[str, object],
        *,
        order_by: str | None = None,
    ) -> list[TEntity]:
        self.finds += 1
        matches = [
            row
            for row in self.rows.values()
            if all(getattr(row, name) == value for name, value in filters.items())
        ]
        if order_by is not None:
            matches.sort(key=lambda row: getattr(row, order_by))
        if self.find_delay:
            await asyncio.sleep(self.find_delay)
        return matches

    async def insert(self, entity: TEntity) -> TEntity:
        await self._attempt("insert", entity.id, {})
        self._check_unique(entity)
        self.rows[entity.id] = entity
        return entity

    async def update(self, entity_id: UUID, changes: Mapping[str, object]) -> None:
        await self._attempt("update", entity_id, changes)
        current = self.rows.get(entity_id)
        if current is None:
            raise NotFoundError(f"row {entity_id} not found")
        candidate = replace(current, **changes)
        self._check_unique(candidate)
        self.rows[entity_id] = candidate

    async def delete(self, entity_id: UUID) -> None:
        await self._attempt("delete", entity_id, {})
        if self.rows.pop(entity_id, None) is None:
            raise NotFoundError(f"row {entity_id} not found")

    async def _attempt(self, op: str, entity_id: UUID, changes: Mapping[str, object]) -> None:
        self.writes.append(WriteCall(op, entity_id, dict(changes)))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            failure = self.fail(op, entity_id, changes) if self.fail else None
            if failure is not None:
                raise failure
        finally:
            self.in_flight -= 1

    def _check_unique(self, candidate: TEntity) -> None:
        if not self.unique_on:
            return
        key = tuple(getattr(candidate, name) for name in self.unique_on)
        for other in self.rows.values():
            if other.id == candidate.id:
                continue
            if tuple(getattr(other, name) for name in self.unique_on) == key:
                raise UniqueConstraintError(f"duplicate {self.unique_on}={key}")


class InMemorySetlistCollection(InMemoryCollection[SetlistEntry]):
    def __init__(self, rows: Iterable[SetlistEntry] = ()) -> None:
        super().__init__(rows, unique_on=("service_id", "position"))

    def order(self, service_id: UUID) -> list[UUID]:
        rows = [row for row in self.rows.values() if row.service_id == service_id]
        return [row.id for row in sorted(rows, key=lambda row: row.position)]

    def positions(self, service_id: UUID) -> dict[UUID, int]:
        return {row.id: row.position for row in self.rows.values() if row.service_id == service_id}


class TransactionalSetlistCollection(InMemorySetlistCollection):
    """Adds an all-or-nothing position rewrite."""

    def __init__(self, rows: Iterable[SetlistEntry] = ()) -> None:
        super().__init__(rows)
        self.batches: list[dict[UUID, int]] = []
        self.fail_batch: BaseException | None = None

    async def write_positions(self, service_id: UUID, positions: Mapping[UUID, int]) -> None:
        self.batches.append(dict(positions))
        if self.fail_batch is not None:
            raise self.fail_batch
        staged = dict(self.rows)
        for entry_id, position in positions.items():
            row = staged.get(entry_id)
            if row is None or row.service_id != service_id:
                raise NotFoundError(f"row {entry_id} not found")
            staged[entry_id] = row.at(position)
        taken = [(row.service_id, row.position) for row in staged.values()]
        if len(taken) != len(set(taken)):
            raise UniqueConstraintError("duplicate position after batch")
        self.rows = staged


def make_setlist(service_id: UUID, size: int) -> list[SetlistEntry]:
    return [
        SetlistEntry(service_id=service_id, song_id=uuid4(), position=position)
        for position in range(1, size + 1)
    ]
