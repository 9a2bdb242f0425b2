"""Client-side setlists with optimistic reordering and snapshot rollback.

Each service's list moves through a small state machine::

    IDLE -> REORDERING (optimistic, snapshot held) -> COMMITTING -> IDLE

``apply_reorder`` may be repeated while ``REORDERING``; the snapshot taken by the
first call is kept, so a rollback always returns to the last order known to be
persisted. Nothing else may start while a commit is in flight.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import UUID

from praiseplan.domain.errors import (
    InvalidReorderError,
    NetworkOrTimeoutError,
    PersistenceError,
    ReorderInProgressError,
    ReorderRolledBackError,
)
from praiseplan.domain.model import SetlistEntry, renumber

from .reconciler import PositionReconciler

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from praiseplan.domain.ports.persistence import SetlistEntryCollection

log = logging.getLogger(__name__)

DEFAULT_COMMIT_TIMEOUT_SECONDS = 10.0


class ListState(StrEnum):
    IDLE = "idle"
    REORDERING = "reordering"
    COMMITTING = "committing"


class ChangeKind(StrEnum):
    LOADED = "loaded"
    REORDERED = "reordered"
    ADDED = "added"
    REMOVED = "removed"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass(slots=True, frozen=True)
class ListChange:
    """Notification sent to subscribers whenever a visible list changes."""

    service_id: UUID
    kind: ChangeKind
    entries: tuple[SetlistEntry, ...]


type ListListener = Callable[[ListChange], None]


@dataclass(slots=True)
class _ServiceList:
    entries: list[SetlistEntry]
    persisted: dict[UUID, int]
    state: ListState = ListState.IDLE
    snapshot: tuple[SetlistEntry, ...] | None = None
    reload_recommended: bool = False
    # a write inside the current operation is known to have landed
    partially_written: bool = False

    def take_snapshot(self) -> None:
        if self.snapshot is None:
            self.snapshot = tuple(self.entries)

    def mark_persisted(self) -> None:
        self.persisted = {entry.id: entry.position for entry in self.entries}


@dataclass(slots=True)
class OptimisticListStore:
    collection: SetlistEntryCollection
    reconciler: PositionReconciler | None = None
    commit_timeout_seconds: float = DEFAULT_COMMIT_TIMEOUT_SECONDS
    _lists: dict[UUID, _ServiceList] = field(
        default_factory=dict[UUID, _ServiceList], init=False, repr=False
    )
    _listeners: list[ListListener] = field(
        default_factory=list[ListListener], init=False, repr=False
    )

    @property
    def active_reconciler(self) -> PositionReconciler:
        if self.reconciler is None:
            self.reconciler = PositionReconciler(self.collection)
        return self.reconciler

    # Queries -----------------------------------------------------------------

    def entries(self, service_id: UUID) -> list[SetlistEntry]:
        return list(self._require(service_id).entries)

    def state(self, service_id: UUID) -> ListState:
        service_list = self._lists.get(service_id)
        return service_list.state if service_list else ListState.IDLE

    def is_loaded(self, service_id: UUID) -> bool:
        return service_id in self._lists

    def reload_recommended(self, service_id: UUID) -> bool:
        """Whether a failed commit may have left placeholders in the store."""

        service_list = self._lists.get(service_id)
        return bool(service_list and service_list.reload_recommended)

    def subscribe(self, listener: ListListener) -> Callable[[], None]:
        """Register ``listener`` for list changes; returns a callable that removes it."""

        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    # Loading -----------------------------------------------------------------

    async def load(self, service_id: UUID) -> list[SetlistEntry]:
        """Replace the in-memory list with the store's canonical order."""

        current = self._lists.get(service_id)
        if current is not None and current.state is not ListState.IDLE:
            raise ReorderInProgressError(service_id, detail=f"list is {current.state}")

        rows = await self.collection.find({"service_id": service_id}, order_by="position")
        rows.sort(key=lambda entry: entry.position)
        service_list = _ServiceList(entries=rows, persisted={})
        service_list.mark_persisted()
        self._lists[service_id] = service_list
        self._notify(service_id, ChangeKind.LOADED)
        return list(rows)

    # Optimistic reorder ------------------------------------------------------

    def apply_reorder(
        self,
        service_id: UUID,
        from_index: int,
        to_index: int,
    ) -> list[SetlistEntry]:
        """Move one entry (list-move, not swap) and renumber in memory immediately."""

        service_list = self._require(service_id)
        if service_list.state is ListState.COMMITTING:
            raise ReorderInProgressError(service_id)

        size = len(service_list.entries)
        for name, index in (("from_index", from_index), ("to_index", to_index)):
            if not 0 <= index < size:
                raise InvalidReorderError(
                    f"{name}={index} is out of range for a setlist of {size} entries"
                )
        if from_index == to_index:
            return list(service_list.entries)

        service_list.take_snapshot()
        reordered = list(service_list.entries)
        moved = reordered.pop(from_index)
        reordered.insert(to_index, moved)
        service_list.entries = renumber(reordered)
        service_list.state = ListState.REORDERING
        self._notify(service_id, ChangeKind.REORDERED)
        return list(service_list.entries)

    async def commit_reorder(self, service_id: UUID) -> list[SetlistEntry]:
        """Persist the optimistic order, rolling back to the snapshot on failure."""

        service_list = self._require(service_id)
        if service_list.state is ListState.COMMITTING:
            raise ReorderInProgressError(service_id)
        if service_list.state is ListState.IDLE:
            return list(service_list.entries)

        service_list.state = ListState.COMMITTING
        await self._persist(service_id, service_list, self._renumber_step(service_id))
        self._notify(service_id, ChangeKind.COMMITTED)
        return list(service_list.entries)

    # Additions and removals --------------------------------------------------

    async def add_entry(
        self,
        service_id: UUID,
        song_id: UUID,
        *,
        notes: str | None = None,
    ) -> SetlistEntry:
        """Append a song at position ``N+1`` once the store has accepted it."""

        service_list = self._require_idle(service_id)
        candidate = SetlistEntry(
            service_id=service_id,
            song_id=song_id,
            position=len(service_list.entries) + 1,
            notes=notes,
        )
        service_list.state = ListState.COMMITTING
        try:
            stored = await self.collection.insert(candidate)
        finally:
            service_list.state = ListState.IDLE
        service_list.entries.append(stored)
        service_list.persisted[stored.id] = stored.position
        self._notify(service_id, ChangeKind.ADDED)
        return stored

    async def remove_entry(self, service_id: UUID, entry_id: UUID) -> list[SetlistEntry]:
        """Delete one entry, then close the gap it leaves behind."""

        service_list = self._require_idle(service_id)
        index = next(
            (i for i, entry in enumerate(service_list.entries) if entry.id == entry_id),
            None,
        )
        if index is None:
            raise InvalidReorderError(f"Entry {entry_id} is not in the setlist of {service_id}")

        service_list.take_snapshot()
        remaining = list(service_list.entries)
        del remaining[index]
        service_list.entries = renumber(remaining)
        service_list.state = ListState.COMMITTING
        self._notify(service_id, ChangeKind.REMOVED)

        renumber_step = self._renumber_step(service_id)

        async def delete_then_renumber() -> None:
            await self.collection.delete(entry_id)
            service_list.partially_written = True
            service_list.persisted.pop(entry_id, None)
            await renumber_step()

        await self._persist(service_id, service_list, delete_then_renumber)
        self._notify(service_id, ChangeKind.COMMITTED)
        return list(service_list.entries)

    # Internals ---------------------------------------------------------------

    def _renumber_step(self, service_id: UUID) -> Callable[[], Awaitable[None]]:
        reconciler = self.active_reconciler

        async def step() -> None:
            service_list = self._lists[service_id]
            current = service_list.persisted
            if service_list.reload_recommended:
                # after a suspect rollback only the store knows where rows ended up
                rows = await self.collection.find({"service_id": service_id})
                current = {row.id: row.position for row in rows}
            await reconciler.reconcile(service_id, service_list.entries, current)

        return step

    async def _persist(
        self,
        service_id: UUID,
        service_list: _ServiceList,
        operation: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            try:
                async with asyncio.timeout(self.commit_timeout_seconds):
                    await operation()
            except TimeoutError as exc:
                raise NetworkOrTimeoutError(
                    f"Commit for service {service_id} timed out after "
                    f"{self.commit_timeout_seconds:g}s"
                ) from exc
        except PersistenceError as exc:
            reload_recommended = service_list.partially_written or self._may_have_written(exc)
            self._roll_back(service_id, service_list, reload_recommended=reload_recommended)
            raise ReorderRolledBackError(
                service_id, reload_recommended=reload_recommended
            ) from exc
        except BaseException:
            self._roll_back(service_id, service_list, reload_recommended=True)
            raise

        service_list.mark_persisted()
        service_list.snapshot = None
        service_list.state = ListState.IDLE
        service_list.reload_recommended = False
        service_list.partially_written = False

    def _may_have_written(self, exc: PersistenceError) -> bool:
        if isinstance(exc, NetworkOrTimeoutError):
            return True
        # a failed transaction leaves nothing behind; a failed two-phase run might
        return not self.active_reconciler.supports_transactions

    def _roll_back(
        self,
        service_id: UUID,
        service_list: _ServiceList,
        *,
        reload_recommended: bool,
    ) -> None:
        if service_list.snapshot is not None:
            service_list.entries = list(service_list.snapshot)
        service_list.snapshot = None
        service_list.state = ListState.IDLE
        service_list.partially_written = False
        service_list.reload_recommended = service_list.reload_recommended or reload_recommended
        log.warning(
            "Rolled back setlist for service %s (reload recommended: %s)",
            service_id,
            service_list.reload_recommended,
        )
        self._notify(service_id, ChangeKind.ROLLED_BACK)

    def _require(self, service_id: UUID) -> _ServiceList:
        service_list = self._lists.get(service_id)
        if service_list is None:
            raise InvalidReorderError(f"Setlist for service {service_id} is not loaded")
        return service_list

    def _require_idle(self, service_id: UUID) -> _ServiceList:
        service_list = self._require(service_id)
        if service_list.state is not ListState.IDLE:
            raise ReorderInProgressError(service_id, detail=f"list is {service_list.state}")
        return service_list

    def _notify(self, service_id: UUID, kind: ChangeKind) -> None:
        change = ListChange(
            service_id=service_id,
            kind=kind,
            entries=tuple(self._lists[service_id].entries),
        )
        for listener in list(self._listeners):
            listener(change)
