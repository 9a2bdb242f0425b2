"""Persist a setlist ordering without tripping the per-service position constraint.

The store enforces ``(service_id, position)`` uniqueness and only writes one row
at a time. Moving rows straight to their new positions would collide whenever two
rows trade places, so rows are first parked on negative placeholders (which can
never meet a real position) and only then moved to their final 1-based values.

When the collection can rewrite positions inside one transaction
(:class:`~praiseplan.domain.ports.persistence.PositionBatchWriter`) that path is
used instead and no placeholder is ever visible to other readers.

Neither path is retried. A failure leaves the store in whatever state the
confirmed writes produced; recovering is the caller's job.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from praiseplan.domain.errors import InvalidReorderError
from praiseplan.domain.ports.persistence import PositionBatchWriter

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from uuid import UUID

    from praiseplan.domain.model import SetlistEntry
    from praiseplan.domain.ports.persistence import SetlistEntryCollection

log = logging.getLogger(__name__)

type PositionUpdate = tuple[UUID, int]


class ReconcileStrategy(StrEnum):
    NOOP = "noop"
    TRANSACTION = "transaction"
    TWO_PHASE = "two_phase"


@dataclass(slots=True, frozen=True)
class ReconcileResult:
    """What a reconciliation wrote."""

    strategy: ReconcileStrategy
    moved: int = 0
    writes: int = 0


def plan_moves(
    desired: Sequence[SetlistEntry],
    current: Mapping[UUID, int],
) -> list[PositionUpdate]:
    """Return ``(entry_id, final_position)`` for every entry not already in place.

    ``current`` maps entry ids to their persisted positions; ids missing from it are
    treated as unknown and always moved.
    """

    seen: set[UUID] = set()
    moves: list[PositionUpdate] = []
    for index, entry in enumerate(desired):
        if entry.id in seen:
            raise InvalidReorderError(f"Entry {entry.id} appears twice in the desired order")
        seen.add(entry.id)
        target = index + 1
        if current.get(entry.id) != target:
            moves.append((entry.id, target))
    return moves


def placeholder_floor(current: Mapping[UUID, int]) -> int:
    """Return the value placeholders are counted down from.

    Normally 0, giving the entry at index ``i`` the placeholder ``-(i + 1)``. Rows
    left parked by an earlier failed run still hold negatives, so new placeholders
    start below the lowest of them.
    """

    return min(0, *current.values()) if current else 0


@dataclass(slots=True)
class PositionReconciler:
    entries: SetlistEntryCollection
    write_concurrency: int = 1
    prefer_transactions: bool = True

    def __post_init__(self) -> None:
        if self.write_concurrency < 1:
            raise ValueError("write_concurrency must be at least 1")

    @property
    def supports_transactions(self) -> bool:
        return self.prefer_transactions and isinstance(self.entries, PositionBatchWriter)

    async def reconcile(
        self,
        service_id: UUID,
        desired: Sequence[SetlistEntry],
        current: Mapping[UUID, int],
    ) -> ReconcileResult:
        """Make the persisted positions of ``desired`` equal ``1..N`` in list order."""

        moves = plan_moves(desired, current)
        if not moves:
            log.debug("Setlist for service %s already in order", service_id)
            return ReconcileResult(strategy=ReconcileStrategy.NOOP)

        if self.supports_transactions:
            batch_writer: PositionBatchWriter = self.entries  # type: ignore[assignment]
            await batch_writer.write_positions(service_id, dict(moves))
            log.info(
                "Renumbered %d setlist entries for service %s in one transaction",
                len(moves),
                service_id,
            )
            return ReconcileResult(
                strategy=ReconcileStrategy.TRANSACTION, moved=len(moves), writes=1
            )

        floor = placeholder_floor(current)
        # phase 2 must not start before every placeholder is confirmed
        await self._run_phase([(entry_id, floor - target) for entry_id, target in moves])
        await self._run_phase(moves)
        log.info(
            "Renumbered %d setlist entries for service %s in two phases",
            len(moves),
            service_id,
        )
        return ReconcileResult(
            strategy=ReconcileStrategy.TWO_PHASE, moved=len(moves), writes=2 * len(moves)
        )

    async def _run_phase(self, updates: Sequence[PositionUpdate]) -> None:
        if self.write_concurrency == 1:
            for entry_id, position in updates:
                await self._write(entry_id, position)
            return

        semaphore = asyncio.Semaphore(self.write_concurrency)

        async def bounded_write(entry_id: UUID, position: int) -> None:
            async with semaphore:
                await self._write(entry_id, position)

        try:
            async with asyncio.TaskGroup() as group:
                for entry_id, position in updates:
                    group.create_task(bounded_write(entry_id, position))
        except ExceptionGroup as failures:
            raise failures.exceptions[0] from None

    async def _write(self, entry_id: UUID, position: int) -> None:
        try:
            await self.entries.update(entry_id, {"position": position})
        except Exception:
            log.warning("Position write %s -> %d failed", entry_id, position)
            raise
