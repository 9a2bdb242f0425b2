"""Setlist entries: songs placed in a worship service."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from .base import new_id

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from uuid import UUID


@dataclass(frozen=True, slots=True, kw_only=True)
class SetlistEntry:
    """One song at one 1-based position within one service.

    Entries are immutable; renumbering produces new instances so a snapshot taken
    before a reorder can never be disturbed by later in-memory edits.
    """

    id: UUID = field(default_factory=new_id)
    service_id: UUID
    song_id: UUID
    position: int
    notes: str | None = None

    def at(self, position: int) -> SetlistEntry:
        if position == self.position:
            return self
        return replace(self, position=position)


def renumber(entries: Iterable[SetlistEntry]) -> list[SetlistEntry]:
    """Return entries with positions ``1..N`` following iteration order."""

    return [entry.at(index) for index, entry in enumerate(entries, start=1)]


def is_contiguous(entries: Sequence[SetlistEntry]) -> bool:
    """Whether positions are exactly ``{1..N}`` with no duplicates."""

    return sorted(entry.position for entry in entries) == list(range(1, len(entries) + 1))
