"""Error taxonomy for setlist and roster operations."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from uuid import UUID

    from praiseplan.domain.model import RosterAssignment


class PraisePlanError(Exception):
    """Base class for all domain errors."""


class PersistenceError(PraisePlanError):
    """Raised when the backing store rejects or fails an operation."""


class UniqueConstraintError(PersistenceError):
    """The store refused a write because the target value is already taken."""


class NetworkOrTimeoutError(PersistenceError):
    """The store could not be reached, or did not answer in time."""


class NotFoundError(PersistenceError):
    """The targeted row no longer exists."""


class AlreadyAssignedError(PraisePlanError):
    """An instrument is already claimed by another volunteer."""

    def __init__(self, instrument_id: str, *, holder: RosterAssignment | None = None) -> None:
        super().__init__(f"Instrument {instrument_id!r} is already assigned")
        self.instrument_id = instrument_id
        self.holder = holder


class InvalidReorderError(PraisePlanError, ValueError):
    """A list operation referenced an index or entry that does not exist."""


class ReorderInProgressError(PraisePlanError):
    """A service's list has a change that has not resolved yet."""

    def __init__(self, service_id: UUID, *, detail: str = "a commit is in flight") -> None:
        super().__init__(f"Setlist for service {service_id} is busy: {detail}")
        self.service_id = service_id


class ReorderRolledBackError(PraisePlanError):
    """Persisting a list change failed and the visible order was restored."""

    def __init__(self, service_id: UUID, *, reload_recommended: bool) -> None:
        super().__init__(f"Setlist change for service {service_id} was rolled back")
        self.service_id = service_id
        self.reload_recommended = reload_recommended
