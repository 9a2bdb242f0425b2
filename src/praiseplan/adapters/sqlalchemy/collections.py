"""Collection implementations backed by SQLAlchemy sessions.

Every single-row operation runs in its own short transaction, matching the
row-at-a-time contract of the persistence port. Sessions are blocking, so each
operation runs in a worker thread and the event loop stays free to time out a
slow commit or run other writes of the same phase.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, OperationalError

from praiseplan.domain.errors import (
    NetworkOrTimeoutError,
    NotFoundError,
    PersistenceError,
    UniqueConstraintError,
)
from praiseplan.domain.model import RosterAssignment, SetlistEntry, Volunteer

from .mappings import (
    roster_assignment_from_row,
    roster_assignment_table,
    roster_assignment_to_row,
    setlist_entry_from_row,
    setlist_entry_table,
    setlist_entry_to_row,
    volunteer_from_row,
    volunteer_table,
    volunteer_to_row,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping
    from uuid import UUID

    from sqlalchemy import Select, Table
    from sqlalchemy.engine import RowMapping
    from sqlalchemy.orm import Session, sessionmaker

log = logging.getLogger(__name__)


def _is_unique_violation(exc: IntegrityError) -> bool:
    if getattr(exc.orig, "pgcode", None) == "23505":
        return True
    return "unique" in str(exc.orig).lower()


class SqlAlchemyCollection[TEntity]:
    """Shared find/insert/update/delete over one table."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        table: Table,
        *,
        from_row: Callable[[Mapping[str, Any]], TEntity],
        to_row: Callable[[TEntity], dict[str, object]],
    ) -> None:
        self.session_factory = session_factory
        self.table = table
        self._from_row = from_row
        self._to_row = to_row

    async def find(
        self,
        filters: Mapping[str, object],
        *,
        order_by: str | None = None,
    ) -> list[TEntity]:
        stmt = select(self.table)
        for name, value in filters.items():
            stmt = stmt.where(self.table.c[name] == value)
        if order_by is not None:
            stmt = stmt.order_by(self.table.c[order_by])
        rows = await asyncio.to_thread(self._fetch, stmt)
        return [self._from_row(row) for row in rows]

    async def insert(self, entity: TEntity) -> TEntity:
        await asyncio.to_thread(self._insert, self._to_row(entity))
        return entity

    async def update(self, entity_id: UUID, changes: Mapping[str, object]) -> None:
        await asyncio.to_thread(self._update, entity_id, dict(changes))

    async def delete(self, entity_id: UUID) -> None:
        await asyncio.to_thread(self._delete, entity_id)

    # Blocking halves, run off the event loop ----------------------------------

    def _fetch(self, stmt: Select[Any]) -> list[RowMapping]:
        with self._translate_errors(), self.session_factory() as session:
            return list(session.execute(stmt).mappings().all())

    def _insert(self, values: dict[str, object]) -> None:
        with self._transaction() as session:
            session.execute(insert(self.table).values(**values))

    def _update(self, entity_id: UUID, changes: Mapping[str, object]) -> None:
        with self._transaction() as session:
            self._update_one(session, entity_id, changes)

    def _delete(self, entity_id: UUID) -> None:
        with self._transaction() as session:
            result = session.execute(delete(self.table).where(self.table.c.id == entity_id))
            if result.rowcount == 0:
                raise NotFoundError(f"{self.table.name} row {entity_id} not found")

    def _update_one(
        self,
        session: Session,
        entity_id: UUID,
        changes: Mapping[str, object],
        *extra_criteria: Any,
    ) -> None:
        stmt = (
            update(self.table)
            .where(self.table.c.id == entity_id, *extra_criteria)
            .values(**changes)
        )
        if session.execute(stmt).rowcount == 0:
            raise NotFoundError(f"{self.table.name} row {entity_id} not found")

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._translate_errors(), self.session_factory.begin() as session:
            yield session

    @contextmanager
    def _translate_errors(self) -> Iterator[None]:
        try:
            yield
        except IntegrityError as exc:
            log.warning("Write to %s rejected: %s", self.table.name, exc.orig)
            if _is_unique_violation(exc):
                raise UniqueConstraintError(str(exc.orig)) from exc
            raise PersistenceError(str(exc.orig)) from exc
        except OperationalError as exc:
            log.warning("Database unavailable for %s: %s", self.table.name, exc.orig)
            raise NetworkOrTimeoutError(str(exc.orig)) from exc


class SqlAlchemySetlistEntryCollection(SqlAlchemyCollection[SetlistEntry]):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        super().__init__(
            session_factory,
            setlist_entry_table,
            from_row=setlist_entry_from_row,
            to_row=setlist_entry_to_row,
        )

    async def write_positions(self, service_id: UUID, positions: Mapping[UUID, int]) -> None:
        """Rewrite many positions atomically.

        SQLite and default Postgres constraints are checked per statement, so the
        rows still pass through negative values, but only inside this transaction.
        """

        if not positions:
            return
        await asyncio.to_thread(self._write_positions, service_id, dict(positions))

    def _write_positions(self, service_id: UUID, positions: Mapping[UUID, int]) -> None:
        in_service = setlist_entry_table.c.service_id == service_id
        with self._transaction() as session:
            lowest = session.scalar(
                select(func.min(setlist_entry_table.c.position)).where(in_service)
            )
            # stay below rows parked by an earlier two-phase run
            floor = min(0, lowest or 0)
            for entry_id, position in positions.items():
                self._update_one(session, entry_id, {"position": floor - position}, in_service)
            for entry_id, position in positions.items():
                self._update_one(session, entry_id, {"position": position}, in_service)


class SqlAlchemyVolunteerCollection(SqlAlchemyCollection[Volunteer]):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        super().__init__(
            session_factory,
            volunteer_table,
            from_row=volunteer_from_row,
            to_row=volunteer_to_row,
        )


class SqlAlchemyRosterAssignmentCollection(SqlAlchemyCollection[RosterAssignment]):
    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        super().__init__(
            session_factory,
            roster_assignment_table,
            from_row=roster_assignment_from_row,
            to_row=roster_assignment_to_row,
        )


if TYPE_CHECKING:
    from praiseplan.domain.ports.persistence import (
        PositionBatchWriter,
        RosterAssignmentCollection,
        SetlistEntryCollection,
        VolunteerCollection,
    )

    _factory_stub: sessionmaker[Session] = ...  # type: ignore[assignment]
    _setlist_check: SetlistEntryCollection = SqlAlchemySetlistEntryCollection(_factory_stub)
    _batch_check: PositionBatchWriter = SqlAlchemySetlistEntryCollection(_factory_stub)
    _volunteer_check: VolunteerCollection = SqlAlchemyVolunteerCollection(_factory_stub)
    _assignment_check: RosterAssignmentCollection = SqlAlchemyRosterAssignmentCollection(
        _factory_stub
    )
