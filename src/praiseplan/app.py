"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from praiseplan.adapters.postgrest import open_postgrest_gateway
from praiseplan.adapters.sqlalchemy import (
    build_sqlalchemy_gateway,
    configured_engine,
    is_started,
    startup,
)
from praiseplan.config import SchedulingConfig, get_scheduling_config, get_store_config
from praiseplan.domain.errors import NotFoundError
from praiseplan.domain.model import AssignmentScope
from praiseplan.domain.roster import ResourceAssignmentGuard, RosterLoader, VolunteerRegistry
from praiseplan.domain.setlist import OptimisticListStore, PositionReconciler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
    from uuid import UUID

    from praiseplan.config import StoreConfig
    from praiseplan.domain.model import RosterAssignment, SetlistEntry, Volunteer
    from praiseplan.domain.ports.persistence import PersistenceGateway
    from praiseplan.domain.roster import Roster

log = getLogger(__name__)


@dataclass(slots=True)
class SchedulingServices:
    """Domain services sharing one gateway and one assignment pool."""

    gateway: PersistenceGateway
    setlists: OptimisticListStore
    guard: ResourceAssignmentGuard
    rosters: RosterLoader
    volunteers: VolunteerRegistry


def build_services(
    gateway: PersistenceGateway,
    config: SchedulingConfig | None = None,
) -> SchedulingServices:
    effective = config or SchedulingConfig()
    reconciler = PositionReconciler(
        gateway.setlist_entries,
        write_concurrency=effective.write_concurrency,
        prefer_transactions=effective.prefer_transactions,
    )
    guard = ResourceAssignmentGuard(
        gateway.roster_assignments,
        scope=AssignmentScope(effective.assignment_scope),
    )
    rosters = RosterLoader(gateway, guard)
    return SchedulingServices(
        gateway=gateway,
        setlists=OptimisticListStore(
            gateway.setlist_entries,
            reconciler,
            commit_timeout_seconds=effective.commit_timeout_seconds,
        ),
        guard=guard,
        rosters=rosters,
        volunteers=VolunteerRegistry(rosters),
    )


@asynccontextmanager
async def open_gateway(
    *,
    store: StoreConfig | None = None,
    database_uri: str | None = None,
) -> AsyncIterator[PersistenceGateway]:
    """Yield the hosted-store gateway when one is configured, else the local database."""

    store_config = store or get_store_config()
    if store_config is not None:
        log.debug("Using hosted store at %s", store_config.base_url)
        async with open_postgrest_gateway(store_config) as gateway:
            yield gateway
        return

    if not is_started():
        startup(database_uri=database_uri)
    yield build_sqlalchemy_gateway()


def init_db(database_uri: str | None = None) -> str:
    """Create the local schema and return the URL it was created at."""

    if not is_started():
        startup(database_uri=database_uri)
    engine = configured_engine()
    if engine is None:  # pragma: no cover - startup either sets an engine or raises
        raise RuntimeError("Database engine was not initialised")
    return engine.url.render_as_string(hide_password=True)


def run_with_services[T](
    operation: Callable[[SchedulingServices], Awaitable[T]],
    *,
    config: SchedulingConfig | None = None,
) -> T:
    """Run one async operation against freshly wired services."""

    async def runner() -> T:
        async with open_gateway() as gateway:
            services = build_services(gateway, config or get_scheduling_config())
            return await operation(services)

    return asyncio.run(runner())


# Setlist operations ------------------------------------------------------------


async def show_setlist(services: SchedulingServices, service_id: UUID) -> list[SetlistEntry]:
    return await services.setlists.load(service_id)


async def add_song(
    services: SchedulingServices,
    service_id: UUID,
    song_id: UUID,
    *,
    notes: str | None = None,
) -> SetlistEntry:
    await services.setlists.load(service_id)
    entry = await services.setlists.add_entry(service_id, song_id, notes=notes)
    log.info("Added song %s to service %s at position %d", song_id, service_id, entry.position)
    return entry


async def move_song(
    services: SchedulingServices,
    service_id: UUID,
    from_index: int,
    to_index: int,
) -> list[SetlistEntry]:
    store = services.setlists
    await store.load(service_id)
    store.apply_reorder(service_id, from_index, to_index)
    entries = await store.commit_reorder(service_id)
    log.info("Moved setlist entry %d -> %d for service %s", from_index, to_index, service_id)
    return entries


async def remove_song(
    services: SchedulingServices,
    service_id: UUID,
    entry_id: UUID,
) -> list[SetlistEntry]:
    await services.setlists.load(service_id)
    entries = await services.setlists.remove_entry(service_id, entry_id)
    log.info("Removed entry %s from service %s", entry_id, service_id)
    return entries


# Roster operations -------------------------------------------------------------


async def show_roster(services: SchedulingServices, service_id: UUID) -> Roster:
    return await services.rosters.load(service_id)


async def sign_up(services: SchedulingServices, service_id: UUID, user_id: UUID) -> Volunteer:
    return await services.volunteers.sign_up(service_id, user_id)


async def withdraw(services: SchedulingServices, service_id: UUID, volunteer_id: UUID) -> None:
    roster = await services.rosters.load(service_id)
    volunteer = next((v for v in roster.volunteers if v.id == volunteer_id), None)
    if volunteer is None:
        raise NotFoundError(f"Volunteer {volunteer_id} is not on the roster of {service_id}")
    await services.volunteers.withdraw(volunteer)


async def assign_instrument(
    services: SchedulingServices,
    service_id: UUID,
    volunteer_id: UUID,
    instrument_id: str,
    *,
    also_loaded: Iterable[UUID] = (),
) -> RosterAssignment:
    """Claim an instrument, checking against this service and any ``also_loaded`` rosters."""

    await services.rosters.load_many({service_id, *also_loaded})
    assignment = await services.guard.assign(service_id, volunteer_id, instrument_id)
    log.info("Assigned %s to volunteer %s", instrument_id, volunteer_id)
    return assignment


async def unassign_instrument(
    services: SchedulingServices,
    service_id: UUID,
    volunteer_id: UUID,
    instrument_id: str,
) -> None:
    await services.rosters.load(service_id)
    await services.guard.unassign(volunteer_id, instrument_id)
    log.info("Released %s from volunteer %s", instrument_id, volunteer_id)
