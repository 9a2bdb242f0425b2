"""Collections over a hosted PostgREST endpoint.

PostgREST writes one request at a time and exposes no multi-row transaction to
the client, so these collections do not offer a batch position writer; the
reconciler falls back to its two-phase path.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any, cast
from uuid import UUID

import httpx
from pydantic import ValidationError

from praiseplan.adapters.http_resilience import RateLimit, ResilienceConfig, ResilientClient
from praiseplan.domain.errors import (
    NetworkOrTimeoutError,
    NotFoundError,
    PersistenceError,
    UniqueConstraintError,
)
from praiseplan.domain.ports.persistence import PersistenceGateway

from .schema import ErrorResponse
from .translator import (
    dump_roster_assignment,
    dump_setlist_entry,
    dump_volunteer,
    parse_roster_assignment,
    parse_setlist_entry,
    parse_volunteer,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Mapping

    from praiseplan.config.store import StoreConfig
    from praiseplan.domain.model import RosterAssignment, SetlistEntry, Volunteer

log = logging.getLogger(__name__)

SETLIST_ENTRIES_TABLE = "setlist_entries"
ROSTER_ASSIGNMENTS_TABLE = "roster_assignments"
VOLUNTEERS_TABLE = "volunteers"

_DEFAULT_TIMEOUT_SECONDS = 10.0
_RETURN_REPRESENTATION = {"Prefer": "return=representation"}
_UNIQUE_VIOLATION = "23505"
_FOREIGN_KEY_VIOLATION = "23503"
_NO_ROWS = "PGRST116"


def default_resilience_config(config: StoreConfig) -> ResilienceConfig:
    return ResilienceConfig(
        name="postgrest",
        base_url=config.rest_url,
        timeout_seconds=_DEFAULT_TIMEOUT_SECONDS,
        ratelimit=RateLimit(max_calls=20, per_seconds=1.0),
        default_headers={
            "apikey": config.api_key,
            "Authorization": f"Bearer {config.api_key}",
            "Accept": "application/json",
        },
    )


def _encode_filter(value: object) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"is.{str(value).lower()}"
    return f"eq.{value}"


def _jsonable(changes: Mapping[str, object]) -> dict[str, object]:
    return {key: str(value) if isinstance(value, UUID) else value for key, value in changes.items()}


def _translate_error(response: httpx.Response, table: str) -> PersistenceError:
    try:
        error = ErrorResponse.model_validate_json(response.content)
    except ValidationError:
        error = ErrorResponse(message=response.text or None)
    message = f"{table}: {error.message or response.reason_phrase} ({response.status_code})"

    if error.code == _UNIQUE_VIOLATION:
        return UniqueConstraintError(message)
    if error.code == _FOREIGN_KEY_VIOLATION:
        return PersistenceError(message)
    if response.status_code == httpx.codes.CONFLICT:
        return UniqueConstraintError(message)
    if response.status_code == httpx.codes.NOT_FOUND or error.code == _NO_ROWS:
        return NotFoundError(message)
    if response.status_code in {
        httpx.codes.REQUEST_TIMEOUT,
        httpx.codes.SERVICE_UNAVAILABLE,
        httpx.codes.GATEWAY_TIMEOUT,
    }:
        return NetworkOrTimeoutError(message)
    return PersistenceError(message)


class PostgrestCollection[TEntity]:
    """Row operations against one PostgREST table."""

    def __init__(
        self,
        client: ResilientClient,
        table: str,
        *,
        parse: Callable[[object], TEntity],
        dump: Callable[[TEntity], dict[str, object]],
    ) -> None:
        self.client = client
        self.table = table
        self._parse = parse
        self._dump = dump

    async def find(
        self,
        filters: Mapping[str, object],
        *,
        order_by: str | None = None,
    ) -> list[TEntity]:
        params: dict[str, str] = {"select": "*"}
        for name, value in filters.items():
            params[name] = _encode_filter(value)
        if order_by is not None:
            params["order"] = f"{order_by}.asc"
        response = await self._call("GET", params=params)
        return [self._parse(item) for item in self._rows(response)]

    async def insert(self, entity: TEntity) -> TEntity:
        response = await self._call(
            "POST",
            json=self._dump(entity),
            headers=_RETURN_REPRESENTATION,
        )
        rows = self._rows(response)
        return self._parse(rows[0]) if rows else entity

    async def update(self, entity_id: UUID, changes: Mapping[str, object]) -> None:
        response = await self._call(
            "PATCH",
            params={"id": _encode_filter(entity_id)},
            json=_jsonable(changes),
            headers=_RETURN_REPRESENTATION,
        )
        if not self._rows(response):
            raise NotFoundError(f"{self.table} row {entity_id} not found")

    async def delete(self, entity_id: UUID) -> None:
        response = await self._call(
            "DELETE",
            params={"id": _encode_filter(entity_id)},
            headers=_RETURN_REPRESENTATION,
        )
        if not self._rows(response):
            raise NotFoundError(f"{self.table} row {entity_id} not found")

    async def _call(self, method: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self.client.request(method, self.table, **kwargs)
        except httpx.TimeoutException as exc:
            log.warning("%s %s timed out", method, self.table)
            raise NetworkOrTimeoutError(f"{method} {self.table} timed out") from exc
        except httpx.TransportError as exc:
            log.warning("%s %s failed: %s", method, self.table, exc)
            raise NetworkOrTimeoutError(f"{method} {self.table} failed: {exc}") from exc

        if response.is_error:
            error = _translate_error(response, self.table)
            log.warning("%s %s rejected: %s", method, self.table, error)
            raise error
        return response

    def _rows(self, response: httpx.Response) -> list[object]:
        if not response.content:
            return []
        payload = response.json()
        if not isinstance(payload, list):
            raise PersistenceError(f"Unexpected payload from {self.table}: {payload!r}")
        return cast(list[object], payload)


def build_postgrest_gateway(client: ResilientClient) -> PersistenceGateway:
    setlist_entries: PostgrestCollection[SetlistEntry] = PostgrestCollection(
        client,
        SETLIST_ENTRIES_TABLE,
        parse=parse_setlist_entry,
        dump=dump_setlist_entry,
    )
    roster_assignments: PostgrestCollection[RosterAssignment] = PostgrestCollection(
        client,
        ROSTER_ASSIGNMENTS_TABLE,
        parse=parse_roster_assignment,
        dump=dump_roster_assignment,
    )
    volunteers: PostgrestCollection[Volunteer] = PostgrestCollection(
        client,
        VOLUNTEERS_TABLE,
        parse=parse_volunteer,
        dump=dump_volunteer,
    )
    return PersistenceGateway(
        setlist_entries=setlist_entries,
        roster_assignments=roster_assignments,
        volunteers=volunteers,
    )


@asynccontextmanager
async def open_postgrest_gateway(
    config: StoreConfig,
    *,
    resilience: ResilienceConfig | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncIterator[PersistenceGateway]:
    """Yield a gateway backed by one HTTP client, closing the client afterwards."""

    async with ResilientClient(
        resilience or default_resilience_config(config),
        transport=transport,
    ) as client:
        yield build_postgrest_gateway(client)
