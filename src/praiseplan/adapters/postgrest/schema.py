"""Pydantic models describing PostgREST rows and error payloads."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class PostgrestBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SetlistEntryRow(PostgrestBaseModel):
    id: UUID
    service_id: UUID
    song_id: UUID
    position: int
    notes: str | None = None

    _normalize_notes = field_validator("notes", mode="before")(_blank_to_none)


class VolunteerRow(PostgrestBaseModel):
    id: UUID
    service_id: UUID
    user_id: UUID


class RosterAssignmentRow(PostgrestBaseModel):
    id: UUID
    service_id: UUID
    volunteer_id: UUID
    instrument_id: str = Field(min_length=1)


class ErrorResponse(PostgrestBaseModel):
    """Body PostgREST sends with 4xx/5xx responses."""

    code: str | None = None
    message: str | None = None
    details: str | None = None
    hint: str | None = None
