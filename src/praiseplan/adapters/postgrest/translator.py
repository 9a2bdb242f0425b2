"""Translate between PostgREST rows and domain entities."""

from __future__ import annotations

from praiseplan.domain.model import RosterAssignment, SetlistEntry, Volunteer

from .schema import RosterAssignmentRow, SetlistEntryRow, VolunteerRow


def parse_setlist_entry(payload: object) -> SetlistEntry:
    row = SetlistEntryRow.model_validate(payload)
    return SetlistEntry(
        id=row.id,
        service_id=row.service_id,
        song_id=row.song_id,
        position=row.position,
        notes=row.notes,
    )


def dump_setlist_entry(entry: SetlistEntry) -> dict[str, object]:
    return SetlistEntryRow(
        id=entry.id,
        service_id=entry.service_id,
        song_id=entry.song_id,
        position=entry.position,
        notes=entry.notes,
    ).model_dump(mode="json")


def parse_volunteer(payload: object) -> Volunteer:
    row = VolunteerRow.model_validate(payload)
    return Volunteer(id=row.id, service_id=row.service_id, user_id=row.user_id)


def dump_volunteer(volunteer: Volunteer) -> dict[str, object]:
    return VolunteerRow(
        id=volunteer.id,
        service_id=volunteer.service_id,
        user_id=volunteer.user_id,
    ).model_dump(mode="json")


def parse_roster_assignment(payload: object) -> RosterAssignment:
    row = RosterAssignmentRow.model_validate(payload)
    return RosterAssignment(
        id=row.id,
        service_id=row.service_id,
        volunteer_id=row.volunteer_id,
        instrument_id=row.instrument_id,
    )


def dump_roster_assignment(assignment: RosterAssignment) -> dict[str, object]:
    return RosterAssignmentRow(
        id=assignment.id,
        service_id=assignment.service_id,
        volunteer_id=assignment.volunteer_id,
        instrument_id=assignment.instrument_id,
    ).model_dump(mode="json")
