# ruff: noqa: T201

from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING
from uuid import UUID

from dotenv import load_dotenv

from praiseplan.app import (
    add_song,
    assign_instrument,
    init_db,
    move_song,
    remove_song,
    run_with_services,
    show_roster,
    show_setlist,
    sign_up,
    unassign_instrument,
    withdraw,
)
from praiseplan.config import configure_logging
from praiseplan.domain.errors import AlreadyAssignedError, InvalidReorderError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence
    from types import FrameType

    from praiseplan.app import SchedulingServices
    from praiseplan.domain.model import SetlistEntry
    from praiseplan.domain.roster import Roster

    type Operation = Callable[[SchedulingServices], Awaitable[None]]

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Plan worship service setlists and rosters")
    subparsers = parser.add_subparsers(dest="command", required=True)

    init = subparsers.add_parser("init-db", help="Create the local database schema")
    init.add_argument(
        "--database-uri",
        type=str,
        help="SQLAlchemy URL to initialise (defaults to config)",
    )

    setlist = subparsers.add_parser("setlist", help="Setlist commands")
    setlist_sub = setlist.add_subparsers(dest="setlist_command", required=True)
    setlist_show = setlist_sub.add_parser("show", help="Print a service's setlist")
    setlist_show.add_argument("service_id", help="Service id")
    setlist_add = setlist_sub.add_parser("add", help="Append a song to a setlist")
    setlist_add.add_argument("service_id", help="Service id")
    setlist_add.add_argument("song_id", help="Song id")
    setlist_add.add_argument("--notes", type=str, help="Optional notes for the entry")
    setlist_move = setlist_sub.add_parser("move", help="Move a song to another position")
    setlist_move.add_argument("service_id", help="Service id")
    setlist_move.add_argument("from_position", type=int, help="Current 1-based position")
    setlist_move.add_argument("to_position", type=int, help="Target 1-based position")
    setlist_remove = setlist_sub.add_parser("remove", help="Remove an entry from a setlist")
    setlist_remove.add_argument("service_id", help="Service id")
    setlist_remove.add_argument("entry_id", help="Setlist entry id")

    roster = subparsers.add_parser("roster", help="Roster commands")
    roster_sub = roster.add_subparsers(dest="roster_command", required=True)
    roster_show = roster_sub.add_parser("show", help="Print a service's roster")
    roster_show.add_argument("service_id", help="Service id")
    roster_sign_up = roster_sub.add_parser("sign-up", help="Sign a user up for a service")
    roster_sign_up.add_argument("service_id", help="Service id")
    roster_sign_up.add_argument("user_id", help="User id")
    roster_withdraw = roster_sub.add_parser("withdraw", help="Remove a volunteer from a service")
    roster_withdraw.add_argument("service_id", help="Service id")
    roster_withdraw.add_argument("volunteer_id", help="Volunteer id")
    for name, help_text in (
        ("assign", "Give a volunteer an instrument or role"),
        ("unassign", "Release a volunteer's instrument or role"),
    ):
        command = roster_sub.add_parser(name, help=help_text)
        command.add_argument("service_id", help="Service id")
        command.add_argument("volunteer_id", help="Volunteer id")
        command.add_argument("instrument", help="Instrument or role name")
        if name == "assign":
            command.add_argument(
                "--also-loaded",
                action="append",
                default=[],
                metavar="SERVICE_ID",
                help="Other service whose roster must not hold the instrument (repeatable)",
            )

    return parser.parse_args(list(argv))


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _print_setlist(entries: Sequence[SetlistEntry]) -> None:
    if not entries:
        print("(empty setlist)")
    for entry in entries:
        suffix = f"  # {entry.notes}" if entry.notes else ""
        print(f"{entry.position:>3}. song {entry.song_id} [entry {entry.id}]{suffix}")


def _print_roster(roster: Roster) -> None:
    if not roster.volunteers:
        print("(no volunteers)")
    for volunteer in roster.volunteers:
        instruments = ", ".join(roster.instruments_of(volunteer.id)) or "-"
        print(f"{volunteer.id} (user {volunteer.user_id}): {instruments}")


def _setlist_operation(args: argparse.Namespace) -> Operation:
    service_id = _parse_uuid(args.service_id)

    if args.setlist_command == "show":

        async def show(services: SchedulingServices) -> None:
            _print_setlist(await show_setlist(services, service_id))

        return show

    if args.setlist_command == "add":
        song_id = _parse_uuid(args.song_id)

        async def add(services: SchedulingServices) -> None:
            entry = await add_song(services, service_id, song_id, notes=args.notes)
            print(f"Added entry {entry.id} at position {entry.position}")

        return add

    if args.setlist_command == "move":
        from_index, to_index = args.from_position - 1, args.to_position - 1

        async def move(services: SchedulingServices) -> None:
            _print_setlist(await move_song(services, service_id, from_index, to_index))

        return move

    if args.setlist_command == "remove":
        entry_id = _parse_uuid(args.entry_id)

        async def remove(services: SchedulingServices) -> None:
            _print_setlist(await remove_song(services, service_id, entry_id))

        return remove

    raise ValueError(f"Unsupported setlist command: {args.setlist_command}")


def _roster_operation(args: argparse.Namespace) -> Operation:
    service_id = _parse_uuid(args.service_id)

    if args.roster_command == "show":

        async def show(services: SchedulingServices) -> None:
            _print_roster(await show_roster(services, service_id))

        return show

    if args.roster_command == "sign-up":
        user_id = _parse_uuid(args.user_id)

        async def enlist(services: SchedulingServices) -> None:
            volunteer = await sign_up(services, service_id, user_id)
            print(f"Volunteer {volunteer.id}")

        return enlist

    volunteer_id = _parse_uuid(args.volunteer_id)

    if args.roster_command == "withdraw":

        async def leave(services: SchedulingServices) -> None:
            await withdraw(services, service_id, volunteer_id)

        return leave

    if args.roster_command == "assign":
        also_loaded = [_parse_uuid(value) for value in args.also_loaded]

        async def assign(services: SchedulingServices) -> None:
            assignment = await assign_instrument(
                services,
                service_id,
                volunteer_id,
                args.instrument,
                also_loaded=also_loaded,
            )
            print(f"Assignment {assignment.id}")

        return assign

    if args.roster_command == "unassign":

        async def release(services: SchedulingServices) -> None:
            await unassign_instrument(services, service_id, volunteer_id, args.instrument)

        return release

    raise ValueError(f"Unsupported roster command: {args.roster_command}")


def _build_operation(args: argparse.Namespace) -> Operation | None:
    if args.command == "init-db":
        return None
    if args.command == "setlist":
        return _setlist_operation(args)
    if args.command == "roster":
        return _roster_operation(args)
    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    parsed_args: argparse.Namespace
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        operation = _build_operation(parsed_args)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if operation is None:
            location = init_db(parsed_args.database_uri)
            log.info("Database ready at %s", location)
        else:
            run_with_services(operation)
    except (AlreadyAssignedError, InvalidReorderError) as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(2)
    except Exception:
        log.exception("Command failed")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
