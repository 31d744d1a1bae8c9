"""Command line interface for the dining room layout engine."""
from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path
from typing import Sequence

from .capacity import capacity
from .csv_loader import dump_bindings, dump_tables, load_store
from .engine import SeatingEngine
from .logging_config import configure_logging
from .models import TableState, parse_date, parse_shift
from .results import ResultKind
from .settings import load_settings


def _add_config_args(parser: argparse.ArgumentParser, with_start: bool = False) -> None:
    parser.add_argument("--date", required=True, help="Configuration date, yyyy-mm-dd.")
    parser.add_argument("--shift", required=True, help="LUNCH or DINNER.")
    parser.add_argument("--room", required=True, help="Room name.")
    if with_start:
        parser.add_argument("--x", type=int, required=True, help="Column of the start table.")
        parser.add_argument("--y", type=int, required=True, help="Row of the start table.")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dining room table groups and reservation binding")
    parser.add_argument("--tables", required=True, help="Path to tables.csv")
    parser.add_argument("--reservations", help="Path to reservations.csv")
    parser.add_argument("--bindings", help="Path to bindings.csv")
    parser.add_argument("--tolerance-hours", type=int,
                        help="Hours around a reservation inside which another one conflicts.")
    parser.add_argument("--rollback-on-reserve-failure", action="store_true", default=None,
                        help="Remove new bindings again when reserving the group fails.")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR.")
    parser.add_argument("--out-tables", type=Path, help="Write the resulting tables CSV.")
    parser.add_argument("--out-bindings", type=Path, help="Write the resulting bindings CSV.")

    sub = parser.add_subparsers(dest="command", required=True)

    groups = sub.add_parser("groups", help="List table groups and their seats.")
    _add_config_args(groups)

    cap = sub.add_parser("capacity", help="Print the total seat count.")
    _add_config_args(cap)

    state = sub.add_parser("set-state", help="Change the state of a whole group.")
    _add_config_args(state, with_start=True)
    state.add_argument("--state", required=True, choices=[s.value for s in TableState])

    assign = sub.add_parser("assign", help="Bind a reservation to a whole group.")
    _add_config_args(assign, with_start=True)
    assign.add_argument("--reservation", required=True, help="Reservation name.")
    assign.add_argument("--reserve", action="store_true",
                        help="Also mark the group RESERVED once bound.")

    res = sub.add_parser("reservations", help="List reservations bound to a group.")
    _add_config_args(res, with_start=True)
    return parser


def _format_coords(coords) -> str:
    return "|".join(f"({c.x},{c.y})" for c in coords)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by ``python -m dining_room.cli``."""
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = load_settings()
    if args.tolerance_hours is not None:
        settings = replace(settings, tolerance_hours=args.tolerance_hours)
    if args.rollback_on_reserve_failure is not None:
        settings = replace(settings, rollback_on_reserve_failure=True)
    if args.log_level:
        settings = replace(settings, log_level=args.log_level.upper())
    configure_logging(settings.log_level)

    store = load_store(args.tables, args.reservations, args.bindings)
    engine = SeatingEngine(store, settings)
    day = parse_date(args.date)
    shift = parse_shift(args.shift)
    room = args.room

    status = 0
    if args.command == "groups":
        for i, group in enumerate(engine.groups(day, shift, room), start=1):
            print(f"[GROUP] {i} seats={capacity(group)} tables={_format_coords(group.coords)}")
        print(f"[TOTAL] seats={engine.total_capacity(day, shift, room)}")

    elif args.command == "capacity":
        print(engine.total_capacity(day, shift, room))

    elif args.command == "set-state":
        result = engine.set_group_state(day, shift, room, (args.x, args.y), TableState(args.state))
        print(f"[{result.kind.value}] updated={result.count} tables={_format_coords(result.updated)}")
        if result.failed is not None:
            print(f"[FAILED] at=({result.failed.x},{result.failed.y}) pending={_format_coords(result.pending)}")
        if result.message:
            print(result.message)
        status = 0 if result.ok else 1

    elif args.command == "assign":
        if args.reserve:
            result = engine.assign_and_reserve(day, shift, room, (args.x, args.y), args.reservation)
        else:
            result = engine.assign_reservation_to_group(day, shift, room, (args.x, args.y), args.reservation)
        print(f"[{result.kind.value}] inserted={result.inserted} reserved={result.reserved} "
              f"tables={_format_coords(result.group)}")
        if result.kind is ResultKind.CONFLICT:
            print(f"[CONFLICT] tables={_format_coords(result.conflicts)}")
        if result.reserve_failed:
            print(f"[RESERVE FAILED] rolled_back={result.rolled_back}")
        if result.message:
            print(result.message)
        status = 0 if result.ok else 1

    elif args.command == "reservations":
        for r in engine.get_group_reservations(day, shift, room, (args.x, args.y)):
            when = r.time.strftime("%H:%M") if r.time else ""
            print(f"{r.name},{r.date.isoformat()},{when},{r.party_size},{r.phone or ''}")

    if args.out_tables:
        args.out_tables.parent.mkdir(parents=True, exist_ok=True)
        dump_tables(store, args.out_tables)
    if args.out_bindings:
        args.out_bindings.parent.mkdir(parents=True, exist_ok=True)
        dump_bindings(store, args.out_bindings)
    return status


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    sys.exit(main())
