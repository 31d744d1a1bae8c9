"""CSV loading utilities."""
from __future__ import annotations

from pathlib import Path
from typing import IO, Any, List, Optional, Tuple, Union

import pandas as pd

from .models import (
    ConfigKey,
    Reservation,
    Table,
    parse_date,
    parse_optional_str,
    parse_shift,
    parse_state,
    parse_time,
)
from .errors import InvalidArgument
from .storage import BindingKey, InMemoryStore

CsvSource = Union[Path, str, IO[Any]]

TABLE_COLUMNS = ["date", "shift", "room", "x", "y"]
RESERVATION_COLUMNS = ["name", "date"]
BINDING_COLUMNS = ["date", "shift", "room", "x", "y", "reservation"]


def _require_columns(df: pd.DataFrame, required: List[str], label: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{label}: missing columns: {', '.join(missing)}")


def load_tables(path: CsvSource) -> List[Tuple[ConfigKey, Table]]:
    """Load table placements from ``tables.csv``."""
    df = pd.read_csv(path)
    _require_columns(df, TABLE_COLUMNS, "tables.csv")
    tables: List[Tuple[ConfigKey, Table]] = []
    for _, row in df.iterrows():
        key = ConfigKey(parse_date(row["date"]), parse_shift(row["shift"]), str(row["room"]).strip())
        tables.append((key, Table(int(row["x"]), int(row["y"]), parse_state(row.get("state")))))
    return tables


def load_reservations(path: CsvSource) -> List[Reservation]:
    """Load reservations. ``time``, ``party_size`` and ``phone`` are optional."""
    df = pd.read_csv(path, dtype={"phone": str})
    _require_columns(df, RESERVATION_COLUMNS, "reservations.csv")
    reservations: List[Reservation] = []
    for _, row in df.iterrows():
        party = row.get("party_size", 0)
        reservations.append(
            Reservation(
                name=str(row["name"]).strip(),
                date=parse_date(row["date"]),
                time=parse_time(row.get("time")),
                party_size=0 if pd.isna(party) else int(party),
                phone=parse_optional_str(row.get("phone")),
            )
        )
    return reservations


def load_bindings(path: CsvSource) -> List[BindingKey]:
    """Load reservation to table bindings."""
    df = pd.read_csv(path)
    _require_columns(df, BINDING_COLUMNS, "bindings.csv")
    return [
        (
            parse_date(row["date"]),
            parse_shift(row["shift"]),
            str(row["room"]).strip(),
            int(row["x"]),
            int(row["y"]),
            str(row["reservation"]).strip(),
        )
        for _, row in df.iterrows()
    ]


def load_store(
    tables_path: CsvSource,
    reservations_path: Optional[CsvSource] = None,
    bindings_path: Optional[CsvSource] = None,
) -> InMemoryStore:
    """Build an :class:`InMemoryStore` from CSV files.

    Duplicate tables and reservations are rejected, as are bindings that
    reference an unknown reservation or table.
    """
    store = InMemoryStore()
    for key, table in load_tables(tables_path):
        if not store.add_table(key.date, key.shift, key.room, table):
            raise InvalidArgument(f"Duplicate table ({table.x}, {table.y}) in {key.room} {key.shift.value} {key.date}")
    if reservations_path is not None:
        for r in load_reservations(reservations_path):
            if not store.add_reservation(r):
                raise InvalidArgument(f"Duplicate reservation {r.name!r} on {r.date}")
    if bindings_path is not None:
        for day, shift, room, x, y, name in load_bindings(bindings_path):
            if store.load_reservation(day, name) is None:
                raise InvalidArgument(f"Binding references unknown reservation: {name} on {day}")
            if (x, y) not in {t.coord for t in store.load_tables(day, shift, room)}:
                raise InvalidArgument(f"Binding references unknown table: ({x}, {y}) in {room} {shift.value} {day}")
            store.create_binding(day, shift, room, x, y, name)
    return store


def tables_frame(store: InMemoryStore) -> pd.DataFrame:
    rows = [
        {"date": k.date.isoformat(), "shift": k.shift.value, "room": k.room, "x": t.x, "y": t.y, "state": t.state.value}
        for k in store.configurations()
        for t in store.load_tables(k.date, k.shift, k.room)
    ]
    return pd.DataFrame(rows, columns=TABLE_COLUMNS + ["state"])


def bindings_frame(store: InMemoryStore) -> pd.DataFrame:
    rows = [
        {"date": d.isoformat(), "shift": s.value, "room": room, "x": x, "y": y, "reservation": name}
        for d, s, room, x, y, name in store.bindings()
    ]
    return pd.DataFrame(rows, columns=BINDING_COLUMNS)


def dump_tables(store: InMemoryStore, path: Union[Path, str]) -> None:
    tables_frame(store).to_csv(path, index=False)


def dump_bindings(store: InMemoryStore, path: Union[Path, str]) -> None:
    bindings_frame(store).to_csv(path, index=False)
