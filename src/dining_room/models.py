"""Data models for the dining room layout engine."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Iterator, NamedTuple, Optional, Tuple


class TableState(str, Enum):
    FREE = "FREE"
    RESERVED = "RESERVED"
    OCCUPIED = "OCCUPIED"


class Shift(str, Enum):
    LUNCH = "LUNCH"
    DINNER = "DINNER"


class Coord(NamedTuple):
    """Position of a table on the room grid."""

    x: int
    y: int


class ConfigKey(NamedTuple):
    """A ``(date, shift, room)`` instance of a table layout."""

    date: date
    shift: Shift
    room: str


def _is_missing(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    text = str(value).strip()
    return not text or text.lower() == "nan"


def parse_optional_str(value: object) -> Optional[str]:
    """Return a stripped string or ``None`` for empty cells.

    ``pandas`` hands out ``float('nan')`` for missing values which is also
    treated as empty.
    """
    if _is_missing(value):
        return None
    return str(value).strip()


def parse_state(value: object) -> TableState:
    """Parse a table state, defaulting to ``FREE`` for empty values."""
    if _is_missing(value):
        return TableState.FREE
    try:
        return TableState(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown table state: {value}") from None


def parse_shift(value: object) -> Shift:
    if isinstance(value, Shift):
        return value
    if _is_missing(value):
        raise ValueError("Missing shift")
    try:
        return Shift(str(value).strip().upper())
    except ValueError:
        raise ValueError(f"Unknown shift: {value}") from None


def parse_date(value: object) -> date:
    """Parse an ISO ``yyyy-mm-dd`` date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if _is_missing(value):
        raise ValueError("Missing date")
    return date.fromisoformat(str(value).strip())


def parse_time(value: object) -> Optional[time]:
    """Parse ``HH:MM`` (or ``HH:MM:SS``). Empty values return ``None``."""
    if isinstance(value, time):
        return value
    if _is_missing(value):
        return None
    return time.fromisoformat(str(value).strip())


@dataclass(frozen=True)
class Table:
    """A table placed on the grid of one configuration."""

    x: int
    y: int
    state: TableState = TableState.FREE

    @property
    def coord(self) -> Coord:
        return Coord(self.x, self.y)


@dataclass(frozen=True)
class Reservation:
    """A booking, identified by ``(date, name)``."""

    name: str
    date: date
    time: Optional[time] = None
    party_size: int = 0
    phone: Optional[str] = None

    @property
    def key(self) -> Tuple[date, str]:
        return (self.date, self.name)


@dataclass(frozen=True)
class TimeWindow:
    """Inclusive time-of-day range.

    A window whose ``start`` lies after its ``end`` (it wrapped around
    midnight) contains nothing.
    """

    start: time
    end: time

    def contains(self, value: time) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class Group:
    """Tables connected through shared edges, in discovery order."""

    tables: Tuple[Table, ...]

    def __post_init__(self) -> None:
        if not self.tables:
            raise ValueError("A group has at least one table")

    def __len__(self) -> int:
        return len(self.tables)

    def __iter__(self) -> Iterator[Table]:
        return iter(self.tables)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, Table):
            item = item.coord
        return item in self.coords

    @property
    def coords(self) -> Tuple[Coord, ...]:
        return tuple(t.coord for t in self.tables)
