"""
Seat capacity of table groups.

    single table:       2 seats
    N >= 2 tables:      4 * N - 2 * U

where ``U`` is the number of shared edges inside the group. Each edge is
counted once by only looking east (x + 1) and south (y + 1) of every member.
"""
from __future__ import annotations

from typing import Iterable, List

from .grouping import resolve_all_groups
from .models import Coord, Group, Table

SINGLE_TABLE_SEATS = 2
SEATS_PER_TABLE = 4
SEATS_LOST_PER_EDGE = 2


def shared_edges(group: Group) -> int:
    coords = set(group.coords)
    unions = 0
    for c in coords:
        if Coord(c.x + 1, c.y) in coords:
            unions += 1
        if Coord(c.x, c.y + 1) in coords:
            unions += 1
    return unions


def capacity(group: Group) -> int:
    """Seats available around ``group``."""
    if len(group) == 1:
        return SINGLE_TABLE_SEATS
    return SEATS_PER_TABLE * len(group) - SEATS_LOST_PER_EDGE * shared_edges(group)


def group_capacities(tables: Iterable[Table]) -> List[int]:
    """Capacity of every group of the layout, in group discovery order."""
    return [capacity(g) for g in resolve_all_groups(tables)]


def total_capacity(tables: Iterable[Table]) -> int:
    return sum(group_capacities(tables))
