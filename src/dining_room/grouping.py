"""
Group resolution for a table layout.

Two tables belong to the same group when they share an edge, i.e. one sits
directly east, west, south or north of the other. Groups are connected
components under that 4-adjacency and are recomputed from the snapshot on
every call.

Neighbours are visited in the fixed order +x, -x, +y, -y so that discovery
order is reproducible.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import Coord, Group, Table

logger = logging.getLogger(__name__)

_DELTAS: Tuple[Tuple[int, int], ...] = ((1, 0), (-1, 0), (0, 1), (0, -1))


def neighbours(coord: Coord) -> List[Coord]:
    """Return the four edge neighbours of ``coord`` in traversal order."""
    return [Coord(coord.x + dx, coord.y + dy) for dx, dy in _DELTAS]


def index_tables(tables: Iterable[Table]) -> Dict[Coord, Table]:
    """Key tables by coordinate. A later duplicate replaces an earlier one."""
    return {t.coord: t for t in tables}


def _bfs(start: Table, by_coord: Dict[Coord, Table], visited: Set[Coord]) -> List[Table]:
    """Collect every table reachable from ``start``, marking them in ``visited``."""
    members: List[Table] = []
    queue = deque([start])
    visited.add(start.coord)
    while queue:
        current = queue.popleft()
        members.append(current)
        for nxt in neighbours(current.coord):
            table = by_coord.get(nxt)
            if table is not None and nxt not in visited:
                visited.add(nxt)
                queue.append(table)
    return members


def resolve_group(tables: Iterable[Table], start: Tuple[int, int]) -> Optional[Group]:
    """Return the group containing ``start`` or ``None`` when no table is there."""
    by_coord = index_tables(tables)
    first = by_coord.get(Coord(*start))
    if first is None:
        logger.debug("No table at %s", tuple(start))
        return None
    group = Group(tuple(_bfs(first, by_coord, set())))
    logger.debug("Resolved group of %d table(s) from %s", len(group), tuple(start))
    return group


def resolve_all_groups(tables: Iterable[Table]) -> List[Group]:
    """Partition the whole layout into disjoint groups.

    Tables are scanned in ascending ``(y, x)`` order; each table not claimed
    by an earlier group starts a new one.
    """
    by_coord = index_tables(tables)
    visited: Set[Coord] = set()
    groups: List[Group] = []
    for coord in sorted(by_coord, key=lambda c: (c.y, c.x)):
        if coord in visited:
            continue
        groups.append(Group(tuple(_bfs(by_coord[coord], by_coord, visited))))
    return groups
