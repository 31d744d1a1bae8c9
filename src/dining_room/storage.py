"""Storage collaborator interface and an in-memory implementation."""
from __future__ import annotations

import threading
from datetime import date, time
from typing import Dict, List, Optional, Protocol, Set, Tuple

from .errors import StorageError
from .models import ConfigKey, Coord, Reservation, Shift, Table, TableState, TimeWindow

# (date, shift, room, x, y, reservation name)
BindingKey = Tuple[date, Shift, str, int, int, str]


class TableStore(Protocol):
    """What the engine needs from persistence.

    Implementations raise :class:`StorageError` when a call fails.
    """

    def load_tables(self, date: date, shift: Shift, room: str) -> List[Table]: ...

    def write_table_state(
        self, date: date, shift: Shift, room: str, x: int, y: int, state: TableState
    ) -> bool: ...

    def load_reservation(self, date: date, name: str) -> Optional[Reservation]: ...

    def load_bindings_for_table(
        self, date: date, shift: Shift, room: str, x: int, y: int
    ) -> List[Reservation]: ...

    def create_binding(
        self, date: date, shift: Shift, room: str, x: int, y: int, reservation_name: str
    ) -> bool: ...

    def remove_binding(
        self, date: date, shift: Shift, room: str, x: int, y: int, reservation_name: str
    ) -> bool: ...

    def reservations_overlapping(
        self, date: date, shift: Shift, room: str, x: int, y: int, window: TimeWindow
    ) -> bool: ...

    def load_tables_for_reservation(
        self, date: date, name: str
    ) -> List[Tuple[ConfigKey, Table]]: ...


class InMemoryStore:
    """Thread safe dictionary backed :class:`TableStore`.

    Also carries the plain CRUD that seeds it (tables, reservations), which
    the engine itself never calls.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tables: Dict[ConfigKey, Dict[Coord, Table]] = {}
        self._reservations: Dict[Tuple[date, str], Reservation] = {}
        self._bindings: Set[BindingKey] = set()

    # ----------------------------- seeding -----------------------------
    def add_table(self, date: date, shift: Shift, room: str, table: Table) -> bool:
        """Insert a table; ``False`` if the coordinate is already taken."""
        key = ConfigKey(date, shift, room)
        with self._lock:
            layout = self._tables.setdefault(key, {})
            if table.coord in layout:
                return False
            layout[table.coord] = table
            return True

    def delete_table(self, date: date, shift: Shift, room: str, x: int, y: int) -> bool:
        key = ConfigKey(date, shift, room)
        with self._lock:
            layout = self._tables.get(key, {})
            if layout.pop(Coord(x, y), None) is None:
                return False
            self._bindings = {
                b for b in self._bindings if b[:5] != (date, shift, room, x, y)
            }
            return True

    def add_reservation(self, reservation: Reservation) -> bool:
        with self._lock:
            if reservation.key in self._reservations:
                return False
            self._reservations[reservation.key] = reservation
            return True

    def delete_reservation(self, date: date, name: str) -> bool:
        """Remove a reservation and every binding that points at it."""
        with self._lock:
            if self._reservations.pop((date, name), None) is None:
                return False
            self._bindings = {b for b in self._bindings if (b[0], b[5]) != (date, name)}
            return True

    def configurations(self) -> List[ConfigKey]:
        with self._lock:
            return sorted(self._tables, key=lambda k: (k.date, k.shift.value, k.room))

    def reservations(self) -> List[Reservation]:
        with self._lock:
            return list(self._reservations.values())

    def bindings(self) -> List[BindingKey]:
        with self._lock:
            return sorted(self._bindings, key=lambda b: (b[0], b[1].value, b[2], b[4], b[3], b[5]))

    # ----------------------------- TableStore -----------------------------
    def load_tables(self, date: date, shift: Shift, room: str) -> List[Table]:
        with self._lock:
            layout = self._tables.get(ConfigKey(date, shift, room), {})
            return sorted(layout.values(), key=lambda t: (t.y, t.x))

    def write_table_state(
        self, date: date, shift: Shift, room: str, x: int, y: int, state: TableState
    ) -> bool:
        with self._lock:
            layout = self._tables.get(ConfigKey(date, shift, room), {})
            current = layout.get(Coord(x, y))
            if current is None:
                return False
            layout[current.coord] = Table(x, y, state)
            return True

    def load_reservation(self, date: date, name: str) -> Optional[Reservation]:
        with self._lock:
            return self._reservations.get((date, name))

    def load_bindings_for_table(
        self, date: date, shift: Shift, room: str, x: int, y: int
    ) -> List[Reservation]:
        with self._lock:
            found = [
                self._reservations[(b[0], b[5])]
                for b in self._bindings
                if b[:5] == (date, shift, room, x, y) and (b[0], b[5]) in self._reservations
            ]
        return sorted(found, key=lambda r: (r.time is None, r.time or time.min, r.name))

    def create_binding(
        self, date: date, shift: Shift, room: str, x: int, y: int, reservation_name: str
    ) -> bool:
        binding = (date, shift, room, x, y, reservation_name)
        with self._lock:
            if (date, reservation_name) not in self._reservations:
                raise StorageError(f"Unknown reservation {reservation_name!r} on {date}")
            if Coord(x, y) not in self._tables.get(ConfigKey(date, shift, room), {}):
                raise StorageError(f"Unknown table ({x}, {y}) in {room} {shift.value} {date}")
            if binding in self._bindings:
                return False
            self._bindings.add(binding)
            return True

    def remove_binding(
        self, date: date, shift: Shift, room: str, x: int, y: int, reservation_name: str
    ) -> bool:
        binding = (date, shift, room, x, y, reservation_name)
        with self._lock:
            if binding not in self._bindings:
                return False
            self._bindings.discard(binding)
            return True

    def reservations_overlapping(
        self, date: date, shift: Shift, room: str, x: int, y: int, window: TimeWindow
    ) -> bool:
        return any(
            r.time is not None and window.contains(r.time)
            for r in self.load_bindings_for_table(date, shift, room, x, y)
        )

    def load_tables_for_reservation(self, date: date, name: str) -> List[Tuple[ConfigKey, Table]]:
        out: List[Tuple[ConfigKey, Table]] = []
        with self._lock:
            for b in self._bindings:
                if (b[0], b[5]) != (date, name):
                    continue
                key = ConfigKey(b[0], b[1], b[2])
                table = self._tables.get(key, {}).get(Coord(b[3], b[4]))
                if table is not None:
                    out.append((key, table))
        return sorted(out, key=lambda kt: (kt[0].shift.value, kt[0].room, kt[1].y, kt[1].x))
