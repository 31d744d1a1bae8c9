import pathlib
import sys
from datetime import date, time

import pytest

# Ensure src package is on path
sys.path.append(str(pathlib.Path(__file__).resolve().parents[1] / "src"))

from dining_room.errors import StorageError
from dining_room.models import Coord, Reservation, Shift, Table
from dining_room.storage import InMemoryStore

DAY = date(2026, 10, 19)
SHIFT = Shift.DINNER
ROOM = "Main"

# Three in a row, an L of four and a lone table.
LINE = [(0, 0), (1, 0), (2, 0)]
ELL = [(5, 0), (5, 1), (5, 2), (6, 2)]
LONE = [(9, 9)]


class FlakyStore(InMemoryStore):
    """In-memory store that fails on chosen tables."""

    def __init__(self, fail_writes_at=(), fail_bindings_at=(), fail_overlap=False, fail_remove=False,
                 fail_reads=False):
        super().__init__()
        self.fail_writes_at = {Coord(*c) for c in fail_writes_at}
        self.fail_bindings_at = {Coord(*c) for c in fail_bindings_at}
        self.fail_overlap = fail_overlap
        self.fail_remove = fail_remove
        self.fail_reads = fail_reads

    def write_table_state(self, date, shift, room, x, y, state):
        if Coord(x, y) in self.fail_writes_at:
            raise StorageError(f"write failed at ({x}, {y})")
        return super().write_table_state(date, shift, room, x, y, state)

    def create_binding(self, date, shift, room, x, y, reservation_name):
        if Coord(x, y) in self.fail_bindings_at:
            raise StorageError(f"insert failed at ({x}, {y})")
        return super().create_binding(date, shift, room, x, y, reservation_name)

    def load_bindings_for_table(self, date, shift, room, x, y):
        if self.fail_reads:
            raise StorageError("read failed")
        return super().load_bindings_for_table(date, shift, room, x, y)

    def reservations_overlapping(self, date, shift, room, x, y, window):
        if self.fail_overlap:
            raise StorageError("connection lost")
        return super().reservations_overlapping(date, shift, room, x, y, window)

    def remove_binding(self, date, shift, room, x, y, reservation_name):
        if self.fail_remove:
            raise StorageError("delete failed")
        return super().remove_binding(date, shift, room, x, y, reservation_name)


def tables_at(coords):
    return [Table(x, y) for x, y in coords]


def seed(store):
    """Fill ``store`` with the standard dinner layout and reservations."""
    for x, y in LINE + ELL + LONE:
        store.add_table(DAY, SHIFT, ROOM, Table(x, y))
    for name, when in [
        ("Rossi", time(19, 0)),
        ("Bianchi", time(20, 30)),
        ("Verdi", time(22, 0)),
        ("Gallo", time(21, 0)),
        ("Ferri", time(19, 30)),
        ("Neri", None),
    ]:
        store.add_reservation(Reservation(name=name, date=DAY, time=when, party_size=4))
    return store


@pytest.fixture
def store():
    return seed(InMemoryStore())


@pytest.fixture
def data_dir():
    return pathlib.Path(__file__).parent / "data"
