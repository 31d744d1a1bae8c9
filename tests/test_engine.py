"""
Tests for the seating engine.

Covers group state changes, reservation binding with conflict checks and
the partial outcomes reported when the store fails halfway.
"""
import threading
import time as clock
from datetime import date

import pytest

from dining_room.engine import ConfigurationLocks, SeatingEngine, locks_for_store
from dining_room.errors import StorageError
from dining_room.models import Coord, Shift, TableState
from dining_room.results import ErrorKind, ResultKind
from dining_room.settings import EngineSettings
from dining_room.storage import InMemoryStore

from conftest import DAY, ELL, LINE, ROOM, SHIFT, FlakyStore, seed


def _states(store):
    return {t.coord: t.state for t in store.load_tables(DAY, SHIFT, ROOM)}


def _bound(store, name):
    return {(b[3], b[4]) for b in store.bindings() if b[5] == name}


class TestGroupState:
    def test_reserve_group_updates_every_member(self, store):
        engine = SeatingEngine(store)
        result = engine.reserve_group(DAY, SHIFT, ROOM, (5, 1))
        assert result.ok
        assert result.count == 4
        assert result.updated == (Coord(5, 1), Coord(5, 2), Coord(5, 0), Coord(6, 2))
        states = _states(store)
        assert all(states[c] is TableState.RESERVED for c in ELL)
        assert all(states[c] is TableState.FREE for c in LINE)

    @pytest.mark.parametrize(
        "method, expected",
        [
            ("free_group", TableState.FREE),
            ("reserve_group", TableState.RESERVED),
            ("occupy_group", TableState.OCCUPIED),
        ],
    )
    def test_convenience_variants(self, store, method, expected):
        engine = SeatingEngine(store)
        engine.occupy_group(DAY, SHIFT, ROOM, (0, 0))
        result = getattr(engine, method)(DAY, SHIFT, ROOM, (2, 0))
        assert result.count == 3
        assert {_states(store)[c] for c in LINE} == {expected}

    def test_missing_start_is_not_found(self, store):
        result = SeatingEngine(store).set_group_state(DAY, SHIFT, ROOM, (3, 3), TableState.OCCUPIED)
        assert result.kind is ResultKind.NOT_FOUND
        assert result.count == 0
        assert TableState.OCCUPIED not in _states(store).values()

    def test_invalid_arguments(self, store):
        engine = SeatingEngine(store)
        result = engine.set_group_state(DAY, SHIFT, "", (0, 0), TableState.FREE)
        assert result.kind is ResultKind.ERROR
        assert result.error is ErrorKind.INVALID_ARGUMENT
        assert engine.set_group_state(DAY, SHIFT, ROOM, (0, 0), "FREE").error is ErrorKind.INVALID_ARGUMENT

    def test_storage_failure_reports_partial_update(self):
        store = seed(FlakyStore(fail_writes_at=[(1, 0)]))
        result = SeatingEngine(store).occupy_group(DAY, SHIFT, ROOM, (0, 0))

        assert result.kind is ResultKind.ERROR
        assert result.error is ErrorKind.STORAGE
        assert result.partial
        assert result.updated == (Coord(0, 0),)
        assert result.failed == Coord(1, 0)
        assert result.pending == (Coord(2, 0),)
        # No rollback: the first table keeps its new state
        states = _states(store)
        assert states[Coord(0, 0)] is TableState.OCCUPIED
        assert states[Coord(1, 0)] is TableState.FREE
        assert states[Coord(2, 0)] is TableState.FREE


class TestAssign:
    def test_conflict_within_tolerance_rejects_whole_group(self, store):
        store.create_binding(DAY, SHIFT, ROOM, 2, 0, "Bianchi")  # 20:30
        result = SeatingEngine(store).assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), "Rossi")  # 19:00

        assert result.kind is ResultKind.CONFLICT
        assert result.conflicts == (Coord(2, 0),)
        assert result.inserted == 0
        assert _bound(store, "Rossi") == set()

    def test_no_conflict_binds_every_table(self, store):
        store.create_binding(DAY, SHIFT, ROOM, 1, 0, "Verdi")  # 22:00
        result = SeatingEngine(store).assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), "Rossi")

        assert result.ok
        assert result.inserted == 3
        assert set(result.group) == set(LINE)
        assert _bound(store, "Rossi") == set(LINE)
        # State is left alone by a plain assignment
        assert {_states(store)[c] for c in LINE} == {TableState.FREE}

    def test_tolerance_comes_from_settings(self, store):
        store.create_binding(DAY, SHIFT, ROOM, 1, 0, "Bianchi")  # 20:30
        engine = SeatingEngine(store, EngineSettings(tolerance_hours=1))
        assert engine.assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), "Rossi").ok

    def test_reassigning_the_same_reservation_conflicts_with_itself(self, store):
        engine = SeatingEngine(store)
        assert engine.assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), "Rossi").ok
        again = engine.assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), "Rossi")
        assert again.kind is ResultKind.CONFLICT

    def test_missing_start_table(self, store):
        result = SeatingEngine(store).assign_reservation_to_group(DAY, SHIFT, ROOM, (3, 3), "Rossi")
        assert result.kind is ResultKind.NOT_FOUND
        assert store.bindings() == []

    def test_empty_configuration(self, store):
        result = SeatingEngine(store).assign_reservation_to_group(DAY, Shift.LUNCH, ROOM, (0, 0), "Rossi")
        assert result.kind is ResultKind.NOT_FOUND

    @pytest.mark.parametrize("name", ["Nobody", "Neri", ""])
    def test_unknown_or_untimed_reservation_is_an_error(self, store, name):
        result = SeatingEngine(store).assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), name)
        assert result.kind is ResultKind.ERROR
        assert result.error is ErrorKind.INVALID_ARGUMENT

    def test_missing_date(self, store):
        result = SeatingEngine(store).assign_reservation_to_group(None, SHIFT, ROOM, (0, 0), "Rossi")
        assert result.error is ErrorKind.INVALID_ARGUMENT

    def test_conflict_check_failure_blocks_assignment(self):
        store = seed(FlakyStore(fail_overlap=True))
        result = SeatingEngine(store).assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), "Rossi")
        assert result.kind is ResultKind.CONFLICT
        assert store.bindings() == []

    def test_binding_failure_rolls_back_new_bindings(self):
        store = seed(FlakyStore(fail_bindings_at=[(0, 0)]))
        result = SeatingEngine(store).assign_reservation_to_group(DAY, SHIFT, ROOM, (1, 0), "Rossi")

        assert result.kind is ResultKind.ERROR
        assert result.error is ErrorKind.STORAGE
        assert result.created == (Coord(1, 0), Coord(2, 0))
        assert result.rolled_back
        assert _bound(store, "Rossi") == set()

    @pytest.mark.parametrize("shared_engine", [True, False])
    def test_concurrent_assignments_accept_only_one(self, shared_engine):
        class SlowStore(InMemoryStore):
            def reservations_overlapping(self, *args):
                found = super().reservations_overlapping(*args)
                clock.sleep(0.05)
                return found

        store = seed(SlowStore())
        engine = SeatingEngine(store)
        barrier = threading.Barrier(2)
        results = {}

        def run(name):
            # One engine per caller must still serialize on the shared store
            worker = engine if shared_engine else SeatingEngine(store)
            barrier.wait()
            results[name] = worker.assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), name)

        threads = [threading.Thread(target=run, args=(n,)) for n in ("Rossi", "Ferri")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        kinds = sorted(r.kind.value for r in results.values())
        assert kinds == ["CONFLICT", "OK"]
        winner = next(n for n, r in results.items() if r.ok)
        loser = next(n for n in results if n != winner)
        assert _bound(store, winner) == set(LINE)
        assert _bound(store, loser) == set()


class TestAssignAndReserve:
    def test_binds_and_reserves(self, store):
        result = SeatingEngine(store).assign_and_reserve(DAY, SHIFT, ROOM, (5, 0), "Rossi")
        assert result.ok
        assert result.reserved
        assert result.inserted == 4
        assert {_states(store)[c] for c in ELL} == {TableState.RESERVED}

    def test_conflict_leaves_state_untouched(self, store):
        store.create_binding(DAY, SHIFT, ROOM, 5, 2, "Bianchi")
        result = SeatingEngine(store).assign_and_reserve(DAY, SHIFT, ROOM, (5, 0), "Rossi")
        assert result.kind is ResultKind.CONFLICT
        assert not result.reserved
        assert {_states(store)[c] for c in ELL} == {TableState.FREE}

    def test_reserve_failure_keeps_bindings_by_default(self):
        store = seed(FlakyStore(fail_writes_at=[(2, 0)]))
        result = SeatingEngine(store).assign_and_reserve(DAY, SHIFT, ROOM, (0, 0), "Rossi")

        assert result.kind is ResultKind.ERROR
        assert result.reserve_failed
        assert not result.rolled_back
        assert result.inserted == 3
        assert _bound(store, "Rossi") == set(LINE)
        assert result.state_change.failed == Coord(2, 0)

    def test_reserve_failure_with_rollback_restores_bindings_and_states(self):
        store = seed(FlakyStore(fail_writes_at=[(2, 0)]))
        store.write_table_state(DAY, SHIFT, ROOM, 1, 0, TableState.OCCUPIED)
        engine = SeatingEngine(store, EngineSettings(rollback_on_reserve_failure=True))
        result = engine.assign_and_reserve(DAY, SHIFT, ROOM, (0, 0), "Rossi")

        assert result.kind is ResultKind.ERROR
        assert result.reserve_failed
        assert result.rolled_back
        assert result.state_change.updated == (Coord(0, 0), Coord(1, 0))
        assert _bound(store, "Rossi") == set()
        states = _states(store)
        assert states[Coord(0, 0)] is TableState.FREE
        assert states[Coord(1, 0)] is TableState.OCCUPIED
        assert states[Coord(2, 0)] is TableState.FREE

    def test_failed_rollback_is_reported(self):
        store = seed(FlakyStore(fail_writes_at=[(2, 0)], fail_remove=True))
        engine = SeatingEngine(store, EngineSettings(rollback_on_reserve_failure=True))
        result = engine.assign_and_reserve(DAY, SHIFT, ROOM, (0, 0), "Rossi")

        assert result.reserve_failed
        assert not result.rolled_back
        assert _bound(store, "Rossi") == set(LINE)


class TestQueries:
    def test_group_reservations_are_distinct_in_first_seen_order(self, store):
        engine = SeatingEngine(store)
        store.create_binding(DAY, SHIFT, ROOM, 2, 0, "Verdi")
        store.create_binding(DAY, SHIFT, ROOM, 1, 0, "Verdi")
        store.create_binding(DAY, SHIFT, ROOM, 0, 0, "Rossi")

        found = engine.get_group_reservations(DAY, SHIFT, ROOM, (2, 0))
        assert [r.name for r in found] == ["Verdi", "Rossi"]

    def test_group_reservations_storage_error_propagates(self):
        store = seed(FlakyStore(fail_reads=True))
        with pytest.raises(StorageError):
            SeatingEngine(store).get_group_reservations(DAY, SHIFT, ROOM, (0, 0))

    def test_group_reservations_empty(self, store):
        engine = SeatingEngine(store)
        assert engine.get_group_reservations(DAY, SHIFT, ROOM, (0, 0)) == []
        assert engine.get_group_reservations(DAY, SHIFT, ROOM, (3, 3)) == []
        assert engine.get_group_reservations(date(2020, 1, 1), SHIFT, ROOM, (0, 0)) == []

    def test_capacity_queries(self, store):
        engine = SeatingEngine(store)
        assert engine.group_capacities(DAY, SHIFT, ROOM) == [8, 10, 2]
        assert engine.total_capacity(DAY, SHIFT, ROOM) == 20
        assert engine.group_capacity(DAY, SHIFT, ROOM, (6, 2)) == 10
        assert engine.group_capacity(DAY, SHIFT, ROOM, (3, 3)) is None
        assert engine.total_capacity(DAY, Shift.LUNCH, ROOM) == 0

    def test_release_reservation(self, store):
        engine = SeatingEngine(store)
        engine.assign_reservation_to_group(DAY, SHIFT, ROOM, (0, 0), "Rossi")
        assert engine.release_reservation(DAY, "Rossi") == 3
        assert _bound(store, "Rossi") == set()
        assert engine.release_reservation(DAY, "Rossi") == 0


def test_configuration_locks_are_per_key():
    locks = ConfigurationLocks()
    a = locks.get((DAY, SHIFT, ROOM))
    assert locks.get((DAY, SHIFT, ROOM)) is a
    assert locks.get((DAY, Shift.LUNCH, ROOM)) is not a


def test_engines_on_one_store_share_locks(store):
    assert SeatingEngine(store).locks is SeatingEngine(store).locks
    assert SeatingEngine(store).locks is locks_for_store(store)
    assert SeatingEngine(InMemoryStore()).locks is not SeatingEngine(store).locks
