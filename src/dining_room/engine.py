"""
Seating engine: group state changes and reservation binding.

Every operation loads a fresh snapshot of one ``(date, shift, room)``
configuration from the store, resolves the group around a start table and
relays its writes back to the store. Mutating operations hold the
configuration lock from the snapshot load to the last write, so a conflict
check and the bindings that follow it cannot interleave with another writer
on the same configuration.
"""
from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from .capacity import capacity, group_capacities
from .conflicts import has_conflict
from .errors import StorageError
from .grouping import resolve_all_groups, resolve_group
from .models import ConfigKey, Coord, Group, Reservation, Shift, TableState
from .results import AssignResult, ErrorKind, ResultKind, StateChangeResult
from .settings import EngineSettings
from .storage import TableStore

logger = logging.getLogger(__name__)


class ConfigurationLocks:
    """One reentrant lock per configuration."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[ConfigKey, threading.RLock] = {}

    def get(self, key: ConfigKey) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, key: ConfigKey) -> Iterator[None]:
        with self.get(key):
            yield


_store_locks_guard = threading.Lock()
_store_locks: weakref.WeakKeyDictionary[TableStore, ConfigurationLocks] = weakref.WeakKeyDictionary()


def locks_for_store(store: TableStore) -> ConfigurationLocks:
    """Return the lock registry shared by every engine working on ``store``."""
    with _store_locks_guard:
        locks = _store_locks.get(store)
        if locks is None:
            locks = _store_locks[store] = ConfigurationLocks()
        return locks


def _invalid_key(day: Optional[date], shift: Optional[Shift], room: Optional[str]) -> Optional[str]:
    if day is None:
        return "date is required"
    if not isinstance(shift, Shift):
        return "shift is required"
    if room is None or not str(room).strip():
        return "room is required"
    return None


class SeatingEngine:
    """Group resolution, capacity and reservation binding on top of a store."""

    def __init__(
        self,
        store: TableStore,
        settings: Optional[EngineSettings] = None,
        locks: Optional[ConfigurationLocks] = None,
    ) -> None:
        self.store = store
        self.settings = settings or EngineSettings()
        self.locks = locks or locks_for_store(store)

    # ----------------------------- queries -----------------------------
    def find_group(self, day: date, shift: Shift, room: str, start: Tuple[int, int]) -> Optional[Group]:
        """Resolve the group at ``start`` on a fresh snapshot."""
        return resolve_group(self.store.load_tables(day, shift, room), start)

    def groups(self, day: date, shift: Shift, room: str) -> List[Group]:
        return resolve_all_groups(self.store.load_tables(day, shift, room))

    def group_capacity(self, day: date, shift: Shift, room: str, start: Tuple[int, int]) -> Optional[int]:
        group = self.find_group(day, shift, room, start)
        return capacity(group) if group is not None else None

    def group_capacities(self, day: date, shift: Shift, room: str) -> List[int]:
        return group_capacities(self.store.load_tables(day, shift, room))

    def total_capacity(self, day: date, shift: Shift, room: str) -> int:
        return sum(self.group_capacities(day, shift, room))

    def get_group_reservations(
        self, day: date, shift: Shift, room: str, start: Tuple[int, int]
    ) -> List[Reservation]:
        """Distinct reservations bound to any table of the group at ``start``.

        Deduplicated on ``(date, name)`` keeping first-seen order over the
        group's discovery order.

        Unlike the mutating operations this returns plain data, so there is no
        result object to carry a failure: a :class:`StorageError` is logged
        and re-raised rather than turned into an empty list, which would read
        as "nothing booked".
        """
        if _invalid_key(day, shift, room) or start is None:
            return []
        key = ConfigKey(day, shift, room)
        try:
            group = self.find_group(day, shift, room, start)
            if group is None:
                return []
            seen: Dict[Tuple[date, str], Reservation] = {}
            for table in group:
                for r in self.store.load_bindings_for_table(day, shift, room, table.x, table.y):
                    seen.setdefault(r.key, r)
        except StorageError as e:
            logger.error("Could not load reservations of the group at %s in %s: %s", tuple(start), key, e)
            raise
        return list(seen.values())

    # ----------------------------- group state -----------------------------
    def set_group_state(
        self, day: date, shift: Shift, room: str, start: Tuple[int, int], new_state: TableState
    ) -> StateChangeResult:
        """Write ``new_state`` on every table of the group at ``start``.

        Fails fast on the first storage error. Tables written before the
        failure keep their new state; the result lists them in ``updated``.
        """
        problem = _invalid_key(day, shift, room)
        if problem is None and (start is None or not isinstance(new_state, TableState)):
            problem = "start and new_state are required"
        if problem:
            return StateChangeResult(ResultKind.ERROR, error=ErrorKind.INVALID_ARGUMENT, message=problem)

        key = ConfigKey(day, shift, room)
        with self.locks.hold(key):
            try:
                group = self.find_group(day, shift, room, start)
            except StorageError as e:
                logger.error("Could not load tables for %s: %s", key, e)
                return StateChangeResult(ResultKind.ERROR, error=ErrorKind.STORAGE, message=str(e))
            if group is None:
                logger.warning("No table at %s in %s", tuple(start), key)
                return StateChangeResult(ResultKind.NOT_FOUND, message=f"no table at {tuple(start)}")

            coords = group.coords
            updated: List[Coord] = []
            for i, c in enumerate(coords):
                try:
                    if self.store.write_table_state(day, shift, room, c.x, c.y, new_state):
                        updated.append(c)
                except StorageError as e:
                    logger.error(
                        "State write %s failed at %s in %s after %d update(s): %s",
                        new_state.value, c, key, len(updated), e,
                    )
                    return StateChangeResult(
                        ResultKind.ERROR,
                        updated=tuple(updated),
                        failed=c,
                        pending=coords[i + 1:],
                        error=ErrorKind.STORAGE,
                        message=str(e),
                    )

        logger.info("Set %d table(s) to %s in %s", len(updated), new_state.value, key)
        return StateChangeResult(ResultKind.OK, updated=tuple(updated))

    def free_group(self, day: date, shift: Shift, room: str, start: Tuple[int, int]) -> StateChangeResult:
        return self.set_group_state(day, shift, room, start, TableState.FREE)

    def reserve_group(self, day: date, shift: Shift, room: str, start: Tuple[int, int]) -> StateChangeResult:
        return self.set_group_state(day, shift, room, start, TableState.RESERVED)

    def occupy_group(self, day: date, shift: Shift, room: str, start: Tuple[int, int]) -> StateChangeResult:
        return self.set_group_state(day, shift, room, start, TableState.OCCUPIED)

    # ----------------------------- binding -----------------------------
    def _remove_bindings(self, key: ConfigKey, coords: Sequence[Coord], name: str) -> bool:
        """Best effort removal; ``True`` when every binding was removed."""
        try:
            for c in coords:
                self.store.remove_binding(key.date, key.shift, key.room, c.x, c.y, name)
        except StorageError as e:
            logger.error("Could not roll back bindings of %r in %s: %s", name, key, e)
            return False
        return True

    def _restore_states(
        self, key: ConfigKey, coords: Sequence[Coord], before: Dict[Coord, TableState]
    ) -> bool:
        """Write back the pre-call state of ``coords``; ``True`` when all were restored."""
        try:
            for c in coords:
                if c not in before:
                    logger.error("No earlier state of %s in %s to restore", c, key)
                    return False
                self.store.write_table_state(key.date, key.shift, key.room, c.x, c.y, before[c])
        except StorageError as e:
            logger.error("Could not restore table states in %s: %s", key, e)
            return False
        return True

    def assign_reservation_to_group(
        self, day: date, shift: Shift, room: str, start: Tuple[int, int], reservation_name: str
    ) -> AssignResult:
        """Bind ``reservation_name`` to every table of the group at ``start``.

        Nothing is written when any table of the group already holds a
        reservation inside the tolerance window.
        """
        problem = _invalid_key(day, shift, room)
        if problem is None and start is None:
            problem = "start is required"
        if problem is None and (reservation_name is None or not str(reservation_name).strip()):
            problem = "reservation name is required"
        if problem:
            return AssignResult(ResultKind.ERROR, error=ErrorKind.INVALID_ARGUMENT, message=problem)

        key = ConfigKey(day, shift, room)
        try:
            reservation = self.store.load_reservation(day, reservation_name)
        except StorageError as e:
            logger.error("Could not load reservation %r on %s: %s", reservation_name, day, e)
            return AssignResult(ResultKind.ERROR, error=ErrorKind.STORAGE, message=str(e))
        if reservation is None:
            return AssignResult(
                ResultKind.ERROR,
                error=ErrorKind.INVALID_ARGUMENT,
                message=f"reservation {reservation_name!r} not found on {day}",
            )
        if reservation.time is None:
            return AssignResult(
                ResultKind.ERROR,
                error=ErrorKind.INVALID_ARGUMENT,
                message=f"reservation {reservation_name!r} has no time",
            )

        with self.locks.hold(key):
            try:
                tables = self.store.load_tables(day, shift, room)
            except StorageError as e:
                logger.error("Could not load tables for %s: %s", key, e)
                return AssignResult(ResultKind.ERROR, error=ErrorKind.STORAGE, message=str(e))
            if not tables:
                return AssignResult(ResultKind.NOT_FOUND, message=f"no tables in {key}")
            group = resolve_group(tables, start)
            if group is None:
                logger.warning("No table at %s in %s", tuple(start), key)
                return AssignResult(ResultKind.NOT_FOUND, message=f"no table at {tuple(start)}")

            tolerance = self.settings.tolerance_hours
            conflicts = tuple(
                c for c in group.coords if has_conflict(self.store, key, c, reservation.time, tolerance)
            )
            if conflicts:
                logger.warning(
                    "Reservation %r at %s conflicts on %d table(s) in %s",
                    reservation_name, reservation.time, len(conflicts), key,
                )
                return AssignResult(
                    ResultKind.CONFLICT,
                    group=group.coords,
                    conflicts=conflicts,
                    message=f"another reservation within {tolerance}h",
                )

            created: List[Coord] = []
            try:
                for c in group.coords:
                    if self.store.create_binding(day, shift, room, c.x, c.y, reservation_name):
                        created.append(c)
            except StorageError as e:
                logger.error("Binding %r failed in %s: %s", reservation_name, key, e)
                rolled_back = self._remove_bindings(key, created, reservation_name)
                return AssignResult(
                    ResultKind.ERROR,
                    group=group.coords,
                    created=tuple(created),
                    rolled_back=rolled_back,
                    error=ErrorKind.STORAGE,
                    message=str(e),
                )

        logger.info("Bound %r to %d table(s) in %s", reservation_name, len(created), key)
        return AssignResult(ResultKind.OK, inserted=len(created), group=group.coords, created=tuple(created))

    def assign_and_reserve(
        self, day: date, shift: Shift, room: str, start: Tuple[int, int], reservation_name: str
    ) -> AssignResult:
        """Bind the reservation, then mark the whole group ``RESERVED``.

        The state change only runs when new bindings were created. If it
        fails the bindings stay in place (``reserve_failed``) unless
        ``rollback_on_reserve_failure`` is set, in which case the bindings
        created here are removed and the tables already marked reserved get
        their earlier state back. ``rolled_back`` is only set when both undo
        steps succeeded.
        """
        if _invalid_key(day, shift, room):
            return self.assign_reservation_to_group(day, shift, room, start, reservation_name)

        key = ConfigKey(day, shift, room)
        with self.locks.hold(key):
            result = self.assign_reservation_to_group(day, shift, room, start, reservation_name)
            if not result.ok or result.inserted <= 0:
                return result

            before: Dict[Coord, TableState] = {}
            if self.settings.rollback_on_reserve_failure:
                try:
                    before = {t.coord: t.state for t in self.store.load_tables(day, shift, room)}
                except StorageError as e:
                    logger.error("Could not snapshot table states in %s: %s", key, e)

            state = self.reserve_group(day, shift, room, start)
            if state.ok:
                return replace(result, reserved=True, state_change=state)

            rolled_back = False
            if self.settings.rollback_on_reserve_failure:
                bindings_removed = self._remove_bindings(key, result.created, reservation_name)
                states_restored = self._restore_states(key, state.updated, before)
                rolled_back = bindings_removed and states_restored
            logger.error(
                "Reservation %r bound in %s but reserving the group failed (rolled back: %s)",
                reservation_name, key, rolled_back,
            )
            return replace(
                result,
                kind=ResultKind.ERROR,
                reserve_failed=True,
                rolled_back=rolled_back,
                error=state.error or ErrorKind.STORAGE,
                message=state.message,
                state_change=state,
            )

    def release_reservation(self, day: date, reservation_name: str) -> int:
        """Remove every binding of a reservation; returns how many were removed."""
        removed = 0
        for key, table in self.store.load_tables_for_reservation(day, reservation_name):
            with self.locks.hold(key):
                if self.store.remove_binding(key.date, key.shift, key.room, table.x, table.y, reservation_name):
                    removed += 1
        logger.info("Released %d binding(s) of %r on %s", removed, reservation_name, day)
        return removed
