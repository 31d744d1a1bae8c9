"""Result types returned by the engine operations."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from .models import Coord


class ResultKind(str, Enum):
    OK = "OK"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    ERROR = "ERROR"


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "INVALID_ARGUMENT"
    STORAGE = "STORAGE"


@dataclass(frozen=True)
class StateChangeResult:
    """Outcome of a group state change.

    On a storage failure the loop stops at ``failed``: ``updated`` holds the
    tables already written and ``pending`` the ones never attempted. Nothing
    is rolled back.
    """

    kind: ResultKind
    updated: Tuple[Coord, ...] = ()
    failed: Optional[Coord] = None
    pending: Tuple[Coord, ...] = ()
    error: Optional[ErrorKind] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.OK

    @property
    def count(self) -> int:
        return len(self.updated)

    @property
    def partial(self) -> bool:
        return self.kind is ResultKind.ERROR and bool(self.updated)


@dataclass(frozen=True)
class AssignResult:
    """Outcome of binding a reservation to a group.

    ``reserve_failed`` is only set by ``assign_and_reserve`` when the
    bindings were written but the group could not be marked reserved;
    ``rolled_back`` tells whether the bindings in ``created`` were removed
    again, after a failed reserve or a storage error while binding.
    """

    kind: ResultKind
    inserted: int = 0
    group: Tuple[Coord, ...] = ()
    created: Tuple[Coord, ...] = ()
    conflicts: Tuple[Coord, ...] = ()
    reserved: bool = False
    reserve_failed: bool = False
    rolled_back: bool = False
    error: Optional[ErrorKind] = None
    message: str = ""
    state_change: Optional[StateChangeResult] = field(default=None, compare=False)

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.OK
