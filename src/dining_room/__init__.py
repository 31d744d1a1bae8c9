"""Dining room layout package."""
from .models import ConfigKey, Coord, Group, Reservation, Shift, Table, TableState, TimeWindow
from .grouping import resolve_group, resolve_all_groups
from .capacity import capacity, group_capacities, total_capacity
from .conflicts import has_conflict, tolerance_window
from .csv_loader import load_store
from .engine import ConfigurationLocks, SeatingEngine
from .errors import InvalidArgument, StorageError
from .results import AssignResult, ErrorKind, ResultKind, StateChangeResult
from .settings import EngineSettings, load_settings
from .storage import InMemoryStore, TableStore

__all__ = [
    "ConfigKey",
    "Coord",
    "Group",
    "Reservation",
    "Shift",
    "Table",
    "TableState",
    "TimeWindow",
    "resolve_group",
    "resolve_all_groups",
    "capacity",
    "group_capacities",
    "total_capacity",
    "has_conflict",
    "tolerance_window",
    "load_store",
    "ConfigurationLocks",
    "SeatingEngine",
    "InvalidArgument",
    "StorageError",
    "AssignResult",
    "ErrorKind",
    "ResultKind",
    "StateChangeResult",
    "EngineSettings",
    "load_settings",
    "InMemoryStore",
    "TableStore",
]
