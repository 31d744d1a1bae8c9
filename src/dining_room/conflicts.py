"""
Time conflict checks for a single table.

A candidate time conflicts with a table when a reservation already bound to
that table falls inside ``[candidate - tolerance, candidate + tolerance]``
(bounds included). The window is computed on the clock face: it wraps around
midnight and does not roll over into the neighbouring day, so a window that
wraps matches nothing.

Any doubt counts as a conflict. Bad parameters and storage failures both
return ``True``.
"""
from __future__ import annotations

import logging
from datetime import time
from typing import Optional, Tuple

from .errors import StorageError
from .models import ConfigKey, Coord, Shift, TimeWindow
from .storage import TableStore

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE_HOURS = 2
_DAY_SECONDS = 24 * 3600


def _shift_clock(value: time, hours: int) -> time:
    """Move ``value`` by ``hours`` around a 24h clock face."""
    seconds = (value.hour * 3600 + value.minute * 60 + value.second + hours * 3600) % _DAY_SECONDS
    return time(seconds // 3600, seconds % 3600 // 60, seconds % 60, value.microsecond)


def tolerance_window(candidate: time, tolerance_hours: int) -> TimeWindow:
    """Return the ``+/- tolerance_hours`` window around ``candidate``."""
    return TimeWindow(
        start=_shift_clock(candidate, -tolerance_hours),
        end=_shift_clock(candidate, tolerance_hours),
    )


def has_conflict(
    store: TableStore,
    key: Optional[ConfigKey],
    coord: Tuple[int, int],
    candidate_time: Optional[time],
    tolerance_hours: int = DEFAULT_TOLERANCE_HOURS,
) -> bool:
    """Return ``True`` when the table at ``coord`` cannot take ``candidate_time``."""
    if (
        key is None
        or key.date is None
        or not isinstance(key.shift, Shift)
        or key.room is None
        or not str(key.room).strip()
        or candidate_time is None
        or tolerance_hours is None
        or tolerance_hours < 0
    ):
        logger.warning("Invalid conflict check parameters for %s at %s, assuming conflict", key, coord)
        return True

    coord = Coord(*coord)
    window = tolerance_window(candidate_time, tolerance_hours)
    try:
        overlapping = store.reservations_overlapping(
            key.date, key.shift, key.room, coord.x, coord.y, window
        )
    except StorageError as e:
        logger.error("Conflict check failed for %s at %s: %s", key, coord, e)
        return True
    return bool(overlapping)
