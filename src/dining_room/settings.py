"""Runtime settings for the seating engine.

Values come from the environment with the defaults below; the CLI may
override them with flags.
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .conflicts import DEFAULT_TOLERANCE_HOURS

ENV_TOLERANCE_HOURS = "DINING_ROOM_TOLERANCE_HOURS"
ENV_ROLLBACK = "DINING_ROOM_ROLLBACK_ON_RESERVE_FAILURE"
ENV_LOG_LEVEL = "DINING_ROOM_LOG_LEVEL"

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _to_bool(value: Optional[str], default: bool = False) -> bool:
    """Normalize environment strings such as "true"/"1" into booleans."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class EngineSettings:
    """Immutable snapshot of the engine configuration."""

    tolerance_hours: int = DEFAULT_TOLERANCE_HOURS
    rollback_on_reserve_failure: bool = False
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.tolerance_hours < 0:
            raise ValueError(f"tolerance_hours must be >= 0, got {self.tolerance_hours}")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")


def load_settings(env: Optional[Mapping[str, str]] = None) -> EngineSettings:
    """Load settings from ``env`` (``os.environ`` by default)."""
    if env is None:
        env = os.environ

    raw_tolerance = env.get(ENV_TOLERANCE_HOURS)
    try:
        tolerance = int(raw_tolerance) if raw_tolerance not in (None, "") else DEFAULT_TOLERANCE_HOURS
    except ValueError:
        raise ValueError(f"{ENV_TOLERANCE_HOURS} must be an integer, got {raw_tolerance!r}") from None

    return EngineSettings(
        tolerance_hours=tolerance,
        rollback_on_reserve_failure=_to_bool(env.get(ENV_ROLLBACK)),
        log_level=(env.get(ENV_LOG_LEVEL) or "WARNING").strip().upper(),
    )
