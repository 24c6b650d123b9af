"""Configuration models and helpers for the task timer."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from datetime import timedelta
from pathlib import Path
from typing import Any, Mapping

from platformdirs import PlatformDirs

from .errors import InvalidConfigError

APP_NAME = "TaskTimer"
APP_AUTHOR = "TaskTimer"

MIN_IDLE_THRESHOLD_MINUTES = 1
MAX_IDLE_THRESHOLD_MINUTES = 60


@dataclass(slots=True)
class ActivityConfig:
    """Activity and idle policy, persisted between runs."""

    track_keyboard: bool = True
    track_mouse: bool = True
    idle_detection_enabled: bool = True
    idle_threshold_minutes: int = 5
    require_idle_reason: bool = False

    @property
    def idle_threshold(self) -> timedelta:
        return timedelta(minutes=self.idle_threshold_minutes)

    def merged(self, patch: Mapping[str, Any]) -> "ActivityConfig":
        """Return a validated copy with ``patch`` applied."""
        known = {f.name for f in fields(self)}
        unknown = sorted(set(patch) - known)
        if unknown:
            raise InvalidConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        for key, value in patch.items():
            if key == "idle_threshold_minutes":
                _check_threshold(value)
            elif not isinstance(value, bool):
                raise InvalidConfigError(f"{key} must be a boolean, got {value!r}")
        return replace(self, **patch)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _check_threshold(value: Any) -> None:
    # bool is an int subclass; reject it explicitly.
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidConfigError(f"idle_threshold_minutes must be an integer, got {value!r}")
    if not MIN_IDLE_THRESHOLD_MINUTES <= value <= MAX_IDLE_THRESHOLD_MINUTES:
        raise InvalidConfigError(
            "idle_threshold_minutes must be between "
            f"{MIN_IDLE_THRESHOLD_MINUTES} and {MAX_IDLE_THRESHOLD_MINUTES}, got {value}"
        )


@dataclass(slots=True)
class TrackerSettings:
    """Runtime cadences for the display tick and idle sampling."""

    tick_interval: timedelta = timedelta(seconds=1)
    idle_poll_interval: timedelta = timedelta(seconds=10)

    @classmethod
    def from_intervals(
        cls,
        tick_seconds: float = 1.0,
        poll_seconds: float = 10.0,
    ) -> "TrackerSettings":
        return cls(
            tick_interval=timedelta(seconds=tick_seconds),
            idle_poll_interval=timedelta(seconds=poll_seconds),
        )


def get_data_dir() -> Path:
    """Return the base directory for persistent data."""
    dirs = PlatformDirs(appname=APP_NAME, appauthor=APP_AUTHOR, roaming=True)
    path = Path(dirs.user_data_path)
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_db_path() -> Path:
    return get_data_dir() / "timer.sqlite3"
