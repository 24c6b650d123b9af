"""Domain models for tracked time."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class ActivityStatus:
    """One reading of the activity probe."""

    keyboard_active: bool = False
    mouse_active: bool = False


@dataclass(slots=True, frozen=True)
class IdleSpan:
    start: datetime
    end: datetime

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(slots=True)
class IdleInterval:
    """A resolved stretch of inactivity inside a time entry."""

    start: datetime
    end: datetime
    discarded: bool
    reason: Optional[str] = None

    @property
    def duration_seconds(self) -> float:
        return (self.end - self.start).total_seconds()


@dataclass(slots=True)
class TimeEntry:
    """A start-to-stop work interval tied to a project and task."""

    id: str
    project_id: str
    task_id: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    idle_intervals: list[IdleInterval] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        return self.end_time is None

    def discarded_seconds(self) -> float:
        return sum(i.duration_seconds for i in self.idle_intervals if i.discarded)

    def kept_idle_seconds(self) -> float:
        return sum(i.duration_seconds for i in self.idle_intervals if not i.discarded)

    def snapshot(self) -> "TimeEntry":
        return copy.deepcopy(self)


@dataclass(slots=True, frozen=True)
class IdleDecisionRequest:
    """An idle interval waiting for the user to keep or discard it."""

    interval: IdleSpan
    requires_reason: bool


@dataclass(slots=True, frozen=True)
class StatusSnapshot:
    is_tracking: bool
    elapsed_seconds: int
    activity_status: ActivityStatus
    pending_decision: Optional[IdleDecisionRequest]
    entry: Optional[TimeEntry] = None
