from __future__ import annotations

from collections import deque
from datetime import datetime, timedelta
from typing import Callable, Optional

import pytest

from task_timer.config import TrackerSettings
from task_timer.db import SqliteStore
from task_timer.errors import ProbeUnavailableError
from task_timer.models import ActivityStatus
from task_timer.orchestrator import TrackingOrchestrator

T0 = datetime(2026, 1, 22, 9, 0, 0)

ACTIVE = ActivityStatus(keyboard_active=True, mouse_active=False)
QUIET = ActivityStatus()


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> datetime:
        self.current += timedelta(seconds=seconds)
        return self.current

    def set(self, offset_seconds: float) -> datetime:
        self.current = T0 + timedelta(seconds=offset_seconds)
        return self.current


class FakeProbe:
    """Returns queued statuses, then ``default``; can be told to fail."""

    def __init__(self) -> None:
        self.queue: deque[ActivityStatus | Exception] = deque()
        self.default = ACTIVE
        self.idle = False
        self.calls = 0
        self.on_sample: Optional[Callable[[], None]] = None

    def push(self, *items: ActivityStatus | Exception) -> None:
        self.queue.extend(items)

    def sample(self) -> ActivityStatus:
        self.calls += 1
        if self.on_sample is not None:
            self.on_sample()
        item = self.queue.popleft() if self.queue else self.default
        if isinstance(item, Exception):
            raise item
        return item

    def is_idle(self, threshold_minutes: int) -> bool:
        if isinstance(self.default, Exception):
            raise ProbeUnavailableError("no input source")
        return self.idle


class FakeTask:
    def __init__(self, name: str, interval: timedelta, callback: Callable[[], object]) -> None:
        self.name = name
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def is_running(self) -> bool:
        return not self.cancelled


class FakeScheduler:
    def __init__(self) -> None:
        self.tasks: list[FakeTask] = []

    def every(self, interval, callback, *, name):
        task = FakeTask(name, interval, callback)
        self.tasks.append(task)
        return task

    def active(self, name: str) -> list[FakeTask]:
        return [t for t in self.tasks if t.name == name and not t.cancelled]

    def fire(self, name: str):
        (task,) = self.active(name)
        return task.callback()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def store(tmp_path):
    store = SqliteStore(tmp_path / "timer.sqlite3")
    yield store
    store.close()


@pytest.fixture
def make_orchestrator(store, probe, clock, scheduler):
    def _make(**config) -> TrackingOrchestrator:
        if config:
            store.save_config(store.load_config().merged(config))
        return TrackingOrchestrator(
            store,
            probe,
            clock=clock,
            scheduler=scheduler,
            settings=TrackerSettings.from_intervals(tick_seconds=1, poll_seconds=10),
        )

    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> TrackingOrchestrator:
    return make_orchestrator(idle_threshold_minutes=1)
