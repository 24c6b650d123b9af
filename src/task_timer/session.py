"""Ownership of the single open time entry."""

from __future__ import annotations

import logging
import uuid
from typing import Callable, Optional, Protocol

from .clock import Clock
from .errors import AlreadyTrackingError, NoActiveEntryError, PendingIdleDecisionError
from .models import TimeEntry

logger = logging.getLogger(__name__)


class EntryStore(Protocol):
    def create_entry(self, entry: TimeEntry) -> None: ...

    def close_entry(self, entry_id, end_time, duration, idle_intervals) -> None: ...

    def get_open_entry(self) -> Optional[TimeEntry]: ...


class SessionManager:
    """Creates, exposes and closes the current time entry.

    The manager is the only writer of the current-entry slot. Idle intervals
    are appended to the live entry by the reconciler; duration is settled here
    at ``stop()`` time.
    """

    def __init__(
        self,
        store: EntryStore,
        clock: Clock,
        decision_pending: Callable[[], bool] = lambda: False,
    ) -> None:
        self._store = store
        self._clock = clock
        self._decision_pending = decision_pending
        self._entry: Optional[TimeEntry] = None

    @property
    def entry(self) -> Optional[TimeEntry]:
        """The live entry object; callers outside the core use ``current()``."""
        return self._entry

    def recover(self) -> Optional[TimeEntry]:
        if self._entry is not None:
            return self._entry
        entry = self._store.get_open_entry()
        if entry is not None:
            logger.info(
                "Recovered open entry %s for %s/%s started at %s",
                entry.id,
                entry.project_id,
                entry.task_id,
                entry.start_time,
            )
            self._entry = entry
        return entry

    def start(self, project_id: str, task_id: str) -> TimeEntry:
        if self._entry is not None:
            raise AlreadyTrackingError(self._entry.id)
        entry = TimeEntry(
            id=str(uuid.uuid4()),
            project_id=project_id,
            task_id=task_id,
            start_time=self._clock.now(),
        )
        self._store.create_entry(entry)
        self._entry = entry
        logger.info("Started entry %s for %s/%s", entry.id, project_id, task_id)
        return entry

    def stop(self) -> TimeEntry:
        entry = self._entry
        if entry is None:
            raise NoActiveEntryError()
        if self._decision_pending():
            raise PendingIdleDecisionError()

        end_time = self._clock.now()
        elapsed = (end_time - entry.start_time).total_seconds()
        duration = max(0, int(elapsed - entry.discarded_seconds()))
        self._store.close_entry(entry.id, end_time, duration, list(entry.idle_intervals))

        entry.end_time = end_time
        entry.duration = duration
        self._entry = None
        logger.info(
            "Stopped entry %s: %ds tracked, %d idle interval(s)",
            entry.id,
            duration,
            len(entry.idle_intervals),
        )
        return entry

    def current(self) -> Optional[TimeEntry]:
        return self._entry.snapshot() if self._entry is not None else None

    def elapsed_seconds(self) -> int:
        if self._entry is None:
            return 0
        elapsed = (self._clock.now() - self._entry.start_time).total_seconds()
        return max(0, int(elapsed))
