"""Facade wiring the session, idle detector and reconciler together."""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping, Optional, Protocol

from .clock import Clock, SystemClock
from .config import ActivityConfig, TrackerSettings
from .detector import IdleDetector
from .errors import NoActiveEntryError, PendingIdleDecisionError, ProbeUnavailableError
from .models import ActivityStatus, IdleDecisionRequest, IdleInterval, StatusSnapshot, TimeEntry
from .probe import ActivityProbe
from .reconciler import IdleReconciler
from .scheduler import Scheduler, TaskHandle, ThreadScheduler
from .session import EntryStore, SessionManager

logger = logging.getLogger(__name__)

StatusListener = Callable[[StatusSnapshot], None]


class TrackerStore(EntryStore, Protocol):
    def load_config(self) -> ActivityConfig: ...

    def save_config(self, config: ActivityConfig) -> None: ...


class TrackingOrchestrator:
    """Single entry point used by the presentation layer.

    All state changes happen under one re-entrant lock, so the periodic tasks
    and API callers can drive the orchestrator from different threads.
    """

    def __init__(
        self,
        store: TrackerStore,
        probe: ActivityProbe,
        *,
        clock: Optional[Clock] = None,
        scheduler: Optional[Scheduler] = None,
        settings: Optional[TrackerSettings] = None,
    ) -> None:
        self._store = store
        self._clock = clock or SystemClock()
        self._scheduler = scheduler or ThreadScheduler()
        self._settings = settings or TrackerSettings()
        self._lock = threading.RLock()
        self._listeners: list[StatusListener] = []
        self._tick_task: Optional[TaskHandle] = None
        self._poll_task: Optional[TaskHandle] = None
        self._last_status = ActivityStatus()

        self._config = store.load_config()
        self._detector = IdleDetector(probe, self._clock.now())
        self._reconciler = IdleReconciler(
            merge_window=self._settings.idle_poll_interval,
            require_reason=self._config.require_idle_reason,
        )
        self._session = SessionManager(
            store,
            self._clock,
            decision_pending=lambda: self._reconciler.pending is not None,
        )

        recovered = self._session.recover()
        if recovered is not None:
            self._begin_monitoring(recovered)

    @property
    def config(self) -> ActivityConfig:
        with self._lock:
            return self._config.merged({})

    @property
    def settings(self) -> TrackerSettings:
        return self._settings

    def configure(self, patch: Optional[Mapping[str, Any]] = None, **changes: Any) -> ActivityConfig:
        """Merge, validate and persist a partial configuration."""
        values = {**(patch or {}), **changes}
        with self._lock:
            updated = self._config.merged(values)
            self._store.save_config(updated)
            previous, self._config = self._config, updated
            self._reconciler.require_reason = updated.require_idle_reason

            if self._session.entry is not None:
                if previous.idle_detection_enabled and not updated.idle_detection_enabled:
                    self._cancel_poll()
                    self._reconciler.abandon()
                elif updated.idle_detection_enabled and not previous.idle_detection_enabled:
                    self._detector.reset(self._clock.now())
                    self._arm_poll()
            logger.info("Configuration updated: %s", updated)
            return self.config

    def start(self, project_id: str, task_id: str) -> TimeEntry:
        with self._lock:
            entry = self._session.start(project_id, task_id)
            self._begin_monitoring(entry)
            snapshot = entry.snapshot()
        self._emit(self.snapshot())
        return snapshot

    def stop(self) -> TimeEntry:
        with self._lock:
            if self._session.entry is None:
                raise NoActiveEntryError()
            if self._reconciler.pending is not None:
                raise PendingIdleDecisionError()

            self._cancel_poll()
            try:
                entry = self._session.stop()
            except Exception:
                if self._config.idle_detection_enabled:
                    self._arm_poll()
                raise
            self._cancel_tick()
            self._reconciler.detach()
            self._detector.reset(self._clock.now())
            self._last_status = ActivityStatus()
        self._emit(self.snapshot())
        return entry

    def resolve_idle(self, keep: bool, reason: Optional[str] = None) -> IdleInterval:
        with self._lock:
            interval = self._reconciler.resolve(keep, reason)
        self._emit(self.snapshot())
        return interval

    def current(self) -> Optional[TimeEntry]:
        with self._lock:
            return self._session.current()

    def elapsed_seconds(self) -> int:
        with self._lock:
            return self._session.elapsed_seconds()

    @property
    def pending_decision(self) -> Optional[IdleDecisionRequest]:
        with self._lock:
            return self._reconciler.pending

    @property
    def user_idle(self) -> bool:
        """Detector state, honouring the keyboard/mouse tracking switches."""
        with self._lock:
            return not self._detector.active

    def poll_idle(self) -> Optional[IdleDecisionRequest]:
        """Take one idle sample and feed it through the state machine."""
        with self._lock:
            entry = self._session.entry
            if entry is None or not self._config.idle_detection_enabled:
                return None
            entry_id = entry.id
            sampled_at = self._clock.now()

        try:
            status = self._detector.sample()
        except ProbeUnavailableError as exc:
            logger.warning("Activity probe unavailable; skipping idle sample: %s", exc)
            return None
        except Exception:
            logger.exception("Failed to sample activity; skipping idle sample.")
            return None

        with self._lock:
            entry = self._session.entry
            if entry is None or entry.id != entry_id or not self._config.idle_detection_enabled:
                logger.debug("Discarding activity sample for closed session %s", entry_id)
                return None
            self._last_status = status
            transition = self._detector.observe(status, sampled_at, self._config)
            request = self._reconciler.on_transition(transition) if transition else None
        if request is not None:
            self._emit(self.snapshot())
        return request

    def tick(self) -> StatusSnapshot:
        snapshot = self.snapshot()
        self._emit(snapshot)
        return snapshot

    def snapshot(self) -> StatusSnapshot:
        with self._lock:
            return StatusSnapshot(
                is_tracking=self._session.entry is not None,
                elapsed_seconds=self._session.elapsed_seconds(),
                activity_status=ActivityStatus(
                    keyboard_active=self._last_status.keyboard_active,
                    mouse_active=self._last_status.mouse_active,
                ),
                pending_decision=self._reconciler.pending,
                entry=self._session.current(),
            )

    def subscribe(self, listener: StatusListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def shutdown(self) -> None:
        """Cancel timers; an open entry stays open and is recovered next run."""
        with self._lock:
            self._cancel_poll()
            self._cancel_tick()

    def is_polling(self) -> bool:
        with self._lock:
            return self._poll_task is not None

    def _begin_monitoring(self, entry: TimeEntry) -> None:
        self._reconciler.attach(entry)
        self._detector.reset(self._clock.now())
        if self._tick_task is None:
            self._tick_task = self._scheduler.every(
                self._settings.tick_interval, self.tick, name="display-tick"
            )
        if self._config.idle_detection_enabled:
            self._arm_poll()

    def _arm_poll(self) -> None:
        if self._poll_task is None:
            self._poll_task = self._scheduler.every(
                self._settings.idle_poll_interval, self.poll_idle, name="idle-poll"
            )

    def _cancel_poll(self) -> None:
        task, self._poll_task = self._poll_task, None
        if task is not None:
            task.cancel()

    def _cancel_tick(self) -> None:
        task, self._tick_task = self._tick_task, None
        if task is not None:
            task.cancel()

    def _emit(self, snapshot: StatusSnapshot) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Status listener %r failed.", listener)
