"""Cancellable periodic tasks backed by daemon threads."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TaskHandle(Protocol):
    name: str

    def cancel(self) -> None: ...

    def is_running(self) -> bool: ...


class Scheduler(Protocol):
    def every(
        self, interval: timedelta, callback: Callable[[], object], *, name: str
    ) -> TaskHandle: ...


class PeriodicTask:
    """Run ``callback`` every ``interval`` until cancelled.

    ``cancel()`` only signals the loop; a callback already running is allowed
    to finish, and no further callbacks fire. Use ``join()`` to wait for the
    thread to exit.
    """

    def __init__(
        self, interval: timedelta, callback: Callable[[], object], *, name: str
    ) -> None:
        self.name = name
        self._interval = interval.total_seconds()
        self._callback = callback
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run,
                args=(self._stop_event,),
                name=self.name,
                daemon=True,
            )
            self._thread.start()
        logger.debug("Periodic task %s started (every %.1fs).", self.name, self._interval)

    def cancel(self) -> None:
        with self._lock:
            self._stop_event.set()
            was_running = self._thread is not None
        if was_running:
            logger.debug("Periodic task %s cancelled.", self.name)

    def join(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=timeout)

    def is_running(self) -> bool:
        with self._lock:
            return bool(
                self._thread and self._thread.is_alive() and not self._stop_event.is_set()
            )

    def _run(self, stop_event: threading.Event) -> None:
        # Sleep in an interruptible manner.
        while not stop_event.wait(self._interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Periodic task %s failed; continuing.", self.name)


class ThreadScheduler:
    def every(
        self, interval: timedelta, callback: Callable[[], object], *, name: str
    ) -> PeriodicTask:
        task = PeriodicTask(interval, callback, name=name)
        task.start()
        return task
