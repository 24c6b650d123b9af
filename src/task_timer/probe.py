"""Keyboard and mouse activity probes."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Optional, Protocol

from .clock import Clock, SystemClock
from .errors import ProbeUnavailableError
from .models import ActivityStatus

logger = logging.getLogger(__name__)


class ActivityProbe(Protocol):
    def sample(self) -> ActivityStatus: ...

    def is_idle(self, threshold_minutes: int) -> bool: ...


class HookedInputProbe:
    """Detects input through global keyboard and mouse hooks.

    The hooks run on the libraries' own listener threads and only flip flags
    under a lock. ``sample()`` reports what happened since the previous call.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._keyboard_seen = False
        self._mouse_seen = False
        self._last_input_at = self._clock.now()
        self._hooked = False

    @classmethod
    def create(cls, clock: Optional[Clock] = None) -> ActivityProbe:
        """Return a hooked probe, or an unavailable one if hooks are refused."""
        probe = cls(clock)
        try:
            probe.start()
        except (ImportError, OSError) as exc:
            logger.warning("Input hooks unavailable (%s); idle detection will be skipped.", exc)
            return UnavailableProbe(str(exc))
        return probe

    def start(self) -> None:
        import keyboard
        import mouse

        keyboard.hook(self._on_keyboard)
        try:
            mouse.hook(self._on_mouse)
        except BaseException:
            keyboard.unhook(self._on_keyboard)
            raise
        self._hooked = True
        logger.info("Input listeners started.")

    def close(self) -> None:
        if not self._hooked:
            return
        import keyboard
        import mouse

        keyboard.unhook(self._on_keyboard)
        mouse.unhook(self._on_mouse)
        self._hooked = False
        logger.info("Input listeners stopped.")

    def _on_keyboard(self, event: object) -> None:
        with self._lock:
            self._keyboard_seen = True
            self._last_input_at = self._clock.now()

    def _on_mouse(self, event: object) -> None:
        with self._lock:
            self._mouse_seen = True
            self._last_input_at = self._clock.now()

    def sample(self) -> ActivityStatus:
        with self._lock:
            status = ActivityStatus(
                keyboard_active=self._keyboard_seen,
                mouse_active=self._mouse_seen,
            )
            self._keyboard_seen = False
            self._mouse_seen = False
        return status

    def is_idle(self, threshold_minutes: int) -> bool:
        with self._lock:
            last_input = self._last_input_at
        return self._clock.now() - last_input >= timedelta(minutes=threshold_minutes)


class UnavailableProbe:
    """Stands in when no input source can be hooked; every read fails."""

    def __init__(self, reason: str) -> None:
        self.reason = reason

    def sample(self) -> ActivityStatus:
        raise ProbeUnavailableError(self.reason)

    def is_idle(self, threshold_minutes: int) -> bool:
        raise ProbeUnavailableError(self.reason)

    def close(self) -> None:
        return None
