"""Turns periodic activity samples into active/idle transitions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .config import ActivityConfig
from .models import ActivityStatus
from .probe import ActivityProbe

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class IdleTransition:
    """``idle=True`` for active->idle, ``idle=False`` for idle->active."""

    idle: bool
    at: datetime


class IdleDetector:
    """Tracks whether the user is active based on probe samples.

    A quiet sample starts a candidate idle period. The detector only reports
    the user idle once the quiet period reaches the configured threshold, and
    the reported transition is stamped with the first quiet sample.
    """

    def __init__(self, probe: ActivityProbe, started_at: datetime) -> None:
        self._probe = probe
        self.reset(started_at)

    @property
    def active(self) -> bool:
        return self._active

    @property
    def state_changed_at(self) -> datetime:
        return self._state_changed_at

    def reset(self, at: datetime) -> None:
        self._active = True
        self._state_changed_at = at
        self._quiet_since: Optional[datetime] = None
        self._last_sample_at = at

    def sample(self) -> ActivityStatus:
        return self._probe.sample()

    def observe(
        self, status: ActivityStatus, at: datetime, config: ActivityConfig
    ) -> Optional[IdleTransition]:
        if at < self._last_sample_at:
            logger.debug("Ignoring stale sample taken at %s", at)
            return None
        self._last_sample_at = at

        active = (config.track_keyboard and status.keyboard_active) or (
            config.track_mouse and status.mouse_active
        )
        if active:
            self._quiet_since = None
            if self._active:
                return None
            self._active = True
            self._state_changed_at = at
            logger.debug("User active again at %s", at)
            return IdleTransition(idle=False, at=at)

        if self._quiet_since is None:
            self._quiet_since = at
        if self._active and at - self._quiet_since >= config.idle_threshold:
            self._active = False
            self._state_changed_at = self._quiet_since
            logger.debug("User idle since %s", self._quiet_since)
            return IdleTransition(idle=True, at=self._quiet_since)
        return None
