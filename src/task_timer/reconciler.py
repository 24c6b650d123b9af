"""State machine that turns idle transitions into keep/discard decisions."""

from __future__ import annotations

import enum
import logging
from datetime import datetime, timedelta
from typing import Optional

from .detector import IdleTransition
from .errors import NoPendingDecisionError, ReasonRequiredError
from .models import IdleDecisionRequest, IdleInterval, IdleSpan, TimeEntry

logger = logging.getLogger(__name__)


class ReconcilerState(enum.Enum):
    TRACKING = "tracking"
    IDLE = "idle"
    AWAITING_DECISION = "awaiting_decision"


class IdleReconciler:
    """Resolves idle intervals of the attached entry.

    Only one interval can be awaiting a decision. While it is pending, new
    idle periods are not recorded; an idle period that starts within
    ``merge_window`` of the pending end is treated as flapping and folded into
    the pending interval when activity resumes. The extended request is
    returned again so the caller can show the user the new span.
    """

    def __init__(self, merge_window: timedelta, require_reason: bool = False) -> None:
        self.merge_window = merge_window
        self.require_reason = require_reason
        self._entry: Optional[TimeEntry] = None
        self._reset()

    def _reset(self) -> None:
        self._state = ReconcilerState.TRACKING
        self._idle_start: Optional[datetime] = None
        self._pending: Optional[IdleSpan] = None
        self._extending = False

    @property
    def state(self) -> ReconcilerState:
        return self._state

    @property
    def pending(self) -> Optional[IdleDecisionRequest]:
        if self._pending is None:
            return None
        return IdleDecisionRequest(interval=self._pending, requires_reason=self.require_reason)

    def attach(self, entry: TimeEntry) -> None:
        self._entry = entry
        self._reset()

    def detach(self) -> None:
        self._entry = None
        self._reset()

    def on_transition(self, transition: IdleTransition) -> Optional[IdleDecisionRequest]:
        """Feed a detector transition; returns the request when it is created or extended."""
        if self._entry is None:
            return None

        if self._state is ReconcilerState.TRACKING:
            if transition.idle:
                self._idle_start = max(transition.at, self._entry.start_time)
                self._state = ReconcilerState.IDLE
            return None

        if self._state is ReconcilerState.IDLE:
            if transition.idle:
                return None
            self._pending = IdleSpan(start=self._idle_start, end=transition.at)
            self._idle_start = None
            self._state = ReconcilerState.AWAITING_DECISION
            logger.info(
                "Idle interval %s -> %s awaiting decision",
                self._pending.start,
                self._pending.end,
            )
            return self.pending

        # Awaiting a decision: no new intervals, only absorb flapping.
        if transition.idle:
            self._extending = transition.at - self._pending.end <= self.merge_window
        elif self._extending:
            self._pending = IdleSpan(start=self._pending.start, end=transition.at)
            self._extending = False
            logger.debug("Extended pending idle interval to %s", transition.at)
            return self.pending
        return None

    def resolve(self, keep: bool, reason: Optional[str] = None) -> IdleInterval:
        if self._pending is None or self._entry is None:
            raise NoPendingDecisionError()
        reason = reason.strip() if reason else None
        if keep and self.require_reason and not reason:
            raise ReasonRequiredError()

        interval = IdleInterval(
            start=self._pending.start,
            end=self._pending.end,
            discarded=not keep,
            reason=reason or None,
        )
        self._entry.idle_intervals.append(interval)
        self._reset()
        logger.info(
            "Idle interval of %ds %s",
            int(interval.duration_seconds),
            "kept" if keep else "discarded",
        )
        return interval

    def abandon(self) -> Optional[IdleSpan]:
        """Drop any in-flight idle state without recording it."""
        dropped = self._pending
        if dropped is None and self._idle_start is not None:
            dropped = IdleSpan(start=self._idle_start, end=self._idle_start)
        if dropped is not None:
            logger.warning(
                "Idle detection disabled; dropping unresolved idle interval starting %s",
                dropped.start,
            )
        self._reset()
        return dropped
