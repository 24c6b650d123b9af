"""Clock sources used for all timestamp reads."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in the local timezone."""

    def now(self) -> datetime:
        return datetime.now()
