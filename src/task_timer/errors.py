"""Exceptions raised by the tracking core."""

from __future__ import annotations


class TrackerError(Exception):
    """Base class for all tracking errors surfaced to callers."""


class AlreadyTrackingError(TrackerError):
    def __init__(self, entry_id: str) -> None:
        super().__init__(f"Already tracking time (entry {entry_id}).")
        self.entry_id = entry_id


class NoActiveEntryError(TrackerError):
    def __init__(self) -> None:
        super().__init__("No active time entry.")


class PendingIdleDecisionError(TrackerError):
    def __init__(self) -> None:
        super().__init__("An idle interval is awaiting a keep/discard decision.")


class NoPendingDecisionError(TrackerError):
    def __init__(self) -> None:
        super().__init__("There is no idle interval awaiting a decision.")


class ReasonRequiredError(TrackerError):
    def __init__(self) -> None:
        super().__init__("A reason is required to keep idle time.")


class InvalidConfigError(TrackerError):
    """Raised when a configuration patch is rejected."""


class ProbeUnavailableError(TrackerError):
    """The activity probe could not produce a sample."""
