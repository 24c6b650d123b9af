from __future__ import annotations

from datetime import timedelta

import pytest

from task_timer.config import ActivityConfig, TrackerSettings
from task_timer.errors import InvalidConfigError


def test_defaults():
    config = ActivityConfig()
    assert config.track_keyboard and config.track_mouse
    assert config.idle_detection_enabled is True
    assert config.idle_threshold == timedelta(minutes=5)
    assert config.require_idle_reason is False


def test_merged_returns_new_config():
    config = ActivityConfig()
    updated = config.merged({"idle_threshold_minutes": 30, "track_mouse": False})

    assert updated.idle_threshold_minutes == 30
    assert updated.track_mouse is False
    assert config.idle_threshold_minutes == 5


@pytest.mark.parametrize("value", [1, 60])
def test_threshold_bounds_are_inclusive(value):
    assert ActivityConfig().merged({"idle_threshold_minutes": value}).idle_threshold_minutes == value


@pytest.mark.parametrize("value", [0, 61, -5, 2.5, "10", True, None])
def test_invalid_thresholds_rejected(value):
    with pytest.raises(InvalidConfigError):
        ActivityConfig().merged({"idle_threshold_minutes": value})


def test_flags_must_be_booleans():
    with pytest.raises(InvalidConfigError):
        ActivityConfig().merged({"require_idle_reason": "yes"})


def test_unknown_keys_rejected():
    with pytest.raises(InvalidConfigError, match="is_tracking"):
        ActivityConfig().merged({"is_tracking": True})


def test_tracker_settings_from_intervals():
    settings = TrackerSettings.from_intervals(tick_seconds=0.5, poll_seconds=30)
    assert settings.tick_interval == timedelta(seconds=0.5)
    assert settings.idle_poll_interval == timedelta(seconds=30)
