from __future__ import annotations

from datetime import timedelta

from conftest import ACTIVE, QUIET, T0, FakeProbe
from task_timer.config import ActivityConfig
from task_timer.detector import IdleDetector, IdleTransition
from task_timer.models import ActivityStatus

CONFIG = ActivityConfig(idle_threshold_minutes=1)


def _at(seconds: int):
    return T0 + timedelta(seconds=seconds)


def _detector() -> IdleDetector:
    return IdleDetector(FakeProbe(), T0)


def test_starts_active():
    detector = _detector()
    assert detector.active is True
    assert detector.state_changed_at == T0


def test_sample_passes_through_probe():
    probe = FakeProbe()
    probe.push(QUIET)
    detector = IdleDetector(probe, T0)

    assert detector.sample() == QUIET
    assert detector.sample() == ACTIVE
    assert probe.calls == 2


def test_idle_reported_once_threshold_reached_and_stamped_with_first_quiet_sample():
    detector = _detector()

    assert detector.observe(QUIET, _at(10), CONFIG) is None
    assert detector.observe(QUIET, _at(40), CONFIG) is None
    transition = detector.observe(QUIET, _at(70), CONFIG)

    assert transition == IdleTransition(idle=True, at=_at(10))
    assert detector.active is False
    assert detector.observe(QUIET, _at(80), CONFIG) is None


def test_activity_after_idle_reports_return():
    detector = _detector()
    detector.observe(QUIET, _at(10), CONFIG)
    detector.observe(QUIET, _at(70), CONFIG)

    transition = detector.observe(ACTIVE, _at(90), CONFIG)

    assert transition == IdleTransition(idle=False, at=_at(90))
    assert detector.active is True
    assert detector.state_changed_at == _at(90)


def test_short_quiet_periods_do_not_trigger_idle():
    detector = _detector()
    for second in range(10, 600, 50):
        assert detector.observe(QUIET, _at(second), CONFIG) is None
        assert detector.observe(ACTIVE, _at(second + 20), CONFIG) is None
    assert detector.active is True


def test_stale_samples_are_ignored():
    detector = _detector()
    detector.observe(QUIET, _at(10), CONFIG)
    detector.observe(QUIET, _at(70), CONFIG)

    assert detector.observe(ACTIVE, _at(50), CONFIG) is None
    assert detector.active is False


def test_disabled_devices_never_count_as_activity():
    detector = _detector()
    config = ActivityConfig(track_keyboard=False, track_mouse=False, idle_threshold_minutes=1)
    busy = ActivityStatus(keyboard_active=True, mouse_active=True)

    detector.observe(busy, _at(10), config)
    transition = detector.observe(busy, _at(70), config)

    assert transition == IdleTransition(idle=True, at=_at(10))


def test_mouse_only_tracking_ignores_keyboard():
    detector = _detector()
    config = ActivityConfig(track_keyboard=False, idle_threshold_minutes=1)

    detector.observe(ActivityStatus(keyboard_active=True), _at(10), config)
    assert detector.observe(ActivityStatus(keyboard_active=True), _at(70), config).idle is True
    assert detector.observe(ActivityStatus(mouse_active=True), _at(80), config).idle is False


def test_reset_returns_to_active():
    detector = _detector()
    detector.observe(QUIET, _at(10), CONFIG)
    detector.observe(QUIET, _at(70), CONFIG)

    detector.reset(_at(100))

    assert detector.active is True
    assert detector.observe(QUIET, _at(110), CONFIG) is None
