from __future__ import annotations

import threading
from datetime import timedelta

from task_timer.scheduler import PeriodicTask, ThreadScheduler


def test_periodic_task_runs_until_cancelled():
    fired = threading.Event()
    calls = []

    def _callback():
        calls.append(1)
        fired.set()

    task = ThreadScheduler().every(timedelta(milliseconds=10), _callback, name="test")
    assert fired.wait(timeout=5)
    assert task.is_running()

    task.cancel()
    task.join(timeout=5)

    assert not task.is_running()
    count = len(calls)
    threading.Event().wait(0.05)
    assert len(calls) == count


def test_callback_errors_do_not_stop_the_loop():
    fired = threading.Event()
    calls = []

    def _callback():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("first tick fails")
        fired.set()

    task = PeriodicTask(timedelta(milliseconds=10), _callback, name="flaky")
    task.start()
    try:
        assert fired.wait(timeout=5)
    finally:
        task.cancel()
        task.join(timeout=5)
    assert len(calls) >= 2


def test_cancel_before_start_is_harmless():
    task = PeriodicTask(timedelta(seconds=1), lambda: None, name="idle")
    task.cancel()
    task.join()
    assert not task.is_running()
