"""Unit tests for the thread-backed scheduler."""

from __future__ import annotations

import threading

import pytest

from infra.timing import SystemClock, ThreadingScheduler


def test_periodic_callback_runs_until_cancelled() -> None:
    fired = threading.Event()
    calls: list[int] = []

    def cb() -> None:
        calls.append(1)
        fired.set()

    scheduler = ThreadingScheduler()
    timer = scheduler.schedule(0.01, cb)

    assert fired.wait(timeout=2)
    timer.cancel()
    n = len(calls)
    timer.cancel()

    assert timer.cancelled
    assert len(calls) == n
    scheduler.shutdown()


def test_callback_errors_do_not_stop_timer() -> None:
    calls: list[int] = []
    done = threading.Event()

    def cb() -> None:
        calls.append(1)
        if len(calls) >= 2:
            done.set()
        raise RuntimeError("boom")

    scheduler = ThreadingScheduler()
    scheduler.schedule(0.01, cb)

    assert done.wait(timeout=2)
    scheduler.shutdown()
    scheduler.shutdown()


def test_rejects_non_positive_period() -> None:
    with pytest.raises(ValueError):
        ThreadingScheduler().schedule(0, lambda: None)


def test_system_clock_is_epoch_seconds() -> None:
    assert SystemClock().now_epoch() > 1_600_000_000
