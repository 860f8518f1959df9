"""Unit tests for per-machine offline tracking."""

from __future__ import annotations

import logging

from app.offline_tracker import OfflineTracker, OfflineTrackerConfig
from conftest import FakeClock


def _tracker(clock: FakeClock, interval: float = 120.0) -> OfflineTracker:
    return OfflineTracker(clock, OfflineTrackerConfig(report_interval_sec=interval))


def test_online_after_offline_yields_rounded_duration(clock: FakeClock) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", 0.0)

    fact = tracker.on_online("M1", 200.0)

    assert fact is not None
    assert fact.terminal
    assert fact.off_epoch == 0.0
    assert fact.on_epoch == 200.0
    assert fact.duration_minutes == 3
    assert not tracker.is_offline("M1")
    assert tracker.records() == []


def test_duration_rounds_half_up(clock: FakeClock) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", 0.0)

    fact = tracker.on_online("M1", 150.0)

    assert fact is not None
    assert fact.duration_minutes == 3


def test_iso_timestamps_are_accepted(clock: FakeClock) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", "2025-03-01T10:00:00Z")

    fact = tracker.on_online("M1", "2025-03-01T10:10:00+00:00")

    assert fact is not None
    assert fact.duration_minutes == 10


def test_second_offline_keeps_first_timestamp(clock: FakeClock) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", 0.0)
    tracker.on_offline("M1", 50.0)

    record = tracker.get("M1")
    assert record is not None
    assert record.off_epoch == 0.0
    assert len(tracker.records()) == 1

    fact = tracker.on_online("M1", 120.0)
    assert fact is not None
    assert fact.duration_minutes == 2


def test_online_without_outage_yields_nothing(clock: FakeClock) -> None:
    tracker = _tracker(clock)

    assert tracker.on_online("M1", 10.0) is None

    tracker.on_offline("M1", 0.0)
    assert tracker.on_online("M1", 60.0) is not None
    assert tracker.on_online("M1", 70.0) is None


def test_sweep_waits_for_report_interval(clock: FakeClock) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", 0.0)

    assert tracker.sweep_still_offline(60.0) == []
    assert tracker.sweep_still_offline(119.9) == []

    facts = tracker.sweep_still_offline(120.0)
    assert len(facts) == 1
    fact = facts[0]
    assert not fact.terminal
    assert fact.on_epoch == 120.0
    assert fact.duration_minutes == 2


def test_sweep_resets_reference_time(clock: FakeClock) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", 0.0)

    assert len(tracker.sweep_still_offline(125.0)) == 1
    assert tracker.sweep_still_offline(200.0) == []

    facts = tracker.sweep_still_offline(250.0)
    assert len(facts) == 1
    assert facts[0].duration_minutes == 4
    assert tracker.get("M1").last_reported_epoch == 250.0


def test_sweep_reference_is_clock_at_offline(clock: FakeClock) -> None:
    clock.t = 1_000.0
    tracker = _tracker(clock)
    # leitura antiga chegando agora
    tracker.on_offline("M1", 900.0)

    assert tracker.sweep_still_offline(1_060.0) == []
    facts = tracker.sweep_still_offline(1_120.0)
    assert len(facts) == 1
    assert facts[0].duration_minutes == 4


def test_sweep_only_reports_offline_machines(clock: FakeClock) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", 0.0)
    tracker.on_offline("M2", 0.0)
    tracker.on_online("M2", 30.0)

    facts = tracker.sweep_still_offline(180.0)

    assert [f.machine_id for f in facts] == ["M1"]


def test_malformed_timestamp_is_a_logged_noop(clock: FakeClock, caplog) -> None:
    tracker = _tracker(clock)

    with caplog.at_level(logging.WARNING, logger="app.offline_tracker"):
        tracker.on_offline("M1", "not-a-time")

    assert not tracker.is_offline("M1")
    assert "on_offline" in caplog.text

    tracker.on_offline("M1", 0.0)
    assert tracker.on_online("M1", "garbage") is None
    assert tracker.is_offline("M1")
    assert tracker.sweep_still_offline("later") == []


def test_online_before_offline_time_is_ignored(clock: FakeClock, caplog) -> None:
    tracker = _tracker(clock)
    tracker.on_offline("M1", 100.0)

    with caplog.at_level(logging.WARNING, logger="app.offline_tracker"):
        assert tracker.on_online("M1", 10.0) is None

    assert "on_online" in caplog.text
    assert tracker.is_offline("M1")

    fact = tracker.on_online("M1", 160.0)
    assert fact is not None
    assert fact.duration_minutes == 1
