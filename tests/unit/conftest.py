"""Shared fakes for the monitor unit tests."""

from __future__ import annotations

from typing import Callable, List, Optional

import pytest

from domain.errors import NotificationDeliveryFailed
from domain.models import ChangeEvent, EventType, TelemetryReading
from domain.ports import NotificationRequest


class FakeClock:
    def __init__(self, t: float = 0.0) -> None:
        self.t = float(t)

    def now_epoch(self) -> float:
        return self.t

    def advance(self, seconds: float) -> None:
        self.t += seconds


class FakeTimer:
    def __init__(self, period_sec: float, callback: Callable[[], None]) -> None:
        self.period_sec = period_sec
        self.callback = callback
        self.cancelled = 0

    def cancel(self) -> None:
        self.cancelled += 1


class ManualScheduler:
    def __init__(self) -> None:
        self.timers: List[FakeTimer] = []

    def schedule(self, period_sec: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(period_sec, callback)
        self.timers.append(timer)
        return timer

    def fire(self) -> None:
        for timer in self.timers:
            if not timer.cancelled:
                timer.callback()


class FakeSubscription:
    def __init__(self) -> None:
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class ListSource:
    def __init__(self) -> None:
        self.handler: Optional[Callable[[ChangeEvent], None]] = None
        self.subscription = FakeSubscription()

    def subscribe(self, handler: Callable[[ChangeEvent], None]) -> FakeSubscription:
        self.handler = handler
        return self.subscription

    def push(self, event: ChangeEvent) -> None:
        assert self.handler is not None, "source not subscribed"
        self.handler(event)


class RecordingSink:
    def __init__(self, name: str = "recording", fail: Optional[Exception] = None) -> None:
        self.name = name
        self.fail = fail
        self.requests: List[NotificationRequest] = []

    def notify(self, request: NotificationRequest) -> None:
        self.requests.append(request)
        if self.fail is not None:
            raise self.fail


def make_reading(
    machine_id: str = "M1",
    timestamp: object = 0.0,
    *,
    state: str = "running",
    total_current: float = 5.2,
    ct: float | None = None,
) -> TelemetryReading:
    phase = total_current / 3.0 if ct is None else ct
    return TelemetryReading(
        machine_id=machine_id,
        timestamp=timestamp,
        state=state,
        total_current=total_current,
        ct1=phase,
        ct2=phase,
        ct3=phase,
    )


def offline_reading(machine_id: str = "M1", timestamp: object = 0.0) -> TelemetryReading:
    return make_reading(machine_id, timestamp, state="off", total_current=0.0, ct=0.0)


def event(reading: TelemetryReading, previous: TelemetryReading | None = None) -> ChangeEvent:
    kind = EventType.UPDATE if previous is not None else EventType.INSERT
    return ChangeEvent(event_type=kind, reading=reading, previous_reading=previous)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def source() -> ListSource:
    return ListSource()


@pytest.fixture
def failing_sink() -> RecordingSink:
    return RecordingSink("email", fail=NotificationDeliveryFailed("email", "boom"))
