"""Unit tests for the email notification sink."""

from __future__ import annotations

import json
import time

import httpx
import pytest

from domain.errors import NotificationDeliveryFailed
from domain.ports import NotificationRequest
from infra.http_email_sink import HttpEmailSink

URL = "https://example.supabase.co/functions/v1/send-notification-email"


def _request(machine_id: str = "M2") -> NotificationRequest:
    return NotificationRequest(
        title=f"Machine {machine_id} High Current",
        body="Total Current: 18.00",
        alert_type="TOTAL_CURRENT_THRESHOLD",
        payload={"machineId": machine_id, "alertType": "TOTAL_CURRENT_THRESHOLD", "totalCurrent": 18.0},
    )


def _sink(handler, **kwargs) -> HttpEmailSink:
    kwargs.setdefault("workers", 1)
    return HttpEmailSink(URL, "ops@example.com", api_key="anon-key", transport=httpx.MockTransport(handler), **kwargs)


def test_posts_payload_with_recipient() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    sink = _sink(handler)
    sink.start()
    sink.notify(_request())
    sink.join()
    sink.stop()

    (req,) = seen
    body = json.loads(req.content)
    assert body["email"] == "ops@example.com"
    assert body["machineId"] == "M2"
    assert body["alertType"] == "TOTAL_CURRENT_THRESHOLD"
    assert body["subject"] == "Machine M2 High Current"
    assert req.headers["authorization"] == "Bearer anon-key"
    assert sink.total_sent == 1
    assert sink.total_failed == 0


def test_retries_then_succeeds() -> None:
    statuses = [500, 200]

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(statuses.pop(0))

    sink = _sink(handler, max_retries=1)
    sink.start()
    sink.notify(_request())
    sink.join()
    sink.stop()

    assert statuses == []
    assert sink.total_sent == 1


def test_gives_up_after_retries() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500)

    sink = _sink(handler, max_retries=0)
    sink.start()
    sink.notify(_request())
    sink.join()
    sink.stop()

    assert sink.total_sent == 0
    assert sink.total_failed == 1


def test_notify_before_start_fails_fast() -> None:
    sink = _sink(lambda r: httpx.Response(200))

    with pytest.raises(NotificationDeliveryFailed):
        sink.notify(_request())


def test_full_queue_drops_and_reports() -> None:
    sink = _sink(lambda r: httpx.Response(200), workers=0, queue_max=1)
    sink.start()

    sink.notify(_request("M1"))
    with pytest.raises(NotificationDeliveryFailed):
        sink.notify(_request("M2"))

    assert sink.total_published == 2
    assert sink.total_dropped == 1
    sink.stop()
    sink.stop()


def test_full_queue_without_drop_waits_briefly_then_fails() -> None:
    sink = _sink(lambda r: httpx.Response(200), workers=0, queue_max=1, drop_on_full=False, put_timeout_sec=0.05)
    sink.start()

    sink.notify(_request("M1"))
    started = time.monotonic()
    with pytest.raises(NotificationDeliveryFailed):
        sink.notify(_request("M2"))

    assert time.monotonic() - started < 2.0
    assert sink.total_published == 2
    assert sink.total_dropped == 1
    sink.stop()
