"""Unit tests for liveData row mapping."""

from __future__ import annotations

import pytest

from domain.models import EventType
from infra.row_mapper import event_from_payload, reading_from_row


def _row(**overrides: object) -> dict:
    row = {
        "machineId": "M7",
        "created_at": "2025-03-01T10:00:00Z",
        "state": "running",
        "CT1": 6.0,
        "CT2": "6.5",
        "CT3": 5.5,
        "CT_Avg": 6.0,
        "total_current": 18.0,
        "state_duration": 42,
        "fault_status": "none",
        "fw_version": 1.2,
        "mac": "AA:BB:CC:DD:EE:FF",
    }
    row.update(overrides)
    return row


def test_reading_uses_original_column_names() -> None:
    r = reading_from_row(_row())

    assert r.machine_id == "M7"
    assert r.timestamp == "2025-03-01T10:00:00Z"
    assert (r.ct1, r.ct2, r.ct3) == (6.0, 6.5, 5.5)
    assert r.total_current == 18.0
    assert r.ct_avg == 6.0
    assert r.fault_status == "none"
    assert r.mac == "AA:BB:CC:DD:EE:FF"
    assert not r.is_offline


def test_missing_currents_default_to_zero() -> None:
    r = reading_from_row({"machineId": "M1", "created_at": "2025-03-01T10:00:00Z", "state": "idle"})

    assert r.total_current == 0.0
    assert r.is_offline
    assert r.ct_avg is None


@pytest.mark.parametrize(
    "row",
    [
        {"created_at": "2025-03-01T10:00:00Z"},
        {"machineId": "M1"},
        {"machineId": "M1", "created_at": "2025-03-01T10:00:00Z", "total_current": "lots"},
    ],
)
def test_invalid_rows_raise_value_error(row: dict) -> None:
    with pytest.raises(ValueError):
        reading_from_row(row)


def test_update_payload_keeps_previous_reading() -> None:
    ev = event_from_payload({"eventType": "UPDATE", "new": _row(state="error"), "old": _row(state="running")})

    assert ev.event_type is EventType.UPDATE
    assert ev.reading.state == "error"
    assert ev.previous_reading is not None
    assert ev.previous_reading.state == "running"


def test_primary_key_only_old_record_is_ignored() -> None:
    ev = event_from_payload({"eventType": "UPDATE", "new": _row(), "old": {"id": 12}})

    assert ev.previous_reading is None


def test_unknown_event_type_is_rejected() -> None:
    with pytest.raises(ValueError):
        event_from_payload({"eventType": "DELETE", "new": _row()})
