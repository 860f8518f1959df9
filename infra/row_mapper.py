from __future__ import annotations

from typing import Any, Mapping, Optional

from domain.models import ChangeEvent, EventType, TelemetryReading


def _num(row: Mapping[str, Any], *names: str, default: Optional[float] = 0.0) -> Optional[float]:
    for n in names:
        v = row.get(n)
        if v is None or v == "":
            continue
        try:
            return float(v)
        except (TypeError, ValueError) as e:
            raise ValueError(f"campo '{n}' não numérico: {v!r}") from e
    return default


def _str(row: Mapping[str, Any], *names: str) -> Optional[str]:
    for n in names:
        v = row.get(n)
        if v is not None:
            return str(v)
    return None


def reading_from_row(row: Mapping[str, Any]) -> TelemetryReading:
    """
    Linha da tabela liveData -> TelemetryReading.
    Aceita os nomes originais (machineId, CT1, created_at...) e snake_case.
    """
    if not isinstance(row, Mapping):
        raise ValueError("linha deve ser um objeto (dict)")

    machine_id = _str(row, "machineId", "machine_id")
    if not machine_id:
        raise ValueError("linha sem machineId")

    timestamp = row.get("created_at", row.get("timestamp"))
    if timestamp is None:
        raise ValueError(f"linha sem created_at (machine {machine_id})")

    return TelemetryReading(
        machine_id=machine_id,
        timestamp=timestamp,
        state=_str(row, "state") or "",
        total_current=_num(row, "total_current", "totalCurrent"),
        ct1=_num(row, "CT1", "ct1"),
        ct2=_num(row, "CT2", "ct2"),
        ct3=_num(row, "CT3", "ct3"),
        ct_avg=_num(row, "CT_Avg", "ct_avg", default=None),
        state_duration=_num(row, "state_duration", default=None),
        fault_status=_str(row, "fault_status"),
        fw_version=_num(row, "fw_version", default=None),
        mac=_str(row, "mac"),
    )


def event_from_payload(payload: Mapping[str, Any]) -> ChangeEvent:
    """
    Payload no formato do realtime do Postgres:
      {"eventType": "UPDATE", "new": {...}, "old": {...}}
    "old" só é usado se tiver machineId (em UPDATE sem replica identity
    full ele vem só com a chave primária).
    """
    raw_type = str(payload.get("eventType", payload.get("type", "INSERT"))).upper()
    try:
        event_type = EventType(raw_type)
    except ValueError as e:
        raise ValueError(f"eventType não suportado: {raw_type}") from e

    new = payload.get("new", payload.get("record"))
    if new is None:
        raise ValueError("payload sem 'new'")
    reading = reading_from_row(new)

    previous = None
    old = payload.get("old", payload.get("old_record"))
    if isinstance(old, Mapping) and old.get("machineId", old.get("machine_id")) and (
        old.get("created_at", old.get("timestamp")) is not None
    ):
        previous = reading_from_row(old)

    return ChangeEvent(event_type=event_type, reading=reading, previous_reading=previous)
