from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .timestamps import Timestamp, parse_epoch

OFF_STATE = "off"


@dataclass(frozen=True)
class TelemetryReading:
    machine_id: str
    timestamp: Timestamp
    state: str
    total_current: float = 0.0
    ct1: float = 0.0
    ct2: float = 0.0
    ct3: float = 0.0

    # campos da linha original; não entram na lógica de alertas
    ct_avg: Optional[float] = None
    state_duration: Optional[float] = None
    fault_status: Optional[str] = None
    fw_version: Optional[float] = None
    mac: Optional[str] = None

    def __post_init__(self):
        if not self.machine_id:
            raise ValueError("machine_id não pode ser vazio")

    @property
    def is_offline(self) -> bool:
        return is_offline(self)

    def epoch(self) -> float:
        """Levanta MalformedTimestamp se o timestamp não for parseável."""
        return parse_epoch(self.timestamp)


def is_offline(reading: TelemetryReading) -> bool:
    if reading.state == OFF_STATE:
        return True
    return (
        reading.ct1 == 0
        and reading.ct2 == 0
        and reading.ct3 == 0
        and reading.total_current == 0
    )


class EventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"


@dataclass(frozen=True)
class ChangeEvent:
    event_type: EventType
    reading: TelemetryReading
    previous_reading: Optional[TelemetryReading] = None


@dataclass
class OfflineRecord:
    machine_id: str
    off_epoch: float
    last_reported_epoch: float
    is_still_offline: bool = True


@dataclass(frozen=True)
class DowntimeFact:
    """
    Fato de indisponibilidade.
    terminal=True: máquina voltou (on_epoch = retorno).
    terminal=False: ainda offline (on_epoch = instante da verificação).
    """
    machine_id: str
    off_epoch: float
    on_epoch: float
    duration_minutes: int
    terminal: bool
