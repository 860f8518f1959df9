from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Hashable, Optional, Tuple, Union


@dataclass(frozen=True)
class HighCurrentAlert:
    kind: ClassVar[str] = "high_current"

    machine_id: str
    value: float
    timestamp: float

    @property
    def key(self) -> Tuple[Hashable, ...]:
        # uma por máquina
        return (self.kind, self.machine_id)

    @property
    def sort_epoch(self) -> float:
        return self.timestamp


@dataclass(frozen=True)
class StateChangeAlert:
    kind: ClassVar[str] = "state_change"

    machine_id: str
    previous_state: Optional[str]
    new_state: str
    timestamp: float

    @property
    def key(self) -> Tuple[Hashable, ...]:
        return (self.kind, self.machine_id, self.previous_state, self.new_state, self.timestamp)

    @property
    def sort_epoch(self) -> float:
        return self.timestamp


@dataclass(frozen=True)
class DowntimeAlert:
    """Indisponibilidade encerrada (máquina voltou)."""
    kind: ClassVar[str] = "downtime"

    machine_id: str
    off_timestamp: float
    on_timestamp: float
    duration_minutes: int

    @property
    def key(self) -> Tuple[Hashable, ...]:
        return (self.kind, self.machine_id, self.off_timestamp, self.on_timestamp)

    @property
    def sort_epoch(self) -> float:
        return self.on_timestamp


@dataclass(frozen=True)
class OfflineStatusAlert:
    """Máquina ainda offline; substituído a cada verificação."""
    kind: ClassVar[str] = "offline_status"

    machine_id: str
    off_timestamp: float
    duration_minutes: int
    last_reported_at: float

    @property
    def key(self) -> Tuple[Hashable, ...]:
        return (self.kind, self.machine_id)

    @property
    def sort_epoch(self) -> float:
        return self.last_reported_at


Alert = Union[HighCurrentAlert, StateChangeAlert, DowntimeAlert, OfflineStatusAlert]


@dataclass(frozen=True)
class AlertSnapshot:
    count: int
    items: Tuple[Alert, ...]

    @staticmethod
    def of(items: Tuple[Alert, ...]) -> "AlertSnapshot":
        return AlertSnapshot(count=len(items), items=items)
