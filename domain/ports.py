from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Protocol, Tuple

from .alerts import AlertSnapshot
from .models import ChangeEvent


class Clock(Protocol):
    def now_epoch(self) -> float: ...


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, period_sec: float, callback: Callable[[], None]) -> Cancellable:
        """Chama callback a cada period_sec até cancel()."""
        ...


# -----------------------------
# Change feed (insert/update da última leitura por máquina)
# -----------------------------

EventHandler = Callable[[ChangeEvent], None]


class Subscription(Protocol):
    def close(self) -> None: ...


class ChangeFeedSource(Protocol):
    def subscribe(self, handler: EventHandler) -> Subscription: ...


# -----------------------------
# Notificações (console/"browser", email, push)
# -----------------------------

@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    alert_type: str                       # TOTAL_CURRENT_THRESHOLD | STATE_CHANGE | DOWNTIME | OFFLINE_STATUS
    tags: Tuple[str, ...] = ()
    urgent: bool = False
    payload: Dict[str, Any] = field(default_factory=dict)


class NotificationSink(Protocol):
    name: str

    def notify(self, request: NotificationRequest) -> None:
        """Não deve bloquear. Pode levantar NotificationDeliveryFailed."""
        ...


class ReportSink(Protocol):
    def handle(self, snapshot: AlertSnapshot) -> None: ...
