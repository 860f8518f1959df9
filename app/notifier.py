from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple

from domain.alerts import DowntimeAlert, HighCurrentAlert, OfflineStatusAlert, StateChangeAlert
from domain.errors import NotificationDeliveryFailed
from domain.ports import NotificationRequest, NotificationSink
from domain.timestamps import fmt_epoch, iso_epoch

logger = logging.getLogger(__name__)

BROWSER = "browser"
EMAIL = "email"
PUSH = "push"

ERROR_STATE = "error"


@dataclass(frozen=True)
class NotificationPreferences:
    browser: bool = True
    email: bool = False
    push: bool = True

    def allows(self, channel: str) -> bool:
        return bool(getattr(self, channel, False))


class Notifier:
    """
    Converte alertas recém-registrados em NotificationRequest e entrega
    para os sinks de cada canal habilitado.

    Falha de entrega nunca sobe: o estado em memória já foi gravado antes.
    """

    def __init__(
        self,
        sinks: Dict[str, NotificationSink],
        prefs: NotificationPreferences | None = None,
        *,
        high_current_threshold: float = 15.0,
    ):
        self._sinks = dict(sinks)
        self._prefs = prefs or NotificationPreferences()
        self._threshold = float(high_current_threshold)

        self.total_requested = 0
        self.total_failed = 0

    # -----------------------------
    # Por tipo de alerta
    # -----------------------------

    def high_current(self, alert: HighCurrentAlert) -> None:
        if alert.value < self._threshold:
            return
        logger.info(
            "Total Current Alert for machine %s: %.2f exceeds threshold of %.1f",
            alert.machine_id, alert.value, self._threshold,
        )
        req = NotificationRequest(
            title=f"Machine {alert.machine_id} High Current",
            body=f"Total Current: {alert.value:.2f} (threshold {self._threshold:.1f})",
            alert_type="TOTAL_CURRENT_THRESHOLD",
            tags=(f"machine-current-{alert.machine_id}",),
            payload={
                "machineId": alert.machine_id,
                "timestamp": iso_epoch(alert.timestamp),
                "alertType": "TOTAL_CURRENT_THRESHOLD",
                "totalCurrent": alert.value,
            },
        )
        self._dispatch(req, (EMAIL, PUSH))

    def state_change(self, alert: StateChangeAlert, total_current: Optional[float]) -> None:
        if alert.previous_state is None or alert.previous_state == alert.new_state:
            return
        # só notifica mudança de estado com corrente alta
        if not total_current or total_current < self._threshold:
            return

        critical = alert.new_state == ERROR_STATE
        urgency = "Critical" if critical else "Info"
        req = NotificationRequest(
            title=f"{urgency}: Machine {alert.machine_id} State Change (High Current)",
            body=(
                f"State changed from {alert.previous_state} to {alert.new_state}\n"
                f"Total Current: {total_current:.2f}"
            ),
            alert_type="STATE_CHANGE",
            tags=(f"machine-state-{alert.machine_id}",),
            urgent=critical,
            payload={
                "machineId": alert.machine_id,
                "previousState": alert.previous_state,
                "newState": alert.new_state,
                "timestamp": iso_epoch(alert.timestamp),
                "alertType": "STATE_CHANGE",
                "totalCurrent": total_current,
            },
        )
        self._dispatch(req, (BROWSER, EMAIL))

    def downtime(self, alert: DowntimeAlert) -> None:
        req = NotificationRequest(
            title=f"Machine {alert.machine_id} back online",
            body=(
                f"Offline from {fmt_epoch(alert.off_timestamp)} to {fmt_epoch(alert.on_timestamp)}\n"
                f"Downtime: {alert.duration_minutes} min"
            ),
            alert_type="DOWNTIME",
            tags=(f"machine-downtime-{alert.machine_id}",),
            payload={
                "machineId": alert.machine_id,
                "offTimestamp": iso_epoch(alert.off_timestamp),
                "onTimestamp": iso_epoch(alert.on_timestamp),
                "timestamp": iso_epoch(alert.on_timestamp),
                "alertType": "DOWNTIME",
                "durationMinutes": alert.duration_minutes,
            },
        )
        self._dispatch(req, (BROWSER, EMAIL))

    def offline_status(self, alert: OfflineStatusAlert) -> None:
        req = NotificationRequest(
            title=f"Machine {alert.machine_id} still offline",
            body=(
                f"Offline since {fmt_epoch(alert.off_timestamp)}\n"
                f"Duration: {alert.duration_minutes} min"
            ),
            alert_type="OFFLINE_STATUS",
            tags=(f"machine-offline-{alert.machine_id}",),
            urgent=True,
            payload={
                "machineId": alert.machine_id,
                "offTimestamp": iso_epoch(alert.off_timestamp),
                "timestamp": iso_epoch(alert.last_reported_at),
                "alertType": "OFFLINE_STATUS",
                "durationMinutes": alert.duration_minutes,
            },
        )
        self._dispatch(req, (BROWSER, EMAIL))

    # -----------------------------
    # Entrega
    # -----------------------------

    def _dispatch(self, req: NotificationRequest, channels: Iterable[str]) -> None:
        for channel in channels:
            if not self._prefs.allows(channel):
                logger.debug("%s notifications disabled by preferences", channel)
                continue

            if channel == PUSH:
                # sem service worker: apenas registra
                logger.info("would send push notification: %s", req.title)
                continue

            sink = self._sinks.get(channel)
            if sink is None:
                continue

            self.total_requested += 1
            try:
                sink.notify(req)
            except NotificationDeliveryFailed as e:
                self.total_failed += 1
                logger.warning("notification not delivered: %s", e)
            except Exception:
                self.total_failed += 1
                logger.exception("notification sink %s failed", getattr(sink, "name", channel))


def channels_for(prefs: NotificationPreferences) -> Tuple[str, ...]:
    return tuple(c for c in (BROWSER, EMAIL, PUSH) if prefs.allows(c))
