from __future__ import annotations

import logging
import threading
from typing import Dict, Hashable, Optional, Tuple

from domain.alerts import (
    Alert,
    AlertSnapshot,
    DowntimeAlert,
    HighCurrentAlert,
    OfflineStatusAlert,
    StateChangeAlert,
)
from domain.errors import MalformedTimestamp
from domain.models import DowntimeFact
from domain.timestamps import Timestamp, parse_epoch

logger = logging.getLogger(__name__)


class AlertStore:
    """
    Lista de alertas ativos, deduplicada pela chave de cada alerta.

    Contagem e itens saem da mesma estrutura, sob o mesmo lock:
    snapshot() nunca devolve count != len(items).
    """

    def __init__(self):
        self._lock = threading.Lock()
        # key -> (seq de inserção, alerta)
        self._alerts: Dict[Tuple[Hashable, ...], Tuple[int, Alert]] = {}
        self._seq = 0

    # -----------------------------
    # Mutações
    # -----------------------------

    def add_high_current(self, machine_id: str, value: float, timestamp: Timestamp) -> Optional[HighCurrentAlert]:
        ts = self._parse(machine_id, timestamp, "high_current")
        if ts is None:
            return None
        alert = HighCurrentAlert(machine_id=machine_id, value=float(value), timestamp=ts)
        with self._lock:
            self._put(alert, replace=True)
        return alert

    def add_state_change(
        self,
        machine_id: str,
        previous_state: Optional[str],
        new_state: str,
        timestamp: Timestamp,
    ) -> Optional[StateChangeAlert]:
        ts = self._parse(machine_id, timestamp, "state_change")
        if ts is None:
            return None
        alert = StateChangeAlert(
            machine_id=machine_id,
            previous_state=previous_state,
            new_state=new_state,
            timestamp=ts,
        )
        with self._lock:
            if not self._put(alert, replace=False):
                return None
        return alert

    def add_downtime_fact(self, fact: DowntimeFact) -> Optional[Alert]:
        if fact.terminal:
            status_key = (OfflineStatusAlert.kind, fact.machine_id)
            if fact.on_epoch == fact.off_epoch:
                with self._lock:
                    self._alerts.pop(status_key, None)
                logger.debug("downtime de duração zero ignorado para machine %s", fact.machine_id)
                return None

            alert: Alert = DowntimeAlert(
                machine_id=fact.machine_id,
                off_timestamp=fact.off_epoch,
                on_timestamp=fact.on_epoch,
                duration_minutes=fact.duration_minutes,
            )
            with self._lock:
                # a indisponibilidade acabou: o status recorrente sai junto
                self._alerts.pop(status_key, None)
                if not self._put(alert, replace=False):
                    return None
            return alert

        alert = OfflineStatusAlert(
            machine_id=fact.machine_id,
            off_timestamp=fact.off_epoch,
            duration_minutes=fact.duration_minutes,
            last_reported_at=fact.on_epoch,
        )
        with self._lock:
            self._put(alert, replace=True)
        return alert

    def clear(self) -> None:
        with self._lock:
            self._alerts.clear()

    # -----------------------------
    # Leitura
    # -----------------------------

    def snapshot(self) -> AlertSnapshot:
        with self._lock:
            entries = list(self._alerts.values())
        # mais recente primeiro; empate -> inserção mais recente primeiro
        entries.sort(key=lambda e: (e[1].sort_epoch, e[0]), reverse=True)
        return AlertSnapshot.of(tuple(a for _, a in entries))

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._alerts)

    # -----------------------------
    # internos
    # -----------------------------

    def _put(self, alert: Alert, *, replace: bool) -> bool:
        key = alert.key
        if key in self._alerts:
            if not replace:
                return False
            del self._alerts[key]
        self._seq += 1
        self._alerts[key] = (self._seq, alert)
        return True

    @staticmethod
    def _parse(machine_id: str, timestamp: Timestamp, kind: str) -> Optional[float]:
        try:
            return parse_epoch(timestamp)
        except MalformedTimestamp as e:
            logger.warning("alerta %s ignorado para machine %s: %s", kind, machine_id, e)
            return None
