from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional

from domain.alerts import AlertSnapshot, DowntimeAlert, OfflineStatusAlert
from domain.errors import MalformedTimestamp
from domain.models import ChangeEvent, DowntimeFact, TelemetryReading
from domain.ports import Cancellable, ChangeFeedSource, Clock, Scheduler, Subscription

from .alert_store import AlertStore
from .notifier import Notifier
from .offline_tracker import OfflineTracker

logger = logging.getLogger(__name__)


@dataclass
class IngestPolicy:
    high_current_threshold: float = 15.0
    sweep_period_sec: float = 120.0
    # True: só registra state_change quando o estado anterior é conhecido e diferente.
    # False: registra em todo evento (duplicatas exatas continuam suprimidas).
    state_change_only_on_transition: bool = True


class RealtimeIngestAdapter:
    """
    Liga o change feed e o scheduler ao OfflineTracker e ao AlertStore.

    - Não faz I/O.
    - Um evento por vez, processado até o fim (lock compartilhado entre
      a thread do feed e a do scheduler).
    """

    def __init__(
        self,
        tracker: OfflineTracker,
        store: AlertStore,
        clock: Clock,
        policy: IngestPolicy | None = None,
        *,
        notifier: Optional[Notifier] = None,
    ):
        self.tracker = tracker
        self.store = store
        self.clock = clock
        self.policy = policy or IngestPolicy()
        self.notifier = notifier

        self._lock = threading.RLock()
        self._last: Dict[str, TelemetryReading] = {}

        self._subscription: Optional[Subscription] = None
        self._timer: Optional[Cancellable] = None

        self.total_events = 0
        self.total_rejected = 0
        self.total_stale = 0

    # -----------------------------
    # Ciclo de vida
    # -----------------------------

    def start(self, source: ChangeFeedSource, scheduler: Optional[Scheduler] = None) -> None:
        with self._lock:
            if self._subscription is not None or self._timer is not None:
                raise RuntimeError("RealtimeIngestAdapter já iniciado")
            if scheduler is not None:
                self._timer = scheduler.schedule(self.policy.sweep_period_sec, self.tick)
            self._subscription = source.subscribe(self.handle_event)
        logger.info("ingest started (sweep every %.0fs)", self.policy.sweep_period_sec)

    def stop(self) -> None:
        # idempotente; seguro mesmo sem start()
        with self._lock:
            sub, self._subscription = self._subscription, None
            timer, self._timer = self._timer, None
        try:
            if sub is not None:
                sub.close()
        finally:
            if timer is not None:
                timer.cancel()
        if sub is not None or timer is not None:
            logger.info("ingest stopped")

    @property
    def running(self) -> bool:
        return self._subscription is not None

    # -----------------------------
    # Entradas
    # -----------------------------

    def handle_event(self, event: ChangeEvent) -> None:
        try:
            self.handle_reading(event.reading, event.previous_reading)
        except Exception:
            # um evento corrompido não pode parar os seguintes
            with self._lock:
                self.total_rejected += 1
            logger.exception("evento descartado para machine %s", getattr(event.reading, "machine_id", "?"))

    def handle_reading(self, reading: TelemetryReading, previous: Optional[TelemetryReading] = None) -> None:
        try:
            epoch = reading.epoch()
        except MalformedTimestamp as e:
            with self._lock:
                self.total_rejected += 1
            logger.warning("leitura descartada para machine %s: %s", reading.machine_id, e)
            return

        with self._lock:
            self.total_events += 1
            machine_id = reading.machine_id

            last = self._last.get(machine_id)
            if last is not None and epoch < last.epoch():
                # atrasada ou reentregue: não mexe no estado online/offline
                self.total_stale += 1
                logger.debug(
                    "leitura atrasada para machine %s (%.3f < %.3f)", machine_id, epoch, last.epoch()
                )
                self._evaluate_alerts(reading, previous)
                return

            prior = previous if previous is not None else last
            self._last[machine_id] = reading

            self._evaluate_alerts(reading, prior)
            self._evaluate_offline(reading, prior)

    def tick(self) -> None:
        with self._lock:
            facts = self.tracker.sweep_still_offline(self.clock.now_epoch())
            for fact in facts:
                self._forward_fact(fact)

    # -----------------------------
    # Consumo (UI / testes)
    # -----------------------------

    def snapshot(self) -> AlertSnapshot:
        return self.store.snapshot()

    def clear(self) -> None:
        self.store.clear()

    # -----------------------------
    # internos
    # -----------------------------

    def _evaluate_alerts(self, reading: TelemetryReading, prior: Optional[TelemetryReading]) -> None:
        if reading.total_current >= self.policy.high_current_threshold:
            alert = self.store.add_high_current(reading.machine_id, reading.total_current, reading.timestamp)
            if alert is not None and self.notifier is not None:
                self.notifier.high_current(alert)

        prev_state = prior.state if prior is not None else None
        if self.policy.state_change_only_on_transition and (prev_state is None or prev_state == reading.state):
            return

        sc = self.store.add_state_change(reading.machine_id, prev_state, reading.state, reading.timestamp)
        if sc is not None and self.notifier is not None:
            self.notifier.state_change(sc, reading.total_current)

    def _evaluate_offline(self, reading: TelemetryReading, prior: Optional[TelemetryReading]) -> None:
        # leitura anterior desconhecida conta como online
        was_offline = prior.is_offline if prior is not None else False
        now_offline = reading.is_offline

        if now_offline and not was_offline:
            self.tracker.on_offline(reading.machine_id, reading.timestamp)
        elif was_offline and not now_offline:
            fact = self.tracker.on_online(reading.machine_id, reading.timestamp)
            if fact is not None:
                self._forward_fact(fact)

    def _forward_fact(self, fact: DowntimeFact) -> None:
        alert = self.store.add_downtime_fact(fact)
        if alert is None or self.notifier is None:
            return
        if isinstance(alert, DowntimeAlert):
            self.notifier.downtime(alert)
        elif isinstance(alert, OfflineStatusAlert):
            self.notifier.offline_status(alert)
