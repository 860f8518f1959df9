from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from domain.errors import MalformedTimestamp
from domain.models import DowntimeFact, OfflineRecord
from domain.ports import Clock
from domain.timestamps import Timestamp, minutes_between, parse_epoch

logger = logging.getLogger(__name__)


@dataclass
class OfflineTrackerConfig:
    # intervalo mínimo entre dois avisos de "ainda offline"
    report_interval_sec: float = 120.0


class OfflineTracker:
    """
    Mantém, por máquina, se está offline e desde quando.
    Não notifica nada: apenas gera DowntimeFact.
    """

    def __init__(self, clock: Clock, cfg: OfflineTrackerConfig | None = None):
        self._clock = clock
        self._cfg = cfg or OfflineTrackerConfig()
        self._records: Dict[str, OfflineRecord] = {}

    def on_offline(self, machine_id: str, timestamp: Timestamp) -> None:
        if machine_id in self._records:
            # primeiro timestamp offline vence
            return

        off_epoch = self._parse(machine_id, timestamp, "on_offline")
        if off_epoch is None:
            return

        self._records[machine_id] = OfflineRecord(
            machine_id=machine_id,
            off_epoch=off_epoch,
            last_reported_epoch=self._clock.now_epoch(),
        )
        logger.info("machine %s offline desde %.3f", machine_id, off_epoch)

    def on_online(self, machine_id: str, timestamp: Timestamp) -> Optional[DowntimeFact]:
        rec = self._records.get(machine_id)
        if rec is None or not rec.is_still_offline:
            return None

        on_epoch = self._parse(machine_id, timestamp, "on_online")
        if on_epoch is None:
            return None
        if on_epoch < rec.off_epoch:
            # leitura online anterior ao início da queda: fora de ordem
            logger.warning(
                "on_online ignorado para machine %s: %.3f anterior ao offline em %.3f",
                machine_id, on_epoch, rec.off_epoch,
            )
            return None

        rec.is_still_offline = False
        del self._records[machine_id]

        fact = DowntimeFact(
            machine_id=machine_id,
            off_epoch=rec.off_epoch,
            on_epoch=on_epoch,
            duration_minutes=minutes_between(rec.off_epoch, on_epoch),
            terminal=True,
        )
        logger.info("machine %s online; downtime=%d min", machine_id, fact.duration_minutes)
        return fact

    def sweep_still_offline(self, now: Timestamp) -> List[DowntimeFact]:
        now_epoch = self._parse("*", now, "sweep_still_offline")
        if now_epoch is None:
            return []

        out: List[DowntimeFact] = []
        for rec in self._records.values():
            if not rec.is_still_offline:
                continue
            # re-verifica o intervalo: o scheduler pode adiantar/atrasar
            if (now_epoch - rec.last_reported_epoch) < self._cfg.report_interval_sec:
                continue

            rec.last_reported_epoch = now_epoch
            out.append(
                DowntimeFact(
                    machine_id=rec.machine_id,
                    off_epoch=rec.off_epoch,
                    on_epoch=now_epoch,
                    duration_minutes=minutes_between(rec.off_epoch, now_epoch),
                    terminal=False,
                )
            )

        if out:
            logger.debug("sweep: %d máquina(s) ainda offline", len(out))
        return out

    def is_offline(self, machine_id: str) -> bool:
        rec = self._records.get(machine_id)
        return rec is not None and rec.is_still_offline

    def get(self, machine_id: str) -> Optional[OfflineRecord]:
        rec = self._records.get(machine_id)
        return replace(rec) if rec is not None else None

    def records(self) -> List[OfflineRecord]:
        return [replace(r) for r in self._records.values()]

    @staticmethod
    def _parse(machine_id: str, timestamp: Timestamp, op: str) -> Optional[float]:
        try:
            return parse_epoch(timestamp)
        except MalformedTimestamp as e:
            logger.warning("%s ignorado para machine %s: %s", op, machine_id, e)
            return None
