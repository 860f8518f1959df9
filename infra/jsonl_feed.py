from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from domain.ports import ChangeFeedSource, EventHandler, Subscription

from .row_mapper import event_from_payload

logger = logging.getLogger(__name__)


class _ReplaySubscription(Subscription):
    def __init__(self, t: threading.Thread, stop: threading.Event):
        self._t = t
        self._stop = stop

    def close(self) -> None:
        self._stop.set()
        if self._t.is_alive() and threading.current_thread() is not self._t:
            self._t.join(timeout=5)

    @property
    def done(self) -> bool:
        return not self._t.is_alive()

    def wait(self, timeout: Optional[float] = None) -> bool:
        self._t.join(timeout=timeout)
        return not self._t.is_alive()


class JsonlReplaySource(ChangeFeedSource):
    """
    Reproduz um change feed gravado em JSON lines.
    Uma linha por evento: {"eventType": "INSERT", "new": {...}, "old": {...}}
    Linha inválida é registrada e pulada.
    """

    def __init__(self, path: str, *, delay_sec: float = 0.0):
        self.path = Path(path)
        self.delay_sec = float(delay_sec)
        self.total_read = 0
        self.total_invalid = 0

    def subscribe(self, handler: EventHandler) -> _ReplaySubscription:
        stop = threading.Event()
        t = threading.Thread(target=self._replay, args=(handler, stop), name="jsonl-replay", daemon=True)
        sub = _ReplaySubscription(t, stop)
        t.start()
        return sub

    def _replay(self, handler: EventHandler, stop: threading.Event) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                if stop.is_set():
                    return
                line = line.strip()
                if not line:
                    continue
                try:
                    event = event_from_payload(json.loads(line))
                except ValueError as e:
                    # JSONDecodeError também é ValueError
                    self.total_invalid += 1
                    logger.warning("%s:%d ignorada: %s", self.path, lineno, e)
                    continue

                self.total_read += 1
                handler(event)

                if self.delay_sec > 0 and stop.wait(self.delay_sec):
                    return

        logger.info("replay de %s concluído: %d eventos, %d inválidos", self.path, self.total_read, self.total_invalid)
