from __future__ import annotations

import logging
import threading
from time import time
from typing import Callable, List

from domain.ports import Cancellable, Clock, Scheduler

logger = logging.getLogger(__name__)


# epoch seconds (float)
class SystemClock(Clock):
    def now_epoch(self) -> float:
        return time()


class _PeriodicTimer(Cancellable):
    def __init__(self, period_sec: float, callback: Callable[[], None], name: str):
        self._period = float(period_sec)
        self._callback = callback
        self._stop = threading.Event()
        self._t = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._t.start()

    def cancel(self) -> None:
        self._stop.set()
        # cancel() chamado de dentro do próprio callback não pode dar join
        if self._t.is_alive() and threading.current_thread() is not self._t:
            self._t.join(timeout=5)

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def _run(self) -> None:
        # wait() devolve True quando cancelado
        while not self._stop.wait(self._period):
            try:
                self._callback()
            except Exception:
                logger.exception("periodic callback failed")


class ThreadingScheduler(Scheduler):
    """Um thread daemon por callback periódico."""

    def __init__(self):
        self._timers: List[_PeriodicTimer] = []
        self._lock = threading.Lock()

    def schedule(self, period_sec: float, callback: Callable[[], None]) -> Cancellable:
        if period_sec <= 0:
            raise ValueError(f"period_sec deve ser > 0 (recebido {period_sec})")
        timer = _PeriodicTimer(period_sec, callback, name=f"periodic-{len(self._timers)}")
        with self._lock:
            self._timers.append(timer)
        timer.start()
        return timer

    def shutdown(self) -> None:
        with self._lock:
            timers, self._timers = self._timers, []
        for t in timers:
            t.cancel()
