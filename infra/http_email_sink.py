from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, Dict, Optional

import httpx

from domain.errors import NotificationDeliveryFailed
from domain.ports import NotificationRequest, NotificationSink

logger = logging.getLogger(__name__)


class HttpEmailSink(NotificationSink):
    """
    Envia pedidos de email para a edge function (send-notification-email).
    notify() só enfileira; workers fazem o POST com retry.
    """
    name = "email"

    def __init__(
        self,
        url: str,
        recipient: str,
        *,
        api_key: str = "",
        workers: int = 2,
        queue_max: int = 1000,
        timeout_sec: float = 5.0,
        max_retries: int = 3,
        drop_on_full: bool = True,
        put_timeout_sec: float = 0.1,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._url = url
        self._recipient = recipient
        self._api_key = api_key
        self._timeout = timeout_sec
        self._max_retries = max_retries
        self._drop_on_full = drop_on_full
        self._put_timeout = put_timeout_sec
        self._transport = transport

        self._q: queue.Queue[Dict[str, Any] | _Stop] = queue.Queue(maxsize=queue_max)
        self._workers = workers
        self._threads: list[threading.Thread] = []
        self._client: Optional[httpx.Client] = None
        self._started = False

        self.total_published = 0
        self.total_dropped = 0
        self.total_failed = 0
        self.total_sent = 0

    def start(self) -> None:
        if self._started:
            return
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
            headers["apikey"] = self._api_key
        kwargs: Dict[str, Any] = {"timeout": self._timeout, "headers": headers}
        if self._transport is not None:
            kwargs["transport"] = self._transport
        self._client = httpx.Client(**kwargs)

        self._threads = []
        for i in range(self._workers):
            t = threading.Thread(target=self._worker, args=(i,), name=f"email-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        self._started = True

    def stop(self) -> None:
        if not self._started:
            return
        for _ in self._threads:
            self._q.put(_Stop())
        for t in self._threads:
            t.join(timeout=3)
        self._threads.clear()
        self._started = False
        if self._client:
            self._client.close()
            self._client = None

    def join(self) -> None:
        """Espera a fila esvaziar."""
        self._q.join()

    def notify(self, request: NotificationRequest) -> None:
        if not self._started:
            raise NotificationDeliveryFailed(self.name, "sink não iniciado")

        payload = dict(request.payload)
        payload["email"] = self._recipient
        payload.setdefault("alertType", request.alert_type)
        payload.setdefault("subject", request.title)

        self.total_published += 1

        try:
            if self._drop_on_full:
                self._q.put_nowait(payload)
            else:
                # espera limitada: notify roda com o lock do ingest
                self._q.put(payload, timeout=self._put_timeout)
        except queue.Full:
            self.total_dropped += 1
            raise NotificationDeliveryFailed(self.name, f"fila cheia; {request.alert_type} descartado")

    def _worker(self, wid: int) -> None:
        assert self._client is not None

        while True:
            item = self._q.get()
            try:
                if isinstance(item, _Stop):
                    return

                attempt = 0
                while True:
                    try:
                        r = self._client.post(self._url, json=item)
                        r.raise_for_status()
                        self.total_sent += 1
                        break
                    except httpx.HTTPError as e:
                        attempt += 1
                        if attempt > self._max_retries:
                            self.total_failed += 1
                            logger.warning(
                                "[email-%d] %s para machine %s falhou após %d tentativas: %s",
                                wid, item.get("alertType"), item.get("machineId"), attempt, e,
                            )
                            break
                        time.sleep(min(0.25 * (2 ** (attempt - 1)), 2.0))
            finally:
                self._q.task_done()


class _Stop:
    pass
