from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import httpx

from domain.ports import ChangeFeedSource, EventHandler, Subscription

from .row_mapper import event_from_payload

logger = logging.getLogger(__name__)


class _PollingSubscription(Subscription):
    def __init__(self, source: "PostgrestPollingSource", handler: EventHandler):
        self._source = source
        self._handler = handler
        self._stop = threading.Event()
        self._t = threading.Thread(target=self._run, name="postgrest-poll", daemon=True)

    def start(self) -> None:
        self._t.start()

    def close(self) -> None:
        self._stop.set()
        if self._t.is_alive() and threading.current_thread() is not self._t:
            self._t.join(timeout=5)
        self._source.close()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                self._source.poll_once(self._handler)
            except httpx.HTTPError as e:
                # tenta de novo no próximo ciclo
                logger.warning("poll falhou: %s", e)
            if self._stop.wait(self._source.poll_sec):
                return


class PostgrestPollingSource(ChangeFeedSource):
    """
    Change feed por polling na API REST do Postgres hospedado.
    Emite INSERT para cada linha nova, em ordem de (created_at, id).

    O filtro é created_at >= cursor: linhas que empatam no timestamp do
    cursor e já foram emitidas ficam em _boundary_seen e são puladas
    (offset na consulta, e descarte se o servidor reentregar).
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        *,
        table: str = "liveData",
        poll_sec: float = 2.0,
        timeout_sec: float = 5.0,
        page_size: int = 500,
        tiebreak: str = "id",
        since: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._api_key = api_key
        self.table = table
        self.poll_sec = float(poll_sec)
        self._timeout = timeout_sec
        self._page_size = int(page_size)
        self._tiebreak = tiebreak
        self._transport = transport

        # por padrão só linhas novas a partir de agora
        self.cursor: str = since or datetime.now(timezone.utc).isoformat()
        self._boundary_seen: Set[str] = set()

        self._client: Optional[httpx.Client] = None

        self.total_polls = 0
        self.total_rows = 0
        self.total_invalid = 0
        self.total_duplicates = 0

    def subscribe(self, handler: EventHandler) -> _PollingSubscription:
        sub = _PollingSubscription(self, handler)
        sub.start()
        return sub

    def poll_once(self, handler: EventHandler) -> int:
        rows = self._fetch()
        self.total_polls += 1

        emitted = 0
        for row in rows:
            created_at = row.get("created_at") if isinstance(row, dict) else None
            key = self._row_key(row)
            if created_at is not None and str(created_at) == self.cursor and key in self._boundary_seen:
                self.total_duplicates += 1
                continue
            self._advance(created_at, key)

            try:
                event = event_from_payload({"eventType": "INSERT", "new": row})
            except ValueError as e:
                self.total_invalid += 1
                logger.warning("linha ignorada: %s", e)
            else:
                handler(event)
                emitted += 1

        self.total_rows += emitted
        return emitted

    def _advance(self, created_at: Any, key: str) -> None:
        if not created_at:
            return
        created_at = str(created_at)
        if created_at != self.cursor:
            self.cursor = created_at
            self._boundary_seen = set()
        self._boundary_seen.add(key)

    def _row_key(self, row: Any) -> str:
        if isinstance(row, dict) and row.get(self._tiebreak) is not None:
            return str(row[self._tiebreak])
        return json.dumps(row, sort_keys=True, default=str)

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _fetch(self) -> List[Dict[str, Any]]:
        if self._client is None:
            kwargs: Dict[str, Any] = {
                "base_url": self._url,
                "timeout": self._timeout,
                "headers": {
                    "apikey": self._api_key,
                    "Authorization": f"Bearer {self._api_key}",
                    "Accept": "application/json",
                },
            }
            if self._transport is not None:
                kwargs["transport"] = self._transport
            self._client = httpx.Client(**kwargs)

        params = {
            "select": "*",
            "created_at": f"gte.{self.cursor}",
            "order": f"created_at.asc,{self._tiebreak}.asc",
            "limit": str(self._page_size),
        }
        if self._boundary_seen:
            params["offset"] = str(len(self._boundary_seen))

        r = self._client.get(f"/rest/v1/{self.table}", params=params)
        r.raise_for_status()
        data = r.json()
        if not isinstance(data, list):
            raise httpx.DecodingError(f"resposta inesperada de {self.table}: {type(data).__name__}")
        return data
