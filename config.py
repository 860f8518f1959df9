from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import yaml

FEED_KINDS = ("jsonl", "postgrest")


@dataclass(frozen=True)
class FeedConfig:
    kind: str = "jsonl"

    # jsonl
    path: str = "events.jsonl"
    delay_sec: float = 0.0

    # postgrest
    url: str = ""
    api_key: str = ""
    table: str = "liveData"
    poll_sec: float = 2.0
    timeout_sec: float = 5.0
    since: str = ""


@dataclass(frozen=True)
class AlertsConfig:
    high_current_threshold: float = 15.0
    offline_report_interval_sec: float = 120.0
    sweep_period_sec: float = 120.0
    state_change_only_on_transition: bool = True
    report_every_sec: float = 30.0


@dataclass(frozen=True)
class NotificationsConfig:
    browser: bool = True
    email: bool = False
    push: bool = True

    email_function_url: str = ""
    recipient_email: str = ""
    api_key: str = ""

    workers: int = 2
    queue_max: int = 1000
    timeout_sec: float = 5.0
    max_retries: int = 3
    drop_on_full: bool = True
    put_timeout_sec: float = 0.1


@dataclass(frozen=True)
class AppConfig:
    feed: FeedConfig
    alerts: AlertsConfig
    notifications: NotificationsConfig
    log_level: str = "INFO"


def _req(d: Mapping[str, Any], path: str) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            raise ValueError(f"Config inválida: campo obrigatório '{path}' ausente.")
        cur = cur[part]
    return cur


def _opt(d: Mapping[str, Any], path: str, default: Any) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return cur


def _positive(value: float, path: str) -> float:
    if value <= 0:
        raise ValueError(f"Config inválida: '{path}' deve ser > 0 (recebido {value}).")
    return value


def _load_feed(raw: Any) -> FeedConfig:
    if raw is None:
        return FeedConfig()
    if not isinstance(raw, Mapping):
        raise ValueError("Config inválida: 'feed' deve ser um mapa (dict).")

    kind = str(_opt(raw, "kind", "jsonl")).lower()
    if kind not in FEED_KINDS:
        raise ValueError(f"Config inválida: 'feed.kind' deve ser um de {FEED_KINDS} (recebido '{kind}').")

    if kind == "postgrest":
        url = str(_req(raw, "url"))
        api_key = str(_req(raw, "api_key"))
    else:
        url = str(_opt(raw, "url", ""))
        api_key = str(_opt(raw, "api_key", ""))

    return FeedConfig(
        kind=kind,
        path=str(_opt(raw, "path", "events.jsonl")),
        delay_sec=float(_opt(raw, "delay_sec", 0.0)),
        url=url,
        api_key=api_key,
        table=str(_opt(raw, "table", "liveData")),
        poll_sec=_positive(float(_opt(raw, "poll_sec", 2.0)), "feed.poll_sec"),
        timeout_sec=float(_opt(raw, "timeout_sec", 5.0)),
        since=str(_opt(raw, "since", "") or ""),
    )


def _load_alerts(raw: Any) -> AlertsConfig:
    if raw is None:
        return AlertsConfig()
    if not isinstance(raw, Mapping):
        raise ValueError("Config inválida: 'alerts' deve ser um mapa (dict).")

    return AlertsConfig(
        high_current_threshold=float(_opt(raw, "high_current_threshold", 15.0)),
        offline_report_interval_sec=_positive(
            float(_opt(raw, "offline_report_interval_sec", 120.0)), "alerts.offline_report_interval_sec"
        ),
        sweep_period_sec=_positive(float(_opt(raw, "sweep_period_sec", 120.0)), "alerts.sweep_period_sec"),
        state_change_only_on_transition=bool(_opt(raw, "state_change_only_on_transition", True)),
        report_every_sec=float(_opt(raw, "report_every_sec", 30.0)),
    )


def _load_notifications(raw: Any) -> NotificationsConfig:
    if raw is None:
        return NotificationsConfig()
    if not isinstance(raw, Mapping):
        raise ValueError("Config inválida: 'notifications' deve ser um mapa (dict).")

    email = bool(_opt(raw, "email", False))
    if email:
        # email só faz sentido com destino e função configurados
        url = str(_req(raw, "email_function_url"))
        recipient = str(_req(raw, "recipient_email"))
    else:
        url = str(_opt(raw, "email_function_url", ""))
        recipient = str(_opt(raw, "recipient_email", ""))

    return NotificationsConfig(
        browser=bool(_opt(raw, "browser", True)),
        email=email,
        push=bool(_opt(raw, "push", True)),
        email_function_url=url,
        recipient_email=recipient,
        api_key=str(_opt(raw, "api_key", "")),
        workers=int(_opt(raw, "workers", 2)),
        queue_max=int(_opt(raw, "queue_max", 1000)),
        timeout_sec=float(_opt(raw, "timeout_sec", 5.0)),
        max_retries=int(_opt(raw, "max_retries", 3)),
        drop_on_full=bool(_opt(raw, "drop_on_full", True)),
        put_timeout_sec=_positive(float(_opt(raw, "put_timeout_sec", 0.1)), "notifications.put_timeout_sec"),
    )


def load_config(path: str = "config.yaml") -> AppConfig:
    p = Path(path)
    data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError("Config inválida: o documento YAML deve ser um mapa (dict).")

    return AppConfig(
        feed=_load_feed(_opt(data, "feed", None)),
        alerts=_load_alerts(_opt(data, "alerts", None)),
        notifications=_load_notifications(_opt(data, "notifications", None)),
        log_level=str(_opt(data, "logging.level", "INFO")).upper(),
    )
