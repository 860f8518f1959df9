import argparse
import logging
from typing import Dict

from config import AppConfig, load_config
from app.alert_store import AlertStore
from app.ingest import IngestPolicy, RealtimeIngestAdapter
from app.notifier import NotificationPreferences, Notifier, channels_for
from app.offline_tracker import OfflineTracker, OfflineTrackerConfig
from domain.ports import ChangeFeedSource, NotificationSink
from infra.http_email_sink import HttpEmailSink
from infra.jsonl_feed import JsonlReplaySource
from infra.postgrest_feed import PostgrestPollingSource
from infra.sinks import ConsoleNotificationSink, PrintReportSink
from infra.timing import SystemClock, ThreadingScheduler

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("main")


def build_source(cfg: AppConfig) -> ChangeFeedSource:
    if cfg.feed.kind == "postgrest":
        return PostgrestPollingSource(
            cfg.feed.url,
            cfg.feed.api_key,
            table=cfg.feed.table,
            poll_sec=cfg.feed.poll_sec,
            timeout_sec=cfg.feed.timeout_sec,
            since=cfg.feed.since or None,
        )
    return JsonlReplaySource(cfg.feed.path, delay_sec=cfg.feed.delay_sec)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Machine downtime & alert monitor")
    parser.add_argument("--config", default="config.yaml", help="YAML config (default: config.yaml)")
    args = parser.parse_args(argv)

    try:
        cfg = load_config(args.config)
    except (OSError, ValueError) as e:
        raise SystemExit(str(e))

    logging.basicConfig(level=getattr(logging, cfg.log_level, logging.INFO), format=LOG_FORMAT)

    # ---- notificações ----
    n = cfg.notifications
    prefs = NotificationPreferences(browser=n.browser, email=n.email, push=n.push)

    sinks: Dict[str, NotificationSink] = {"browser": ConsoleNotificationSink()}
    email_sink = None
    if n.email:
        email_sink = HttpEmailSink(
            n.email_function_url,
            n.recipient_email,
            api_key=n.api_key,
            workers=n.workers,
            queue_max=n.queue_max,
            timeout_sec=n.timeout_sec,
            max_retries=n.max_retries,
            drop_on_full=n.drop_on_full,
            put_timeout_sec=n.put_timeout_sec,
        )
        email_sink.start()
        sinks["email"] = email_sink

    print(f"[notifications] channels={list(channels_for(prefs))}")

    # ---- núcleo ----
    clock = SystemClock()
    scheduler = ThreadingScheduler()
    notifier = Notifier(sinks, prefs, high_current_threshold=cfg.alerts.high_current_threshold)

    tracker = OfflineTracker(
        clock,
        OfflineTrackerConfig(report_interval_sec=cfg.alerts.offline_report_interval_sec),
    )
    store = AlertStore()
    adapter = RealtimeIngestAdapter(
        tracker,
        store,
        clock,
        IngestPolicy(
            high_current_threshold=cfg.alerts.high_current_threshold,
            sweep_period_sec=cfg.alerts.sweep_period_sec,
            state_change_only_on_transition=cfg.alerts.state_change_only_on_transition,
        ),
        notifier=notifier,
    )

    report = PrintReportSink()
    if cfg.alerts.report_every_sec > 0:
        scheduler.schedule(cfg.alerts.report_every_sec, lambda: report.handle(adapter.snapshot()))

    source = build_source(cfg)
    print(f"[feed] kind={cfg.feed.kind}")

    try:
        adapter.start(source, scheduler)
        print("Running. Press ENTER to stop...")
        input()
    except (KeyboardInterrupt, EOFError):
        pass
    finally:
        try:
            adapter.stop()
        finally:
            try:
                scheduler.shutdown()
            finally:
                if email_sink is not None:
                    email_sink.stop()

    report.handle(adapter.snapshot())
    logger.info(
        "events=%d rejected=%d stale=%d notifications=%d failed=%d",
        adapter.total_events, adapter.total_rejected, adapter.total_stale, notifier.total_requested, notifier.total_failed,
    )


if __name__ == "__main__":
    main()
