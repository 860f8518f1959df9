from __future__ import annotations
from typing import List

from domain.alerts import AlertSnapshot, DowntimeAlert, HighCurrentAlert, OfflineStatusAlert, StateChangeAlert
from domain.ports import NotificationRequest, NotificationSink, ReportSink
from domain.timestamps import fmt_epoch


class ConsoleNotificationSink(NotificationSink):
    """Substitui a notificação do navegador: imprime no terminal."""
    name = "console"

    def notify(self, request: NotificationRequest) -> None:
        mark = "!!" if request.urgent else "--"
        tags = ",".join(request.tags)
        print(f"{mark} {request.title} [{tags}]\n   " + request.body.replace("\n", "\n   "), flush=True)


class PrintReportSink(ReportSink):
    def __init__(self, top_n: int = 20):
        self.top_n = top_n

    def handle(self, snapshot: AlertSnapshot) -> None:
        lines: List[str] = [f"alerts={snapshot.count}"]

        if snapshot.items:
            items = snapshot.items[: self.top_n] if self.top_n > 0 else snapshot.items
            for a in items:
                lines.append("  " + describe(a))
            if len(items) < snapshot.count:
                lines.append(f"  ... +{snapshot.count - len(items)}")
        else:
            lines.append("No active alerts.")

        print("\n".join(lines) + "\n", flush=True)


def describe(a) -> str:
    if isinstance(a, HighCurrentAlert):
        return f"[{fmt_epoch(a.timestamp)}] {a.machine_id:>8} | high current {a.value:.2f} A"
    if isinstance(a, StateChangeAlert):
        prev = a.previous_state if a.previous_state is not None else "?"
        return f"[{fmt_epoch(a.timestamp)}] {a.machine_id:>8} | state {prev} -> {a.new_state}"
    if isinstance(a, DowntimeAlert):
        return (
            f"[{fmt_epoch(a.on_timestamp)}] {a.machine_id:>8} | downtime {a.duration_minutes} min "
            f"(off {fmt_epoch(a.off_timestamp)})"
        )
    if isinstance(a, OfflineStatusAlert):
        return (
            f"[{fmt_epoch(a.last_reported_at)}] {a.machine_id:>8} | still offline {a.duration_minutes} min "
            f"(off {fmt_epoch(a.off_timestamp)})"
        )
    return repr(a)
