from __future__ import annotations


class MalformedTimestamp(ValueError):
    """Timestamp que não pode ser convertido para epoch."""

    def __init__(self, value: object):
        super().__init__(f"timestamp inválido: {value!r}")
        self.value = value


class NotificationDeliveryFailed(RuntimeError):
    """
    Falha ao entregar uma notificação.
    Nunca é fatal: quem chama apenas registra no log.
    """

    def __init__(self, sink: str, reason: str):
        super().__init__(f"[{sink}] {reason}")
        self.sink = sink
        self.reason = reason
