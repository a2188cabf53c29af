"""Contadores del receptor MQTT."""

from __future__ import annotations

import time


class ReceiverStats:
    """Estadísticas del receptor: mensajes, publicaciones y reconexiones."""

    def __init__(self, clock=time.time):
        self._clock = clock
        self.started_at: float = clock()
        self.received = 0
        self.processed = 0
        self.failed = 0
        self.published = 0
        self.publish_failed = 0
        self.reconnects = 0
        self.last_message_at: float = 0

    def mark_received(self) -> None:
        self.received += 1
        self.last_message_at = self._clock()

    def __str__(self) -> str:
        return (
            f"received={self.received} processed={self.processed} failed={self.failed} "
            f"published={self.published}/{self.published + self.publish_failed} "
            f"reconnects={self.reconnects}"
        )

    def to_dict(self) -> dict:
        return {
            "received": self.received,
            "processed": self.processed,
            "failed": self.failed,
            "published": self.published,
            "publish_failed": self.publish_failed,
            "reconnects": self.reconnects,
            "last_message_at": self.last_message_at,
            "uptime_seconds": round(self._clock() - self.started_at, 1),
        }
