"""Clasificación de topics MQTT.

Gramática ordenada (el primer match gana):
1. Topics exactos de petición (query, statistics, snapshot save/request)
2. Topic genérico de dispositivo: {root}/{device_id}/... (eventos de control)
3. Dentro de (2), topic de log: {root}/{device_id}/log/{log_level}

Cualquier otro topic es UNMATCHED.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from common.config import Settings


class MessageKind(Enum):
    """Tipo de mensaje según su topic."""

    LOG_EVENT = "log_event"
    CONTROL_EVENT = "control_event"
    QUERY_REQUEST = "query_request"
    STATISTICS_REQUEST = "statistics_request"
    SNAPSHOT_SAVE = "snapshot_save"
    SNAPSHOT_REQUEST = "snapshot_request"
    UNMATCHED = "unmatched"

    @property
    def is_device_event(self) -> bool:
        return self in (MessageKind.LOG_EVENT, MessageKind.CONTROL_EVENT)


@dataclass(frozen=True)
class ClassifiedTopic:
    """Resultado de clasificar un topic."""

    kind: MessageKind
    topic: str
    device_id: Optional[str] = None
    log_level: Optional[str] = None


class TopicClassifier:
    """Clasifica topics entrantes en tipos de mensaje."""

    def __init__(
        self,
        topic_root: str,
        query_request_topic: str,
        statistics_request_topic: str,
        snapshot_save_topic: Optional[str] = None,
        snapshot_request_topic: Optional[str] = None,
    ):
        self._exact: dict[str, MessageKind] = {
            query_request_topic: MessageKind.QUERY_REQUEST,
            statistics_request_topic: MessageKind.STATISTICS_REQUEST,
        }
        if snapshot_save_topic:
            self._exact[snapshot_save_topic] = MessageKind.SNAPSHOT_SAVE
        if snapshot_request_topic:
            self._exact[snapshot_request_topic] = MessageKind.SNAPSHOT_REQUEST

        root = re.escape(topic_root)
        self._log_re = re.compile(rf"^{root}/([^/]+)/log/([^/]+)$")
        self._device_re = re.compile(rf"^{root}/([^/]+)/.+$")

    @classmethod
    def from_settings(cls, settings: Settings) -> "TopicClassifier":
        return cls(
            topic_root=settings.topic_root,
            query_request_topic=settings.query_request_topic,
            statistics_request_topic=settings.statistics_request_topic,
            snapshot_save_topic=settings.snapshot_save_topic,
            snapshot_request_topic=settings.snapshot_request_topic,
        )

    def classify(self, topic: str) -> ClassifiedTopic:
        kind = self._exact.get(topic)
        if kind is not None:
            return ClassifiedTopic(kind=kind, topic=topic)

        device_match = self._device_re.match(topic)
        if not device_match:
            return ClassifiedTopic(kind=MessageKind.UNMATCHED, topic=topic)

        log_match = self._log_re.match(topic)
        if log_match:
            return ClassifiedTopic(
                kind=MessageKind.LOG_EVENT,
                topic=topic,
                device_id=log_match.group(1),
                log_level=log_match.group(2),
            )

        return ClassifiedTopic(
            kind=MessageKind.CONTROL_EVENT,
            topic=topic,
            device_id=device_match.group(1),
        )
