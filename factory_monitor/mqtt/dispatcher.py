"""Dispatcher de mensajes: núcleo del servicio sin dependencia del transporte.

handle(topic, payload) → lista de publicaciones a realizar.

Flujo:
  topic → TopicClassifier
  ├─ query request      → QueryEngine       → publica en query_response_topic
  ├─ statistics request → StatisticsEngine  → publica en {root}/{device}/msg/statistics
  ├─ snapshot save      → SnapshotStore.save
  ├─ snapshot request   → SnapshotStore     → publica en response_topic
  └─ evento de dispositivo
       → DeviceLifecycleManager.gate (SHD/STR antes de la compuerta)
       → solo topics de log: registro de dispositivos → LogRecordBuilder

Ninguna excepción sale de handle(); los errores se registran en log.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable

from ..errors import DeviceNotFoundError, MessageParseError, RequestValidationError, StorageError
from ..ingest.log_builder import LogRecordBuilder
from ..lifecycle.state_manager import DeviceLifecycleManager
from ..queries.query_engine import QueryEngine
from ..queries.snapshot_service import SnapshotStore
from ..queries.statistics_engine import StatisticsEngine
from ..storage.device_repository import DeviceRepository
from ..topics import ClassifiedTopic, MessageKind, TopicClassifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Publish:
    """Publicación MQTT pendiente."""

    topic: str
    payload: dict[str, Any]
    qos: int = 1
    retain: bool = False

    def encode(self) -> str:
        return json.dumps(self.payload, ensure_ascii=False)


def parse_json_payload(payload: bytes | str, topic: str) -> Any:
    try:
        text = payload.decode("utf-8") if isinstance(payload, (bytes, bytearray)) else payload
        return json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise MessageParseError(f"Invalid JSON on topic {topic}: {e}") from e


class MessageDispatcher:
    """Enruta cada mensaje entrante a su componente."""

    def __init__(
        self,
        classifier: TopicClassifier,
        lifecycle: DeviceLifecycleManager,
        devices: DeviceRepository,
        builder: LogRecordBuilder,
        query_engine: QueryEngine,
        statistics: StatisticsEngine,
        snapshots: SnapshotStore,
        query_response_topic: str,
        snapshot_response_topic: str,
        statistics_topic: Callable[[str], str],
    ):
        self._classifier = classifier
        self._lifecycle = lifecycle
        self._devices = devices
        self._builder = builder
        self._query_engine = query_engine
        self._statistics = statistics
        self._snapshots = snapshots
        self._query_response_topic = query_response_topic
        self._snapshot_response_topic = snapshot_response_topic
        self._statistics_topic = statistics_topic

    def handle(self, topic: str, payload: bytes | str) -> list[Publish]:
        classified = self._classifier.classify(topic)
        try:
            if classified.kind is MessageKind.UNMATCHED:
                raise MessageParseError(f"Unmatched topic {topic}")

            data = parse_json_payload(payload, topic)

            if classified.kind is MessageKind.QUERY_REQUEST:
                return self._handle_query(data)
            if classified.kind is MessageKind.STATISTICS_REQUEST:
                return self._handle_statistics(data)
            if classified.kind is MessageKind.SNAPSHOT_SAVE:
                self._snapshots.save_request(data)
                return []
            if classified.kind is MessageKind.SNAPSHOT_REQUEST:
                return self._handle_snapshot_request(data)
            return self._handle_device_event(classified, data)

        except MessageParseError as e:
            logger.debug("[DISPATCH] Dropped: %s", e)
        except DeviceNotFoundError as e:
            logger.warning("[DISPATCH] %s in registry. Skipping.", e)
        except RequestValidationError as e:
            logger.warning("[DISPATCH] Invalid request on %s: %s", topic, e)
        except StorageError as e:
            logger.error("[DISPATCH] Storage error on %s: %s", topic, e)
        except Exception as e:
            logger.exception("[DISPATCH] Unexpected error on %s: %s", topic, e)
        return []

    def _handle_query(self, data: Any) -> list[Publish]:
        response = self._query_engine.run(data)
        return [Publish(self._query_response_topic, response)]

    def _handle_statistics(self, data: Any) -> list[Publish]:
        try:
            request = self._statistics.parse(data)
        except RequestValidationError as e:
            rejected = self._statistics.rejection(data, e)
            if rejected is None:
                raise
            logger.warning("[DISPATCH] Invalid statistics request for %s: %s", rejected.device_id, e)
            return [Publish(self._statistics_topic(rejected.device_id), rejected.to_payload())]

        logger.info("[DISPATCH] Processing statistics request for: %s", request.device_id)
        results = self._statistics.compute(request)
        return [Publish(self._statistics_topic(r.device_id), r.to_payload()) for r in results]

    def _handle_snapshot_request(self, data: Any) -> list[Publish]:
        request = self._snapshots.parse_request(data)
        response = self._snapshots.respond(request)
        return [Publish(request.response_topic or self._snapshot_response_topic, response)]

    def _handle_device_event(self, classified: ClassifiedTopic, data: Any) -> list[Publish]:
        if not isinstance(data, dict):
            raise MessageParseError(f"Payload on {classified.topic} is not a JSON object")

        device_id = classified.device_id
        decision = self._lifecycle.gate(device_id, data.get("log_code"), data.get("message"))
        if not decision.should_process:
            return []

        if classified.kind is not MessageKind.LOG_EVENT:
            return []

        logger.debug("[DISPATCH] Message arrived on topic: %s", classified.topic)
        device = self._devices.require_device(device_id)
        self._builder.build_and_store(
            device_id=device_id,
            log_level=classified.log_level,
            payload=data,
            topic=classified.topic,
            device=device,
        )
        return []
