"""Construcción y almacenamiento de registros de log.

Flujo:
  payload de log + dispositivo
  → severidad (SeverityEvaluator)
  → id estructurado {device_code}-{log_code}-{ulid}
  → log_group / log_stream
  → colección del grupo (logs_{grupo}) + colección agregada (logs_all)

Las dos escrituras son independientes: si una falla, se registra en log
y se intenta la otra. No hay reintentos.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from ..classification.models import NOT_AVAILABLE, Device, Severity
from ..classification.severity import SeverityEvaluator
from ..errors import StorageError
from ..identifiers import generate_ulid
from ..storage.log_repository import LogRepository

logger = logging.getLogger(__name__)

DEFAULT_LOG_CODE = "UNKNOWN"
DEFAULT_DEVICE_CODE = "NA"
DEFAULT_LOG_GROUP = "unknown_group"
GROUP_COLLECTION_PREFIX = "logs_"


def sanitize_group_name(log_group: str) -> str:
    """'/factory/line-a/robots' → 'factory_line_a_robots'."""
    return log_group.replace("/", "_").replace("-", "_").lstrip("_")


def group_collection_name(log_group: str) -> str:
    return GROUP_COLLECTION_PREFIX + sanitize_group_name(log_group)


def _event_timestamp(value: Any, fallback: int) -> int:
    # Solo enteros (epoch ms); cualquier otro valor usa la hora de ingesta
    if isinstance(value, bool) or not isinstance(value, int):
        return fallback
    return value


@dataclass(frozen=True)
class LogRecord:
    """Documento canónico de log. Inmutable una vez construido."""

    id: str
    log_group: str
    log_stream: str
    device_id: str
    device_name: str
    device_type: str
    location: str
    log_code: str
    severity: Severity
    log_level: str
    message: str
    timestamp: int
    ingestion_time: int
    topic: str
    metadata: Optional[Mapping[str, Any]] = field(default=None)

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "_id": self.id,
            "log_group": self.log_group,
            "log_stream": self.log_stream,
            "device_id": self.device_id,
            "device_name": self.device_name,
            "device_type": self.device_type,
            "location": self.location,
            "log_code": self.log_code,
            "severity": self.severity.value,
            "log_level": self.log_level,
            "message": self.message,
            "timestamp": self.timestamp,
            "ingestion_time": self.ingestion_time,
            "topic": self.topic,
        }
        if self.metadata is not None:
            doc["metadata"] = dict(self.metadata)
        return doc


class LogRecordBuilder:
    """Compone registros de log y los envía al almacenamiento."""

    def __init__(
        self,
        evaluator: SeverityEvaluator,
        repository: LogRepository,
        all_logs_collection: str = "logs_all",
        clock: Callable[[], float] = time.time,
    ):
        self._evaluator = evaluator
        self._repository = repository
        self._all_logs_collection = all_logs_collection
        self._clock = clock

    def build(
        self,
        device_id: str,
        log_level: str,
        payload: Mapping[str, Any],
        topic: str,
        device: Device,
    ) -> LogRecord:
        ingestion_time = int(self._clock() * 1000)
        log_code = payload.get("log_code") or DEFAULT_LOG_CODE
        if not isinstance(log_code, str):
            log_code = str(log_code)

        metadata = payload.get("metadata")
        if not isinstance(metadata, dict):
            metadata = None

        message = payload.get("message", "")
        if not isinstance(message, str):
            message = "" if message is None else str(message)

        day = datetime.fromtimestamp(ingestion_time / 1000, tz=timezone.utc).strftime("%Y/%m/%d")

        return LogRecord(
            id=f"{device.device_code or DEFAULT_DEVICE_CODE}-{log_code}-{generate_ulid(ingestion_time)}",
            log_group=device.log_group or DEFAULT_LOG_GROUP,
            log_stream=f"{device_id}/{day}/{log_level}",
            device_id=device_id,
            device_name=device.device_name or NOT_AVAILABLE,
            device_type=device.device_type or NOT_AVAILABLE,
            location=device.location or NOT_AVAILABLE,
            log_code=log_code,
            severity=self._evaluator.evaluate(log_code, metadata, device.thresholds),
            log_level=log_level,
            message=message,
            timestamp=_event_timestamp(payload.get("timestamp"), ingestion_time),
            ingestion_time=ingestion_time,
            topic=topic,
            metadata=metadata,
        )

    def store(self, record: LogRecord, device: Device) -> list[str]:
        """Escribe el registro en sus colecciones. Devuelve las colecciones escritas."""
        document = record.to_document()
        targets = []
        if device.log_group:
            targets.append(group_collection_name(device.log_group))
        targets.append(self._all_logs_collection)

        written = []
        for collection in targets:
            try:
                self._repository.insert(collection, document)
                written.append(collection)
            except StorageError as e:
                logger.error("[LOG_BUILDER] Write to %s failed for %s: %s", collection, record.id, e)
        return written

    def build_and_store(
        self,
        device_id: str,
        log_level: str,
        payload: Mapping[str, Any],
        topic: str,
        device: Optional[Device],
    ) -> Optional[LogRecord]:
        if device is None:
            logger.warning("[LOG_BUILDER] Device '%s' not found in registry. Skipping.", device_id)
            return None

        record = self.build(device_id, log_level, payload, topic, device)
        written = self.store(record, device)

        logger.info(
            "[LOG_BUILDER] Saved %s device=%s log_code=%s severity=%s stream=%s collections=%s",
            record.id,
            device_id,
            record.log_code,
            record.severity.value,
            record.log_stream,
            ",".join(written) or "-",
        )
        return record
