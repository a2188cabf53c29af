"""Store de snapshots de estadísticas.

save: extracción permisiva; cualquier campo anidado ausente o ilegible
toma su valor por defecto (0 / "") en lugar de invalidar el snapshot.
retrieve: último snapshot del dispositivo o respuesta not_found explícita.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from ..errors import RequestValidationError, StorageError
from ..identifiers import generate_ulid
from ..storage.snapshot_repository import SnapshotRepository, StatisticsSnapshot
from .schemas import SnapshotRequest

logger = logging.getLogger(__name__)


def _section(payload: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, Mapping) else {}


def _int_field(section: Mapping[str, Any], key: str) -> int:
    value = section.get(key)
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _float_field(section: Mapping[str, Any], key: str) -> float:
    value = section.get(key)
    if isinstance(value, bool):
        return 0.0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


class SnapshotStore:
    """Persistencia y lectura de snapshots por dispositivo."""

    def __init__(
        self,
        repository: SnapshotRepository,
        clock: Callable[[], float] = time.time,
    ):
        self._repository = repository
        self._clock = clock

    def build(self, device_id: str, payload: Mapping[str, Any]) -> StatisticsSnapshot:
        created_at = int(self._clock() * 1000)
        statistics = _section(payload, "statistics")
        time_range = _section(payload, "time_range")
        log_code = payload.get("log_code")

        return StatisticsSnapshot(
            id=generate_ulid(created_at),
            device_id=device_id,
            log_code=log_code if isinstance(log_code, str) else "",
            total=_int_field(statistics, "total"),
            pass_count=_int_field(statistics, "pass"),
            fail_count=_int_field(statistics, "fail"),
            failure_rate=_float_field(statistics, "failure_rate"),
            range_start=_int_field(time_range, "start"),
            range_end=_int_field(time_range, "end"),
            created_at=created_at,
        )

    def save(self, device_id: str, payload: Mapping[str, Any]) -> Optional[StatisticsSnapshot]:
        """Persiste un snapshot nuevo. Devuelve None si falla la escritura."""
        snapshot = self.build(device_id, payload)
        try:
            self._repository.insert(snapshot)
        except StorageError as e:
            logger.error("[SNAPSHOT] Save failed for %s: %s", device_id, e)
            return None
        logger.info("[SNAPSHOT] Saved %s for device=%s", snapshot.id, device_id)
        return snapshot

    def save_request(self, raw: Any) -> Optional[StatisticsSnapshot]:
        """Entrada desde el topic de guardado: requiere device_id."""
        if not isinstance(raw, Mapping):
            raise RequestValidationError("Snapshot payload must be a JSON object")
        device_id = raw.get("device_id")
        if not isinstance(device_id, str) or not device_id.strip():
            raise RequestValidationError("device_id is required")
        return self.save(device_id.strip(), raw)

    def retrieve(self, device_id: str) -> Optional[StatisticsSnapshot]:
        return self._repository.latest(device_id)

    def parse_request(self, raw: Any) -> SnapshotRequest:
        if not isinstance(raw, Mapping):
            raise RequestValidationError("Snapshot request must be a JSON object")
        try:
            return SnapshotRequest.model_validate(raw)
        except ValidationError as e:
            raise RequestValidationError(f"Invalid snapshot request: {e.errors()[0]['msg']}") from e

    def respond(self, request: SnapshotRequest) -> dict[str, Any]:
        """Respuesta publicable para una petición de snapshot."""
        response: dict[str, Any] = {"device_id": request.device_id}
        if request.request_id is not None:
            response["request_id"] = request.request_id

        try:
            snapshot = self.retrieve(request.device_id)
        except StorageError as e:
            logger.error("[SNAPSHOT] Retrieve failed for %s: %s", request.device_id, e)
            response.update(status="error", error=str(e))
            return response

        if snapshot is None:
            response.update(
                status="not_found",
                message=f"No statistics snapshot found for device {request.device_id}",
            )
            return response

        response.update(status="success", data=snapshot.to_document())
        return response
