"""Motor de estadísticas de velocidad por dispositivo.

Por dispositivo, sobre los logs SPD cuyo message es un entero no negativo
dentro de la ventana (por defecto, últimas 24 horas):
- average: media aritmética truncada a entero (0 si no hay lecturas)
- current_speed: valor de la lectura más reciente (0 si no hay)

DEDUPLICACIÓN: se recuerda solo el último request_id visto. Un request
con el mismo id se descarta completo; cualquier id distinto lo reemplaza.
"""

from __future__ import annotations

import logging
import re
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Union

from pydantic import ValidationError

from ..classification.models import LOG_CODE_SPEED
from ..errors import RequestValidationError, StorageError
from ..storage.log_repository import LogRepository
from .schemas import ALL_DEVICES, StatisticsRequest

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 24 * 60 * 60 * 1000

# Hasta 18 dígitos: cabe en BIGINT
MAX_SPEED_DIGITS = 18
_INTEGER_MESSAGE = re.compile(rf"[0-9]{{1,{MAX_SPEED_DIGITS}}}")

RequestId = Union[str, int, None]


def is_speed_reading(message: Any) -> bool:
    return isinstance(message, str) and _INTEGER_MESSAGE.fullmatch(message) is not None


@dataclass(frozen=True)
class StatisticsResult:
    """Resultado publicado por dispositivo."""

    device_id: str
    average: int
    current_speed: int
    request_id: RequestId = None
    error: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "device_id": self.device_id,
            "average": self.average,
            "current_speed": self.current_speed,
        }
        if self.request_id is not None:
            payload["request_id"] = self.request_id
        if self.error is not None:
            payload["error"] = self.error
        return payload


class StatisticsEngine:
    """Calcula average/current de velocidad con deduplicación de un slot."""

    def __init__(
        self,
        repository: LogRepository,
        all_logs_collection: str = "logs_all",
        log_code: str = LOG_CODE_SPEED,
        window_ms: int = DEFAULT_WINDOW_MS,
        clock: Callable[[], float] = time.time,
    ):
        self._repository = repository
        self._collection = all_logs_collection
        self._log_code = log_code
        self._window_ms = window_ms
        self._clock = clock

        self._lock = threading.Lock()
        self._last_request_id: RequestId = None

    @property
    def last_request_id(self) -> RequestId:
        return self._last_request_id

    def parse(self, raw: Any) -> StatisticsRequest:
        if not isinstance(raw, dict):
            raise RequestValidationError("Statistics request must be a JSON object")
        try:
            return StatisticsRequest.model_validate(raw)
        except ValidationError as e:
            raise RequestValidationError(f"Invalid statistics request: {e.errors()[0]['msg']}") from e

    def rejection(self, raw: Any, error: Exception) -> Optional[StatisticsResult]:
        """Resultado de error para una petición inválida que nombra un dispositivo.

        None si no hay un device_id concreto al que responder.
        """
        if not isinstance(raw, dict):
            return None
        device_id = raw.get("device_id")
        if not isinstance(device_id, str) or not device_id.strip():
            return None
        device_id = device_id.strip()
        if device_id.casefold() == ALL_DEVICES.casefold():
            return None

        request_id = raw.get("request_id")
        if isinstance(request_id, bool) or not isinstance(request_id, (str, int)):
            request_id = None

        return StatisticsResult(
            device_id=device_id,
            average=0,
            current_speed=0,
            request_id=request_id,
            error=str(error),
        )

    def is_duplicate(self, request_id: RequestId) -> bool:
        """Comprueba y actualiza el slot de deduplicación."""
        if request_id is None:
            return False
        with self._lock:
            if request_id == self._last_request_id:
                return True
            self._last_request_id = request_id
            return False

    def window(self, request: StatisticsRequest) -> tuple[int, int]:
        now = int(self._clock() * 1000)
        start = now - self._window_ms
        end = now
        if request.time_range is not None:
            if request.time_range.start is not None:
                start = request.time_range.start
            if request.time_range.end is not None:
                end = request.time_range.end
        return start, end

    def compute(self, request: StatisticsRequest) -> list[StatisticsResult]:
        if self.is_duplicate(request.request_id):
            logger.info("[STATS] Duplicate request_id=%s dropped", request.request_id)
            return []

        start, end = self.window(request)

        if request.targets_all_devices:
            return self._compute_all(start, end, request.request_id)

        try:
            return [self.compute_device(request.device_id, start, end, request.request_id)]
        except StorageError as e:
            logger.error("[STATS] Statistics for %s failed: %s", request.device_id, e)
            return [
                StatisticsResult(
                    device_id=request.device_id,
                    average=0,
                    current_speed=0,
                    request_id=request.request_id,
                    error=str(e),
                )
            ]

    def compute_device(
        self,
        device_id: str,
        start: int,
        end: int,
        request_id: RequestId = None,
    ) -> StatisticsResult:
        rows = self._repository.find_messages(self._collection, device_id, self._log_code, start, end)
        # rows vienen ordenadas de más reciente a más antigua
        values = [int(message) for message, _ in rows if is_speed_reading(message)]

        average = sum(values) // len(values) if values else 0
        current = values[0] if values else 0

        logger.debug(
            "[STATS] device=%s readings=%d average=%d current=%d",
            device_id,
            len(values),
            average,
            current,
        )
        return StatisticsResult(
            device_id=device_id,
            average=average,
            current_speed=current,
            request_id=request_id,
        )

    def devices_with_readings(self, start: int, end: int) -> list[str]:
        rows = self._repository.device_messages(self._collection, self._log_code, start, end)
        return sorted({device_id for device_id, message in rows if is_speed_reading(message)})

    def _compute_all(self, start: int, end: int, request_id: RequestId) -> list[StatisticsResult]:
        try:
            device_ids = self.devices_with_readings(start, end)
        except StorageError as e:
            logger.error("[STATS] Device enumeration failed: %s", e)
            return []

        logger.info("[STATS] Computing statistics for %d devices", len(device_ids))

        results = []
        for device_id in device_ids:
            try:
                results.append(self.compute_device(device_id, start, end, request_id))
            except StorageError as e:
                logger.error("[STATS] Statistics for %s failed: %s", device_id, e)
            except Exception as e:
                logger.exception("[STATS] Unexpected error computing %s: %s", device_id, e)
        return results
