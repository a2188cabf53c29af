"""Motor de consultas sobre la colección agregada de logs.

Nunca lanza excepciones hacia el llamador: tipo de query no soportado,
filtros inválidos o fallos de BD se devuelven como respuesta de error
con el query_id original.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from ..errors import RequestValidationError, StorageError
from ..storage.log_repository import LogCriteria, LogRepository
from .schemas import QUERY_TYPE_LOGS, QueryRequest

logger = logging.getLogger(__name__)

PROJECTED_FIELDS = (
    "_id",
    "device_id",
    "device_name",
    "log_level",
    "log_code",
    "severity",
    "message",
    "location",
    "timestamp",
)


def error_response(query_id: str, error: str) -> dict[str, Any]:
    return {"query_id": query_id, "status": "error", "error": error}


def _raw_query_id(raw: Any) -> str:
    if isinstance(raw, Mapping):
        value = raw.get("query_id", "")
        return "" if value is None else str(value)
    return ""


class QueryEngine:
    """Traduce peticiones de query a lecturas acotadas y ordenadas."""

    def __init__(self, repository: LogRepository, all_logs_collection: str = "logs_all"):
        self._repository = repository
        self._collection = all_logs_collection

    def parse(self, raw: Any) -> QueryRequest:
        if not isinstance(raw, Mapping):
            raise RequestValidationError("Query request must be a JSON object")
        try:
            request = QueryRequest.model_validate(raw)
        except ValidationError as e:
            raise RequestValidationError(f"Invalid query request: {e.errors()[0]['msg']}") from e
        if request.query_type != QUERY_TYPE_LOGS:
            raise RequestValidationError("Unsupported query type")
        return request

    def run(self, raw: Any) -> dict[str, Any]:
        query_id = _raw_query_id(raw)
        try:
            request = self.parse(raw)
        except RequestValidationError as e:
            logger.warning("[QUERY] Rejected %s: %s", query_id or "-", e)
            return error_response(query_id, str(e))

        filters = request.filters
        time_range = filters.time_range
        # El rango solo filtra con ambos extremos; uno suelto se ignora
        if time_range is not None and (time_range.start is None or time_range.end is None):
            time_range = None
        criteria = LogCriteria(
            device_id=filters.device_id,
            log_level=filters.log_level,
            log_code=filters.log_code,
            severity=filters.severity,
            start=time_range.start if time_range else None,
            end=time_range.end if time_range else None,
        )

        try:
            documents = self._repository.find(self._collection, criteria, filters.limit)
        except StorageError as e:
            logger.error("[QUERY] Error processing query %s: %s", request.query_id, e)
            return error_response(request.query_id, str(e))

        data = [{k: doc[k] for k in PROJECTED_FIELDS if doc.get(k) is not None} for doc in documents]
        logger.info("[QUERY] Query processed: %s (%d results)", request.query_id, len(data))
        return {
            "query_id": request.query_id,
            "status": "success",
            "count": len(data),
            "data": data,
        }
