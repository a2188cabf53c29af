"""Repositorio de documentos de log.

Cada documento se guarda una vez por colección destino (logs_all y la
colección del grupo). La columna `collection` direcciona la colección.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError

logger = logging.getLogger(__name__)

# Campo de documento → columna
_FIELD_COLUMNS = {
    "_id": "id",
    "log_group": "log_group",
    "log_stream": "log_stream",
    "device_id": "device_id",
    "device_name": "device_name",
    "device_type": "device_type",
    "location": "location",
    "log_code": "log_code",
    "severity": "severity",
    "log_level": "log_level",
    "message": "message",
    "metadata": "metadata",
    "timestamp": "event_ts",
    "ingestion_time": "ingestion_ts",
    "topic": "topic",
}

_SELECT_COLUMNS = ", ".join(_FIELD_COLUMNS.values())


@dataclass(frozen=True)
class LogCriteria:
    """Filtro conjuntivo sobre documentos de log. None = sin filtro."""

    device_id: Optional[str] = None
    log_level: Optional[str] = None
    log_code: Optional[str] = None
    severity: Optional[str] = None
    start: Optional[int] = None  # inclusivo
    end: Optional[int] = None  # inclusivo

    def to_sql(self) -> tuple[list[str], dict[str, Any]]:
        clauses: list[str] = []
        params: dict[str, Any] = {}
        for name in ("device_id", "log_level", "log_code", "severity"):
            value = getattr(self, name)
            if value:
                clauses.append(f"{name} = :{name}")
                params[name] = value
        if self.start is not None:
            clauses.append("event_ts >= :start")
            params["start"] = int(self.start)
        if self.end is not None:
            clauses.append("event_ts <= :end")
            params["end"] = int(self.end)
        return clauses, params


def _row_to_document(row: Mapping[str, Any]) -> dict[str, Any]:
    doc = {field: row[column] for field, column in _FIELD_COLUMNS.items()}
    if doc["metadata"] is None:
        del doc["metadata"]
    else:
        doc["metadata"] = json.loads(doc["metadata"])
    return doc


class LogRepository:
    """Acceso a BD para documentos de log."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def insert(self, collection: str, document: Mapping[str, Any]) -> None:
        """Inserta un documento en la colección indicada."""
        params = {column: document.get(field) for field, column in _FIELD_COLUMNS.items()}
        if params["metadata"] is not None:
            params["metadata"] = json.dumps(params["metadata"])
        params["collection"] = collection

        try:
            with self._engine.begin() as conn:
                conn.execute(
                    text(f"""
                        INSERT INTO log_documents (collection, {_SELECT_COLUMNS})
                        VALUES (
                            :collection, :id, :log_group, :log_stream, :device_id,
                            :device_name, :device_type, :location, :log_code,
                            :severity, :log_level, :message, :metadata,
                            :event_ts, :ingestion_ts, :topic
                        )
                    """),
                    params,
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Insert into {collection} failed: {e}") from e

    def find(self, collection: str, criteria: LogCriteria, limit: int) -> list[dict[str, Any]]:
        """Documentos que cumplen el filtro, más recientes primero."""
        clauses, params = criteria.to_sql()
        clauses.insert(0, "collection = :collection")
        params["collection"] = collection
        params["limit"] = int(limit)

        sql = f"""
            SELECT {_SELECT_COLUMNS}
            FROM log_documents
            WHERE {" AND ".join(clauses)}
            ORDER BY event_ts DESC, id DESC
            LIMIT :limit
        """
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(text(sql), params).mappings().all()
        except SQLAlchemyError as e:
            raise StorageError(f"Query on {collection} failed: {e}") from e

        return [_row_to_document(r) for r in rows]

    def find_messages(
        self,
        collection: str,
        device_id: str,
        log_code: str,
        start: int,
        end: int,
    ) -> list[tuple[str, int]]:
        """(message, timestamp) de un dispositivo en la ventana, más recientes primero."""
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(
                    text("""
                        SELECT message, event_ts
                        FROM log_documents
                        WHERE collection = :collection
                          AND device_id = :device_id
                          AND log_code = :log_code
                          AND event_ts >= :start
                          AND event_ts <= :end
                        ORDER BY event_ts DESC, id DESC
                    """),
                    {
                        "collection": collection,
                        "device_id": device_id,
                        "log_code": log_code,
                        "start": int(start),
                        "end": int(end),
                    },
                ).fetchall()
        except SQLAlchemyError as e:
            raise StorageError(f"Reading {log_code} messages for {device_id} failed: {e}") from e

        return [(r.message, int(r.event_ts)) for r in rows]

    def device_messages(
        self,
        collection: str,
        log_code: str,
        start: int,
        end: int,
    ) -> list[tuple[str, str]]:
        """(device_id, message) de todos los dispositivos para un log_code en la ventana."""
        try:
            with self._engine.connect() as conn:
                rows = conn.execute(
                    text("""
                        SELECT device_id, message
                        FROM log_documents
                        WHERE collection = :collection
                          AND log_code = :log_code
                          AND event_ts >= :start
                          AND event_ts <= :end
                    """),
                    {
                        "collection": collection,
                        "log_code": log_code,
                        "start": int(start),
                        "end": int(end),
                    },
                ).fetchall()
        except SQLAlchemyError as e:
            raise StorageError(f"Enumerating devices for {log_code} failed: {e}") from e

        return [(r.device_id, r.message) for r in rows]
