"""Creación del esquema de almacenamiento.

Tablas:
- devices: registro de dispositivos (lo mantiene otro sistema; aquí solo se crea)
- log_documents: un documento de log por colección (logs_all, logs_{grupo})
- statistics_snapshots: snapshots de estadísticas por dispositivo

DDL portable entre PostgreSQL y SQLite (tests).
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS devices (
        id VARCHAR(128) PRIMARY KEY,
        device_code VARCHAR(64),
        device_name VARCHAR(255),
        device_type VARCHAR(128),
        location VARCHAR(255),
        log_group VARCHAR(255),
        thresholds TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS log_documents (
        collection VARCHAR(255) NOT NULL,
        id VARCHAR(255) NOT NULL,
        log_group VARCHAR(255),
        log_stream VARCHAR(512),
        device_id VARCHAR(128) NOT NULL,
        device_name VARCHAR(255),
        device_type VARCHAR(128),
        location VARCHAR(255),
        log_code VARCHAR(64),
        severity VARCHAR(16),
        log_level VARCHAR(32),
        message TEXT,
        metadata TEXT,
        event_ts BIGINT NOT NULL,
        ingestion_ts BIGINT NOT NULL,
        topic VARCHAR(512),
        PRIMARY KEY (collection, id)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_log_documents_device_ts
        ON log_documents (collection, device_id, event_ts)
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_log_documents_code_ts
        ON log_documents (collection, log_code, event_ts)
    """,
    """
    CREATE TABLE IF NOT EXISTS statistics_snapshots (
        id VARCHAR(64) PRIMARY KEY,
        device_id VARCHAR(128) NOT NULL,
        log_code VARCHAR(64),
        total BIGINT NOT NULL DEFAULT 0,
        pass_count BIGINT NOT NULL DEFAULT 0,
        fail_count BIGINT NOT NULL DEFAULT 0,
        failure_rate DOUBLE PRECISION NOT NULL DEFAULT 0,
        range_start BIGINT NOT NULL DEFAULT 0,
        range_end BIGINT NOT NULL DEFAULT 0,
        created_at BIGINT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS ix_statistics_snapshots_device_created
        ON statistics_snapshots (device_id, created_at)
    """,
)


def init_schema(engine: Engine) -> None:
    """Crea tablas e índices si no existen."""
    try:
        with engine.begin() as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(text(statement))
    except SQLAlchemyError as e:
        logger.exception("[DB] Schema creation failed")
        raise StorageError(f"Schema creation failed: {e}") from e
    logger.info("[DB] Schema ready (%d statements)", len(SCHEMA_STATEMENTS))
