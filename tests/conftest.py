"""Fixtures compartidos: engine SQLite en memoria con el esquema creado."""

import json
from typing import Any, Dict, Optional

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.pool import StaticPool

from common.config import get_settings
from factory_monitor.storage import init_schema


TMP_THRESHOLDS = {"temperature": {"medium": 60, "high": 75, "critical": 90}}


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """Engine SQLite en memoria compartido entre conexiones."""
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    init_schema(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings por defecto con el archivo de estado en un directorio temporal."""
    monkeypatch.setenv("FACTORY_ENV_FILE", str(tmp_path / "missing.env"))
    monkeypatch.setenv("DEVICE_STATE_FILE", str(tmp_path / "device_states.txt"))
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    for key in ("TOPIC_ROOT", "MQTT_TOPIC", "QUERY_REQUEST_TOPIC", "QUERY_RESPONSE_TOPIC",
                "STATISTICS_REQUEST_TOPIC", "SNAPSHOT_SAVE_TOPIC", "SNAPSHOT_REQUEST_TOPIC",
                "SNAPSHOT_RESPONSE_TOPIC", "ALL_LOGS_COLLECTION"):
        monkeypatch.delenv(key, raising=False)
    return get_settings()


def insert_device(
    engine,
    device_id: str,
    device_code: Optional[str] = "D1",
    log_group: Optional[str] = "/factory/line-a",
    thresholds: Optional[Dict[str, Any]] = None,
    device_name: Optional[str] = "Press 1",
    device_type: Optional[str] = "press",
    location: Optional[str] = "Hall A",
) -> None:
    """Registra un dispositivo en la tabla devices."""
    with engine.begin() as conn:
        conn.execute(
            text("""
                INSERT INTO devices (id, device_code, device_name, device_type,
                                     location, log_group, thresholds)
                VALUES (:id, :device_code, :device_name, :device_type,
                        :location, :log_group, :thresholds)
            """),
            {
                "id": device_id,
                "device_code": device_code,
                "device_name": device_name,
                "device_type": device_type,
                "location": location,
                "log_group": log_group,
                "thresholds": json.dumps(thresholds) if thresholds is not None else None,
            },
        )


def log_document(doc_id: str, device_id: str = "dev1", timestamp: int = 1_000, **overrides) -> Dict[str, Any]:
    """Documento de log mínimo para insertar directamente en el repositorio."""
    doc = {
        "_id": doc_id,
        "log_group": "line_a",
        "log_stream": f"{device_id}/2024/01/01/INFO",
        "device_id": device_id,
        "device_name": "Press 1",
        "device_type": "press",
        "location": "Hall A",
        "log_code": "SPD",
        "severity": "MEDIUM",
        "log_level": "INFO",
        "message": "0",
        "timestamp": timestamp,
        "ingestion_time": timestamp,
        "topic": f"factory/{device_id}/log/INFO",
    }
    doc.update(overrides)
    return doc
