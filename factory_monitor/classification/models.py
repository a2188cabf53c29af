"""Modelos de datos para clasificación de eventos de log.

Dataclasses y enums compartidos por el evaluador de severidad,
el constructor de registros y los repositorios.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

# Códigos de log con semántica propia
LOG_CODE_TEMPERATURE = "TMP"
LOG_CODE_SPEED = "SPD"
LOG_CODE_SHUTDOWN = "SHD"
LOG_CODE_START = "STR"

NOT_AVAILABLE = "N/A"


class Severity(Enum):
    """Nivel de severidad de un evento."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"
    UNKNOWN = "UNKNOWN"  # Dispositivo sin tabla de umbrales

    @property
    def rank(self) -> int:
        """Orden LOW < MEDIUM < HIGH < CRITICAL; UNKNOWN queda fuera (-1)."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.UNKNOWN: -1,
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


@dataclass(frozen=True)
class Device:
    """Entrada del registro de dispositivos (solo lectura)."""

    device_id: str
    device_code: Optional[str] = None
    device_name: Optional[str] = None
    device_type: Optional[str] = None
    location: Optional[str] = None
    log_group: Optional[str] = None
    thresholds: Optional[dict[str, Any]] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Device":
        """Construye el dispositivo desde una fila de `devices`."""
        thresholds = row.get("thresholds")
        if isinstance(thresholds, str):
            try:
                thresholds = json.loads(thresholds) if thresholds.strip() else None
            except ValueError:
                # Tabla ilegible: el evaluador la trata como umbral malformado (MEDIUM)
                thresholds = {}
        return cls(
            device_id=row["id"],
            device_code=row.get("device_code"),
            device_name=row.get("device_name"),
            device_type=row.get("device_type"),
            location=row.get("location"),
            log_group=row.get("log_group"),
            thresholds=thresholds,
        )
