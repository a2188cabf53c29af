"""Almacenamiento de documentos sobre SQLAlchemy.

Estructura modular:
- schema.py: DDL y creación de tablas
- device_repository.py: Registro de dispositivos (solo lectura)
- log_repository.py: Documentos de log por colección
- snapshot_repository.py: Snapshots de estadísticas
"""

from .device_repository import DeviceRepository
from .log_repository import LogCriteria, LogRepository
from .schema import init_schema
from .snapshot_repository import SnapshotRepository, StatisticsSnapshot

__all__ = [
    "DeviceRepository",
    "LogCriteria",
    "LogRepository",
    "SnapshotRepository",
    "StatisticsSnapshot",
    "init_schema",
]
