"""Consultas y estadísticas sobre los logs persistidos.

Estructura modular:
- schemas.py: Validación de peticiones (pydantic)
- query_engine.py: Consultas filtradas sobre logs_all
- statistics_engine.py: Velocidad media/actual por dispositivo
- snapshot_service.py: Snapshots de estadísticas
"""

from .query_engine import QueryEngine
from .schemas import ALL_DEVICES, QueryRequest, SnapshotRequest, StatisticsRequest
from .snapshot_service import SnapshotStore
from .statistics_engine import StatisticsEngine, StatisticsResult

__all__ = [
    "ALL_DEVICES",
    "QueryEngine",
    "QueryRequest",
    "SnapshotRequest",
    "SnapshotStore",
    "StatisticsEngine",
    "StatisticsRequest",
    "StatisticsResult",
]
