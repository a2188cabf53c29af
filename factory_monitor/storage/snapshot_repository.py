"""Repositorio de snapshots de estadísticas."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageError


@dataclass(frozen=True)
class StatisticsSnapshot:
    """Snapshot persistido de estadísticas de un dispositivo."""

    id: str
    device_id: str
    log_code: str
    total: int
    pass_count: int
    fail_count: int
    failure_rate: float
    range_start: int
    range_end: int
    created_at: int

    def to_document(self) -> dict[str, Any]:
        return {
            "_id": self.id,
            "device_id": self.device_id,
            "log_code": self.log_code,
            "statistics": {
                "total": self.total,
                "pass": self.pass_count,
                "fail": self.fail_count,
                "failure_rate": self.failure_rate,
            },
            "time_range": {"start": self.range_start, "end": self.range_end},
            "created_at": self.created_at,
        }


class SnapshotRepository:
    """Acceso a BD para statistics_snapshots."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def insert(self, snapshot: StatisticsSnapshot) -> None:
        try:
            with self._engine.begin() as conn:
                conn.execute(
                    text("""
                        INSERT INTO statistics_snapshots (
                            id, device_id, log_code, total, pass_count, fail_count,
                            failure_rate, range_start, range_end, created_at
                        ) VALUES (
                            :id, :device_id, :log_code, :total, :pass_count, :fail_count,
                            :failure_rate, :range_start, :range_end, :created_at
                        )
                    """),
                    {
                        "id": snapshot.id,
                        "device_id": snapshot.device_id,
                        "log_code": snapshot.log_code,
                        "total": snapshot.total,
                        "pass_count": snapshot.pass_count,
                        "fail_count": snapshot.fail_count,
                        "failure_rate": snapshot.failure_rate,
                        "range_start": snapshot.range_start,
                        "range_end": snapshot.range_end,
                        "created_at": snapshot.created_at,
                    },
                )
        except SQLAlchemyError as e:
            raise StorageError(f"Saving statistics snapshot for {snapshot.device_id} failed: {e}") from e

    def latest(self, device_id: str) -> Optional[StatisticsSnapshot]:
        """Snapshot más reciente del dispositivo, o None."""
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    text("""
                        SELECT id, device_id, log_code, total, pass_count, fail_count,
                               failure_rate, range_start, range_end, created_at
                        FROM statistics_snapshots
                        WHERE device_id = :device_id
                        ORDER BY created_at DESC, id DESC
                        LIMIT 1
                    """),
                    {"device_id": device_id},
                ).mappings().first()
        except SQLAlchemyError as e:
            raise StorageError(f"Reading statistics snapshot for {device_id} failed: {e}") from e

        if row is None:
            return None
        return StatisticsSnapshot(
            id=row["id"],
            device_id=row["device_id"],
            log_code=row["log_code"] or "",
            total=int(row["total"]),
            pass_count=int(row["pass_count"]),
            fail_count=int(row["fail_count"]),
            failure_rate=float(row["failure_rate"]),
            range_start=int(row["range_start"]),
            range_end=int(row["range_end"]),
            created_at=int(row["created_at"]),
        )
