"""Schemas de validación para peticiones de query y estadísticas.

Formato de query:
{
    "query_id": "q-123",
    "query_type": "logs",
    "filters": {
        "device_id": "dev1",
        "log_level": "ERROR",
        "log_code": "TMP",
        "severity": "CRITICAL",
        "time_range": {"start": 1700000000000, "end": 1700003600000},
        "limit": 50
    }
}

Formato de estadísticas:
{
    "device_id": "dev1" | "All",
    "request_id": "r-1",
    "time_range": {"start": ..., "end": ...}
}
"""

from __future__ import annotations

from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

QUERY_TYPE_LOGS = "logs"
DEFAULT_QUERY_LIMIT = 100
MAX_QUERY_LIMIT = 1000
ALL_DEVICES = "All"


class TimeRange(BaseModel):
    """Rango temporal en epoch ms, inclusivo en ambos extremos."""

    model_config = ConfigDict(extra="ignore")

    start: Optional[int] = None
    end: Optional[int] = None


class QueryFilters(BaseModel):
    model_config = ConfigDict(extra="ignore")

    device_id: Optional[str] = None
    log_level: Optional[str] = None
    log_code: Optional[str] = None
    severity: Optional[str] = None
    time_range: Optional[TimeRange] = None
    limit: int = Field(default=DEFAULT_QUERY_LIMIT, ge=1, le=MAX_QUERY_LIMIT)

    @field_validator("limit", mode="before")
    @classmethod
    def default_limit(cls, v):
        return DEFAULT_QUERY_LIMIT if v is None else v


class QueryRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    query_id: str = ""
    query_type: str = ""
    filters: QueryFilters = Field(default_factory=QueryFilters)

    @field_validator("query_id", mode="before")
    @classmethod
    def stringify_query_id(cls, v):
        if v is None:
            return ""
        return v if isinstance(v, str) else str(v)

    @field_validator("filters", mode="before")
    @classmethod
    def default_filters(cls, v):
        return {} if v is None else v


class StatisticsRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    device_id: str
    request_id: Optional[Union[str, int]] = None
    time_range: Optional[TimeRange] = None

    @field_validator("device_id")
    @classmethod
    def validate_device_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("device_id is required")
        return v.strip()

    @property
    def targets_all_devices(self) -> bool:
        return self.device_id.casefold() == ALL_DEVICES.casefold()


class SnapshotRequest(BaseModel):
    """Petición de lectura del último snapshot de un dispositivo."""

    model_config = ConfigDict(extra="ignore")

    device_id: str
    request_id: Optional[Union[str, int]] = None
    response_topic: Optional[str] = None

    @field_validator("device_id")
    @classmethod
    def validate_device_id(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("device_id is required")
        return v.strip()
