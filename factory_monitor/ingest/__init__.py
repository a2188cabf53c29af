"""Ingesta de eventos de log."""

from .log_builder import LogRecord, LogRecordBuilder, group_collection_name, sanitize_group_name

__all__ = [
    "LogRecord",
    "LogRecordBuilder",
    "group_collection_name",
    "sanitize_group_name",
]
