"""Ensamblado del servicio.

build_dispatcher conecta clasificador, ciclo de vida, repositorios y
motores sobre un único engine. El receptor singleton vive aquí para que
la app FastAPI y el CLI compartan la misma instancia.
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.engine import Engine

from common.config import Settings, get_settings
from common.db import get_engine

from .classification import create_default_evaluator
from .ingest import LogRecordBuilder
from .lifecycle import DeviceLifecycleManager, DeviceStateFile
from .mqtt import FactoryMQTTReceiver, MessageDispatcher
from .queries import QueryEngine, SnapshotStore, StatisticsEngine
from .storage import DeviceRepository, LogRepository, SnapshotRepository
from .topics import TopicClassifier

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Settings, engine: Engine) -> MessageDispatcher:
    logs = LogRepository(engine)

    return MessageDispatcher(
        classifier=TopicClassifier.from_settings(settings),
        lifecycle=DeviceLifecycleManager(DeviceStateFile(settings.device_state_file)),
        devices=DeviceRepository(engine),
        builder=LogRecordBuilder(
            create_default_evaluator(),
            logs,
            all_logs_collection=settings.all_logs_collection,
        ),
        query_engine=QueryEngine(logs, settings.all_logs_collection),
        statistics=StatisticsEngine(logs, settings.all_logs_collection),
        snapshots=SnapshotStore(SnapshotRepository(engine)),
        query_response_topic=settings.query_response_topic,
        snapshot_response_topic=settings.snapshot_response_topic,
        statistics_topic=settings.statistics_topic,
    )


def build_receiver(settings: Settings, engine: Engine) -> FactoryMQTTReceiver:
    return FactoryMQTTReceiver.from_settings(build_dispatcher(settings, engine), settings)


# Singleton
_receiver: Optional[FactoryMQTTReceiver] = None


def get_receiver() -> Optional[FactoryMQTTReceiver]:
    """Obtiene el receptor singleton."""
    return _receiver


def start_receiver(settings: Optional[Settings] = None) -> bool:
    """Inicia el receptor singleton."""
    global _receiver

    if _receiver is not None:
        return _receiver.is_running

    settings = settings or get_settings()
    _receiver = build_receiver(settings, get_engine(settings))
    return _receiver.start()


def stop_receiver():
    """Detiene el receptor singleton."""
    global _receiver

    if _receiver is not None:
        _receiver.stop()
        _receiver = None
