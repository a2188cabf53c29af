"""Gestor del ciclo de vida de dispositivos.

Máquina de estados ACTIVE ⇄ SHUTDOWN:
- ACTIVE → SHUTDOWN: log_code SHD y message == device_id (auto-atestación)
- SHUTDOWN → ACTIVE: log_code STR, sin condiciones
- STR se evalúa ANTES de la compuerta para que el dispositivo pueda
  reactivarse a sí mismo.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Optional

from ..classification.models import LOG_CODE_SHUTDOWN, LOG_CODE_START
from ..errors import StorageError
from .state_models import DeviceState, GateDecision
from .state_repository import DeviceStateFile

logger = logging.getLogger(__name__)


class DeviceLifecycleManager:
    """Mantiene el conjunto de dispositivos apagados y la compuerta de eventos."""

    def __init__(self, repository: DeviceStateFile):
        self._repository = repository
        self._lock = threading.RLock()
        self._shutdown_devices: set[str] = set()
        self._load()

    def _load(self) -> None:
        try:
            self._shutdown_devices = self._repository.load()
        except StorageError as e:
            logger.error("[LIFECYCLE] %s; starting with no shutdown devices", e)
            self._shutdown_devices = set()
        logger.info("[LIFECYCLE] Loaded %d shutdown devices", len(self._shutdown_devices))

    def _persist(self) -> None:
        # Se llama con el lock tomado
        try:
            self._repository.save(self._shutdown_devices)
        except StorageError as e:
            logger.error("[LIFECYCLE] State not persisted: %s", e)

    def state_of(self, device_id: str) -> DeviceState:
        with self._lock:
            if device_id in self._shutdown_devices:
                return DeviceState.SHUTDOWN
            return DeviceState.ACTIVE

    def is_shutdown(self, device_id: str) -> bool:
        return self.state_of(device_id) is DeviceState.SHUTDOWN

    def shutdown_devices(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._shutdown_devices)

    def mark_shutdown(self, device_id: str) -> bool:
        """ACTIVE → SHUTDOWN. Devuelve True si hubo transición real."""
        with self._lock:
            if device_id in self._shutdown_devices:
                return False
            self._shutdown_devices.add(device_id)
            self._persist()
        logger.info("[LIFECYCLE] Device %s marked as shutdown", device_id)
        return True

    def mark_active(self, device_id: str) -> bool:
        """SHUTDOWN → ACTIVE. Devuelve True si hubo transición real."""
        with self._lock:
            if device_id not in self._shutdown_devices:
                return False
            self._shutdown_devices.discard(device_id)
            self._persist()
        logger.info("[LIFECYCLE] Device %s started", device_id)
        return True

    def gate(self, device_id: str, log_code: Optional[str], message: Any) -> GateDecision:
        """Aplica eventos de control y decide si el evento sigue el pipeline."""
        with self._lock:
            if log_code == LOG_CODE_SHUTDOWN:
                if message == device_id:
                    self.mark_shutdown(device_id)
                else:
                    logger.warning(
                        "[LIFECYCLE] Ignoring shutdown for %s: message does not match device id",
                        device_id,
                    )
                return GateDecision.CONTROL_CONSUMED

            if log_code == LOG_CODE_START:
                self.mark_active(device_id)

            if device_id in self._shutdown_devices:
                logger.debug("[LIFECYCLE] Event from shutdown device %s suppressed", device_id)
                return GateDecision.SUPPRESSED

            return GateDecision.PASS
