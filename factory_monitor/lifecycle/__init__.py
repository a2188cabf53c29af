"""Ciclo de vida de dispositivos (ACTIVE / SHUTDOWN).

Estructura modular:
- state_models.py: DeviceState y GateDecision
- state_repository.py: Persistencia en archivo de líneas
- state_manager.py: Máquina de estados y compuerta de eventos
"""

from .state_manager import DeviceLifecycleManager
from .state_models import DeviceState, GateDecision
from .state_repository import DeviceStateFile

__all__ = [
    "DeviceLifecycleManager",
    "DeviceState",
    "DeviceStateFile",
    "GateDecision",
]
