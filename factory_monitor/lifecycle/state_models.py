"""Modelos de estado del ciclo de vida del dispositivo."""

from __future__ import annotations

from enum import Enum


class DeviceState(Enum):
    """Estados del dispositivo."""

    ACTIVE = "ACTIVE"      # Estado inicial, sus eventos se procesan
    SHUTDOWN = "SHUTDOWN"  # Suprimido hasta recibir STR


class GateDecision(Enum):
    """Resultado de pasar un evento por la compuerta de ciclo de vida."""

    PASS = "pass"                # Continúa el pipeline
    CONTROL_CONSUMED = "control"  # Evento SHD: se aplica y no se almacena
    SUPPRESSED = "suppressed"    # Dispositivo apagado: se descarta en silencio

    @property
    def should_process(self) -> bool:
        return self is GateDecision.PASS
