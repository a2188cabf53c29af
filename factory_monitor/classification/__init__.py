"""Módulo de clasificación de eventos.

Estructura modular:
- models.py: Severity, Device y códigos de log
- severity.py: Registro de reglas de severidad por log_code
"""

from .models import (
    LOG_CODE_SHUTDOWN,
    LOG_CODE_SPEED,
    LOG_CODE_START,
    LOG_CODE_TEMPERATURE,
    NOT_AVAILABLE,
    Device,
    Severity,
)
from .severity import SeverityEvaluator, create_default_evaluator, tiered_threshold_rule

__all__ = [
    "LOG_CODE_SHUTDOWN",
    "LOG_CODE_SPEED",
    "LOG_CODE_START",
    "LOG_CODE_TEMPERATURE",
    "NOT_AVAILABLE",
    "Device",
    "Severity",
    "SeverityEvaluator",
    "create_default_evaluator",
    "tiered_threshold_rule",
]
