"""Evaluación de severidad de eventos de log.

Registro de reglas por log_code. Cada regla recibe (metadata, thresholds)
y devuelve un nivel de severidad. Reglas registradas por defecto:
- TMP: metadata["temperature"] contra thresholds["temperature"]

Política:
- Dispositivo sin tabla de umbrales → UNKNOWN
- log_code sin regla, campo ausente o malformado → MEDIUM
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from .models import LOG_CODE_TEMPERATURE, Severity

logger = logging.getLogger(__name__)

SeverityRule = Callable[[Mapping[str, Any], Mapping[str, Any]], Severity]

DEFAULT_SEVERITY = Severity.MEDIUM


def _as_number(value: Any) -> float:
    # bool es subclase de int; no es una lectura válida
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"expected a number, got {type(value).__name__}")
    return float(value)


def tiered_threshold_rule(metric: str) -> SeverityRule:
    """Regla genérica: compara metadata[metric] contra critical → high → medium."""

    def rule(metadata: Mapping[str, Any], thresholds: Mapping[str, Any]) -> Severity:
        reading = _as_number(metadata[metric])
        tiers = thresholds[metric]

        if reading >= _as_number(tiers["critical"]):
            return Severity.CRITICAL
        if reading >= _as_number(tiers["high"]):
            return Severity.HIGH
        if reading >= _as_number(tiers["medium"]):
            return Severity.MEDIUM
        return Severity.LOW

    return rule


class SeverityEvaluator:
    """Evalúa la severidad de un evento según las reglas registradas."""

    def __init__(self):
        self._rules: dict[str, SeverityRule] = {}

    def register(self, log_code: str, rule: SeverityRule) -> None:
        """Registra (o reemplaza) la regla de un log_code."""
        self._rules[log_code] = rule

    def has_rule(self, log_code: str) -> bool:
        return log_code in self._rules

    def evaluate(
        self,
        log_code: str,
        metadata: Optional[Mapping[str, Any]],
        thresholds: Optional[Mapping[str, Any]],
    ) -> Severity:
        if thresholds is None:
            return Severity.UNKNOWN

        rule = self._rules.get(log_code)
        if rule is None:
            return DEFAULT_SEVERITY

        try:
            return rule(metadata or {}, thresholds)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(
                "[SEVERITY] Rule for log_code=%s failed (%s: %s); using %s",
                log_code,
                type(e).__name__,
                e,
                DEFAULT_SEVERITY.value,
            )
            return DEFAULT_SEVERITY


def create_default_evaluator() -> SeverityEvaluator:
    """Evaluador con las reglas estándar de planta."""
    evaluator = SeverityEvaluator()
    evaluator.register(LOG_CODE_TEMPERATURE, tiered_threshold_rule("temperature"))
    return evaluator
