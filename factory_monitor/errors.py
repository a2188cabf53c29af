"""Taxonomía de errores del servicio.

- MessageParseError: cuerpo malformado o topic sin match → se descarta el evento.
- DeviceNotFoundError: dispositivo ausente del registro → se descarta el evento.
- RequestValidationError: petición inválida → respuesta de error estructurada.
- StorageError: fallo de lectura/escritura en BD → log + respuesta de error
  en flujos request/response.
"""

from __future__ import annotations


class FactoryMonitorError(Exception):
    """Base de todos los errores del servicio."""


class MessageParseError(FactoryMonitorError):
    """Mensaje con JSON inválido o topic no reconocido."""


class DeviceNotFoundError(FactoryMonitorError, LookupError):
    """El dispositivo no existe en el registro de dispositivos."""

    def __init__(self, device_id: str):
        super().__init__(f"Device '{device_id}' not found")
        self.device_id = device_id


class RequestValidationError(FactoryMonitorError, ValueError):
    """Petición de query/estadísticas con campos inválidos o no soportados."""


class StorageError(FactoryMonitorError):
    """Fallo del almacenamiento subyacente."""
