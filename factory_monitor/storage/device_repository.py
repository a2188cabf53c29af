"""Repositorio del registro de dispositivos - solo lectura."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from ..classification.models import Device
from ..errors import DeviceNotFoundError, StorageError


class DeviceRepository:
    """Acceso a BD para la tabla devices."""

    def __init__(self, engine: Engine):
        self._engine = engine

    def get_device(self, device_id: str) -> Optional[Device]:
        """Obtiene el dispositivo o None si no está registrado."""
        try:
            with self._engine.connect() as conn:
                row = conn.execute(
                    text("""
                        SELECT id, device_code, device_name, device_type,
                               location, log_group, thresholds
                        FROM devices
                        WHERE id = :device_id
                    """),
                    {"device_id": device_id},
                ).mappings().first()
        except SQLAlchemyError as e:
            raise StorageError(f"Error finding device '{device_id}': {e}") from e

        if row is None:
            return None
        return Device.from_row(row)

    def require_device(self, device_id: str) -> Device:
        """Como get_device, pero lanza DeviceNotFoundError si no existe."""
        device = self.get_device(device_id)
        if device is None:
            raise DeviceNotFoundError(device_id)
        return device
