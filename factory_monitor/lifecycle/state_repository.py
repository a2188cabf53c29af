"""Repositorio de estado de dispositivos - archivo de texto.

Una línea por dispositivo apagado. El archivo se reescribe completo en
cada transición (escritura a temporal + os.replace) y se lee una sola
vez al arrancar.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Iterable

from ..errors import StorageError

logger = logging.getLogger(__name__)


class DeviceStateFile:
    """Persistencia del conjunto de dispositivos apagados."""

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> set[str]:
        """Lee el conjunto persistido; archivo ausente = conjunto vacío."""
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                return {line.strip() for line in fh if line.strip()}
        except FileNotFoundError:
            return set()
        except OSError as e:
            raise StorageError(f"Cannot read device state file {self._path}: {e}") from e

    def save(self, device_ids: Iterable[str]) -> None:
        """Reescribe el archivo completo de forma atómica."""
        directory = self._path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".device_states.", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                for device_id in sorted(device_ids):
                    fh.write(f"{device_id}\n")
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self._path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise StorageError(f"Cannot write device state file {self._path}: {e}") from e
