from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine, make_url

from .config import Settings, get_settings


logger = logging.getLogger(__name__)

# Singleton engine
_engine: Optional[Engine] = None


def create_db_engine(database_url: str) -> Engine:
    # Log básico de parámetros de conexión (sin contraseña)
    url = make_url(database_url)
    logger.info(
        "[DB] Crear engine backend=%s host=%s db=%s user=%s",
        url.get_backend_name(),
        url.host,
        url.database,
        url.username,
    )
    return create_engine(database_url, pool_pre_ping=True, pool_recycle=300, future=True)


def check_connection(engine: Engine) -> bool:
    """Ejecuta SELECT 1 contra el engine; no lanza excepciones."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.exception("[DB] Test de conexión FALLÓ")
        return False


def get_engine(settings: Optional[Settings] = None) -> Engine:
    """Obtiene el engine compartido del proceso (singleton)."""
    global _engine

    if _engine is not None:
        return _engine

    settings = settings or get_settings()
    _engine = create_db_engine(settings.database_url)

    # Test de conexión: ayuda a ver en logs si el servicio realmente llega a la BD
    if check_connection(_engine):
        logger.info("[DB] Test de conexión OK")

    return _engine


def dispose_engine() -> None:
    """Cierra el pool y olvida el singleton."""
    global _engine

    if _engine is not None:
        _engine.dispose()
        _engine = None
