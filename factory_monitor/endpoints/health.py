"""Health and readiness endpoints."""

import logging

from fastapi import APIRouter, HTTPException

from common.db import check_connection, get_engine

from ..service import get_receiver

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    """Liveness probe: ok mientras el proceso esté vivo."""
    return {"status": "ok"}


@router.get("/ready")
def ready():
    """Readiness probe: BD accesible y receptor MQTT conectado."""
    if not check_connection(get_engine()):
        raise HTTPException(status_code=503, detail="not ready")

    receiver = get_receiver()
    if receiver is None or not receiver.health_check()["healthy"]:
        raise HTTPException(status_code=503, detail="not ready")

    return {"status": "ready"}


@router.get("/receiver/stats")
def receiver_stats():
    """Contadores del receptor MQTT."""
    receiver = get_receiver()
    if receiver is None:
        return {"running": False}
    return receiver.stats
