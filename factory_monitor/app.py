"""Aplicación FastAPI: endpoints de salud con el receptor MQTT en segundo plano."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from common.config import get_settings

from . import __version__
from .endpoints import health_router
from .service import start_receiver, stop_receiver

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not start_receiver(get_settings()):
        logger.error("[MQTT] Receiver did not connect; paho keeps retrying in background")
    try:
        yield
    finally:
        stop_receiver()


app = FastAPI(title="Factory Monitor", version=__version__, lifespan=lifespan)
app.include_router(health_router)
