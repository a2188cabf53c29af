"""CLI entry point for the MQTT log writer."""

from __future__ import annotations

import argparse
import logging
import time

from common.config import get_settings
from common.db import dispose_engine, get_engine

from .errors import StorageError
from .service import get_receiver, start_receiver, stop_receiver
from .storage import init_schema

logger = logging.getLogger(__name__)


def main() -> None:
    p = argparse.ArgumentParser(description="Factory monitor: MQTT log writer, queries and statistics")
    p.add_argument("--env-file", default=None, help="key=value file loaded before reading the environment")
    p.add_argument("--log-level", default="INFO")
    p.add_argument("--init-schema", action="store_true", help="create tables and indexes before starting")
    args = p.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )

    settings = get_settings(args.env_file)
    logger.info("Factory monitor started")
    logger.info(
        "Config: broker=%s:%d topic=%s state_file=%s",
        settings.mqtt_broker_host,
        settings.mqtt_broker_port,
        settings.mqtt_topic,
        settings.device_state_file,
    )

    if args.init_schema:
        try:
            init_schema(get_engine(settings))
        except StorageError as e:
            logger.error("[DB] Schema creation failed: %s", e)
            raise SystemExit(1)

    if not start_receiver(settings):
        logger.warning("[MQTT] Initial connection failed; retrying in background")

    try:
        while True:
            time.sleep(60)
            receiver = get_receiver()
            if receiver is not None:
                logger.info("[MQTT] %s", receiver.health_check())
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        stop_receiver()
        dispose_engine()


if __name__ == "__main__":
    main()
