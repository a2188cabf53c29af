"""Receptor MQTT principal.

Adaptador de transporte sobre paho-mqtt: conecta, se suscribe y entrega
cada mensaje al MessageDispatcher en el hilo de red de paho (un mensaje a
la vez, en orden de llegada). Publica las respuestas que devuelve el
dispatcher.

La reconexión la gestiona paho con reconnect_delay_set(min, max).
"""

from __future__ import annotations

import logging
import time
from typing import Iterable, Optional

import paho.mqtt.client as mqtt

from common.config import Settings

from .dispatcher import MessageDispatcher, Publish
from .receiver_stats import ReceiverStats

logger = logging.getLogger(__name__)


class FactoryMQTTReceiver:
    """Receptor MQTT que alimenta el pipeline de logs, queries y estadísticas."""

    def __init__(
        self,
        dispatcher: MessageDispatcher,
        broker_host: str = "localhost",
        broker_port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "factory_monitor_db_writer",
        topics: Iterable[str] = ("factory/#",),
        reconnect_min_delay: int = 2,
        reconnect_max_delay: int = 30,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.username = username
        self.password = password
        self.client_id = f"{client_id}_{int(time.time() * 1000)}"
        # Orden estable y sin duplicados
        self.topics = list(dict.fromkeys(topics))
        self.reconnect_min_delay = reconnect_min_delay
        self.reconnect_max_delay = reconnect_max_delay

        self._dispatcher = dispatcher
        self._client: Optional[mqtt.Client] = None
        self._running = False
        self._connected = False
        self._ever_connected = False

        self._stats = ReceiverStats()

    @classmethod
    def from_settings(cls, dispatcher: MessageDispatcher, settings: Settings) -> "FactoryMQTTReceiver":
        return cls(
            dispatcher,
            broker_host=settings.mqtt_broker_host,
            broker_port=settings.mqtt_broker_port,
            username=settings.mqtt_username,
            password=settings.mqtt_password,
            client_id=settings.mqtt_client_id,
            topics=(
                settings.mqtt_topic,
                settings.query_request_topic,
                settings.statistics_request_topic,
                settings.snapshot_save_topic,
                settings.snapshot_request_topic,
            ),
            reconnect_min_delay=settings.mqtt_reconnect_min_delay,
            reconnect_max_delay=settings.mqtt_reconnect_max_delay,
        )

    def start(self) -> bool:
        """Inicia el receptor MQTT."""
        try:
            self._client = mqtt.Client(
                client_id=self.client_id,
                protocol=mqtt.MQTTv311,
                clean_session=True,
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            )

            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect
            self._client.on_message = self._on_message
            self._client.reconnect_delay_set(
                min_delay=self.reconnect_min_delay,
                max_delay=self.reconnect_max_delay,
            )

            if self.username and self.password:
                self._client.username_pw_set(self.username, self.password)

            logger.info("[MQTT] Connecting to %s:%d", self.broker_host, self.broker_port)

            # connect_async: si el broker no responde, el hilo de paho sigue reintentando
            self._client.connect_async(self.broker_host, self.broker_port, keepalive=60)
            self._client.loop_start()
            self._running = True

            # Esperar conexión
            for _ in range(50):
                if self._connected:
                    break
                time.sleep(0.1)

            if self._connected:
                logger.info("[MQTT] Started successfully. Waiting for messages...")
                return True
            logger.error("[MQTT] Connection timeout; retrying in background")
            return False

        except Exception as e:
            logger.exception("[MQTT] Start failed: %s", e)
            return False

    def stop(self):
        """Detiene el receptor."""
        self._running = False

        if self._client:
            try:
                self._client.loop_stop()
                self._client.disconnect()
            except Exception as e:
                logger.warning("[MQTT] Error stopping: %s", e)

        logger.info("[MQTT] Stopped. Stats: %s", self._stats)

    def _on_connect(self, client, userdata, flags, rc, properties=None):
        """Callback de conexión: (re)suscribe todos los topics."""
        if rc != 0:
            self._connected = False
            logger.error("[MQTT] Connection failed: rc=%s", rc)
            return

        if self._ever_connected:
            self._stats.reconnects += 1
        self._connected = True
        self._ever_connected = True
        logger.info("[MQTT] Connected to broker")

        for topic in self.topics:
            client.subscribe(topic, qos=1)
        logger.info("[MQTT] Subscribed to topics: %s", ", ".join(self.topics))

    def _on_disconnect(self, client, userdata, flags, rc, properties=None):
        """Callback de conexión perdida."""
        self._connected = False
        logger.warning("[MQTT] Connection lost (rc=%s)", rc)

    def _on_message(self, client, userdata, msg):
        """Callback de mensaje recibido."""
        self._stats.mark_received()

        try:
            publications = self._dispatcher.handle(msg.topic, msg.payload)
            self._stats.processed += 1
        except Exception as e:
            logger.exception("[MQTT] Processing error: %s", e)
            self._stats.failed += 1
            return

        for publication in publications:
            self.publish(publication)

        if self._stats.processed % 100 == 0:
            logger.info("[MQTT] Stats: %s", self._stats)

    def publish(self, publication: Publish) -> bool:
        """Publica una respuesta del dispatcher."""
        if self._client is None:
            logger.warning("[MQTT] Cannot publish to %s: client not started", publication.topic)
            self._stats.publish_failed += 1
            return False

        try:
            info = self._client.publish(
                publication.topic,
                publication.encode(),
                qos=publication.qos,
                retain=publication.retain,
            )
        except Exception as e:
            logger.error("[MQTT] Publish to %s failed: %s", publication.topic, e)
            self._stats.publish_failed += 1
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error("[MQTT] Publish to %s failed: rc=%s", publication.topic, info.rc)
            self._stats.publish_failed += 1
            return False

        self._stats.published += 1
        return True

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def stats(self) -> dict:
        return {
            "running": self._running,
            "connected": self._connected,
            "broker": f"{self.broker_host}:{self.broker_port}",
            "topics": list(self.topics),
            **self._stats.to_dict(),
        }

    def health_check(self) -> dict:
        return {
            "healthy": self._running and self._connected,
            "running": self._running,
            "connected": self._connected,
            "messages_processed": self._stats.processed,
            "messages_failed": self._stats.failed,
        }
