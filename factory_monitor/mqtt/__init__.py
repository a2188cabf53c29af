"""Transporte MQTT.

Estructura modular:
- dispatcher.py: Núcleo puro topic/payload → publicaciones
- receiver.py: Adaptador paho-mqtt (conexión, suscripción, callbacks)
- receiver_stats.py: Contadores del receptor
"""

from .dispatcher import MessageDispatcher, Publish, parse_json_payload
from .receiver import FactoryMQTTReceiver
from .receiver_stats import ReceiverStats

__all__ = [
    "FactoryMQTTReceiver",
    "MessageDispatcher",
    "Publish",
    "ReceiverStats",
    "parse_json_payload",
]
