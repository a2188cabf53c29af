"""Factory monitor: escritor de logs MQTT, consultas y estadísticas."""

__version__ = "0.1.0"
