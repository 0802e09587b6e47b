"""ClimateSync integration clients."""

from .mqtt_client import MQTTClient, TelemetryCallback

__all__ = [
    "MQTTClient",
    "TelemetryCallback",
]
