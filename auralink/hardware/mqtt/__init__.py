from auralink.hardware.mqtt.client_factory import create_mqtt_client
from auralink.hardware.mqtt.mqtt_broker_wrapper import HealthStatus, MQTTClientWrapper

__all__ = ["HealthStatus", "MQTTClientWrapper", "create_mqtt_client"]
