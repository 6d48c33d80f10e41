"""
    This module provides a wrapper class for handling MQTT client functionality.
    It includes methods for connecting, disconnecting, publishing, and subscribing
    to an MQTT broker, with appropriate logging for each operation.
"""

import logging
import os
import threading
from dataclasses import dataclass
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Any, Callable

import paho.mqtt.client as mqtt

from auralink.hardware.mqtt.client_factory import create_mqtt_client
from auralink.utils.time import utc_now

# Dedicated rotating log for broker traffic
_mqtt_logger = logging.getLogger("auralink.mqtt")
if not _mqtt_logger.handlers:
    os.makedirs("logs", exist_ok=True)
    _mqtt_handler = RotatingFileHandler(
        "logs/devices_mqtt.log",
        maxBytes=10 * 1024 * 1024,
        backupCount=3,
        encoding="utf-8",
    )
    _mqtt_handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    _mqtt_logger.addHandler(_mqtt_handler)
    _mqtt_logger.setLevel(logging.INFO)
    _mqtt_logger.propagate = False

RECONNECT_MIN_DELAY = 2
RECONNECT_MAX_DELAY = 30

_LOG_MQTT_DISPATCH = os.getenv("AURALINK_LOG_MQTT_DISPATCH", "").lower() in {"1", "true", "t", "yes", "on"}


@dataclass
class HealthStatus:
    """
    Tracks the health status of the MQTT client connection.
    """

    is_connected: bool = False
    last_error: str | None = None
    last_error_time: datetime | None = None
    connection_attempts: int = 0
    successful_publishes: int = 0
    failed_publishes: int = 0
    active_subscriptions: int = 0

    @property
    def success_rate(self) -> float:
        """Calculate publish success rate percentage"""
        total_publishes = self.successful_publishes + self.failed_publishes
        if total_publishes == 0:
            return 0.0
        return (self.successful_publishes / total_publishes) * 100

    def mark_connected(self):
        self.is_connected = True
        self.last_error = None
        self.last_error_time = None

    def mark_disconnected(self):
        self.is_connected = False

    def record_error(self, error: Exception | str):
        """Record a connection or operation error."""
        self.last_error = str(error)
        self.last_error_time = utc_now()

    def increment_connection_attempts(self):
        self.connection_attempts += 1

    def record_publish_success(self):
        self.successful_publishes += 1

    def record_publish_failure(self):
        self.failed_publishes += 1

    def set_active_subscriptions(self, count: int):
        self.active_subscriptions = count

    def to_dict(self):
        """Return health status as a dictionary."""
        return {
            "is_connected": self.is_connected,
            "last_error": self.last_error,
            "last_error_time": self.last_error_time.isoformat() if self.last_error_time else None,
            "connection_attempts": self.connection_attempts,
            "successful_publishes": self.successful_publishes,
            "failed_publishes": self.failed_publishes,
            "active_subscriptions": self.active_subscriptions,
            "publish_success_rate": round(self.success_rate, 2),
        }


class MQTTClientWrapper:
    """
    Wrapper class for handling MQTT client functionality.

    Subscriptions are remembered so they can be restored after paho's
    automatic reconnect; every message is fanned out to all matching
    callbacks.
    """

    def __init__(
        self,
        broker: str,
        port: int,
        client_id: str = "",
        *,
        username: str | None = None,
        password: str | None = None,
        will: dict[str, Any] | None = None,
        keepalive: int = 60,
    ):
        """
        Initializes the MQTT client wrapper and connects.

        Args:
            broker (str): The MQTT broker address.
            port (int): The MQTT broker port.
            client_id (str, optional): The MQTT client ID. Defaults to "".
            username (str, optional): Broker username.
            password (str, optional): Broker password.
            will (dict, optional): Last-will message announced by the broker
                if this client drops without disconnecting.
            keepalive (int): Keepalive interval in seconds.
        """
        self.broker = broker
        self.port = port
        self.client_id = client_id
        self.keepalive = keepalive
        self.client = create_mqtt_client(
            client_id=client_id,
            username=username,
            password=password,
            will=will,
        )
        self.connected = False
        self._loop_started = False
        self._callback_lock = threading.Lock()
        self._callbacks: list[tuple[str, Callable]] = []
        self._subscriptions: dict[str, int] = {}
        # Always dispatch through our fan-out handler so multiple subscribers can coexist
        self.client.on_message = self._dispatch_message
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.health_status = HealthStatus()
        self._connect()

    def _connect(self):
        """
        Start connecting in the background.

        The network loop runs even when the broker is unreachable, so paho
        keeps retrying and ``_on_connect`` restores subscriptions once it
        gets through.
        """
        self.health_status.increment_connection_attempts()
        self.client.reconnect_delay_set(min_delay=RECONNECT_MIN_DELAY, max_delay=RECONNECT_MAX_DELAY)
        try:
            self.client.connect_async(self.broker, self.port, self.keepalive)
            _mqtt_logger.info("Connecting to MQTT broker %s:%s", self.broker, self.port)
        except Exception as e:
            _mqtt_logger.error("Error connecting to MQTT broker %s:%s: %s", self.broker, self.port, e)
            self.health_status.record_error(e)
        self.client.loop_start()
        self._loop_started = True

    def _on_connect(self, client, userdata, flags, rc, *args):
        if rc != 0:
            _mqtt_logger.error("MQTT broker refused connection: rc=%s", rc)
            self.health_status.record_error(f"connack rc={rc}")
            return
        self.connected = True
        self.health_status.mark_connected()
        _mqtt_logger.info("Connected to MQTT broker %s:%s", self.broker, self.port)
        with self._callback_lock:
            subscriptions = dict(self._subscriptions)
        for topic, qos in subscriptions.items():
            try:
                client.subscribe(topic, qos)
            except Exception as e:
                _mqtt_logger.error("Error restoring subscription %s: %s", topic, e)
        if subscriptions:
            _mqtt_logger.info("Restored %s subscription(s) after (re)connect", len(subscriptions))

    def _on_disconnect(self, client, userdata, rc, *args):
        self.connected = False
        self.health_status.mark_disconnected()
        if rc != 0:
            _mqtt_logger.warning("Unexpected MQTT disconnect (rc=%s); paho will retry", rc)

    def disconnect(self):
        """
        Disconnects from the MQTT broker and stops the network loop.
        """
        if not self._loop_started:
            return
        try:
            self.client.disconnect()
            self.client.loop_stop()
            self._loop_started = False
            self.connected = False
            self.health_status.mark_disconnected()
            with self._callback_lock:
                self._callbacks.clear()
                self._subscriptions.clear()
            _mqtt_logger.info("Disconnected from MQTT broker.")
        except Exception as e:
            _mqtt_logger.error("Error disconnecting from MQTT broker: %s", e)
            self.health_status.record_error(e)

    def publish(self, topic: str, payload: Any, qos: int = 0, retain: bool = False) -> bool:
        """
        Publishes a message to the MQTT broker.

        Args:
            topic (str): The MQTT topic to publish to.
            payload (str | bytes): The message payload.
            qos (int): Quality of service level.
            retain (bool): Ask the broker to keep this as the topic's last value.

        Returns:
            True when the message was handed to the client without error.
        """
        if not self.connected:
            _mqtt_logger.warning("MQTT client not connected. Cannot publish to %s.", topic)
            self.health_status.record_publish_failure()
            return False
        try:
            msg_info = self.client.publish(topic, payload, qos=qos, retain=retain)
        except Exception as e:
            self.health_status.record_publish_failure()
            self.health_status.record_error(e)
            _mqtt_logger.error("Error publishing to MQTT topic %s: %s", topic, e)
            return False
        if msg_info.rc == mqtt.MQTT_ERR_SUCCESS:
            self.health_status.record_publish_success()
            _mqtt_logger.debug("Published to %s (qos=%s retain=%s): %s", topic, qos, retain, payload)
            return True
        self.health_status.record_publish_failure()
        _mqtt_logger.error("Failed to publish to %s. MQTT result code: %s", topic, msg_info.rc)
        return False

    def subscribe(self, topic: str, callback: Callable, qos: int = 0) -> bool:
        """
        Subscribes to a topic and registers a callback function.

        While disconnected the subscription is only recorded; it is sent
        to the broker from ``_on_connect``.

        Args:
            topic (str): The MQTT topic (wildcards allowed).
            callback (Callable): Called as ``callback(client, userdata, msg)``.
            qos (int): Requested quality of service.

        Returns:
            False when the broker rejected the request outright.
        """
        with self._callback_lock:
            self._callbacks.append((topic, callback))
            self._subscriptions[topic] = qos
            count = len(self._subscriptions)
        self.health_status.set_active_subscriptions(count)

        if not self.connected:
            _mqtt_logger.warning("MQTT client not connected; %s will be subscribed on connect.", topic)
            return True
        try:
            result, _mid = self.client.subscribe(topic, qos)
        except Exception as e:
            self.health_status.record_error(e)
            _mqtt_logger.error("Error subscribing to MQTT topic %s: %s", topic, e)
            return False
        if result != mqtt.MQTT_ERR_SUCCESS:
            _mqtt_logger.error("Failed to subscribe to topic %s: result code %s", topic, result)
            return False

        _mqtt_logger.info(
            "Subscribed to topic %s with callback %s (subscriptions: %s)",
            topic,
            getattr(callback, "__name__", repr(callback)),
            count,
        )
        return True

    def _dispatch_message(self, client, userdata, msg) -> None:
        """
        Fan out MQTT messages to all registered callbacks that match the topic
        using MQTT wildcard semantics.
        """
        if _LOG_MQTT_DISPATCH:
            _mqtt_logger.debug(
                "MQTT DISPATCHER: topic=%s payload_len=%s registered_callbacks=%s",
                msg.topic,
                len(msg.payload),
                len(self._callbacks),
            )

        with self._callback_lock:
            callbacks = list(self._callbacks)

        handled = False
        for sub, callback in callbacks:
            try:
                if mqtt.topic_matches_sub(sub, msg.topic):
                    handled = True
                    callback(client, userdata, msg)
            except Exception as e:
                _mqtt_logger.error("Error in MQTT callback for topic %s: %s", sub, e, exc_info=True)

        if not handled:
            _mqtt_logger.warning(
                "MQTT message on %s had no registered handlers (subscriptions: %s)",
                msg.topic,
                [s[0] for s in callbacks],
            )

    def __del__(self):
        if getattr(self, "_loop_started", False):
            self.disconnect()
