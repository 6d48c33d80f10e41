"""
Sensor Ingest Service
=====================

Router for plant sensor readings arriving over MQTT.

Decodes each ``plant/sensors/<device_id>`` message, builds a clamped
:class:`SensorReading` and hands it to the :class:`SensorPipeline`.
Malformed messages are dropped here and never reach the pipeline.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Iterable

from auralink.domain.reading import SensorReading

if TYPE_CHECKING:
    from auralink.hardware.mqtt.mqtt_broker_wrapper import MQTTClientWrapper
    from auralink.services.application.pipeline import PipelineOutcome, SensorPipeline

logger = logging.getLogger(__name__)

SENSOR_TOPIC_PREFIX = "plant/sensors/"


class SensorIngestService:
    def __init__(
        self,
        mqtt_client: MQTTClientWrapper,
        pipeline: SensorPipeline,
        topics: Iterable[str] = (f"{SENSOR_TOPIC_PREFIX}+",),
        *,
        qos: int = 1,
    ) -> None:
        self.mqtt_client = mqtt_client
        self.pipeline = pipeline
        self.topics = list(topics)
        self.qos = qos
        self.received = 0
        self.dropped = 0

    def start(self) -> None:
        for topic in self.topics:
            try:
                self.mqtt_client.subscribe(topic, self._on_message, qos=self.qos)
            except Exception as exc:
                logger.error("Failed to subscribe to %s: %s", topic, exc)

    def _on_message(self, client: Any, userdata: Any, msg: Any) -> None:
        """
        MQTT callback for inbound readings.

        Guaranteed not to raise exceptions to prevent killing the MQTT loop.
        """
        topic = str(getattr(msg, "topic", ""))
        self.received += 1
        try:
            reading = self.parse_message(topic, getattr(msg, "payload", b""))
            if reading is None:
                self.dropped += 1
                return
            self.handle(reading)
        except Exception as exc:
            logger.exception("Sensor ingest error topic=%s: %s", topic, exc)

    def handle(self, reading: SensorReading) -> PipelineOutcome:
        return self.pipeline.handle_reading(reading)

    def parse_message(self, topic: str, payload: bytes | str) -> SensorReading | None:
        """Decode one message into a reading, or ``None`` when it must be dropped."""
        try:
            decoded = payload.decode(errors="strict") if isinstance(payload, (bytes, bytearray)) else payload
            data = json.loads(decoded)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("Dropped malformed sensor message on %s: %s", topic, exc)
            return None

        if not isinstance(data, dict):
            logger.warning("Dropped non-object sensor message on %s", topic)
            return None

        topic_device = topic[len(SENSOR_TOPIC_PREFIX):] if topic.startswith(SENSOR_TOPIC_PREFIX) else ""
        reading = SensorReading.from_message(data, device_id=topic_device or None)
        if not reading.device_id:
            logger.warning("Dropped sensor message on %s without a device id", topic)
            return None
        return reading
