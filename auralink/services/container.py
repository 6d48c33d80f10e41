from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from auralink.config import AppConfig
from auralink.hardware.mqtt.mqtt_broker_wrapper import MQTTClientWrapper
from auralink.services.ai.advisory_generator import AdvisoryGenerator
from auralink.services.ai.llm_backends import LLMBackend
from auralink.services.application.device_profile_cache import DeviceProfileCache
from auralink.services.application.device_service import DeviceService
from auralink.services.application.dispatcher import AdvisoryDispatcher
from auralink.services.application.pipeline import SensorPipeline
from auralink.services.application.throttle import ThrottleController
from auralink.services.application.window_aggregator import WindowAggregator
from auralink.services.container_builder import ContainerBuilder
from auralink.services.hardware.sensor_ingest_service import SensorIngestService
from auralink.services.utilities.email_service import EmailService
from infrastructure.database.repositories.advisories import AdvisoryRepository
from infrastructure.database.repositories.devices import DeviceRepository
from infrastructure.database.repositories.readings import ReadingRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Aggregate and manage core backend services."""

    config: AppConfig
    database: SQLiteDatabaseHandler
    reading_repo: ReadingRepository
    advisory_repo: AdvisoryRepository
    device_repo: DeviceRepository
    mqtt_client: Optional[MQTTClientWrapper]
    llm_backend: Optional[LLMBackend]
    advisory_generator: AdvisoryGenerator
    email_service: Optional[EmailService]
    profile_cache: DeviceProfileCache
    throttle: ThrottleController
    window_aggregator: WindowAggregator
    dispatcher: AdvisoryDispatcher
    pipeline: SensorPipeline
    device_service: DeviceService
    sensor_ingest_service: Optional[SensorIngestService]

    @classmethod
    def build(cls, config: AppConfig, **overrides: Any) -> "ServiceContainer":
        """Construct the service container with all dependencies.

        Args:
            config: Application configuration
            overrides: ``mqtt_client``, ``llm_backend`` or ``email_service``
                to use instead of building them from ``config``.
        """
        logger.info("Building ServiceContainer using ContainerBuilder...")
        components = ContainerBuilder(config, **overrides).build()
        container = cls(**components)
        container.profile_cache.warm(config.device_id)
        logger.info("ServiceContainer built successfully.")
        return container

    def start(self) -> None:
        """Begin consuming sensor readings."""
        if self.sensor_ingest_service is None:
            logger.warning("MQTT disabled; sensor ingest not started")
            return
        self.sensor_ingest_service.start()

    def health(self) -> dict[str, Any]:
        mqtt: dict[str, Any] | None = None
        if self.mqtt_client is not None:
            mqtt = self.mqtt_client.health_status.to_dict()
        return {
            "status": "ok",
            "mqtt_connected": bool(mqtt and mqtt["is_connected"]),
            "mqtt": mqtt,
            "llm": self.advisory_generator.backend_name,
        }

    def shutdown(self) -> None:
        """Release external resources before process exit."""
        if self.mqtt_client is not None:
            try:
                self.mqtt_client.disconnect()
            except Exception as e:
                logger.warning("Failed to disconnect MQTT client: %s", e)
        self.database.close_db()
        logger.info("ServiceContainer shutdown complete.")
