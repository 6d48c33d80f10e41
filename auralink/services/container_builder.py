"""
Container Builder
=================
Constructs the backend services in dependency order, one subsystem per
method. ``ServiceContainer.build`` is the public entry point.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from auralink.config import AppConfig
from auralink.hardware.mqtt.mqtt_broker_wrapper import MQTTClientWrapper
from auralink.services.ai.advisory_generator import AdvisoryGenerator
from auralink.services.ai.llm_backends import LLMBackend, create_backend
from auralink.services.application.device_profile_cache import DeviceProfileCache
from auralink.services.application.device_service import DeviceService
from auralink.services.application.dispatcher import AdvisoryDispatcher
from auralink.services.application.pipeline import SensorPipeline
from auralink.services.application.throttle import ThrottleController
from auralink.services.application.window_aggregator import WindowAggregator
from auralink.services.hardware.sensor_ingest_service import SENSOR_TOPIC_PREFIX, SensorIngestService
from auralink.services.utilities.email_service import EmailConfig, EmailService
from infrastructure.database.repositories.advisories import AdvisoryRepository
from infrastructure.database.repositories.devices import DeviceRepository
from infrastructure.database.repositories.readings import ReadingRepository
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler

logger = logging.getLogger(__name__)

BACKEND_OFFLINE = "backend_offline"

# Marker so callers can pass ``llm_backend=None`` to force the fallback path
_UNSET: Any = object()


@dataclass
class InfrastructureComponents:
    """Database and repositories."""

    database: SQLiteDatabaseHandler
    reading_repo: ReadingRepository
    advisory_repo: AdvisoryRepository
    device_repo: DeviceRepository


@dataclass
class MQTTComponents:
    mqtt_client: MQTTClientWrapper | None


@dataclass
class AIComponents:
    llm_backend: LLMBackend | None
    advisory_generator: AdvisoryGenerator


class ContainerBuilder:
    """
    Builder for ServiceContainer.

    Collaborators that talk to the outside world (MQTT client, LLM backend,
    mail service) can be injected, which is how the test-suite swaps in
    fakes.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        mqtt_client: MQTTClientWrapper | None = _UNSET,
        llm_backend: LLMBackend | None = _UNSET,
        email_service: EmailService | None = _UNSET,
    ):
        self.config = config
        self._mqtt_client = mqtt_client
        self._llm_backend = llm_backend
        self._email_service = email_service

    def build_infrastructure(self) -> InfrastructureComponents:
        logger.info("Building infrastructure components...")
        database = SQLiteDatabaseHandler(self.config.database_path)
        database.init_app(None)
        return InfrastructureComponents(
            database=database,
            reading_repo=ReadingRepository(database),
            advisory_repo=AdvisoryRepository(database),
            device_repo=DeviceRepository(database),
        )

    def build_mqtt_components(self) -> MQTTComponents:
        if self._mqtt_client is not _UNSET:
            return MQTTComponents(mqtt_client=self._mqtt_client)

        if not self.config.enable_mqtt:
            logger.info("MQTT disabled, skipping MQTT components")
            return MQTTComponents(mqtt_client=None)

        logger.info("Building MQTT components...")
        will = None
        if self.config.device_id:
            will = {
                "topic": self.config.topics()["will"],
                "payload": BACKEND_OFFLINE,
                "qos": 1,
                "retain": True,
            }
        mqtt_client = MQTTClientWrapper(
            broker=self.config.mqtt_broker_host,
            port=self.config.mqtt_broker_port,
            client_id=f"auralink-backend-{self.config.device_id or 'all'}",
            username=self.config.mqtt_username or None,
            password=self.config.mqtt_password or None,
            will=will,
        )
        return MQTTComponents(mqtt_client=mqtt_client)

    def build_ai_components(self) -> AIComponents:
        if self._llm_backend is not _UNSET:
            backend = self._llm_backend
        else:
            backend = create_backend(
                self.config.llm_provider,
                api_key=self.config.llm_api_key,
                model=self.config.llm_model,
                base_url=self.config.llm_base_url or None,
                timeout=self.config.llm_timeout,
            )
        generator = AdvisoryGenerator(
            backend,
            low_soil_pct=self.config.advisory_low_soil_pct,
            water_soil_pct=self.config.advisory_water_soil_pct,
            max_emails=self.config.advisory_max_emails,
            window_seconds=self.config.advisory_window_seconds,
            max_tokens=self.config.llm_max_tokens,
            temperature=self.config.llm_temperature,
            sender_name=self.config.smtp_from_name,
        )
        logger.info("Advisory generator ready (backend=%s)", generator.backend_name)
        return AIComponents(llm_backend=backend, advisory_generator=generator)

    def build_email_service(self) -> EmailService | None:
        if self._email_service is not _UNSET:
            return self._email_service
        if not self.config.smtp_username:
            logger.info("SMTP credentials not configured; advisory emails disabled")
            return None
        return EmailService(
            EmailConfig(
                smtp_host=self.config.smtp_host,
                smtp_port=self.config.smtp_port,
                smtp_username=self.config.smtp_username,
                smtp_password=self.config.smtp_password,
                smtp_use_ssl=self.config.smtp_use_ssl,
                smtp_use_tls=self.config.smtp_use_tls,
                from_name=self.config.smtp_from_name,
            )
        )

    def build(self) -> dict[str, Any]:
        """
        Build the complete service container.

        Returns:
            Dictionary with all components for ServiceContainer construction
        """
        infra = self.build_infrastructure()
        mqtt = self.build_mqtt_components()
        ai = self.build_ai_components()
        email_service = self.build_email_service()

        profile_cache = DeviceProfileCache(infra.device_repo)
        throttle = ThrottleController(self.config.advisory_interval_seconds)
        window_aggregator = WindowAggregator(infra.reading_repo)
        dispatcher = AdvisoryDispatcher(
            publisher=mqtt.mqtt_client,
            advisory_repo=infra.advisory_repo,
            profile_cache=profile_cache,
            email_service=email_service,
            default_recipient=self.config.notify_default_email or self.config.smtp_username,
        )
        pipeline = SensorPipeline(
            reading_repo=infra.reading_repo,
            window_aggregator=window_aggregator,
            throttle=throttle,
            generator=ai.advisory_generator,
            dispatcher=dispatcher,
            profile_cache=profile_cache,
            output_topic_for=lambda device_id: self.config.topics(device_id)["out"],
            window_seconds=self.config.advisory_window_seconds,
            min_samples=self.config.advisory_min_samples,
        )
        device_service = DeviceService(
            device_repo=infra.device_repo,
            reading_repo=infra.reading_repo,
            advisory_repo=infra.advisory_repo,
            profile_cache=profile_cache,
        )

        sensor_ingest_service: SensorIngestService | None = None
        if mqtt.mqtt_client is not None:
            topic = self.config.topics()["in"] if self.config.device_id else f"{SENSOR_TOPIC_PREFIX}+"
            sensor_ingest_service = SensorIngestService(mqtt.mqtt_client, pipeline, topics=[topic])

        return {
            "config": self.config,
            "database": infra.database,
            "reading_repo": infra.reading_repo,
            "advisory_repo": infra.advisory_repo,
            "device_repo": infra.device_repo,
            "mqtt_client": mqtt.mqtt_client,
            "llm_backend": ai.llm_backend,
            "advisory_generator": ai.advisory_generator,
            "email_service": email_service,
            "profile_cache": profile_cache,
            "throttle": throttle,
            "window_aggregator": window_aggregator,
            "dispatcher": dispatcher,
            "pipeline": pipeline,
            "device_service": device_service,
            "sensor_ingest_service": sensor_ingest_service,
        }
