"""
Shared test fixtures for the AuraLink backend test suite.

Provides:
- In-memory SQLite database with all tables created
- Repository instances wired to the test database
- Fakes for the outside world (MQTT publisher, mailer, LLM backend)
- A fully wired ServiceContainer and Flask test client
- Helpers for building sensor readings

Usage:
    def test_example(reading_repo, make_reading):
        reading_repo.add(make_reading(soil_pct=20))
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Callable

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auralink.config import AppConfig  # noqa: E402
from auralink.domain.reading import SensorReading  # noqa: E402
from auralink.hardware.mqtt.mqtt_broker_wrapper import HealthStatus  # noqa: E402
from auralink.services.ai.llm_backends import LLMBackend, LLMResponse  # noqa: E402
from auralink.services.application.device_profile_cache import DeviceProfileCache  # noqa: E402
from infrastructure.database.repositories.advisories import AdvisoryRepository  # noqa: E402
from infrastructure.database.repositories.devices import DeviceRepository  # noqa: E402
from infrastructure.database.repositories.readings import ReadingRepository  # noqa: E402
from infrastructure.database.sqlite_handler import SQLiteDatabaseHandler  # noqa: E402

# ---------------------------------------------------------------------------
# Logging: keep test output clean
# ---------------------------------------------------------------------------
logging.getLogger("infrastructure").setLevel(logging.WARNING)
logging.getLogger("auralink").setLevel(logging.WARNING)

DEVICE_ID = "desk-01"
BASE_TIME = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


# ========================== Fakes ==========================================


class FakeMQTTClient:
    """Stands in for MQTTClientWrapper; records publishes and subscriptions."""

    def __init__(self, *, connected: bool = True, publish_ok: bool = True):
        self.health_status = HealthStatus()
        self.connected = connected
        self.publish_ok = publish_ok
        self.published: list[dict[str, Any]] = []
        self.subscriptions: list[tuple[str, Callable, int]] = []

    @property
    def connected(self) -> bool:
        return self.health_status.is_connected

    @connected.setter
    def connected(self, value: bool) -> None:
        self.health_status.is_connected = value

    def publish(self, topic, payload, qos=0, retain=False):
        self.published.append({"topic": topic, "payload": payload, "qos": qos, "retain": retain})
        if self.publish_ok:
            self.health_status.record_publish_success()
        else:
            self.health_status.record_publish_failure()
        return self.publish_ok

    def subscribe(self, topic, callback, qos=0):
        self.subscriptions.append((topic, callback, qos))
        self.health_status.set_active_subscriptions(len(self.subscriptions))
        return True

    def deliver(self, topic: str, payload: bytes) -> None:
        """Push a message to every matching callback, like the broker would."""
        for sub, callback, _qos in self.subscriptions:
            if sub == topic or (sub.endswith("/+") and topic.startswith(sub[:-1])):
                callback(None, None, SimpleNamespace(topic=topic, payload=payload))

    def disconnect(self):
        self.connected = False


class FakeEmailService:
    def __init__(self, *, ok: bool = True):
        self.ok = ok
        self.sent: list[Any] = []

    def send(self, message, config=None):
        self.sent.append(message)
        return self.ok


class FakeLLMBackend(LLMBackend):
    """Returns canned text (or raises) and counts calls."""

    def __init__(self, text: str = "", *, error: Exception | None = None, available: bool = True):
        self.text = text
        self.error = error
        self.available = available
        self.calls: list[dict[str, Any]] = []

    @property
    def name(self) -> str:
        return "fake"

    @property
    def is_available(self) -> bool:
        return self.available

    def initialize(self) -> bool:
        return self.available

    def generate(self, system_prompt, user_prompt, *, max_tokens=512, temperature=0.5, json_mode=False):
        self.calls.append({"user_prompt": user_prompt, "json_mode": json_mode})
        if self.error is not None:
            raise self.error
        return LLMResponse(text=self.text, model="fake-1", latency_ms=1.0)


# ========================== Database Fixtures ==============================


@pytest.fixture()
def db_handler():
    """In-memory SQLite database with all tables created.

    Each test gets a fresh database, no cross-test contamination.
    """
    handler = SQLiteDatabaseHandler(":memory:")
    handler.create_tables()
    yield handler
    handler.close_db()


@pytest.fixture()
def reading_repo(db_handler):
    return ReadingRepository(db_handler)


@pytest.fixture()
def advisory_repo(db_handler):
    return AdvisoryRepository(db_handler)


@pytest.fixture()
def device_repo(db_handler):
    return DeviceRepository(db_handler)


@pytest.fixture()
def profile_cache(device_repo):
    return DeviceProfileCache(device_repo)


# ========================== Fakes ==========================================


@pytest.fixture()
def fake_mqtt():
    return FakeMQTTClient()


@pytest.fixture()
def fake_mailer():
    return FakeEmailService()


@pytest.fixture()
def fake_backend_factory():
    return FakeLLMBackend


# ========================== Builders =======================================


@pytest.fixture()
def make_reading():
    """Factory for readings; ``offset`` is seconds after ``BASE_TIME``."""

    def _make(
        *,
        t_c: float = 30.8,
        h_pct: float = 62.0,
        soil_pct: float = 48.0,
        offset: float = 0.0,
        ts: datetime | None = None,
        device_id: str = DEVICE_ID,
    ) -> SensorReading:
        return SensorReading(
            device_id=device_id,
            ts=ts or BASE_TIME + timedelta(seconds=offset),
            t_c=t_c,
            h_pct=h_pct,
            soil_pct=soil_pct,
        )

    return _make


@pytest.fixture()
def app_config():
    return AppConfig(
        environment="testing",
        DEBUG=False,
        database_path=":memory:",
        device_id=DEVICE_ID,
        enable_mqtt=False,
        llm_provider="none",
        llm_api_key="",
        smtp_username="",
        smtp_password="",
        notify_default_email="owner@example.com",
    )


# ========================== Application ====================================


@pytest.fixture()
def container(app_config, fake_mqtt, fake_mailer):
    from auralink.services.container import ServiceContainer

    built = ServiceContainer.build(
        app_config,
        mqtt_client=fake_mqtt,
        llm_backend=None,
        email_service=fake_mailer,
    )
    yield built
    built.database.close_db()


@pytest.fixture()
def app(container):
    from auralink import create_app

    flask_app = create_app(container=container)
    flask_app.config["TESTING"] = True
    return flask_app


@pytest.fixture()
def client(app):
    return app.test_client()
