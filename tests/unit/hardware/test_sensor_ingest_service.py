"""
SensorIngestService tests.

Inbound MQTT messages are decoded and clamped here; anything malformed is
dropped before it reaches the pipeline, and the callback never raises.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from auralink.services.hardware.sensor_ingest_service import SensorIngestService


@pytest.fixture()
def pipeline():
    return MagicMock()


@pytest.fixture()
def service(fake_mqtt, pipeline):
    svc = SensorIngestService(fake_mqtt, pipeline, topics=["plant/sensors/+"])
    svc.start()
    return svc


def _msg(topic: str, body) -> SimpleNamespace:
    payload = body if isinstance(body, bytes) else json.dumps(body).encode()
    return SimpleNamespace(topic=topic, payload=payload)


def test_start_subscribes_with_qos1(service, fake_mqtt):
    [(topic, _callback, qos)] = fake_mqtt.subscriptions
    assert topic == "plant/sensors/+"
    assert qos == 1


def test_valid_message_reaches_pipeline(service, pipeline):
    service._on_message(
        None,
        None,
        _msg(
            "plant/sensors/desk-01",
            {"deviceId": "desk-01", "ts": "2025-06-01T12:00:00Z", "t_c": 30.8, "h_pct": 62, "soil_pct": 48, "fw": "1.2"},
        ),
    )

    reading = pipeline.handle_reading.call_args.args[0]
    assert reading.device_id == "desk-01"
    assert reading.ts.isoformat() == "2025-06-01T12:00:00+00:00"
    assert (reading.t_c, reading.h_pct, reading.soil_pct) == (30.8, 62.0, 48.0)
    assert service.received == 1
    assert service.dropped == 0


def test_values_are_clamped(service, pipeline):
    service._on_message(None, None, _msg("plant/sensors/a", {"t_c": 99, "h_pct": -5, "soil_pct": 140}))

    reading = pipeline.handle_reading.call_args.args[0]
    assert (reading.t_c, reading.h_pct, reading.soil_pct) == (60.0, 0.0, 100.0)


def test_missing_and_non_numeric_values_become_zero(service, pipeline):
    service._on_message(None, None, _msg("plant/sensors/a", {"t_c": "warm", "soil_pct": None}))

    reading = pipeline.handle_reading.call_args.args[0]
    assert (reading.t_c, reading.h_pct, reading.soil_pct) == (0.0, 0.0, 0.0)


def test_device_id_falls_back_to_topic(service, pipeline):
    service._on_message(None, None, _msg("plant/sensors/kitchen-basil", {"soil_pct": 40}))
    assert pipeline.handle_reading.call_args.args[0].device_id == "kitchen-basil"


def test_missing_timestamp_uses_receive_time(service, pipeline):
    service._on_message(None, None, _msg("plant/sensors/a", {"soil_pct": 40, "ts": "yesterday"}))
    assert pipeline.handle_reading.call_args.args[0].ts.tzinfo is not None


@pytest.mark.parametrize(
    "payload",
    [b"not json", b"\xff\xfe\x00", b"[1, 2, 3]", b'"text"', b"42"],
)
def test_malformed_messages_dropped(service, pipeline, payload):
    service._on_message(None, None, _msg("plant/sensors/a", payload))

    pipeline.handle_reading.assert_not_called()
    assert service.dropped == 1


def test_message_without_any_device_id_dropped(fake_mqtt, pipeline):
    service = SensorIngestService(fake_mqtt, pipeline, topics=["plant/#"])

    service._on_message(None, None, _msg("plant/other", {"soil_pct": 40}))

    pipeline.handle_reading.assert_not_called()
    assert service.dropped == 1


def test_pipeline_errors_never_escape_callback(service, pipeline):
    pipeline.handle_reading.side_effect = RuntimeError("db locked")

    service._on_message(None, None, _msg("plant/sensors/a", {"soil_pct": 40}))

    assert service.received == 1


def test_end_to_end_through_container(container, fake_mqtt):
    container.start()

    fake_mqtt.deliver(
        "plant/sensors/desk-01",
        json.dumps({"deviceId": "desk-01", "t_c": 22, "h_pct": 50, "soil_pct": 15}).encode(),
    )

    [published] = fake_mqtt.published
    assert published["topic"] == "plant/device/desk-01/display"
    assert published["retain"] is True
    body = json.loads(published["payload"])
    assert body["priority"] == "high"
    assert body["advice"]["water_now"] is True
    assert container.advisory_repo.latest("desk-01") is not None
    assert container.email_service.sent[0].to_address == "owner@example.com"
