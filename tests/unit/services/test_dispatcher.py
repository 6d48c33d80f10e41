"""
AdvisoryDispatcher tests.

Each delivery step (publish, persist, email) is independent: a failure in
one is reported in the result but never blocks the others.
"""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from auralink.domain.advisory import Advice, AdvisoryPayload, EmailDraft
from auralink.enums import AdvisorySource, Priority, ProfileField
from auralink.services.application.dispatcher import AdvisoryDispatcher, compose_email_body

TOPIC = "plant/device/desk-01/display"


@pytest.fixture()
def payload():
    return AdvisoryPayload(
        ts="2025-06-01T12:00:00.000+00:00",
        quote="Gentle air, steady roots.",
        priority=Priority.HIGH,
        advice=Advice(water_now=True, reason="soil dry"),
        emails=(EmailDraft(sender="AuraLinkPlant", subject="Fern needs water", summary="Soil at 20%."),),
        source=AdvisorySource.LLM,
    )


@pytest.fixture()
def dispatcher(fake_mqtt, advisory_repo, profile_cache, fake_mailer):
    return AdvisoryDispatcher(
        publisher=fake_mqtt,
        advisory_repo=advisory_repo,
        profile_cache=profile_cache,
        email_service=fake_mailer,
        default_recipient="owner@example.com",
    )


def test_publishes_retained_qos1_json(dispatcher, fake_mqtt, payload):
    result = dispatcher.dispatch("desk-01", payload, TOPIC)

    assert result.published is True
    [message] = fake_mqtt.published
    assert message["topic"] == TOPIC
    assert message["qos"] == 1
    assert message["retain"] is True
    body = json.loads(message["payload"])
    assert body == {
        "ts": "2025-06-01T12:00:00.000+00:00",
        "quote": "Gentle air, steady roots.",
        "emails": [{"from": "AuraLinkPlant", "subject": "Fern needs water", "summary": "Soil at 20%."}],
        "priority": "high",
        "advice": {"water_now": True, "reason": "soil dry"},
    }


def test_persists_payload(dispatcher, advisory_repo, payload):
    result = dispatcher.dispatch("desk-01", payload, TOPIC)

    assert result.persisted is True
    record = advisory_repo.latest("desk-01")
    assert record["payload"]["priority"] == "high"
    assert record["ts"] == payload.ts


def test_email_goes_to_device_address(dispatcher, profile_cache, fake_mailer, payload):
    profile_cache.set_field("desk-01", ProfileField.NOTIFY_EMAIL, "grower@example.com")

    result = dispatcher.dispatch("desk-01", payload, TOPIC)

    assert result.emailed is True
    [message] = fake_mailer.sent
    assert message.to_address == "grower@example.com"
    assert message.subject == "Fern needs water"


def test_email_falls_back_to_default_recipient(dispatcher, fake_mailer, payload):
    dispatcher.dispatch("desk-01", payload, TOPIC)
    assert fake_mailer.sent[0].to_address == "owner@example.com"


def test_no_recipient_skips_email(fake_mqtt, advisory_repo, profile_cache, fake_mailer, payload):
    dispatcher = AdvisoryDispatcher(fake_mqtt, advisory_repo, profile_cache, fake_mailer, default_recipient="")

    result = dispatcher.dispatch("desk-01", payload, TOPIC)

    assert result.emailed is False
    assert fake_mailer.sent == []
    assert result.published is True


def test_blank_subject_skips_email(dispatcher, fake_mailer, payload):
    from dataclasses import replace

    silent = replace(payload, emails=(EmailDraft(sender="x", subject="  ", summary="y"),))
    result = dispatcher.dispatch("desk-01", silent, TOPIC)

    assert result.emailed is False
    assert fake_mailer.sent == []


def test_publish_failure_does_not_block_persist_or_email(dispatcher, fake_mqtt, fake_mailer, advisory_repo, payload):
    fake_mqtt.publish_ok = False

    result = dispatcher.dispatch("desk-01", payload, TOPIC)

    assert result.to_dict() == {"published": False, "persisted": True, "emailed": True}
    assert advisory_repo.latest("desk-01") is not None


def test_publisher_exception_is_contained(advisory_repo, profile_cache, payload):
    publisher = MagicMock()
    publisher.publish.side_effect = OSError("socket closed")
    dispatcher = AdvisoryDispatcher(publisher, advisory_repo, profile_cache)

    result = dispatcher.dispatch("desk-01", payload, TOPIC)

    assert result.published is False
    assert result.persisted is True


def test_persist_failure_does_not_block_publish(fake_mqtt, profile_cache, payload):
    repo = MagicMock()
    repo.save.return_value = None
    dispatcher = AdvisoryDispatcher(fake_mqtt, repo, profile_cache)

    result = dispatcher.dispatch("desk-01", payload, TOPIC)

    assert result.persisted is False
    assert result.published is True


def test_mailer_failure_reported(dispatcher, fake_mailer, payload):
    fake_mailer.ok = False
    assert dispatcher.dispatch("desk-01", payload, TOPIC).emailed is False


def test_no_publisher(advisory_repo, profile_cache, payload):
    result = AdvisoryDispatcher(None, advisory_repo, profile_cache).dispatch("desk-01", payload, TOPIC)
    assert result.published is False
    assert result.persisted is True


def test_email_body_contents(payload, make_reading):
    window = [make_reading(soil_pct=22, offset=0), make_reading(soil_pct=18, offset=60)]

    body = compose_email_body(payload.emails[0], payload, window)

    assert body.startswith("Soil at 20%.")
    assert "Reason: soil dry" in body
    assert "Action: Water now." in body
    assert "Priority: high" in body
    assert "Window: 2025-06-01T12:00:00.000+00:00 to 2025-06-01T12:01:00.000+00:00 (2 readings)" in body
    assert "Avg T=30.8°C, H=62%, Soil=20%" in body
    assert "Latest: T=30.8°C, H=62%, Soil=18%" in body
    assert body.endswith('"Gentle air, steady roots."')


def test_email_body_without_window(payload):
    body = compose_email_body(payload.emails[0], payload, [])
    assert "Window: no readings" in body
    assert "Latest:" not in body
