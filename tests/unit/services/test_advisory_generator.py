"""
AdvisoryGenerator tests.

Covers both generation paths and the safety override:
1. External reply accepted when it validates
2. Any failure (no backend, transport error, bad JSON, schema violation)
   falls back to deterministic window averages
3. Critically dry soil always ends up ``priority="high"``
"""

from __future__ import annotations

import json
from dataclasses import replace

import pytest
import requests
from pydantic import ValidationError

from auralink.domain.device_profile import DeviceProfile
from auralink.domain.reading import WindowStats
from auralink.enums import AdvisorySource, Priority
from auralink.services.ai.advisory_generator import (
    FALLBACK_QUOTE,
    AdvisoryGenerator,
    ReasoningFailure,
    ReasoningSuccess,
)

PROFILE = DeviceProfile(device_id="desk-01", plant_name="Monstera")


def _reply(**overrides) -> str:
    body = {
        "quote": "Bright leaves, calm roots.",
        "emails": [{"from": "AuraLinkPlant", "subject": "Monstera is comfy", "summary": "All good."}],
        "priority": "normal",
        "advice": {"water_now": False, "reason": "warm, comfy, optimal"},
    }
    body.update(overrides)
    return json.dumps(body)


@pytest.fixture()
def window(make_reading):
    return [make_reading(soil_pct=soil, offset=i * 10) for i, soil in enumerate((50, 48, 46))]


# ---------------------------------------------------------------------------
# External path
# ---------------------------------------------------------------------------


class TestExternalPath:
    def test_valid_reply_is_used(self, fake_backend_factory, window):
        backend = fake_backend_factory(_reply())
        payload = AdvisoryGenerator(backend).generate(PROFILE, window, latest=window[-1])

        assert payload.source is AdvisorySource.LLM
        assert payload.quote == "Bright leaves, calm roots."
        assert payload.priority is Priority.NORMAL
        assert payload.advice.water_now is False
        assert payload.emails[0].subject == "Monstera is comfy"
        assert payload.ts == "2025-06-01T12:00:20.000+00:00"
        assert len(backend.calls) == 1
        assert backend.calls[0]["json_mode"] is True

    def test_prompt_carries_plant_and_window(self, fake_backend_factory, window):
        backend = fake_backend_factory(_reply())
        AdvisoryGenerator(backend, window_seconds=300).generate(PROFILE, window)

        prompt = backend.calls[0]["user_prompt"]
        assert "Plant: Monstera" in prompt
        assert "5-minute window" in prompt
        assert '"soil_pct":46' in prompt

    def test_unknown_plant_name_in_prompt(self, fake_backend_factory, window):
        backend = fake_backend_factory(_reply())
        AdvisoryGenerator(backend).generate(DeviceProfile(device_id="desk-01"), window)

        assert "Plant: unknown" in backend.calls[0]["user_prompt"]

    def test_fenced_array_reply_accepted(self, fake_backend_factory, window):
        backend = fake_backend_factory(f"```json\n[{_reply(priority='low')}]\n```")
        payload = AdvisoryGenerator(backend).generate(PROFILE, window)

        assert payload.source is AdvisorySource.LLM
        assert payload.priority is Priority.LOW

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "not json at all",
            "[]",
            '"just a string"',
            _reply(priority="urgent"),
            _reply(advice={"water_now": "yes", "reason": "dry"}),
            _reply(quote="x" * 101),
            _reply(emails=[{"from": "a", "subject": "s", "summary": "x"}] * 2),
        ],
    )
    def test_invalid_reply_falls_back(self, fake_backend_factory, window, text):
        payload = AdvisoryGenerator(fake_backend_factory(text)).generate(PROFILE, window)

        assert payload.source is AdvisorySource.FALLBACK
        assert payload.quote == FALLBACK_QUOTE
        assert payload.advice.reason == "Reasoning service unavailable; using window average."

    @pytest.mark.parametrize(
        "error",
        [requests.Timeout("read timed out"), requests.HTTPError("503"), RuntimeError("boom")],
    )
    def test_transport_failure_falls_back(self, fake_backend_factory, window, error):
        backend = fake_backend_factory(error=error)
        payload = AdvisoryGenerator(backend).generate(PROFILE, window)

        assert payload.source is AdvisorySource.FALLBACK
        assert len(backend.calls) == 1

    def test_request_reasoning_tags_results(self, fake_backend_factory, window):
        ok = AdvisoryGenerator(fake_backend_factory(_reply())).request_reasoning("Monstera", window)
        bad = AdvisoryGenerator(fake_backend_factory("nope")).request_reasoning("Monstera", window)
        none = AdvisoryGenerator(None).request_reasoning("Monstera", window)

        assert isinstance(ok, ReasoningSuccess)
        assert ok.model == "fake-1"
        assert isinstance(bad, ReasoningFailure)
        assert bad.reason.startswith("invalid reply")
        assert isinstance(none, ReasoningFailure)

    def test_more_drafts_allowed_when_configured(self, fake_backend_factory, window):
        drafts = [{"from": "a", "subject": f"s{i}", "summary": "x"} for i in range(2)]
        generator = AdvisoryGenerator(fake_backend_factory(_reply(emails=drafts)), max_emails=2)

        payload = generator.generate(PROFILE, window)

        assert payload.source is AdvisorySource.LLM
        assert len(payload.emails) == 2


# ---------------------------------------------------------------------------
# Fallback path
# ---------------------------------------------------------------------------


class TestFallback:
    def test_no_backend_uses_fallback(self, window):
        generator = AdvisoryGenerator(None)
        payload = generator.generate(PROFILE, window)

        assert generator.backend_name == "none"
        assert payload.source is AdvisorySource.FALLBACK
        assert payload.priority is Priority.NORMAL
        assert payload.advice.water_now is False
        assert payload.advice.reason == "No reasoning service configured; using window average."
        assert payload.emails[0].sender == "AuraLinkPlant"
        assert payload.emails[0].subject == "Monstera status (fallback)"
        assert payload.emails[0].summary == "Avg T=30.8°C, H=62%, Soil=48%. Check watering and light."

    def test_unavailable_backend_counts_as_none(self, fake_backend_factory, window):
        backend = fake_backend_factory(_reply(), available=False)
        payload = AdvisoryGenerator(backend).generate(PROFILE, window)

        assert payload.source is AdvisorySource.FALLBACK
        assert backend.calls == []

    def test_empty_window(self):
        payload = AdvisoryGenerator(None).generate(DeviceProfile(device_id="desk-01"), [])

        assert payload.priority is Priority.NORMAL
        assert payload.advice.water_now is False
        assert payload.emails[0].subject == "unknown status (fallback)"
        assert "Avg T=—°C, H=—%, Soil=—%" in payload.emails[0].summary
        assert payload.ts.endswith("+00:00")

    @pytest.mark.parametrize(
        ("soil", "priority", "water_now"),
        [(20, Priority.HIGH, True), (30, Priority.NORMAL, True), (35, Priority.NORMAL, False), (60, Priority.NORMAL, False)],
    )
    def test_thresholds(self, make_reading, soil, priority, water_now):
        window = [make_reading(soil_pct=soil)]
        payload = AdvisoryGenerator(None, low_soil_pct=25, water_soil_pct=35).generate(PROFILE, window)

        assert payload.priority is priority
        assert payload.advice.water_now is water_now

    def test_explicit_latest_ts_wins(self, window):
        payload = AdvisoryGenerator(None).generate(PROFILE, window, latest_ts="2030-01-01T00:00:00.000+00:00")
        assert payload.ts == "2030-01-01T00:00:00.000+00:00"

    def test_fallback_is_deterministic_apart_from_ts(self, window):
        generator = AdvisoryGenerator(None)

        first = generator.generate(PROFILE, window, latest_ts="2025-06-01T12:00:20.000+00:00")
        second = generator.generate(PROFILE, list(window), latest_ts="2025-06-01T12:05:20.000+00:00")

        assert first.ts != second.ts
        assert replace(second, ts=first.ts) == first
        first_fields = {k: v for k, v in first.to_dict().items() if k != "ts"}
        second_fields = {k: v for k, v in second.to_dict().items() if k != "ts"}
        assert first_fields == second_fields


# ---------------------------------------------------------------------------
# Safety override
# ---------------------------------------------------------------------------


class TestSafetyOverride:
    def test_dry_mean_overrides_external_priority(self, fake_backend_factory, make_reading):
        window = [make_reading(soil_pct=18, offset=i) for i in range(3)]
        backend = fake_backend_factory(_reply(priority="low"))

        payload = AdvisoryGenerator(backend).generate(PROFILE, window)

        assert payload.source is AdvisorySource.LLM
        assert payload.priority is Priority.HIGH
        assert payload.advice.water_now is True

    def test_dry_latest_overrides_even_when_mean_is_fine(self, fake_backend_factory, make_reading):
        window = [make_reading(soil_pct=s, offset=i) for i, s in enumerate((60, 60, 20))]
        backend = fake_backend_factory(_reply(priority="normal"))

        payload = AdvisoryGenerator(backend).generate(PROFILE, window, latest=window[-1])

        assert payload.priority is Priority.HIGH

    def test_dry_desk_sample_is_high_and_waters(self, fake_backend_factory, make_reading):
        window = [make_reading(t_c=30.8, h_pct=62, soil_pct=20)]

        for backend in (None, fake_backend_factory(_reply(priority="normal"))):
            payload = AdvisoryGenerator(backend).generate(PROFILE, window, latest=window[0])
            assert payload.priority is Priority.HIGH
            assert payload.advice.water_now is True

    def test_water_band_sets_water_now_but_keeps_priority(self, fake_backend_factory, make_reading):
        window = [make_reading(soil_pct=s, offset=i) for i, s in enumerate((32, 30, 28))]
        backend = fake_backend_factory(_reply(priority="normal"))

        payload = AdvisoryGenerator(backend, low_soil_pct=25, water_soil_pct=35).generate(
            PROFILE, window, latest=window[-1]
        )

        assert payload.source is AdvisorySource.LLM
        assert payload.advice.water_now is True
        assert payload.priority is Priority.NORMAL
        assert payload.advice.reason == "warm, comfy, optimal"

    def test_override_leaves_other_fields(self, fake_backend_factory, make_reading):
        window = [make_reading(soil_pct=10)]
        payload = AdvisoryGenerator(fake_backend_factory(_reply())).generate(PROFILE, window)

        assert payload.quote == "Bright leaves, calm roots."
        assert payload.advice.reason == "warm, comfy, optimal"

    @pytest.mark.parametrize("soil", [0, 5, 12.5, 24.9])
    def test_property_low_soil_is_always_high(self, make_reading, fake_backend_factory, soil):
        for backend in (None, fake_backend_factory(_reply(priority="low")), fake_backend_factory("garbage")):
            window = [make_reading(soil_pct=soil, offset=i) for i in range(5)]
            payload = AdvisoryGenerator(backend, low_soil_pct=25).generate(PROFILE, window)
            assert payload.priority is Priority.HIGH

    def test_apply_safety_override_direct(self, make_reading):
        generator = AdvisoryGenerator(None)
        base = generator.fallback("Fern", WindowStats.from_readings([make_reading(soil_pct=50)]), "ts")
        stats = WindowStats.from_readings([make_reading(soil_pct=22)])

        result = generator.apply_safety_override(base, stats, None)

        assert base.priority is Priority.NORMAL
        assert result.priority is Priority.HIGH
        assert result.advice.water_now is True


# ---------------------------------------------------------------------------
# parse_output
# ---------------------------------------------------------------------------


class TestParseOutput:
    def test_sender_alias(self):
        output = AdvisoryGenerator(None).parse_output(_reply())
        assert output.emails[0].sender == "AuraLinkPlant"

    def test_missing_optional_fields_default(self):
        output = AdvisoryGenerator(None).parse_output(
            json.dumps({"quote": "q", "advice": {"water_now": True, "reason": "dry"}})
        )
        assert output.priority == "normal"
        assert output.emails == []

    def test_missing_advice_rejected(self):
        with pytest.raises(ValidationError):
            AdvisoryGenerator(None).parse_output(json.dumps({"quote": "q"}))

    def test_scalar_rejected(self):
        with pytest.raises(ValueError):
            AdvisoryGenerator(None).parse_output("42")
