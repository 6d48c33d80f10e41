"""
Advisory Generator
==================
Turns a device profile and a window of readings into an
:class:`AdvisoryPayload`.

Two paths produce the payload:

* **External**: one request to the configured :class:`LLMBackend`, whose
  JSON reply is validated against :class:`AdvisoryOutputModel`.
* **Fallback**: deterministic window averages with fixed thresholds,
  used when no backend is configured or the external path fails for any
  reason.

Both paths pass through the same safety override, so critically dry soil
always yields ``priority="high"``.

Usage
-----
::

    generator = AdvisoryGenerator(backend=create_backend("gemini", api_key=key))
    payload = generator.generate(profile, window, latest=reading)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import TYPE_CHECKING, Any, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from auralink.domain.advisory import Advice, AdvisoryPayload, EmailDraft
from auralink.domain.device_profile import DeviceProfile
from auralink.domain.reading import SensorReading, WindowStats
from auralink.enums import AdvisorySource, Priority
from auralink.schemas.advisory import AdvisoryOutputModel
from auralink.utils.time import iso_now, storage_timestamp

if TYPE_CHECKING:
    from auralink.services.ai.llm_backends import LLMBackend

logger = logging.getLogger(__name__)

FALLBACK_QUOTE = "Gentle air, steady roots."
DEFAULT_SENDER = "AuraLinkPlant"
UNKNOWN_PLANT = "unknown"

_PROMPT_TEMPLATE = """\
You are {sender} helping a home grower via a tiny desk display.

Plant: {plant_name}

You receive a {window_minutes}-minute window of sensor readings as a JSON array:
Each item: {{"ts": ISO8601, "t_c": number, "h_pct": number, "soil_pct": number}}
readings = {readings_json}

Your job:
1) Infer ideal ranges for THIS plant (temperature, humidity, soil moisture) from your horticulture knowledge.
2) Compare window **averages and trends** to those ranges (first vs last + average).
3) Output EXACTLY ONE JSON OBJECT (not an array, not wrapped, no markdown) with this schema:
{{
  "quote": string,                                  // <= 60 chars
  "emails": [                                       // EXACTLY {max_emails} item(s)
    {{"from": "{sender}", "subject": string, "summary": string}} // <=140 chars
  ],
  "priority": "low"|"normal"|"high",
  "advice": {{"water_now": boolean, "reason": string}} // <= 90 chars
}}

Guidance:
- "high" if soil below ideal & trending down, or temps above ideal, or humidity far outside ideal.
- Within ideal and stable -> "normal" + water_now=false.
- If near lower soil bound -> suggest a small amount (e.g., "add 50-100 ml").
- Keep reason compact; e.g., "warm, comfy, optimal - no water needed".
- Subject <= 60 chars; no external people or extra fields.

Output: ONLY that single JSON object. Do NOT return an array.
"""


# ---------------------------------------------------------------------------
# Tagged reasoning result
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReasoningSuccess:
    """The external reply parsed and passed schema validation."""

    output: AdvisoryOutputModel
    model: str = ""
    latency_ms: float = 0.0


@dataclass(frozen=True)
class ReasoningFailure:
    """The external path could not produce a usable reply."""

    reason: str


ReasoningResult = Union[ReasoningSuccess, ReasoningFailure]


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class AdvisoryGenerator:
    """
    Produce advisories from a window of readings.

    Parameters
    ----------
    backend:
        Initialised LLM backend, or ``None`` to always use the fallback.
    low_soil_pct:
        Mean/latest soil moisture below this forces ``priority="high"``.
    water_soil_pct:
        Mean soil moisture below this sets ``advice.water_now``.
    max_emails:
        Maximum number of email drafts accepted from the external reply.
    window_seconds:
        Window duration, only used to describe the window in the prompt.
    """

    def __init__(
        self,
        backend: LLMBackend | None = None,
        *,
        low_soil_pct: float = 25.0,
        water_soil_pct: float = 35.0,
        max_emails: int = 1,
        window_seconds: int = 300,
        max_tokens: int = 512,
        temperature: float = 0.5,
        sender_name: str = DEFAULT_SENDER,
    ):
        self._backend = backend
        self.low_soil_pct = low_soil_pct
        self.water_soil_pct = water_soil_pct
        self.max_emails = max_emails
        self.window_seconds = window_seconds
        self._max_tokens = max_tokens
        self._temperature = temperature
        self.sender_name = sender_name

    @property
    def backend_name(self) -> str:
        if self._backend is None or not self._backend.is_available:
            return "none"
        return self._backend.name

    # -- public -------------------------------------------------------------

    def generate(
        self,
        profile: DeviceProfile,
        window: Sequence[SensorReading],
        latest: SensorReading | None = None,
        latest_ts: datetime | str | None = None,
    ) -> AdvisoryPayload:
        """Build an advisory; never raises."""
        window = list(window)
        stats = WindowStats.from_readings(window)
        ts = self._payload_ts(latest, latest_ts)
        plant_name = profile.plant_name or UNKNOWN_PLANT

        try:
            result = self.request_reasoning(plant_name, window)
            if isinstance(result, ReasoningSuccess):
                payload = self._from_output(result.output, ts)
                logger.info(
                    "Advisory for %s from %s (%.0f ms)",
                    profile.device_id,
                    result.model or self.backend_name,
                    result.latency_ms,
                )
            else:
                logger.info("Advisory for %s using fallback: %s", profile.device_id, result.reason)
                payload = self.fallback(plant_name, stats, ts, credential=self.backend_name != "none")
        except Exception as exc:
            logger.error("Advisory generation failed for %s: %s", profile.device_id, exc, exc_info=True)
            payload = self.fallback(plant_name, stats, ts, credential=self.backend_name != "none")

        return self.apply_safety_override(payload, stats, latest or (window[-1] if window else None))

    def request_reasoning(self, plant_name: str, window: Sequence[SensorReading]) -> ReasoningResult:
        """Issue exactly one external request and classify the outcome."""
        if self._backend is None or not self._backend.is_available:
            return ReasoningFailure("no reasoning backend configured")

        prompt = self.build_prompt(plant_name, window)
        try:
            response = self._backend.generate(
                system_prompt="",
                user_prompt=prompt,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                json_mode=True,
            )
        except Exception as exc:
            return ReasoningFailure(f"{self._backend.name} request failed: {exc}")

        try:
            output = self.parse_output(response.text)
        except (ValueError, PydanticValidationError) as exc:
            logger.debug("Rejected reasoning reply: %r", response.text)
            return ReasoningFailure(f"invalid reply: {exc}")

        return ReasoningSuccess(output=output, model=response.model, latency_ms=response.latency_ms)

    def build_prompt(self, plant_name: str, window: Sequence[SensorReading]) -> str:
        readings_json = json.dumps([r.to_dict() for r in window], separators=(",", ":"))
        return _PROMPT_TEMPLATE.format(
            sender=self.sender_name,
            plant_name=plant_name or UNKNOWN_PLANT,
            window_minutes=max(1, round(self.window_seconds / 60)),
            readings_json=readings_json,
            max_emails=self.max_emails,
        )

    def parse_output(self, text: str) -> AdvisoryOutputModel:
        """
        Parse and validate a raw reply.

        Markdown fences are stripped and an array reply is reduced to its
        first element (``{}`` when empty). Raises ``ValueError`` or a
        pydantic ``ValidationError``.
        """
        cleaned = (text or "").strip()
        if cleaned.startswith("```"):
            lines = [ln for ln in cleaned.split("\n") if not ln.strip().startswith("```")]
            cleaned = "\n".join(lines).strip()
        if not cleaned:
            raise ValueError("empty reply")

        try:
            data: Any = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise ValueError(f"reply is not JSON: {exc.msg}") from None

        if isinstance(data, list):
            data = data[0] if data else {}
        if not isinstance(data, dict):
            raise ValueError(f"reply is a JSON {type(data).__name__}, expected an object")

        return AdvisoryOutputModel.model_validate(data, context={"max_emails": self.max_emails})

    def fallback(
        self,
        plant_name: str,
        stats: WindowStats,
        ts: str,
        *,
        credential: bool = False,
    ) -> AdvisoryPayload:
        """Deterministic advisory from window averages."""
        mean_soil = stats.soil_pct
        if mean_soil is not None and mean_soil < self.low_soil_pct:
            priority = Priority.HIGH
        else:
            priority = Priority.NORMAL
        water_now = mean_soil is not None and mean_soil < self.water_soil_pct

        if credential:
            reason = "Reasoning service unavailable; using window average."
        else:
            reason = "No reasoning service configured; using window average."

        draft = EmailDraft(
            sender=self.sender_name,
            subject=f"{plant_name or UNKNOWN_PLANT} status (fallback)",
            summary=f"{stats.describe()}. Check watering and light.",
        )
        return AdvisoryPayload(
            ts=ts,
            quote=FALLBACK_QUOTE,
            priority=priority,
            advice=Advice(water_now=water_now, reason=reason),
            emails=(draft,),
            source=AdvisorySource.FALLBACK,
        )

    def apply_safety_override(
        self,
        payload: AdvisoryPayload,
        stats: WindowStats,
        latest: SensorReading | None,
    ) -> AdvisoryPayload:
        """
        Enforce the soil thresholds on any payload.

        ``priority`` becomes ``high`` when the latest soil reading or the
        window mean is below the low-soil threshold; ``water_now`` is set
        when the window mean is below the water threshold.
        """
        soil_values = [v for v in (stats.soil_pct, latest.soil_pct if latest else None) if v is not None]
        if payload.priority is not Priority.HIGH and any(v < self.low_soil_pct for v in soil_values):
            logger.info("Safety override: soil below %.0f%%, forcing high priority", self.low_soil_pct)
            payload = payload.with_priority(Priority.HIGH)

        if (
            stats.soil_pct is not None
            and stats.soil_pct < self.water_soil_pct
            and not payload.advice.water_now
        ):
            payload = replace(payload, advice=replace(payload.advice, water_now=True))
        return payload

    # -- internal -----------------------------------------------------------

    def _from_output(self, output: AdvisoryOutputModel, ts: str) -> AdvisoryPayload:
        return AdvisoryPayload(
            ts=ts,
            quote=output.quote,
            priority=Priority(output.priority),
            advice=Advice(water_now=output.advice.water_now, reason=output.advice.reason),
            emails=tuple(
                EmailDraft(sender=e.sender, subject=e.subject, summary=e.summary) for e in output.emails
            ),
            source=AdvisorySource.LLM,
        )

    @staticmethod
    def _payload_ts(latest: SensorReading | None, latest_ts: datetime | str | None) -> str:
        if isinstance(latest_ts, datetime):
            return storage_timestamp(latest_ts)
        if isinstance(latest_ts, str) and latest_ts:
            return latest_ts
        if latest is not None:
            return storage_timestamp(latest.ts)
        return iso_now(timespec="milliseconds")
