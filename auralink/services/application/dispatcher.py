"""
Advisory Dispatcher
===================
Delivers a generated advisory: retained MQTT publish to the display,
history persistence, and an optional notification email.

Each step is attempted independently; a failure is logged and reported in
the :class:`DispatchResult` but never stops the remaining steps.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, Sequence

from auralink.domain.advisory import AdvisoryPayload, EmailDraft
from auralink.domain.reading import SensorReading, WindowStats
from auralink.enums import ProfileField
from auralink.services.utilities.email_service import EmailMessage
from auralink.utils.time import storage_timestamp

if TYPE_CHECKING:
    from auralink.services.application.device_profile_cache import DeviceProfileCache
    from auralink.services.utilities.email_service import EmailService
    from infrastructure.database.repositories.advisories import AdvisoryRepository

logger = logging.getLogger(__name__)

DISPLAY_QOS = 1


class Publisher(Protocol):
    def publish(self, topic: str, payload: Any, qos: int = 0, retain: bool = False) -> bool: ...


@dataclass(frozen=True)
class DispatchResult:
    published: bool = False
    persisted: bool = False
    emailed: bool = False

    def to_dict(self) -> dict[str, bool]:
        return {"published": self.published, "persisted": self.persisted, "emailed": self.emailed}


class AdvisoryDispatcher:
    """Publish, persist and optionally email one advisory."""

    def __init__(
        self,
        publisher: Publisher | None,
        advisory_repo: AdvisoryRepository,
        profile_cache: DeviceProfileCache,
        email_service: EmailService | None = None,
        default_recipient: str = "",
    ) -> None:
        self._publisher = publisher
        self._advisories = advisory_repo
        self._profiles = profile_cache
        self._email = email_service
        self._default_recipient = default_recipient

    def dispatch(
        self,
        device_id: str,
        payload: AdvisoryPayload,
        output_topic: str,
        window: Sequence[SensorReading] | None = None,
    ) -> DispatchResult:
        window = list(window or [])
        published = self._publish(output_topic, payload)
        persisted = self._persist(device_id, payload)
        emailed = self._notify(device_id, payload, window)
        result = DispatchResult(published=published, persisted=persisted, emailed=emailed)
        logger.info(
            "Dispatched %s advisory for %s (priority=%s): %s",
            payload.source.value,
            device_id,
            payload.priority.value,
            result.to_dict(),
        )
        return result

    # -- steps ----------------------------------------------------------------

    def _publish(self, topic: str, payload: AdvisoryPayload) -> bool:
        if self._publisher is None:
            logger.debug("No publisher configured; skipping display update on %s", topic)
            return False
        try:
            body = json.dumps(payload.to_dict(), ensure_ascii=False)
            return bool(self._publisher.publish(topic, body, qos=DISPLAY_QOS, retain=True))
        except Exception as exc:
            logger.error("Publishing advisory to %s failed: %s", topic, exc)
            return False

    def _persist(self, device_id: str, payload: AdvisoryPayload) -> bool:
        try:
            return self._advisories.save(device_id, payload) is not None
        except Exception as exc:
            logger.error("Persisting advisory for %s failed: %s", device_id, exc)
            return False

    def _notify(self, device_id: str, payload: AdvisoryPayload, window: list[SensorReading]) -> bool:
        draft = payload.first_email()
        if draft is None or self._email is None:
            return False

        recipient = self._profiles.get_field(device_id, ProfileField.NOTIFY_EMAIL) or self._default_recipient
        if not recipient:
            logger.warning("Advisory email for %s dropped: no recipient configured", device_id)
            return False

        message = EmailMessage(
            to_address=recipient,
            subject=draft.subject,
            body_text=compose_email_body(draft, payload, window),
        )
        try:
            return self._email.send(message)
        except Exception as exc:
            logger.error("Advisory email for %s failed: %s", device_id, exc)
            return False


def compose_email_body(draft: EmailDraft, payload: AdvisoryPayload, window: Sequence[SensorReading]) -> str:
    """Plain-text notification body for an advisory."""
    stats = WindowStats.from_readings(window)
    action = "Water now." if payload.advice.water_now else "No watering needed right now."

    lines = [draft.summary.strip() or draft.subject]
    lines.append("")
    if payload.advice.reason:
        lines.append(f"Reason: {payload.advice.reason}")
    lines.append(f"Action: {action}")
    lines.append(f"Priority: {payload.priority.value}")
    lines.append("")
    if stats.is_empty:
        lines.append("Window: no readings")
    else:
        lines.append(
            f"Window: {storage_timestamp(stats.first_ts)} to {storage_timestamp(stats.last_ts)} "
            f"({stats.count} readings)"
        )
    lines.append(stats.describe())
    if window:
        last = window[-1]
        lines.append(
            f"Latest: T={round(last.t_c, 1)}°C, H={round(last.h_pct)}%, Soil={round(last.soil_pct)}% "
            f"at {storage_timestamp(last.ts)}"
        )
    lines.append("")
    lines.append(f'"{payload.quote}"')
    return "\n".join(lines)
