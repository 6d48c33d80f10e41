"""
Device Service
==============
Management and history operations behind the ``/api/device`` blueprint.

Profile writes go to storage first and then through to the profile cache
so the next advisory cycle sees them immediately.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from auralink.domain.exceptions import NotFoundError, RepositoryError, ValidationError
from auralink.enums import ProfileField

if TYPE_CHECKING:
    from auralink.services.application.device_profile_cache import DeviceProfileCache
    from infrastructure.database.repositories.advisories import AdvisoryRepository
    from infrastructure.database.repositories.devices import DeviceRepository
    from infrastructure.database.repositories.readings import ReadingRepository

logger = logging.getLogger(__name__)

DEFAULT_DISPLAY_LIMIT = 20
MAX_DISPLAY_LIMIT = 100
DEFAULT_READING_LIMIT = 50
MAX_READING_LIMIT = 500


def clamp_limit(value: Any, default: int, maximum: int) -> int:
    """Parse a ``?limit=`` value; invalid or non-positive values use ``default``."""
    try:
        limit = int(value)
    except (TypeError, ValueError):
        return default
    if limit <= 0:
        return default
    return min(limit, maximum)


class DeviceService:
    def __init__(
        self,
        device_repo: DeviceRepository,
        reading_repo: ReadingRepository,
        advisory_repo: AdvisoryRepository,
        profile_cache: DeviceProfileCache,
    ) -> None:
        self._devices = device_repo
        self._readings = reading_repo
        self._advisories = advisory_repo
        self._profiles = profile_cache

    def set_profile_field(self, device_id: str, field: ProfileField, value: str) -> str:
        """Persist one profile field and write it through to the cache."""
        device_id = (device_id or "").strip()
        value = (value or "").strip()
        if not device_id:
            raise ValidationError("device id required")
        if not value:
            raise ValidationError(f"{ProfileField(field).value} required")

        if not self._devices.set_field(device_id, field, value):
            raise RepositoryError(f"Could not save {ProfileField(field).value} for {device_id}")
        self._profiles.set_field(device_id, field, value)
        logger.info("Device %s %s updated", device_id, ProfileField(field).value)
        return value

    def get_profile_field(self, device_id: str, field: ProfileField) -> str:
        return self._profiles.get_field(device_id, field)

    def latest_display(self, device_id: str) -> dict[str, Any]:
        payload = self._advisories.latest(device_id)
        if payload is None:
            raise NotFoundError(f"No display payload for {device_id}")
        return payload

    def list_displays(self, device_id: str, limit: Any = None) -> list[dict[str, Any]]:
        return self._advisories.history(device_id, clamp_limit(limit, DEFAULT_DISPLAY_LIMIT, MAX_DISPLAY_LIMIT))

    def list_readings(self, device_id: str, limit: Any = None) -> list[dict[str, Any]]:
        return self._readings.history(device_id, clamp_limit(limit, DEFAULT_READING_LIMIT, MAX_READING_LIMIT))
