"""
Device Profile Cache
====================
In-memory map of device id to :class:`DeviceProfile`.

Written through by the management API, warmed at startup for the locally
configured device and read through from storage on a miss. Lookups never
raise and never return ``None``: unknown values resolve to ``""``.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from auralink.domain.device_profile import DeviceProfile
from auralink.enums import ProfileField

if TYPE_CHECKING:
    from infrastructure.database.repositories.devices import DeviceRepository

logger = logging.getLogger(__name__)


class DeviceProfileCache:
    """Thread-safe read-through cache of device profiles."""

    def __init__(self, device_repo: DeviceRepository | None = None) -> None:
        self._repo = device_repo
        self._profiles: dict[str, DeviceProfile] = {}
        self._lock = threading.Lock()

    def warm(self, device_id: str) -> None:
        """Best-effort preload of one device; unknown devices are left uncached."""
        if not device_id or self._repo is None:
            return
        try:
            profile = self._repo.get_profile(device_id)
        except Exception as exc:
            logger.warning("Could not warm profile cache for %s: %s", device_id, exc)
            return
        if profile is None:
            logger.debug("No stored profile for %s; cache left cold", device_id)
            return
        with self._lock:
            self._profiles[device_id] = profile
        logger.info("Profile cache warmed for %s (plant=%r)", device_id, profile.plant_name)

    def set_field(self, device_id: str, field: ProfileField | str, value: str | None) -> None:
        """Merge one trimmed field into the cached profile."""
        name = ProfileField(field)  # ValueError on unknown fields
        if not device_id:
            return
        cleaned = (value or "").strip()
        with self._lock:
            current = self._profiles.get(device_id) or DeviceProfile(device_id=device_id)
            self._profiles[device_id] = current.merged(name, cleaned)

    def get_field(self, device_id: str, field: ProfileField | str) -> str:
        return self.get_profile(device_id).get(ProfileField(field))

    def get_profile(self, device_id: str) -> DeviceProfile:
        if not device_id:
            return DeviceProfile(device_id="")
        with self._lock:
            cached = self._profiles.get(device_id)
        if cached is not None:
            return cached

        profile = self._load(device_id)
        with self._lock:
            # A concurrent write-through wins over the storage read
            return self._profiles.setdefault(device_id, profile)

    def invalidate(self, device_id: str) -> None:
        with self._lock:
            self._profiles.pop(device_id, None)

    def clear(self) -> None:
        with self._lock:
            self._profiles.clear()

    def __contains__(self, device_id: object) -> bool:
        with self._lock:
            return device_id in self._profiles

    def _load(self, device_id: str) -> DeviceProfile:
        if self._repo is None:
            return DeviceProfile(device_id=device_id)
        try:
            profile = self._repo.get_profile(device_id)
        except Exception as exc:
            logger.warning("Profile lookup failed for %s: %s", device_id, exc)
            profile = None
        return profile or DeviceProfile(device_id=device_id)
