from __future__ import annotations

from auralink.domain.device_profile import DeviceProfile
from auralink.enums import ProfileField
from infrastructure.database.ops.devices import DeviceOperations


class DeviceRepository:
    """Facade over device profile persistence."""

    def __init__(self, backend: DeviceOperations) -> None:
        self._backend = backend

    def get_profile(self, device_id: str) -> DeviceProfile | None:
        row = self._backend.get_device(device_id)
        return DeviceProfile.from_row(row) if row else None

    def set_field(self, device_id: str, field: ProfileField, value: str) -> bool:
        return self._backend.upsert_device_field(device_id, ProfileField(field).value, value)
