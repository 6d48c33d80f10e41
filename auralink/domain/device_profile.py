from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from auralink.enums import ProfileField


@dataclass(frozen=True)
class DeviceProfile:
    """Mutable-by-replacement device metadata. Absent fields are empty strings."""

    device_id: str
    plant_name: str = ""
    notify_email: str = ""

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "DeviceProfile":
        return cls(
            device_id=row.get("device_id") or "",
            plant_name=row.get("plant_name") or "",
            notify_email=row.get("notify_email") or "",
        )

    def get(self, name: ProfileField) -> str:
        return getattr(self, ProfileField(name).value)

    def merged(self, name: ProfileField, value: str) -> "DeviceProfile":
        return replace(self, **{ProfileField(name).value: value})

    def to_dict(self) -> dict[str, str]:
        return {
            "device_id": self.device_id,
            "plant_name": self.plant_name,
            "notify_email": self.notify_email,
        }
