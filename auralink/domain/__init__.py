"""
Domain Value Objects Package
=============================
Immutable value objects for readings, device profiles and advisories.
"""

from .advisory import Advice, AdvisoryPayload, EmailDraft
from .device_profile import DeviceProfile
from .reading import SensorReading, WindowStats

__all__ = [
    "Advice",
    "AdvisoryPayload",
    "DeviceProfile",
    "EmailDraft",
    "SensorReading",
    "WindowStats",
]
