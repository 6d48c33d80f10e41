"""Repository facades exposing typed accessors over low-level mixins."""

from infrastructure.database.repositories.advisories import AdvisoryRepository
from infrastructure.database.repositories.devices import DeviceRepository
from infrastructure.database.repositories.readings import ReadingRepository

__all__ = [
    "AdvisoryRepository",
    "DeviceRepository",
    "ReadingRepository",
]
