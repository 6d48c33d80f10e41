from __future__ import annotations

from datetime import datetime
from typing import Any

from auralink.domain.reading import SensorReading
from auralink.utils.time import storage_timestamp
from infrastructure.database.ops.readings import ReadingOperations


class ReadingRepository:
    """Facade over sensor reading persistence."""

    def __init__(self, backend: ReadingOperations) -> None:
        self._backend = backend

    def add(self, reading: SensorReading) -> int | None:
        return self._backend.insert_reading(
            device_id=reading.device_id,
            ts=storage_timestamp(reading.ts),
            t_c=reading.t_c,
            h_pct=reading.h_pct,
            soil_pct=reading.soil_pct,
        )

    def since(self, device_id: str, since: datetime) -> list[SensorReading]:
        """Readings at or after ``since``, oldest first."""
        rows = self._backend.get_readings_since(device_id, storage_timestamp(since))
        return [SensorReading.from_row(row) for row in rows]

    def most_recent(self, device_id: str, limit: int) -> list[SensorReading]:
        """Newest first."""
        rows = self._backend.get_recent_readings(device_id, limit)
        return [SensorReading.from_row(row) for row in rows]

    def history(self, device_id: str, limit: int = 50) -> list[dict[str, Any]]:
        return [SensorReading.from_row(row).to_dict() for row in self._backend.list_readings(device_id, limit)]
