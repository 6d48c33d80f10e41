from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from auralink.domain.reading import SensorReading
from auralink.utils.time import utc_now

if TYPE_CHECKING:
    from infrastructure.database.repositories.readings import ReadingRepository

logger = logging.getLogger(__name__)


class WindowAggregator:
    """Builds the chronological reading window handed to the advisory generator."""

    def __init__(self, reading_repo: ReadingRepository) -> None:
        self._repo = reading_repo

    def read_window(
        self,
        device_id: str,
        window_seconds: int,
        min_sample_fallback: int,
        *,
        now: datetime | None = None,
    ) -> list[SensorReading]:
        """
        Readings from the trailing ``window_seconds``, oldest first.

        When that span is empty (cold start, sensor gap) the newest
        ``min_sample_fallback`` readings are returned instead, still oldest
        first. Empty only when the device has no history at all.
        """
        since = (now or utc_now()) - timedelta(seconds=window_seconds)
        window = self._repo.since(device_id, since)
        if window:
            return window

        recent = self._repo.most_recent(device_id, min_sample_fallback)
        if recent:
            logger.debug(
                "No readings for %s in the last %ss; using %s most recent",
                device_id,
                window_seconds,
                len(recent),
            )
        recent.reverse()
        return recent
