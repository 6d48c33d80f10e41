"""
Sensor Pipeline
===============
Handles one validated :class:`SensorReading` to completion:

1. persist the reading (a failure ends the cycle here)
2. throttle gate, per device
3. fetch the window, mark the throttle, generate, dispatch

Only step 3 is rate limited; every reading that reaches the pipeline is
stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from auralink.domain.advisory import AdvisoryPayload
from auralink.domain.reading import SensorReading

if TYPE_CHECKING:
    from auralink.services.ai.advisory_generator import AdvisoryGenerator
    from auralink.services.application.device_profile_cache import DeviceProfileCache
    from auralink.services.application.dispatcher import AdvisoryDispatcher, DispatchResult
    from auralink.services.application.throttle import ThrottleController
    from auralink.services.application.window_aggregator import WindowAggregator
    from infrastructure.database.repositories.readings import ReadingRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineOutcome:
    """What happened to one reading."""

    persisted: bool
    generated: bool = False
    payload: AdvisoryPayload | None = None
    dispatch: DispatchResult | None = None

    @property
    def throttled(self) -> bool:
        return self.persisted and not self.generated


class SensorPipeline:
    """Orchestrates persist, throttle, generate and dispatch for each reading."""

    def __init__(
        self,
        reading_repo: ReadingRepository,
        window_aggregator: WindowAggregator,
        throttle: ThrottleController,
        generator: AdvisoryGenerator,
        dispatcher: AdvisoryDispatcher,
        profile_cache: DeviceProfileCache,
        output_topic_for: Callable[[str], str],
        *,
        window_seconds: int = 300,
        min_samples: int = 30,
    ) -> None:
        self._readings = reading_repo
        self._windows = window_aggregator
        self._throttle = throttle
        self._generator = generator
        self._dispatcher = dispatcher
        self._profiles = profile_cache
        self._output_topic_for = output_topic_for
        self.window_seconds = window_seconds
        self.min_samples = min_samples

    def handle_reading(self, reading: SensorReading) -> PipelineOutcome:
        device_id = reading.device_id
        if self._readings.add(reading) is None:
            logger.error("Reading for %s not stored; skipping advisory cycle", device_id)
            return PipelineOutcome(persisted=False)

        if not self._throttle.should_run(device_id):
            logger.debug("Advisory for %s throttled", device_id)
            return PipelineOutcome(persisted=True)

        window = self._windows.read_window(device_id, self.window_seconds, self.min_samples)
        self._throttle.mark_run(device_id)

        profile = self._profiles.get_profile(device_id)
        payload = self._generator.generate(profile, window, latest=reading)
        dispatch = self._dispatcher.dispatch(device_id, payload, self._output_topic_for(device_id), window=window)
        return PipelineOutcome(persisted=True, generated=True, payload=payload, dispatch=dispatch)
