from auralink.services.application.device_profile_cache import DeviceProfileCache
from auralink.services.application.device_service import DeviceService
from auralink.services.application.dispatcher import AdvisoryDispatcher, DispatchResult
from auralink.services.application.pipeline import PipelineOutcome, SensorPipeline
from auralink.services.application.throttle import ThrottleController
from auralink.services.application.window_aggregator import WindowAggregator

__all__ = [
    "AdvisoryDispatcher",
    "DeviceProfileCache",
    "DeviceService",
    "DispatchResult",
    "PipelineOutcome",
    "SensorPipeline",
    "ThrottleController",
    "WindowAggregator",
]
