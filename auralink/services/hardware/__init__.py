from auralink.services.hardware.sensor_ingest_service import SensorIngestService

__all__ = ["SensorIngestService"]
