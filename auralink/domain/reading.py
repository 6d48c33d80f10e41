"""
Sensor Reading Value Object
============================
Immutable value object representing one environmental sample from a plant
display device, plus the window statistics derived from a run of them.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from auralink.utils.time import coerce_datetime, storage_timestamp, utc_now

TEMPERATURE_RANGE = (-10.0, 60.0)
PERCENT_RANGE = (0.0, 100.0)


def _clamp(value: float, bounds: tuple[float, float]) -> float:
    low, high = bounds
    return max(low, min(high, value))


def _to_float(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


@dataclass(frozen=True)
class SensorReading:
    """
    Immutable sensor reading value object.

    Values are range-clamped at the ingestion boundary (see
    :meth:`from_message`); everything downstream trusts them.
    """

    device_id: str
    ts: datetime
    t_c: float
    h_pct: float
    soil_pct: float

    @classmethod
    def from_message(cls, data: dict[str, Any], *, device_id: str | None = None) -> "SensorReading":
        """Build a clamped reading from a decoded inbound message.

        Missing or non-numeric values become ``0`` before clamping and a
        missing/invalid ``ts`` becomes the receive time.
        """
        return cls(
            device_id=str(data.get("deviceId") or data.get("device_id") or device_id or ""),
            ts=coerce_datetime(data.get("ts")) or utc_now(),
            t_c=_clamp(_to_float(data.get("t_c")), TEMPERATURE_RANGE),
            h_pct=_clamp(_to_float(data.get("h_pct")), PERCENT_RANGE),
            soil_pct=_clamp(_to_float(data.get("soil_pct")), PERCENT_RANGE),
        )

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SensorReading":
        """Build a reading from a storage row."""
        return cls(
            device_id=row["device_id"],
            ts=coerce_datetime(row["ts"]) or utc_now(),
            t_c=float(row["t_c"]),
            h_pct=float(row["h_pct"]),
            soil_pct=float(row["soil_pct"]),
        )

    def to_dict(self) -> dict[str, Any]:
        """Window element as sent to the reasoning service and the history API."""
        return {
            "ts": storage_timestamp(self.ts),
            "t_c": self.t_c,
            "h_pct": self.h_pct,
            "soil_pct": self.soil_pct,
        }


@dataclass(frozen=True)
class WindowStats:
    """Arithmetic means over a window; ``None`` when the window is empty."""

    count: int
    t_c: float | None
    h_pct: float | None
    soil_pct: float | None
    first_ts: datetime | None = None
    last_ts: datetime | None = None

    @classmethod
    def from_readings(cls, readings: Sequence[SensorReading]) -> "WindowStats":
        if not readings:
            return cls(count=0, t_c=None, h_pct=None, soil_pct=None)
        n = len(readings)
        return cls(
            count=n,
            t_c=sum(r.t_c for r in readings) / n,
            h_pct=sum(r.h_pct for r in readings) / n,
            soil_pct=sum(r.soil_pct for r in readings) / n,
            first_ts=readings[0].ts,
            last_ts=readings[-1].ts,
        )

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def describe(self, placeholder: str = "—") -> str:
        """Render ``Avg T=..°C, H=..%, Soil=..%`` with placeholders for missing means."""
        t = placeholder if self.t_c is None else f"{round(self.t_c, 1)}"
        h = placeholder if self.h_pct is None else f"{round(self.h_pct)}"
        s = placeholder if self.soil_pct is None else f"{round(self.soil_pct)}"
        return f"Avg T={t}°C, H={h}%, Soil={s}%"
