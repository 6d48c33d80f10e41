from __future__ import annotations

import threading
import time


class ThrottleController:
    """
    Per-device cooldown for advisory generation.

    A device may run when it never ran before or at least ``interval_seconds``
    have passed since its last run. State lives in memory only and uses the
    monotonic clock, so wall-clock jumps do not affect it.
    """

    def __init__(self, interval_seconds: float = 300.0) -> None:
        self.interval_seconds = float(interval_seconds)
        self._last_run: dict[str, float] = {}
        self._lock = threading.Lock()

    def should_run(self, device_id: str, now: float | None = None) -> bool:
        now = time.monotonic() if now is None else now
        with self._lock:
            last = self._last_run.get(device_id)
        return last is None or now - last >= self.interval_seconds

    def mark_run(self, device_id: str, now: float | None = None) -> None:
        now = time.monotonic() if now is None else now
        with self._lock:
            self._last_run[device_id] = now

    def reset(self, device_id: str | None = None) -> None:
        """Forget one device, or every device when ``device_id`` is None."""
        with self._lock:
            if device_id is None:
                self._last_run.clear()
            else:
                self._last_run.pop(device_id, None)
