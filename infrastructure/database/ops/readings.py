from __future__ import annotations

import logging
import sqlite3
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

MAX_READINGS_PAGE = 500


class ReadingOperations:
    """Sensor reading persistence helpers shared across database handlers."""

    def insert_reading(
        self,
        *,
        device_id: str,
        ts: str,
        t_c: float,
        h_pct: float,
        soil_pct: float,
    ) -> Optional[int]:
        """Store one sample. ``ts`` must be a storage timestamp (UTC, ms)."""
        try:
            db = self.get_db()
            cursor = db.execute(
                """
                INSERT INTO Readings (device_id, ts, t_c, h_pct, soil_pct)
                VALUES (?, ?, ?, ?, ?)
                """,
                (device_id, ts, t_c, h_pct, soil_pct),
            )
            db.commit()
            return cursor.lastrowid
        except sqlite3.Error as exc:
            logger.error("Failed to insert reading for %s: %s", device_id, exc)
            return None

    def get_readings_since(self, device_id: str, since_ts: str) -> List[dict[str, Any]]:
        """Readings with ``ts >= since_ts``, oldest first."""
        try:
            db = self.get_db()
            cursor = db.execute(
                """
                SELECT reading_id, device_id, ts, t_c, h_pct, soil_pct
                FROM Readings
                WHERE device_id = ? AND ts >= ?
                ORDER BY ts ASC, reading_id ASC
                """,
                (device_id, since_ts),
            )
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            logger.error("Failed to read window for %s: %s", device_id, exc)
            return []

    def get_recent_readings(self, device_id: str, limit: int) -> List[dict[str, Any]]:
        """Most recent ``limit`` readings, newest first."""
        try:
            db = self.get_db()
            cursor = db.execute(
                """
                SELECT reading_id, device_id, ts, t_c, h_pct, soil_pct
                FROM Readings
                WHERE device_id = ?
                ORDER BY ts DESC, reading_id DESC
                LIMIT ?
                """,
                (device_id, max(0, int(limit))),
            )
            return [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            logger.error("Failed to read recent readings for %s: %s", device_id, exc)
            return []

    def list_readings(self, device_id: str, limit: int = 50) -> List[dict[str, Any]]:
        """History page for the API, newest first, capped at ``MAX_READINGS_PAGE``."""
        limit = max(1, min(int(limit), MAX_READINGS_PAGE))
        return self.get_recent_readings(device_id, limit)
