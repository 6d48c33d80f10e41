from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Optional

from auralink.utils.time import iso_now

logger = logging.getLogger(__name__)

# Columns that may be written through ``upsert_device_field``
PROFILE_COLUMNS = frozenset({"plant_name", "notify_email"})


class DeviceOperations:
    """Device profile helpers shared across database handlers."""

    def get_device(self, device_id: str) -> Optional[Dict[str, Any]]:
        try:
            db = self.get_db()
            cursor = db.execute(
                "SELECT device_id, plant_name, notify_email, updated_at FROM Devices WHERE device_id = ?",
                (device_id,),
            )
            row = cursor.fetchone()
            return dict(row) if row else None
        except sqlite3.Error as exc:
            logger.error("Failed to load device %s: %s", device_id, exc)
            return None

    def upsert_device_field(self, device_id: str, column: str, value: str) -> bool:
        """Create the device row if needed and set one profile column."""
        if column not in PROFILE_COLUMNS:
            raise ValueError(f"Unsupported device field: {column}")
        try:
            db = self.get_db()
            # Column name is whitelisted above
            db.execute(
                f"""
                INSERT INTO Devices (device_id, {column}, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(device_id) DO UPDATE SET
                    {column} = excluded.{column},
                    updated_at = excluded.updated_at
                """,
                (device_id, value, iso_now()),
            )
            db.commit()
            return True
        except sqlite3.Error as exc:
            logger.error("Failed to update %s for device %s: %s", column, device_id, exc)
            return False
