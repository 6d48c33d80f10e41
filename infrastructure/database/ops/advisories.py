from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, List, Optional

logger = logging.getLogger(__name__)

MAX_ADVISORIES_PAGE = 100


def _decode(row: sqlite3.Row) -> dict[str, Any]:
    record = dict(row)
    try:
        record["payload"] = json.loads(record.get("payload") or "{}")
    except (TypeError, ValueError):
        logger.warning("Advisory %s has an unreadable payload", record.get("advisory_id"))
        record["payload"] = {}
    return record


class AdvisoryOperations:
    """Persistence for advisories published to plant displays."""

    def insert_advisory(self, *, device_id: str, ts: str, payload: dict[str, Any]) -> Optional[int]:
        try:
            db = self.get_db()
            cursor = db.execute(
                "INSERT INTO Advisories (device_id, ts, payload) VALUES (?, ?, ?)",
                (device_id, ts, json.dumps(payload, ensure_ascii=False)),
            )
            db.commit()
            return cursor.lastrowid
        except (sqlite3.Error, TypeError, ValueError) as exc:
            logger.error("Failed to insert advisory for %s: %s", device_id, exc)
            return None

    def get_latest_advisory(self, device_id: str) -> Optional[dict[str, Any]]:
        try:
            db = self.get_db()
            cursor = db.execute(
                """
                SELECT advisory_id, device_id, ts, payload, created_at
                FROM Advisories
                WHERE device_id = ?
                ORDER BY ts DESC, advisory_id DESC
                LIMIT 1
                """,
                (device_id,),
            )
            row = cursor.fetchone()
            return _decode(row) if row else None
        except sqlite3.Error as exc:
            logger.error("Failed to load latest advisory for %s: %s", device_id, exc)
            return None

    def list_advisories(self, device_id: str, limit: int = 20) -> List[dict[str, Any]]:
        limit = max(1, min(int(limit), MAX_ADVISORIES_PAGE))
        try:
            db = self.get_db()
            cursor = db.execute(
                """
                SELECT advisory_id, device_id, ts, payload, created_at
                FROM Advisories
                WHERE device_id = ?
                ORDER BY ts DESC, advisory_id DESC
                LIMIT ?
                """,
                (device_id, limit),
            )
            return [_decode(row) for row in cursor.fetchall()]
        except sqlite3.Error as exc:
            logger.error("Failed to list advisories for %s: %s", device_id, exc)
            return []
