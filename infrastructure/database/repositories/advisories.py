from __future__ import annotations

from typing import Any

from auralink.domain.advisory import AdvisoryPayload
from infrastructure.database.ops.advisories import AdvisoryOperations


def _to_record(row: dict[str, Any]) -> dict[str, Any]:
    return {"ts": row["ts"], "createdAt": row.get("created_at"), "payload": row["payload"]}


class AdvisoryRepository:
    """Facade over advisory history."""

    def __init__(self, backend: AdvisoryOperations) -> None:
        self._backend = backend

    def save(self, device_id: str, payload: AdvisoryPayload) -> int | None:
        return self._backend.insert_advisory(device_id=device_id, ts=payload.ts, payload=payload.to_dict())

    def latest(self, device_id: str) -> dict[str, Any] | None:
        """Newest ``{ts, createdAt, payload}`` record, or ``None``."""
        row = self._backend.get_latest_advisory(device_id)
        return _to_record(row) if row else None

    def history(self, device_id: str, limit: int = 20) -> list[dict[str, Any]]:
        return [_to_record(row) for row in self._backend.list_advisories(device_id, limit)]
