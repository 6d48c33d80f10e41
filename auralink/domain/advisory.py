"""
Advisory Payload
================
The unit published to a plant display, persisted for history and optionally
turned into a notification email.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from auralink.enums import AdvisorySource, Priority


@dataclass(frozen=True)
class EmailDraft:
    """A short notification draft produced alongside an advisory."""

    sender: str
    subject: str
    summary: str

    def to_dict(self) -> dict[str, str]:
        return {"from": self.sender, "subject": self.subject, "summary": self.summary}


@dataclass(frozen=True)
class Advice:
    water_now: bool
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"water_now": self.water_now, "reason": self.reason}


@dataclass(frozen=True)
class AdvisoryPayload:
    """
    Always well-formed advisory.

    ``source`` records which generation path produced it and is kept out of
    the published JSON.
    """

    ts: str
    quote: str
    priority: Priority
    advice: Advice
    emails: tuple[EmailDraft, ...] = field(default_factory=tuple)
    source: AdvisorySource = AdvisorySource.FALLBACK

    def with_priority(self, priority: Priority) -> "AdvisoryPayload":
        return replace(self, priority=priority)

    def first_email(self) -> EmailDraft | None:
        """First draft carrying a non-empty subject, if any."""
        for draft in self.emails:
            if draft.subject.strip():
                return draft
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ts": self.ts,
            "quote": self.quote,
            "emails": [draft.to_dict() for draft in self.emails],
            "priority": self.priority.value,
            "advice": self.advice.to_dict(),
        }
