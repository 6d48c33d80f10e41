"""
Enums Module
============

Enumeration types shared across the AuraLink backend.
"""

from enum import Enum


class Priority(str, Enum):
    """Advisory priority shown on the display."""

    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class AdvisorySource(str, Enum):
    """Which generation path produced an advisory."""

    LLM = "llm"
    FALLBACK = "fallback"


class ProfileField(str, Enum):
    """Mutable device profile fields."""

    PLANT_NAME = "plant_name"
    NOTIFY_EMAIL = "notify_email"


__all__ = ["AdvisorySource", "Priority", "ProfileField"]
