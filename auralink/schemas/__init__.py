"""
Schemas Module
==============

Pydantic models for reasoning-service output and API request validation.
"""

from auralink.schemas.advisory import AdviceModel, AdvisoryOutputModel, EmailDraftModel
from auralink.schemas.device import NotifyEmailRequest, PlantNameRequest

__all__ = [
    "AdviceModel",
    "AdvisoryOutputModel",
    "EmailDraftModel",
    "NotifyEmailRequest",
    "PlantNameRequest",
]
