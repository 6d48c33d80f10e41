"""
Device Schemas
==============

Pydantic models for device management request validation.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PlantNameRequest(BaseModel):
    """Request body for ``POST /api/device/<id>/plant``."""

    model_config = ConfigDict(populate_by_name=True)

    plant_name: str = Field(..., alias="plantName", max_length=100, description="Display name of the plant")

    @field_validator("plant_name")
    @classmethod
    def _strip(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("plantName required")
        return v


class NotifyEmailRequest(BaseModel):
    """Request body for ``POST /api/device/<id>/notify-email``."""

    email: str = Field(..., max_length=254, description="Notification recipient for this device")

    @field_validator("email")
    @classmethod
    def _check_address(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("email required")
        local, _, domain = v.partition("@")
        if not local or not domain or " " in v:
            raise ValueError("email must be a valid address")
        return v
