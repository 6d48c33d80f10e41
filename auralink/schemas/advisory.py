"""
Advisory Schemas
================

Pydantic models that validate the JSON returned by the external reasoning
service before it is accepted as an advisory.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationInfo, field_validator

QUOTE_MAX_CHARS = 100
SUBJECT_MAX_CHARS = 120
SUMMARY_MAX_CHARS = 280
REASON_MAX_CHARS = 200


class EmailDraftModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sender: StrictStr = Field(alias="from", max_length=SUBJECT_MAX_CHARS)
    subject: StrictStr = Field(max_length=SUBJECT_MAX_CHARS)
    summary: StrictStr = Field(max_length=SUMMARY_MAX_CHARS)


class AdviceModel(BaseModel):
    water_now: StrictBool
    reason: StrictStr = Field(max_length=REASON_MAX_CHARS)


class AdvisoryOutputModel(BaseModel):
    """Schema the reasoning service must satisfy.

    Pass ``context={"max_emails": n}`` to ``model_validate`` to cap the
    number of drafts (defaults to 1).
    """

    quote: StrictStr = Field(max_length=QUOTE_MAX_CHARS)
    emails: list[EmailDraftModel] = Field(default_factory=list)
    priority: Literal["low", "normal", "high"] = "normal"
    advice: AdviceModel

    @field_validator("emails")
    @classmethod
    def _cap_emails(cls, value: list[EmailDraftModel], info: ValidationInfo) -> list[EmailDraftModel]:
        context = info.context or {}
        max_emails = int(context.get("max_emails", 1))
        if len(value) > max_emails:
            raise ValueError(f"at most {max_emails} email draft(s) allowed, got {len(value)}")
        return value
