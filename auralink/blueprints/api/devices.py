"""
Device Management API Blueprint
================================

Plant name and notification address management plus display/reading
history for a device. Registered under ``/api/device``.
"""

from __future__ import annotations

import logging

from flask import Blueprint, request
from pydantic import ValidationError

from auralink.blueprints.api._common import fail, get_device_service, get_json, success
from auralink.enums import ProfileField
from auralink.schemas.device import NotifyEmailRequest, PlantNameRequest
from auralink.utils.http import safe_route

devices_api = Blueprint("devices_api", __name__)
logger = logging.getLogger("devices_api")


def _first_error(ve: ValidationError, default: str) -> str:
    errors = ve.errors(include_url=False, include_context=False)
    if not errors or errors[0].get("type") == "missing":
        return default
    msg = str(errors[0].get("msg") or default)
    # pydantic prefixes custom validator messages
    return msg.removeprefix("Value error, ")


# ---------------------------------------------------------------------------
# Profile
# ---------------------------------------------------------------------------


@devices_api.post("/<device_id>/plant")
@safe_route("Failed to update plant name")
def set_plant_name(device_id: str):
    raw = get_json()
    try:
        body = PlantNameRequest(**raw)
    except ValidationError as ve:
        logger.warning("Invalid plant name for %s: %s", device_id, ve.errors(include_url=False, include_context=False))
        return fail(_first_error(ve, "plantName required"), 400)

    plant_name = get_device_service().set_profile_field(device_id, ProfileField.PLANT_NAME, body.plant_name)
    return success({"deviceId": device_id, "plantName": plant_name})


@devices_api.get("/<device_id>/plant")
@safe_route("Failed to get plant name")
def get_plant_name(device_id: str):
    plant_name = get_device_service().get_profile_field(device_id, ProfileField.PLANT_NAME)
    return success({"deviceId": device_id, "plantName": plant_name})


@devices_api.post("/<device_id>/notify-email")
@safe_route("Failed to update notification email")
def set_notify_email(device_id: str):
    raw = get_json()
    try:
        body = NotifyEmailRequest(**raw)
    except ValidationError as ve:
        logger.warning("Invalid notify email for %s: %s", device_id, ve.errors(include_url=False, include_context=False))
        return fail(_first_error(ve, "email required"), 400)

    email = get_device_service().set_profile_field(device_id, ProfileField.NOTIFY_EMAIL, body.email)
    return success({"deviceId": device_id, "notifyEmail": email})


@devices_api.get("/<device_id>/notify-email")
@safe_route("Failed to get notification email")
def get_notify_email(device_id: str):
    email = get_device_service().get_profile_field(device_id, ProfileField.NOTIFY_EMAIL)
    return success({"deviceId": device_id, "notifyEmail": email})


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@devices_api.get("/<device_id>/display/latest")
@safe_route("Failed to load latest display")
def latest_display(device_id: str):
    record = get_device_service().latest_display(device_id)
    return success({"deviceId": device_id, **record})


@devices_api.get("/<device_id>/displays")
@safe_route("Failed to load display history")
def list_displays(device_id: str):
    items = get_device_service().list_displays(device_id, request.args.get("limit"))
    return success({"deviceId": device_id, "count": len(items), "items": items})


@devices_api.get("/<device_id>/readings")
@safe_route("Failed to load readings")
def list_readings(device_id: str):
    items = get_device_service().list_readings(device_id, request.args.get("limit"))
    return success({"deviceId": device_id, "count": len(items), "items": items})
