"""
Blueprint Common Utilities
==========================

Shared helper functions for the API blueprints.

Usage:
    from auralink.blueprints.api._common import get_container, get_json, success, fail
"""
from __future__ import annotations

from flask import current_app, request

from auralink.utils.http import error_response, success_response


def get_container():
    """
    Get the service container from Flask app config.

    Raises:
        RuntimeError: If container is not configured
    """
    container = current_app.config.get("CONTAINER")
    if not container:
        raise RuntimeError("ServiceContainer not found in app config")
    return container


def get_device_service():
    return get_container().device_service


def get_json() -> dict:
    """JSON request body, or an empty dict when missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def success(data: dict | list | None = None, status: int = 200, *, message: str | None = None):
    """Flask Response with format: {"ok": true, "data": ..., "error": null}"""
    return success_response(data, status, message=message)


def fail(message: str, status: int = 400, *, details: dict | None = None):
    """Flask Response with format: {"ok": false, "data": null, "error": {...}}"""
    return error_response(message, status, details=details)
