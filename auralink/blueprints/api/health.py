"""
Health API
==========

Liveness endpoint reporting transport and reasoning backend status.
"""

from __future__ import annotations

from flask import Blueprint

from auralink.blueprints.api._common import get_container, success
from auralink.utils.http import safe_route

health_api = Blueprint("health_api", __name__)


@health_api.get("")
@safe_route("Failed to read health status")
def health():
    return success(get_container().health())
