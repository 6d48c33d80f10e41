from __future__ import annotations

import atexit
import logging
import threading
from typing import Any

from flask import Flask, request
from werkzeug.exceptions import HTTPException

from auralink.blueprints.api.devices import devices_api
from auralink.blueprints.api.health import health_api
from auralink.config import load_config, setup_logging


def create_app(config_overrides: dict[str, Any] | None = None, container: Any = None) -> Flask:
    """
    Application factory.

    Args:
        config_overrides: Attribute overrides applied to the loaded
            ``AppConfig`` (keys are case-insensitive).
        container: Prebuilt ``ServiceContainer``; built from config when omitted.
    """
    if container is not None:
        config = container.config
    else:
        config = load_config()
        if config_overrides:
            for key, value in config_overrides.items():
                attr = key if hasattr(config, key) else key.lower()
                setattr(config, attr, value)
            # Re-run threshold validation after overrides
            config.__post_init__()

    setup_logging(debug=config.DEBUG, level=config.log_level)

    flask_app = Flask(__name__)
    flask_app.config.update(config.as_flask_config())
    flask_app.config["JSON_SORT_KEYS"] = False

    if container is None:
        from auralink.services.container import ServiceContainer

        container = ServiceContainer.build(config)

        _shutdown_lock = threading.Lock()
        _shutdown_done = False

        def _graceful_shutdown(reason: str = "unknown") -> None:
            nonlocal _shutdown_done
            with _shutdown_lock:
                if _shutdown_done:
                    return
                _shutdown_done = True
            logging.info("Graceful shutdown initiated (%s)", reason)
            try:
                container.shutdown()
            except Exception as exc:
                logging.warning("Error during graceful shutdown: %s", exc)

        atexit.register(_graceful_shutdown, "atexit")

    flask_app.config["CONTAINER"] = container
    container.database.init_app(flask_app)

    @flask_app.errorhandler(Exception)
    def _handle_unhandled(exc):
        from auralink.domain.exceptions import AuraLinkError
        from auralink.utils.http import error_response, safe_error

        if not request.path.startswith("/api/"):
            if isinstance(exc, HTTPException):
                return exc
            return safe_error(exc, 500, context="unhandled")

        if isinstance(exc, HTTPException):
            status = int(exc.code or 500)
            if status >= 500:
                return safe_error(exc, status, context="http-exception")
            return error_response(exc.description or "Request failed", status)

        if isinstance(exc, AuraLinkError):
            status = exc.http_status
            if status >= 500:
                return safe_error(exc, status, context=type(exc).__name__)
            return error_response(str(exc) or "Request failed", status)

        return safe_error(exc, 500, context="unhandled")

    flask_app.register_blueprint(devices_api, url_prefix="/api/device")
    flask_app.register_blueprint(health_api, url_prefix="/api/health")

    for bp_name in flask_app.blueprints:
        logging.debug("Registered blueprint: %s", bp_name)

    logging.getLogger(__name__).info("AuraLink application initialized successfully.")
    return flask_app
