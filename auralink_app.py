"""Process entry point for the AuraLink plant backend.

Builds the service container, warms the profile cache for the configured
device, starts MQTT sensor ingest and serves the management API.
"""
from __future__ import annotations

import logging

from auralink import create_app
from auralink.config import load_config, setup_logging
from auralink.domain.exceptions import ConfigurationError


def main() -> int:
    try:
        config = load_config()
    except (ConfigurationError, ValueError) as exc:
        setup_logging()
        logging.error("Invalid configuration: %s", exc)
        return 2

    setup_logging(debug=config.DEBUG, level=config.log_level)

    from auralink.services.container import ServiceContainer

    container = ServiceContainer.build(config)
    app = create_app(container=container)

    if not config.device_id:
        logging.warning("AURALINK_DEVICE_ID not set; accepting readings from every plant/sensors/+ device")
    container.start()

    logging.info("Starting API server on %s:%s", config.http_host, config.http_port)
    try:
        app.run(host=config.http_host, port=config.http_port, debug=config.DEBUG, use_reloader=False)
        logging.info("Server stopped.")
        return 0
    except KeyboardInterrupt:
        logging.info("Server stopped by user.")
        return 0
    except Exception as exc:  # pragma: no cover - top-level runtime errors
        logging.exception("ERROR: Failed to start server: %s", exc)
        return 1
    finally:
        container.shutdown()


if __name__ == "__main__":
    raise SystemExit(main())
