"""
Configuration for the AuraLink plant backend
============================================
Runtime settings for the sensor pipeline, transport, mail and LLM services,
loaded from environment variables. Sets up the logging configuration as well.
"""

import os
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any

from auralink.domain.exceptions import ConfigurationError


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "t", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer.") from None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be a number.") from None


def _default_llm_api_key() -> str:
    return os.getenv("LLM_API_KEY") or os.getenv("GEMINI_API_KEY", "")


def _default_llm_provider() -> str:
    provider = os.getenv("LLM_PROVIDER")
    if provider is not None:
        return provider
    # A bare Gemini key is enough to enable the external advisory path.
    return "gemini" if _default_llm_api_key() else "none"


@dataclass
class AppConfig:
    """Runtime configuration loaded from environment variables."""

    environment: str = field(default_factory=lambda: os.getenv("AURALINK_ENV", "development"))
    DEBUG: bool = field(default_factory=lambda: _env_bool("AURALINK_DEBUG", False))
    log_level: str = field(default_factory=lambda: os.getenv("AURALINK_LOG_LEVEL", "INFO"))
    database_path: str = field(default_factory=lambda: os.getenv("AURALINK_DATABASE_PATH", "database/auralink.db"))

    # Locally configured display device (warmed into the profile cache at startup)
    device_id: str = field(default_factory=lambda: os.getenv("AURALINK_DEVICE_ID", ""))

    # HTTP management API
    http_host: str = field(default_factory=lambda: os.getenv("AURALINK_HTTP_HOST", "0.0.0.0"))
    http_port: int = field(default_factory=lambda: _env_int("AURALINK_HTTP_PORT", 3000))

    # MQTT transport
    enable_mqtt: bool = field(default_factory=lambda: _env_bool("AURALINK_ENABLE_MQTT", True))
    mqtt_broker_host: str = field(default_factory=lambda: os.getenv("MQTT_HOST", "localhost"))
    mqtt_broker_port: int = field(default_factory=lambda: _env_int("MQTT_PORT", 1883))
    mqtt_username: str = field(default_factory=lambda: os.getenv("MQTT_USERNAME", ""))
    mqtt_password: str = field(default_factory=lambda: os.getenv("MQTT_PASSWORD", ""))

    # LLM Configuration
    # Provider: "none" (disabled) or "gemini"
    llm_provider: str = field(default_factory=_default_llm_provider)
    llm_api_key: str = field(default_factory=_default_llm_api_key)
    llm_model: str = field(default_factory=lambda: os.getenv("LLM_MODEL", ""))
    llm_base_url: str = field(default_factory=lambda: os.getenv("LLM_BASE_URL", ""))
    llm_max_tokens: int = field(default_factory=lambda: _env_int("LLM_MAX_TOKENS", 512))
    llm_temperature: float = field(default_factory=lambda: _env_float("LLM_TEMPERATURE", 0.5))
    llm_timeout: int = field(default_factory=lambda: _env_int("LLM_TIMEOUT", 30))

    # Advisory pipeline
    advisory_interval_seconds: int = field(default_factory=lambda: _env_int("ADVISORY_INTERVAL_SECONDS", 300))
    advisory_window_seconds: int = field(default_factory=lambda: _env_int("ADVISORY_WINDOW_SECONDS", 300))
    advisory_min_samples: int = field(default_factory=lambda: _env_int("ADVISORY_MIN_SAMPLES", 30))
    advisory_low_soil_pct: float = field(default_factory=lambda: _env_float("ADVISORY_LOW_SOIL_PCT", 25.0))
    advisory_water_soil_pct: float = field(default_factory=lambda: _env_float("ADVISORY_WATER_SOIL_PCT", 35.0))
    advisory_max_emails: int = field(default_factory=lambda: _env_int("ADVISORY_MAX_EMAILS", 1))

    # Outbound mail
    smtp_host: str = field(default_factory=lambda: os.getenv("SMTP_HOST", "smtp.gmail.com"))
    smtp_port: int = field(default_factory=lambda: _env_int("SMTP_PORT", 465))
    smtp_use_ssl: bool = field(default_factory=lambda: _env_bool("SMTP_USE_SSL", True))
    smtp_use_tls: bool = field(default_factory=lambda: _env_bool("SMTP_USE_TLS", False))
    smtp_username: str = field(default_factory=lambda: os.getenv("SMTP_USERNAME", ""))
    smtp_password: str = field(default_factory=lambda: os.getenv("SMTP_PASSWORD", ""))
    smtp_from_name: str = field(default_factory=lambda: os.getenv("SMTP_FROM_NAME", "AuraLinkPlant"))
    notify_default_email: str = field(default_factory=lambda: os.getenv("NOTIFY_DEFAULT_EMAIL", ""))

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.advisory_water_soil_pct <= self.advisory_low_soil_pct:
            raise ConfigurationError(
                "ADVISORY_WATER_SOIL_PCT must be greater than ADVISORY_LOW_SOIL_PCT "
                f"({self.advisory_water_soil_pct} <= {self.advisory_low_soil_pct})"
            )
        if self.advisory_max_emails < 0:
            raise ConfigurationError("ADVISORY_MAX_EMAILS cannot be negative")
        if self.advisory_min_samples < 1:
            raise ConfigurationError("ADVISORY_MIN_SAMPLES must be at least 1")

    def topics(self, device_id: str | None = None) -> dict[str, str]:
        """MQTT topics for a device: inbound sensors, outbound display, last will."""
        device = device_id or self.device_id
        return {
            "in": f"plant/sensors/{device}",
            "out": f"plant/device/{device}/display",
            "will": f"plant/alerts/{device}",
        }

    def as_flask_config(self) -> dict[str, Any]:
        """Render configuration values for Flask application."""
        return {
            "ENV": self.environment,
            "DEBUG": self.DEBUG,
            "DATABASE_PATH": self.database_path,
            "MQTT_BROKER_HOST": self.mqtt_broker_host,
            "MQTT_BROKER_PORT": self.mqtt_broker_port,
            "DEVICE_ID": self.device_id,
        }


def setup_logging(debug: bool = False, level: str | None = None) -> None:
    """Setup logging configuration."""
    import logging
    import sys
    from logging.handlers import RotatingFileHandler

    if debug:
        log_level = logging.DEBUG
    else:
        log_level = logging.getLevelName((level or "INFO").upper())
        if not isinstance(log_level, int):
            log_level = logging.INFO

    root = logging.getLogger()
    root.setLevel(log_level)

    # Avoid adding duplicates when create_app is called multiple times
    has_console = any(getattr(h, "name", "") == "auralink_console" for h in root.handlers)
    has_file = any(getattr(h, "name", "") == "auralink_file" for h in root.handlers)
    added_handler = False

    stream = sys.stdout
    with suppress(AttributeError, ValueError):
        stream.reconfigure(encoding="utf-8", errors="replace")
    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    if not has_console:
        console_handler = logging.StreamHandler(stream=stream)
        console_handler.name = "auralink_console"
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)
        added_handler = True

    if not has_file:
        os.makedirs("logs", exist_ok=True)
        file_handler = RotatingFileHandler(
            "logs/auralink.log",
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.name = "auralink_file"
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
        added_handler = True

    for handler in root.handlers:
        if getattr(handler, "name", "") in {"auralink_console", "auralink_file"}:
            handler.setLevel(log_level)

    if added_handler:
        root.info("Logging initialized at level: %s", logging.getLevelName(log_level))

    if _env_bool("AURALINK_SILENCE_WERKZEUG", True):
        logging.getLogger("werkzeug").setLevel(logging.WARNING)


def load_config() -> AppConfig:
    """Helper for callers to load and validate configuration."""
    return AppConfig()
