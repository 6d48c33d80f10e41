"""
Helpers for constructing MQTT clients that work across paho-mqtt 1.x and 2.x.

The 2.x releases add a callback API version flag; we prefer the legacy
v3.1.1 callback signature for existing handlers while remaining compatible
with older installations that do not expose the enum.
"""
from __future__ import annotations

from typing import Any, Dict

import paho.mqtt.client as mqtt


def _legacy_callback_api_version() -> Any | None:
    callback_api_version = getattr(mqtt, "CallbackAPIVersion", None)
    if callback_api_version is None:
        return None
    for attr in ("V311", "v311", "VERSION1", "V1"):
        if hasattr(callback_api_version, attr):
            return getattr(callback_api_version, attr)
    try:
        return callback_api_version(1)
    except ValueError:
        return None


def create_mqtt_client(
    client_id: str = "",
    *,
    username: str | None = None,
    password: str | None = None,
    will: Dict[str, Any] | None = None,
    **kwargs: Any,
) -> mqtt.Client:
    """
    Build an MQTT client that is forward-compatible with paho-mqtt 2.x and
    gracefully degrades when running with 1.x.

    Args:
        client_id: Optional client identifier.
        username: Broker username; credentials are only set when provided.
        password: Broker password.
        will: Last-will message as ``{"topic", "payload", "qos", "retain"}``.
            Must be registered before ``connect``.
        kwargs: Extra keyword arguments forwarded to the client constructor.
    """
    client_kwargs: Dict[str, Any] = {"client_id": client_id or ""}
    client_kwargs["protocol"] = kwargs.pop("protocol", getattr(mqtt, "MQTTv311", 4))
    client_kwargs.update(kwargs)

    callback_value = _legacy_callback_api_version()
    if callback_value is not None:
        client_kwargs["callback_api_version"] = callback_value

    try:
        client = mqtt.Client(**client_kwargs)
    except TypeError:
        # Older paho versions do not support callback_api_version
        client_kwargs.pop("callback_api_version", None)
        client = mqtt.Client(**client_kwargs)

    if username:
        client.username_pw_set(username, password or None)
    if will:
        client.will_set(
            will["topic"],
            payload=will.get("payload"),
            qos=int(will.get("qos", 0)),
            retain=bool(will.get("retain", False)),
        )
    return client
