"""Publish fake plant sensor readings to the broker.

Each sample jitters around T=30.8°C, H=62%, Soil=48% and is published to
``plant/sensors/<device_id>`` with QoS 1, in the same shape a real display
firmware sends.

    python scripts/mock_sensor.py --device-id desk-01 --interval 10
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import random
import sys
import time
from pathlib import Path
from typing import Any

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from auralink.hardware.mqtt.client_factory import create_mqtt_client  # noqa: E402
from auralink.utils.time import iso_now  # noqa: E402

logger = logging.getLogger("mock_sensor")

BASELINE = {"t_c": 30.8, "h_pct": 62.0, "soil_pct": 48.0}
SPREAD = {"t_c": 1.0, "h_pct": 2.0, "soil_pct": 4.0}
FIRMWARE = "mock-1.0"


def build_sample(device_id: str, rng: random.Random, *, soil_offset: float = 0.0) -> dict[str, Any]:
    t = BASELINE["t_c"] + rng.uniform(-SPREAD["t_c"], SPREAD["t_c"])
    h = BASELINE["h_pct"] + rng.uniform(-SPREAD["h_pct"], SPREAD["h_pct"])
    s = BASELINE["soil_pct"] + soil_offset + rng.uniform(-SPREAD["soil_pct"], SPREAD["soil_pct"])
    return {
        "deviceId": device_id,
        "ts": iso_now(timespec="milliseconds"),
        "t_c": round(t, 1),
        "h_pct": round(h),
        "soil_pct": max(0, min(100, round(s))),
        "fw": FIRMWARE,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Publish mock plant sensor readings over MQTT.")
    parser.add_argument("--device-id", default=os.getenv("AURALINK_DEVICE_ID", "mock-plant"))
    parser.add_argument("--host", default=os.getenv("MQTT_HOST", "localhost"))
    parser.add_argument("--port", type=int, default=int(os.getenv("MQTT_PORT", "1883")))
    parser.add_argument("--username", default=os.getenv("MQTT_USERNAME", ""))
    parser.add_argument("--password", default=os.getenv("MQTT_PASSWORD", ""))
    parser.add_argument("--interval", type=float, default=10.0, help="Seconds between samples (default: 10)")
    parser.add_argument("--count", type=int, default=0, help="Stop after N samples (default: run forever)")
    parser.add_argument(
        "--soil-offset",
        type=float,
        default=0.0,
        help="Shift the soil baseline, e.g. -30 to simulate dry soil",
    )
    parser.add_argument("--seed", type=int, default=None)
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
    topic = f"plant/sensors/{args.device_id}"
    rng = random.Random(args.seed)

    client = create_mqtt_client(
        client_id=f"auralink-mock-{args.device_id}",
        username=args.username or None,
        password=args.password or None,
    )
    try:
        client.connect(args.host, args.port, 60)
    except OSError as exc:
        logger.error("Cannot reach MQTT broker %s:%s: %s", args.host, args.port, exc)
        return 1
    client.loop_start()
    logger.info("Connected, publishing every %ss to %s", args.interval, topic)

    sent = 0
    try:
        while not args.count or sent < args.count:
            sample = build_sample(args.device_id, rng, soil_offset=args.soil_offset)
            client.publish(topic, json.dumps(sample), qos=1)
            logger.info("-> %s", sample)
            sent += 1
            if args.count and sent >= args.count:
                break
            time.sleep(args.interval)
    except KeyboardInterrupt:
        logger.info("Stopped by user after %s sample(s)", sent)
    finally:
        client.loop_stop()
        client.disconnect()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
