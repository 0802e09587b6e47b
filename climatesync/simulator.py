"""Stand-in for a field unit: publishes random telemetry and prints received commands.

Usage::

    python -m climatesync.simulator --device 12:34:56:78:90:AB
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import random
from contextlib import suppress

import aiomqtt

from climatesync.config import get_settings
from climatesync.core.messaging import device_topic
from climatesync.models.enums import Direction

logger = logging.getLogger("climatesync.simulator")

DEFAULT_DEVICE_ID = "12:34:56:78:90:AB"


def random_reading(rng: random.Random | None = None) -> dict[str, float]:
    """One ``up`` payload: indoor 20-30 °C / 50-70 %RH, outdoor 15-30 °C / 40-70 %RH."""
    rng = rng or random.Random()
    return {
        "temperature1": round(rng.uniform(20.0, 30.0), 2),
        "humidity1": round(rng.uniform(50.0, 70.0), 2),
        "temperature2": round(rng.uniform(15.0, 30.0), 2),
        "humidity2": round(rng.uniform(40.0, 70.0), 2),
    }


async def _publish_loop(
    client: aiomqtt.Client, topic: str, interval: float, rng: random.Random
) -> None:
    while True:
        payload = json.dumps(random_reading(rng))
        await client.publish(topic, payload)
        logger.info("Published to %s: %s", topic, payload)
        await asyncio.sleep(interval)


async def _listen(client: aiomqtt.Client) -> None:
    async for message in client.messages:
        payload = message.payload
        text = payload.decode("utf-8", "replace") if isinstance(payload, bytes) else payload
        logger.info("Received message from %s: %s", message.topic, text)


async def run(
    device_id: str,
    *,
    broker: str,
    port: int,
    prefix: str,
    interval: float,
    seed: int | None = None,
) -> None:
    up = device_topic(prefix, device_id, Direction.up)
    down = device_topic(prefix, device_id, Direction.down)
    rng = random.Random(seed)

    async with aiomqtt.Client(hostname=broker, port=port) as client:
        logger.info("Connected to MQTT broker %s:%s", broker, port)
        await client.subscribe(down)
        logger.info("Subscribed to topic: %s", down)

        publisher = asyncio.create_task(_publish_loop(client, up, interval, rng))
        try:
            await _listen(client)
        finally:
            publisher.cancel()
            with suppress(asyncio.CancelledError):
                await publisher


def main(argv: list[str] | None = None) -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Simulate one ClimateSync field device")
    parser.add_argument("--device", default=DEFAULT_DEVICE_ID, help="Device identifier (MAC)")
    parser.add_argument("--broker", default=settings.mqtt_broker, help="MQTT broker host")
    parser.add_argument("--port", type=int, default=settings.mqtt_port, help="MQTT broker port")
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.telemetry_interval_s,
        help="Seconds between telemetry messages",
    )
    parser.add_argument("--seed", type=int, default=None, help="Random seed for readings")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    with suppress(KeyboardInterrupt):
        asyncio.run(
            run(
                args.device,
                broker=args.broker,
                port=args.port,
                prefix=settings.mqtt_topic_prefix,
                interval=args.interval,
                seed=args.seed,
            )
        )


if __name__ == "__main__":
    main()
