"""Messaging port shared by the telemetry gateway and the state synchronizer."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from climatesync.core.commands import DeviceCommand
from climatesync.models.enums import Direction

logger = logging.getLogger(__name__)


@runtime_checkable
class CommandPublisher(Protocol):
    """Fire-and-forget delivery of a command to one device.

    Implementations return promptly and raise :class:`~climatesync.core.exceptions.PublishError`
    when the command cannot be handed to the transport.
    """

    async def publish_command(self, device_id: str, command: DeviceCommand) -> None: ...


def device_topic(prefix: str, device_id: str, direction: Direction | str) -> str:
    """Return ``<prefix>/<device_id>/<direction>``."""
    return f"{prefix.strip('/')}/{device_id}/{Direction(direction).value}"


def parse_device_topic(prefix: str, topic: str) -> tuple[str, Direction] | None:
    """Split a device topic back into ``(device_id, direction)``.

    Returns ``None`` for topics outside *prefix* or with an unknown direction.
    """
    prefix = prefix.strip("/")
    if not topic.startswith(f"{prefix}/"):
        return None
    parts = topic[len(prefix) + 1 :].split("/")
    if len(parts) != 2 or not parts[0]:
        return None
    try:
        return parts[0], Direction(parts[1])
    except ValueError:
        return None


class LoggingPublisher:
    """Stand-in transport used when MQTT is disabled; commands are only logged."""

    async def publish_command(self, device_id: str, command: DeviceCommand) -> None:
        logger.info("MQTT disabled, command for %s not sent: %s", device_id, command)


__all__ = ["CommandPublisher", "LoggingPublisher", "device_topic", "parse_device_topic"]
