"""Robust async MQTT client carrying device telemetry in and commands out."""

from __future__ import annotations

import asyncio
import json
import logging
import ssl
from collections.abc import Awaitable, Callable
from contextlib import suppress
from typing import Any

import aiomqtt

from climatesync.core.exceptions import PublishError
from climatesync.core.messaging import device_topic, parse_device_topic
from climatesync.models.enums import Direction

logger = logging.getLogger(__name__)


TelemetryCallback = Callable[[str, bytes], Awaitable[None] | None]


class MQTTClient:
    """aiomqtt-based client with automatic reconnection and per-message dispatch.

    Telemetry arrives on ``<prefix>/<device_id>/up``; commands are published
    on ``<prefix>/<device_id>/down``.  Every inbound message is dispatched to
    the registered callbacks as its own task, so a slow device never holds
    up the others.
    """

    _RECONNECT_DELAYS = (1, 2, 5, 10, 30, 60)

    def __init__(
        self,
        *,
        broker: str,
        port: int = 1883,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = False,
        topic_prefix: str = "home/sensors",
        keepalive: int = 60,
        publish_timeout: float = 5.0,
    ) -> None:
        # Connection parameters
        self._broker = broker
        self._port = port
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._keepalive = keepalive
        self._publish_timeout = publish_timeout
        self._topic_prefix = topic_prefix.strip("/") or "home/sensors"

        # Internal state
        self._client_cm: aiomqtt.Client | None = None
        self._client: aiomqtt.Client | None = None
        self._connected = asyncio.Event()
        self._stop = False
        self._lock = asyncio.Lock()
        self._message_task: asyncio.Task[None] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None

        self._callbacks: list[TelemetryCallback] = []
        # Strong references to in-flight callback tasks
        self._inflight: set[asyncio.Task[Any]] = set()

    @property
    def topic_prefix(self) -> str:
        return self._topic_prefix

    @property
    def telemetry_filter(self) -> str:
        return f"{self._topic_prefix}/+/{Direction.up.value}"

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    # ------------------------------------------------------------------
    # Public API: lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect to the MQTT broker with exponential-backoff retry.

        If the broker is unreachable the method retries with delays from
        ``_RECONNECT_DELAYS`` before raising the last exception.
        """
        async with self._lock:
            if self._client:
                return

            for attempt, delay in enumerate(self._RECONNECT_DELAYS):
                try:
                    await self._open_connection()
                    self._start_background_tasks()
                    logger.info(
                        "MQTT connected to %s:%s (attempt %d)",
                        self._broker,
                        self._port,
                        attempt + 1,
                    )
                    return
                except Exception as exc:
                    logger.warning(
                        "MQTT connect attempt %d failed (%s), retrying in %ss",
                        attempt + 1,
                        exc,
                        delay,
                    )
                    await asyncio.sleep(delay)

            # Final attempt, let it raise
            try:
                await self._open_connection()
                self._start_background_tasks()
                logger.info("MQTT connected to %s:%s (final attempt)", self._broker, self._port)
            except Exception as exc:
                logger.error("MQTT connect failed after all retries: %s", exc)
                raise

    async def disconnect(self) -> None:
        """Cleanly disconnect from the broker and cancel background tasks."""
        async with self._lock:
            self._stop = True
            self._connected.clear()
            await self._shutdown_tasks()
            if self._client_cm:
                with suppress(Exception):
                    await self._client_cm.__aexit__(None, None, None)
            self._client_cm = None
            self._client = None
            logger.info("MQTT disconnected from %s:%s", self._broker, self._port)

    # ------------------------------------------------------------------
    # Public API: publish
    # ------------------------------------------------------------------

    async def publish(self, topic: str, payload: dict[str, Any] | str | bytes) -> None:
        """Publish a message.  Dicts are JSON-serialized automatically."""
        await self._ensure_connected()
        if self._client is None:
            raise RuntimeError("MQTT client not connected")

        if isinstance(payload, bytes):
            data = payload
        elif isinstance(payload, str):
            data = payload.encode()
        else:
            data = json.dumps(payload, separators=(",", ":")).encode()

        await self._client.publish(topic, payload=data)
        logger.debug("Published to %s (%d bytes)", topic, len(data))

    async def publish_command(self, device_id: str, command: dict[str, Any]) -> None:
        """Send *command* on the device's ``down`` topic without awaiting any ack.

        Never waits for a reconnect: while the broker is unreachable the command
        is dropped with :class:`PublishError`, and a send that outlasts
        ``publish_timeout`` seconds is abandoned the same way.
        """
        topic = device_topic(self._topic_prefix, device_id, Direction.down)
        if not self.is_connected or self._client is None:
            raise PublishError(f"MQTT not connected, dropping command for {topic}")
        try:
            async with asyncio.timeout(self._publish_timeout):
                await self.publish(topic, command)
        except Exception as exc:
            raise PublishError(f"Could not publish to {topic}: {exc}") from exc

    # ------------------------------------------------------------------
    # Public API: callbacks
    # ------------------------------------------------------------------

    def add_callback(self, callback: TelemetryCallback) -> None:
        """Register a callback invoked with ``(device_id, payload)`` per message."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def remove_callback(self, callback: TelemetryCallback) -> None:
        with suppress(ValueError):
            self._callbacks.remove(callback)

    # ------------------------------------------------------------------
    # Message handling
    # ------------------------------------------------------------------

    def _handle_message(self, topic: str, payload: bytes) -> None:
        """Route an incoming message to the callbacks when it is device telemetry."""
        parsed = parse_device_topic(self._topic_prefix, topic)
        if parsed is None:
            logger.debug("Ignoring message on unrelated topic %s", topic)
            return
        device_id, direction = parsed
        if direction != Direction.up:
            return
        self._dispatch(device_id, payload)

    def _dispatch(self, device_id: str, payload: bytes) -> None:
        for callback in list(self._callbacks):
            try:
                result = callback(device_id, payload)
                if asyncio.iscoroutine(result):
                    task = asyncio.create_task(result, name=f"telemetry-{device_id}")
                    self._inflight.add(task)
                    task.add_done_callback(self._on_task_done)
            except Exception:
                logger.exception("MQTT callback raised an exception")

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Telemetry handler %s failed: %s", task.get_name(), exc)

    # ------------------------------------------------------------------
    # Background loops
    # ------------------------------------------------------------------

    async def _message_loop(self) -> None:
        """Subscribe to the telemetry filter and dispatch incoming messages."""
        if self._client is None:
            raise RuntimeError("MQTT client not connected")
        client = self._client
        try:
            await client.subscribe(self.telemetry_filter)
            logger.debug("Listening on %s", self.telemetry_filter)

            async for message in client.messages:
                try:
                    self._handle_message(
                        message.topic.value,
                        message.payload if isinstance(message.payload, bytes) else b"",
                    )
                except Exception:
                    logger.exception("Error handling message on %s", message.topic.value)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("MQTT message loop error, will trigger reconnect")
            self._connected.clear()
        finally:
            self._message_task = None

    async def _reconnect_loop(self) -> None:
        """Monitor the connection and reconnect with back-off on failure."""
        try:
            while not self._stop:
                await asyncio.sleep(1)
                if self._connected.is_set():
                    continue

                logger.info("MQTT connection lost, starting reconnect sequence")
                for delay in self._RECONNECT_DELAYS:
                    if self._stop:
                        return
                    try:
                        await self._reopen()
                        logger.info("MQTT reconnected to %s:%s", self._broker, self._port)
                        break
                    except Exception as exc:
                        logger.warning("MQTT reconnect failed (%s), retrying in %ss", exc, delay)
                        await asyncio.sleep(delay)
                else:
                    logger.error(
                        "MQTT reconnect exhausted backoff schedule; retrying every %ss",
                        self._RECONNECT_DELAYS[-1],
                    )
        except asyncio.CancelledError:
            raise

    # ------------------------------------------------------------------
    # Internal helpers: connection management
    # ------------------------------------------------------------------

    def _start_background_tasks(self) -> None:
        self._stop = False
        self._message_task = asyncio.create_task(self._message_loop(), name="mqtt-message-loop")
        self._reconnect_task = asyncio.create_task(
            self._reconnect_loop(), name="mqtt-reconnect-loop"
        )

    async def _open_connection(self) -> None:
        """Create a new aiomqtt client and enter its context manager."""
        tls_ctx = ssl.create_default_context() if self._use_tls else None
        self._client_cm = aiomqtt.Client(
            hostname=self._broker,
            port=self._port,
            username=self._username,
            password=self._password,
            keepalive=self._keepalive,
            tls_context=tls_ctx,
        )
        self._client = await self._client_cm.__aenter__()
        self._connected.set()

    async def _reopen(self) -> None:
        """Tear down the old connection and establish a fresh one."""
        async with self._lock:
            if self._client_cm:
                with suppress(Exception):
                    await self._client_cm.__aexit__(None, None, None)

            await self._open_connection()

            # The message loop re-subscribes to the telemetry filter.
            if self._message_task is None or self._message_task.done():
                self._message_task = asyncio.create_task(
                    self._message_loop(), name="mqtt-message-loop"
                )

    async def _shutdown_tasks(self) -> None:
        await self._cancel(self._message_task)
        await self._cancel(self._reconnect_task)
        self._message_task = None
        self._reconnect_task = None
        for task in list(self._inflight):
            task.cancel()

    @staticmethod
    async def _cancel(task: asyncio.Task[None] | None) -> None:
        if not task or task.done():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def _ensure_connected(self) -> None:
        """Lazily connect if not already connected, then wait for the connection."""
        if not self._client:
            await self.connect()
        await self._connected.wait()


__all__ = ["MQTTClient", "TelemetryCallback"]
