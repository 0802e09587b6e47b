"""Validation and normalization of inbound device telemetry."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from climatesync.core.decision_engine import DecisionEngine
from climatesync.core.device_locks import DeviceLockRegistry
from climatesync.core.exceptions import PersistenceError, TelemetryValidationError
from climatesync.core.state_sync import StateSynchronizer
from climatesync.core.stores import DeviceStore
from climatesync.models.schemas import TelemetryPayload

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class TelemetrySnapshot:
    """One validated reading set from a device."""

    device_id: str
    indoor_temperature: float
    indoor_humidity: float
    outdoor_temperature: float
    outdoor_humidity: float
    received_at: datetime = field(default_factory=_utc_now)


def parse_telemetry(
    device_id: str,
    raw: bytes | bytearray | str | Mapping[str, Any],
    *,
    received_at: datetime | None = None,
) -> TelemetrySnapshot:
    """Validate *raw* and map the wire field names onto a snapshot.

    All four readings must be present, numeric and finite; otherwise the whole
    message is rejected with :class:`TelemetryValidationError`.
    """
    try:
        if isinstance(raw, (bytes, bytearray, str)):
            payload = TelemetryPayload.model_validate_json(raw)
        elif isinstance(raw, Mapping):
            payload = TelemetryPayload.model_validate(dict(raw))
        else:
            raise TelemetryValidationError(
                f"Unsupported telemetry payload type {type(raw).__name__}"
            )
    except ValidationError as exc:
        fields = sorted({str(err["loc"][0]) for err in exc.errors() if err.get("loc")})
        detail = ", ".join(fields) if fields else "payload"
        raise TelemetryValidationError(
            f"Invalid telemetry from {device_id}: {detail}", fields=fields
        ) from exc

    return TelemetrySnapshot(
        device_id=device_id,
        indoor_temperature=float(payload.temperature1),
        indoor_humidity=float(payload.humidity1),
        outdoor_temperature=float(payload.temperature2),
        outdoor_humidity=float(payload.humidity2),
        received_at=received_at or _utc_now(),
    )


class TelemetryGateway:
    """Entry point for ``up`` messages.

    An accepted snapshot always refreshes the device's current readings. When
    the device has automation enabled, the decision engine runs on the
    snapshot and its decision is handed to the state synchronizer, all while
    the device's lock is held so the cycle never interleaves with another
    message or user command for the same device.
    """

    def __init__(
        self,
        *,
        store: DeviceStore,
        synchronizer: StateSynchronizer,
        engine: DecisionEngine | None = None,
        locks: DeviceLockRegistry | None = None,
    ) -> None:
        self._store = store
        self._synchronizer = synchronizer
        self._engine = engine or DecisionEngine()
        self._locks = locks or synchronizer.locks

    async def ingest(
        self, device_id: str, raw: bytes | bytearray | str | Mapping[str, Any]
    ) -> TelemetrySnapshot | None:
        """Process one message; returns ``None`` when the payload is rejected.

        Raises :class:`PersistenceError` when the updated readings cannot be stored.
        """
        try:
            snapshot = parse_telemetry(device_id, raw)
        except TelemetryValidationError as exc:
            logger.warning("Rejected telemetry: %s", exc)
            return None

        async with self._locks.hold(device_id):
            device = await self._store.get(device_id)
            if device is None:
                logger.debug("Telemetry from unregistered device %s; automation skipped", device_id)
                return snapshot

            device.record_reading(
                snapshot.indoor_temperature,
                snapshot.indoor_humidity,
                timestamp=snapshot.received_at,
            )
            try:
                await self._store.save(device)
            except PersistenceError:
                raise
            except Exception as exc:
                raise PersistenceError(f"Could not store readings for {device_id}") from exc

            if not device.automation_enabled:
                return snapshot

            decision = self._engine.decide(
                snapshot.indoor_temperature,
                snapshot.indoor_humidity,
                snapshot.outdoor_temperature,
                device.target_temperature,
                device.target_humidity,
            )
            await self._synchronizer.apply_automation(device_id, decision)
        return snapshot


__all__ = ["TelemetryGateway", "TelemetrySnapshot", "parse_telemetry"]
