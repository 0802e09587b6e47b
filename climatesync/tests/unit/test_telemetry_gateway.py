"""Unit tests for climatesync.core.telemetry_gateway."""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest

from climatesync.core.device_state import DeviceState
from climatesync.core.exceptions import PersistenceError, TelemetryValidationError
from climatesync.core.state_sync import StateSynchronizer
from climatesync.core.stores import InMemoryAuditLog, InMemoryDeviceStore
from climatesync.core.telemetry_gateway import TelemetryGateway, parse_telemetry
from climatesync.models.enums import ActionType, HvacMode, PowerState

DEVICE_ID = "12:34:56:78:90:AB"

Seed = Callable[..., Awaitable[DeviceState]]


def _payload(**overrides: Any) -> bytes:
    body: dict[str, Any] = {
        "temperature1": 26.0,
        "humidity1": 50.0,
        "temperature2": 30.0,
        "humidity2": 45.0,
    }
    body.update(overrides)
    return json.dumps(body).encode()


# ===================================================================
# parse_telemetry
# ===================================================================


class TestParseTelemetry:
    def test_maps_wire_fields_to_indoor_and_outdoor(self) -> None:
        snapshot = parse_telemetry(DEVICE_ID, _payload(temperature1=22.5, humidity2=41))

        assert snapshot.device_id == DEVICE_ID
        assert snapshot.indoor_temperature == 22.5
        assert snapshot.indoor_humidity == 50.0
        assert snapshot.outdoor_temperature == 30.0
        assert snapshot.outdoor_humidity == 41.0

    def test_accepts_mapping_and_str(self) -> None:
        body = json.loads(_payload())

        assert parse_telemetry(DEVICE_ID, body).indoor_temperature == 26.0
        assert parse_telemetry(DEVICE_ID, json.dumps(body)).outdoor_temperature == 30.0

    def test_integers_are_accepted(self) -> None:
        snapshot = parse_telemetry(DEVICE_ID, _payload(temperature1=27))

        assert snapshot.indoor_temperature == 27.0
        assert isinstance(snapshot.indoor_temperature, float)

    def test_extra_fields_ignored(self) -> None:
        snapshot = parse_telemetry(DEVICE_ID, _payload(battery=87))

        assert snapshot.indoor_humidity == 50.0

    def test_missing_field_rejected(self) -> None:
        body = json.loads(_payload())
        del body["humidity2"]

        with pytest.raises(TelemetryValidationError) as exc_info:
            parse_telemetry(DEVICE_ID, body)

        assert exc_info.value.fields == ("humidity2",)

    @pytest.mark.parametrize("value", ["26.0", True, None, [26.0], {"v": 1}])
    def test_non_numeric_rejected(self, value: Any) -> None:
        with pytest.raises(TelemetryValidationError) as exc_info:
            parse_telemetry(DEVICE_ID, _payload(temperature2=value))

        assert "temperature2" in exc_info.value.fields

    @pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
    def test_non_finite_rejected(self, literal: str) -> None:
        raw = _payload().decode().replace("30.0", literal)

        with pytest.raises(TelemetryValidationError):
            parse_telemetry(DEVICE_ID, raw)

    def test_malformed_json_rejected(self) -> None:
        with pytest.raises(TelemetryValidationError):
            parse_telemetry(DEVICE_ID, b"{not json")

    def test_non_object_rejected(self) -> None:
        with pytest.raises(TelemetryValidationError):
            parse_telemetry(DEVICE_ID, b"[1, 2, 3, 4]")

    def test_unsupported_type_rejected(self) -> None:
        with pytest.raises(TelemetryValidationError):
            parse_telemetry(DEVICE_ID, 42)  # type: ignore[arg-type]

    def test_validation_error_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_telemetry(DEVICE_ID, b"{}")


# ===================================================================
# TelemetryGateway.ingest
# ===================================================================


class TestIngest:
    async def test_rejected_payload_has_no_effect(
        self,
        gateway: TelemetryGateway,
        device_store: InMemoryDeviceStore,
        publisher: Any,
        seed: Seed,
    ) -> None:
        await seed(current_temperature=24.0, current_humidity=55.0)

        result = await gateway.ingest(DEVICE_ID, _payload(humidity1="wet"))

        assert result is None
        stored = await device_store.get(DEVICE_ID)
        assert stored is not None
        assert stored.current_temperature == 24.0
        assert stored.current_humidity == 55.0
        assert publisher.sent == []

    async def test_unknown_device_accepted_without_automation(
        self, gateway: TelemetryGateway, device_store: InMemoryDeviceStore, publisher: Any
    ) -> None:
        snapshot = await gateway.ingest("ff:ff:ff:ff:ff:ff", _payload(humidity1=90))

        assert snapshot is not None
        assert await device_store.get("ff:ff:ff:ff:ff:ff") is None
        assert publisher.sent == []

    async def test_readings_updated_with_automation_disabled(
        self,
        gateway: TelemetryGateway,
        device_store: InMemoryDeviceStore,
        publisher: Any,
        seed: Seed,
    ) -> None:
        await seed(automation_enabled=False)

        await gateway.ingest(DEVICE_ID, _payload(temperature1=29.5, humidity1=70))

        stored = await device_store.get(DEVICE_ID)
        assert stored is not None
        assert stored.current_temperature == 29.5
        assert stored.current_humidity == 70.0
        assert publisher.sent == []

    async def test_decision_uses_device_setpoints(
        self,
        gateway: TelemetryGateway,
        device_store: InMemoryDeviceStore,
        publisher: Any,
        seed: Seed,
    ) -> None:
        # target 25 → cool setpoint 26; 26.5 °C with hot outdoor air needs cooling
        await seed(target_temperature=25.0, mode=HvacMode.fan)

        await gateway.ingest(DEVICE_ID, _payload(temperature1=26.5, temperature2=31.0))

        stored = await device_store.get(DEVICE_ID)
        assert stored is not None
        assert stored.mode == HvacMode.cool
        assert publisher.commands == [
            {
                "action": "SET_AC",
                "power": "ON",
                "mode": "COOL",
                "reason": "Mechanical cooling (G36)",
                "target_temp": 24.0,
            }
        ]

    async def test_comfort_turns_running_unit_off(
        self,
        gateway: TelemetryGateway,
        device_store: InMemoryDeviceStore,
        audit_log: InMemoryAuditLog,
        publisher: Any,
        seed: Seed,
    ) -> None:
        await seed(target_temperature=26.0)

        await gateway.ingest(DEVICE_ID, _payload(temperature1=26.0, humidity1=50.0))

        stored = await device_store.get(DEVICE_ID)
        assert stored is not None
        assert stored.power == PowerState.off
        assert publisher.commands == [{"action": "SET_POWER", "power": "OFF"}]
        assert [t.action_type for t in audit_log.entries] == [ActionType.set_power]

    async def test_persistence_failure_raises(
        self, device_store: InMemoryDeviceStore, synchronizer: StateSynchronizer, seed: Seed
    ) -> None:
        await seed()
        failing_save = AsyncMock(side_effect=OSError("disk full"))
        device_store.save = failing_save  # type: ignore[method-assign]
        gateway = TelemetryGateway(store=device_store, synchronizer=synchronizer)

        with pytest.raises(PersistenceError):
            await gateway.ingest(DEVICE_ID, _payload())

    async def test_gateway_shares_synchronizer_locks(
        self, gateway: TelemetryGateway, synchronizer: StateSynchronizer
    ) -> None:
        assert gateway._locks is synchronizer.locks
