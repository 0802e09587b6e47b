"""In-process representation of a device record."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from climatesync.models.enums import HvacMode, PowerState

DEFAULT_TARGET_TEMPERATURE = 25.0
DEFAULT_TARGET_HUMIDITY = 60.0


def _utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class DeviceState:
    """Last-known state of one air-conditioning unit, keyed by its identifier.

    ``mode`` is only meaningful while ``power`` is ON; it keeps the last active
    mode while the unit is off.
    """

    device_id: str
    target_temperature: float = DEFAULT_TARGET_TEMPERATURE
    target_humidity: float = DEFAULT_TARGET_HUMIDITY
    current_temperature: float | None = None
    current_humidity: float | None = None
    automation_enabled: bool = False
    power: PowerState = PowerState.off
    mode: HvacMode = HvacMode.cool
    commanded_target_temperature: float | None = None
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self) -> None:
        self.power = PowerState(self.power)
        self.mode = HvacMode(self.mode)

    @property
    def is_on(self) -> bool:
        return self.power == PowerState.on

    def copy(self) -> DeviceState:
        return replace(self)

    def record_reading(
        self, temperature: float, humidity: float, *, timestamp: datetime | None = None
    ) -> None:
        self.current_temperature = temperature
        self.current_humidity = humidity
        self.updated_at = timestamp or _utc_now()


__all__ = ["DEFAULT_TARGET_HUMIDITY", "DEFAULT_TARGET_TEMPERATURE", "DeviceState"]
