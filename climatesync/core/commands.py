"""Outbound command payloads sent on a device's ``down`` channel."""

from __future__ import annotations

from typing import Any, TypeAlias

from climatesync.models.enums import CommandAction, HvacMode, PowerState

DeviceCommand: TypeAlias = dict[str, Any]


def power_command(power: PowerState) -> DeviceCommand:
    return {"action": CommandAction.set_power.value, "power": PowerState(power).value}


def mode_command(mode: HvacMode) -> DeviceCommand:
    return {"action": CommandAction.set_mode.value, "mode": HvacMode(mode).value}


def ac_command(mode: HvacMode, reason: str, target_temperature: float | None) -> DeviceCommand:
    """Combined power-on/mode command; ``target_temp`` is left out when unset."""
    command: DeviceCommand = {
        "action": CommandAction.set_ac.value,
        "power": PowerState.on.value,
        "mode": HvacMode(mode).value,
        "reason": reason,
    }
    if target_temperature is not None:
        command["target_temp"] = target_temperature
    return command


__all__ = ["DeviceCommand", "ac_command", "mode_command", "power_command"]
