"""Pydantic schemas for ClimateSync payloads and API responses."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    ActionType,
    Actor,
    HumidityAdjustment,
    HvacMode,
    PowerState,
    TemperatureAdjustment,
)

# Strict: JSON numbers only (no numeric strings, no booleans), finite.
Reading = Annotated[float, Field(strict=True, allow_inf_nan=False)]


class TelemetryPayload(BaseModel):
    """Wire format of one ``up`` message; ``*1`` fields are indoor, ``*2`` outdoor."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    temperature1: Reading
    humidity1: Reading
    temperature2: Reading
    humidity2: Reading


class DeviceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    device_id: str
    target_temperature: float
    target_humidity: float
    current_temperature: float | None = None
    current_humidity: float | None = None
    automation_enabled: bool
    power: PowerState
    mode: HvacMode
    updated_at: datetime | None = None


class ActionLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    actor: Actor
    action_type: ActionType
    description: str
    device_id: str
    timestamp: datetime


class PowerRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    power: PowerState


class ModeRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mode: HvacMode


class TemperatureAdjustRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: TemperatureAdjustment


class HumidityAdjustRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    action: HumidityAdjustment


class CommandResponse(BaseModel):
    """Device state after a user command plus what it emitted."""

    device: DeviceResponse
    logged: bool
    command_sent: bool
