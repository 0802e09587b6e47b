"""ClimateSync persistence models and domain enums."""

from .database import ActionLog, Base, Device
from .enums import (
    ActionType,
    Actor,
    CommandAction,
    DecisionMode,
    Direction,
    HumidityAdjustment,
    HvacMode,
    OffReason,
    PowerState,
    TemperatureAdjustment,
    UserCommandType,
)

__all__ = [
    "ActionLog",
    "ActionType",
    "Actor",
    "Base",
    "CommandAction",
    "DecisionMode",
    "Device",
    "Direction",
    "HumidityAdjustment",
    "HvacMode",
    "OffReason",
    "PowerState",
    "TemperatureAdjustment",
    "UserCommandType",
]
