"""Domain enums for ClimateSync device records, decisions and audit entries."""

from enum import StrEnum


class PowerState(StrEnum):
    on = "ON"
    off = "OFF"


class HvacMode(StrEnum):
    """Persistable operating modes of an air-conditioning unit."""

    dry = "DRY"
    cool = "COOL"
    fan = "FAN"
    heat = "HEAT"


class DecisionMode(StrEnum):
    """Modes a control decision may resolve to; ``off`` is never persisted."""

    dry = "DRY"
    cool = "COOL"
    fan = "FAN"
    heat = "HEAT"
    off = "OFF"


class OffReason(StrEnum):
    comfort = "comfort"
    lockout = "lockout"


class Actor(StrEnum):
    automation = "AUTOMATION"
    user = "USER"


class ActionType(StrEnum):
    set_power = "SET_POWER"
    set_mode = "SET_MODE"


class CommandAction(StrEnum):
    set_power = "SET_POWER"
    set_mode = "SET_MODE"
    set_ac = "SET_AC"


class UserCommandType(StrEnum):
    set_power = "SET_POWER"
    set_mode = "SET_MODE"
    set_temp = "SET_TEMP"
    set_rh = "SET_RH"


class TemperatureAdjustment(StrEnum):
    warmer = "warmer"
    colder = "colder"


class HumidityAdjustment(StrEnum):
    increase = "increase"
    decrease = "decrease"


class Direction(StrEnum):
    """Channel direction relative to the device."""

    up = "up"
    down = "down"
