"""Control core for ClimateSync: decisions, telemetry, state transitions and audit."""

from __future__ import annotations

from .audit import AuditRecorder, Transition
from .decision_engine import ControlDecision, ControlParameters, DecisionEngine, decide
from .device_locks import DeviceLockRegistry
from .device_state import DeviceState
from .exceptions import (
    ClimateSyncError,
    InvalidCommandError,
    PersistenceError,
    PublishError,
    TelemetryValidationError,
)
from .state_sync import StateSynchronizer, SyncOutcome, UserCommand
from .stores import InMemoryAuditLog, InMemoryDeviceStore
from .telemetry_gateway import TelemetryGateway, TelemetrySnapshot, parse_telemetry

__all__ = [
    "AuditRecorder",
    "ClimateSyncError",
    "ControlDecision",
    "ControlParameters",
    "DecisionEngine",
    "DeviceLockRegistry",
    "DeviceState",
    "InMemoryAuditLog",
    "InMemoryDeviceStore",
    "InvalidCommandError",
    "PersistenceError",
    "PublishError",
    "StateSynchronizer",
    "SyncOutcome",
    "TelemetryGateway",
    "TelemetrySnapshot",
    "TelemetryValidationError",
    "Transition",
    "UserCommand",
    "decide",
    "parse_telemetry",
]
