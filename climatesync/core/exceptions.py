"""ClimateSync exception hierarchy."""

from __future__ import annotations

from collections.abc import Iterable


class ClimateSyncError(Exception):
    """Base exception for ClimateSync."""


class TelemetryValidationError(ClimateSyncError, ValueError):
    """Inbound telemetry is malformed, incomplete or non-numeric."""

    def __init__(self, message: str, *, fields: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.fields = tuple(fields)


class InvalidCommandError(ClimateSyncError, ValueError):
    """A user command carries a value outside its allowed set."""


class PersistenceError(ClimateSyncError):
    """The device store or audit log could not be written."""


class PublishError(ClimateSyncError):
    """An outbound command could not be handed to the transport."""


__all__ = [
    "ClimateSyncError",
    "InvalidCommandError",
    "PersistenceError",
    "PublishError",
    "TelemetryValidationError",
]
