"""Persistence ports for device records and audit entries, with in-memory stores."""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from climatesync.core.audit import Transition
from climatesync.core.device_state import (
    DEFAULT_TARGET_HUMIDITY,
    DEFAULT_TARGET_TEMPERATURE,
    DeviceState,
)


@runtime_checkable
class DeviceStore(Protocol):
    async def get(self, device_id: str) -> DeviceState | None: ...

    async def save(self, device: DeviceState) -> None: ...

    async def create(self, device_id: str) -> DeviceState: ...

    async def list_automated(self) -> list[DeviceState]: ...


@runtime_checkable
class AuditLogStore(Protocol):
    async def append(self, transition: Transition) -> None: ...

    async def list_for_device(self, device_id: str, *, limit: int = 100) -> list[Transition]: ...


class InMemoryDeviceStore:
    """Dictionary-backed device store.

    Records are copied on the way in and out, so callers mutating a record
    they fetched never touch the stored one until ``save`` succeeds.
    """

    def __init__(
        self,
        *,
        default_target_temperature: float = DEFAULT_TARGET_TEMPERATURE,
        default_target_humidity: float = DEFAULT_TARGET_HUMIDITY,
    ) -> None:
        self._devices: dict[str, DeviceState] = {}
        self._lock = asyncio.Lock()
        self._default_temp = default_target_temperature
        self._default_rh = default_target_humidity

    async def get(self, device_id: str) -> DeviceState | None:
        device = self._devices.get(device_id)
        return device.copy() if device else None

    async def save(self, device: DeviceState) -> None:
        async with self._lock:
            self._devices[device.device_id] = device.copy()

    async def create(self, device_id: str) -> DeviceState:
        async with self._lock:
            existing = self._devices.get(device_id)
            if existing is None:
                existing = DeviceState(
                    device_id=device_id,
                    target_temperature=self._default_temp,
                    target_humidity=self._default_rh,
                )
                self._devices[device_id] = existing
            return existing.copy()

    async def list_automated(self) -> list[DeviceState]:
        return [d.copy() for d in self._devices.values() if d.automation_enabled]


class InMemoryAuditLog:
    """List-backed append-only audit log."""

    def __init__(self) -> None:
        self._entries: list[Transition] = []

    async def append(self, transition: Transition) -> None:
        self._entries.append(transition)

    async def list_for_device(self, device_id: str, *, limit: int = 100) -> list[Transition]:
        matching = [t for t in self._entries if t.device_id == device_id]
        return list(reversed(matching))[:limit]

    @property
    def entries(self) -> tuple[Transition, ...]:
        return tuple(self._entries)


__all__ = ["AuditLogStore", "DeviceStore", "InMemoryAuditLog", "InMemoryDeviceStore"]
