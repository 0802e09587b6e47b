"""Per-device mutual exclusion for telemetry and user-command processing."""

from __future__ import annotations

import asyncio
import weakref
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager


class _DeviceLock:
    __slots__ = ("__weakref__", "depth", "lock", "owner")

    def __init__(self) -> None:
        self.lock = asyncio.Lock()
        self.owner: asyncio.Task[object] | None = None
        self.depth = 0


class DeviceLockRegistry:
    """One FIFO lock per device identifier.

    Holding is re-entrant for the task that already owns a device's lock, so
    an outer read-decide-apply cycle can call entry points that lock the
    device themselves. Work on different devices never contends. Entries are
    dropped once nothing holds or waits on them.
    """

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[str, _DeviceLock] = (
            weakref.WeakValueDictionary()
        )

    def _entry(self, device_id: str) -> _DeviceLock:
        entry = self._locks.get(device_id)
        if entry is None:
            entry = _DeviceLock()
            self._locks[device_id] = entry
        return entry

    @asynccontextmanager
    async def hold(self, device_id: str) -> AsyncIterator[None]:
        entry = self._entry(device_id)
        task = asyncio.current_task()
        if task is not None and entry.owner is task:
            entry.depth += 1
            try:
                yield
            finally:
                entry.depth -= 1
            return

        async with entry.lock:
            entry.owner = task
            entry.depth = 1
            try:
                yield
            finally:
                entry.owner = None
                entry.depth = 0

    def is_locked(self, device_id: str) -> bool:
        entry = self._locks.get(device_id)
        return bool(entry and entry.lock.locked())

    def __len__(self) -> int:
        return len(self._locks)


__all__ = ["DeviceLockRegistry"]
