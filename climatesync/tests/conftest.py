import os
import sys
from collections.abc import AsyncGenerator, Awaitable, Callable
from pathlib import Path
from typing import Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

BASE_DIR = Path(__file__).resolve().parents[2]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

os.environ.setdefault("CLIMATESYNC_DB_NAME", "climatesync_test")
os.environ.setdefault("CLIMATESYNC_MQTT_ENABLED", "false")

from climatesync.config import Settings  # noqa: E402
from climatesync.core.audit import AuditRecorder  # noqa: E402
from climatesync.core.device_locks import DeviceLockRegistry  # noqa: E402
from climatesync.core.device_state import DeviceState  # noqa: E402
from climatesync.core.exceptions import PublishError  # noqa: E402
from climatesync.core.state_sync import StateSynchronizer  # noqa: E402
from climatesync.core.stores import InMemoryAuditLog, InMemoryDeviceStore  # noqa: E402
from climatesync.core.telemetry_gateway import TelemetryGateway  # noqa: E402
from climatesync.models.database import Base  # noqa: E402
from climatesync.models.enums import HvacMode, PowerState  # noqa: E402

DEVICE_ID = "12:34:56:78:90:AB"


class RecordingPublisher:
    """Command publisher double that keeps every command it was asked to send."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.fail = fail

    async def publish_command(self, device_id: str, command: dict[str, Any]) -> None:
        if self.fail:
            raise PublishError("broker unavailable")
        self.sent.append((device_id, command))

    @property
    def commands(self) -> list[dict[str, Any]]:
        return [command for _, command in self.sent]


# ---------------------------------------------------------------------------
# In-memory core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def device_store() -> InMemoryDeviceStore:
    return InMemoryDeviceStore()


@pytest.fixture
def audit_log() -> InMemoryAuditLog:
    return InMemoryAuditLog()


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def locks() -> DeviceLockRegistry:
    return DeviceLockRegistry()


@pytest.fixture
def synchronizer(
    device_store: InMemoryDeviceStore,
    audit_log: InMemoryAuditLog,
    publisher: RecordingPublisher,
    locks: DeviceLockRegistry,
) -> StateSynchronizer:
    return StateSynchronizer(
        store=device_store,
        publisher=publisher,
        audit=AuditRecorder(audit_log),
        locks=locks,
    )


@pytest.fixture
def gateway(
    device_store: InMemoryDeviceStore, synchronizer: StateSynchronizer
) -> TelemetryGateway:
    return TelemetryGateway(store=device_store, synchronizer=synchronizer)


@pytest.fixture
def memory_settings() -> Settings:
    return Settings(storage="memory", mqtt_enabled=False)


async def _seed_device(
    store: InMemoryDeviceStore,
    device_id: str = DEVICE_ID,
    *,
    automation_enabled: bool = True,
    power: PowerState = PowerState.on,
    mode: HvacMode = HvacMode.cool,
    **fields: Any,
) -> DeviceState:
    """Register *device_id* and persist the given overrides."""
    device = await store.create(device_id)
    device.automation_enabled = automation_enabled
    device.power = power
    device.mode = mode
    for name, value in fields.items():
        setattr(device, name, value)
    await store.save(device)
    return device


@pytest.fixture
def seed(device_store: InMemoryDeviceStore) -> Callable[..., Awaitable[DeviceState]]:
    """Factory registering a device in the in-memory store with overrides."""

    async def _seed(device_id: str = DEVICE_ID, **overrides: Any) -> DeviceState:
        return await _seed_device(device_store, device_id, **overrides)

    return _seed


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def sql_session_maker() -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Fresh schema on the test database; skips when PostgreSQL is unreachable."""
    engine = create_async_engine(Settings().database_url, pool_pre_ping=True)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    except Exception:
        await engine.dispose()
        pytest.skip("PostgreSQL is not available")
    try:
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()
