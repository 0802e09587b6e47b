"""Integration tests for the SQLAlchemy device store and audit log.

Skipped when PostgreSQL is not reachable.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from climatesync.core.audit import Transition
from climatesync.models.enums import ActionType, Actor, HvacMode, PowerState
from climatesync.models.repository import SqlAuditLog, SqlDeviceStore

DEVICE_ID = "12:34:56:78:90:AB"


class TestSqlDeviceStore:
    async def test_create_is_idempotent_and_applies_defaults(
        self, sql_session_maker: async_sessionmaker[AsyncSession]
    ) -> None:
        store = SqlDeviceStore(sql_session_maker, default_target_temperature=24.0)

        first = await store.create(DEVICE_ID)
        first.target_temperature = 21.0
        await store.save(first)
        second = await store.create(DEVICE_ID)

        assert second.target_temperature == 21.0
        assert second.target_humidity == 60.0
        assert second.power == PowerState.off
        assert second.mode == HvacMode.cool

    async def test_save_round_trips_state(
        self, sql_session_maker: async_sessionmaker[AsyncSession]
    ) -> None:
        store = SqlDeviceStore(sql_session_maker)
        device = await store.create(DEVICE_ID)
        device.power = PowerState.on
        device.mode = HvacMode.dry
        device.automation_enabled = True
        device.record_reading(27.5, 64.0)
        device.commanded_target_temperature = 24.0

        await store.save(device)
        loaded = await store.get(DEVICE_ID)

        assert loaded is not None
        assert loaded.power == PowerState.on
        assert loaded.mode == HvacMode.dry
        assert loaded.current_temperature == 27.5
        assert loaded.current_humidity == 64.0
        assert loaded.commanded_target_temperature == 24.0
        assert [d.device_id for d in await store.list_automated()] == [DEVICE_ID]

    async def test_unknown_device(
        self, sql_session_maker: async_sessionmaker[AsyncSession]
    ) -> None:
        assert await SqlDeviceStore(sql_session_maker).get("missing") is None


class TestSqlAuditLog:
    async def test_entries_newest_first(
        self, sql_session_maker: async_sessionmaker[AsyncSession]
    ) -> None:
        log = SqlAuditLog(sql_session_maker)
        start = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        for i, action in enumerate((ActionType.set_power, ActionType.set_mode)):
            await log.append(
                Transition(
                    actor=Actor.automation,
                    action_type=action,
                    description=f"entry {i}",
                    device_id=DEVICE_ID,
                    timestamp=start + timedelta(seconds=i),
                )
            )

        entries = await log.list_for_device(DEVICE_ID)

        assert [e.description for e in entries] == ["entry 1", "entry 0"]
        assert entries[0].action_type == ActionType.set_mode
        assert entries[0].actor == Actor.automation
        assert await log.list_for_device(DEVICE_ID, limit=1) == entries[:1]
