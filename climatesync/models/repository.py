"""SQLAlchemy-backed implementations of the device store and audit log."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from climatesync.core.audit import Transition
from climatesync.core.device_state import (
    DEFAULT_TARGET_HUMIDITY,
    DEFAULT_TARGET_TEMPERATURE,
    DeviceState,
)
from climatesync.core.exceptions import PersistenceError
from climatesync.models.database import ActionLog, Device

logger = logging.getLogger(__name__)


def _to_state(row: Device) -> DeviceState:
    return DeviceState(
        device_id=row.id,
        target_temperature=row.target_temperature,
        target_humidity=row.target_humidity,
        current_temperature=row.current_temperature,
        current_humidity=row.current_humidity,
        automation_enabled=row.automation_enabled,
        power=row.power,
        mode=row.mode,
        commanded_target_temperature=row.commanded_target_temperature,
        updated_at=row.updated_at,
    )


def _copy_into(row: Device, device: DeviceState) -> None:
    row.target_temperature = device.target_temperature
    row.target_humidity = device.target_humidity
    row.current_temperature = device.current_temperature
    row.current_humidity = device.current_humidity
    row.automation_enabled = device.automation_enabled
    row.power = device.power
    row.mode = device.mode
    row.commanded_target_temperature = device.commanded_target_temperature
    row.updated_at = device.updated_at


class SqlDeviceStore:
    """Device store using one short-lived session per operation."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        *,
        default_target_temperature: float = DEFAULT_TARGET_TEMPERATURE,
        default_target_humidity: float = DEFAULT_TARGET_HUMIDITY,
    ) -> None:
        self._session_maker = session_maker
        self._default_temp = default_target_temperature
        self._default_rh = default_target_humidity

    async def get(self, device_id: str) -> DeviceState | None:
        try:
            async with self._session_maker() as session:
                row = await session.get(Device, device_id)
                return _to_state(row) if row else None
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not load device {device_id}") from exc

    async def save(self, device: DeviceState) -> None:
        try:
            async with self._session_maker() as session:
                row = await session.get(Device, device.device_id)
                if row is None:
                    row = Device(id=device.device_id)
                    session.add(row)
                _copy_into(row, device)
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not save device {device.device_id}") from exc

    async def create(self, device_id: str) -> DeviceState:
        try:
            async with self._session_maker() as session:
                row = await session.get(Device, device_id)
                if row is None:
                    row = Device(
                        id=device_id,
                        target_temperature=self._default_temp,
                        target_humidity=self._default_rh,
                        automation_enabled=False,
                    )
                    session.add(row)
                    await session.commit()
                    await session.refresh(row)
                    logger.info("Registered device %s", device_id)
                return _to_state(row)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not register device {device_id}") from exc

    async def list_automated(self) -> list[DeviceState]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(Device).where(Device.automation_enabled.is_(True)).order_by(Device.id)
                )
                devices = [_to_state(row) for row in result.scalars()]
        except SQLAlchemyError as exc:
            raise PersistenceError("Could not list automated devices") from exc
        return devices


class SqlAuditLog:
    """Insert-only audit log over the ``action_logs`` table."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._session_maker = session_maker

    async def append(self, transition: Transition) -> None:
        try:
            async with self._session_maker() as session:
                session.add(
                    ActionLog(
                        actor=transition.actor,
                        action_type=transition.action_type,
                        description=transition.description,
                        timestamp=transition.timestamp,
                        device_id=transition.device_id,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(
                f"Could not append audit entry for {transition.device_id}"
            ) from exc

    async def list_for_device(self, device_id: str, *, limit: int = 100) -> list[Transition]:
        try:
            async with self._session_maker() as session:
                result = await session.execute(
                    select(ActionLog)
                    .where(ActionLog.device_id == device_id)
                    .order_by(ActionLog.timestamp.desc())
                    .limit(limit)
                )
                rows = list(result.scalars())
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Could not read audit log for {device_id}") from exc
        return [
            Transition(
                actor=row.actor,
                action_type=row.action_type,
                description=row.description,
                device_id=row.device_id,
                timestamp=row.timestamp,
            )
            for row in rows
        ]


__all__ = ["SqlAuditLog", "SqlDeviceStore"]
