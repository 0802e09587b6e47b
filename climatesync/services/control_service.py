"""Wiring of the telemetry gateway, decision engine and state synchronizer.

The service owns the shared per-device lock registry and is the seam where
transport callbacks enter the core. Any failure while handling one message is
logged and contained so other devices keep being served.
"""

from __future__ import annotations

import logging

from climatesync.config import Settings, get_settings
from climatesync.core.audit import AuditRecorder, Transition
from climatesync.core.decision_engine import DecisionEngine
from climatesync.core.device_locks import DeviceLockRegistry
from climatesync.core.device_state import DeviceState
from climatesync.core.messaging import CommandPublisher
from climatesync.core.state_sync import StateSynchronizer, SyncOutcome, UserCommand
from climatesync.core.stores import AuditLogStore, DeviceStore
from climatesync.core.telemetry_gateway import TelemetryGateway, TelemetrySnapshot
from climatesync.models.enums import UserCommandType

logger = logging.getLogger(__name__)


class ClimateControlService:
    """Facade over the control core used by the transport and the HTTP API."""

    def __init__(
        self,
        *,
        device_store: DeviceStore,
        audit_store: AuditLogStore,
        publisher: CommandPublisher,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self.locks = DeviceLockRegistry()
        self.audit = AuditRecorder(audit_store)
        self.engine = DecisionEngine(settings.control_parameters)
        self.synchronizer = StateSynchronizer(
            store=device_store,
            publisher=publisher,
            audit=self.audit,
            locks=self.locks,
            wake_powered_off=settings.automation_wakes_device,
        )
        self.gateway = TelemetryGateway(
            store=device_store,
            synchronizer=self.synchronizer,
            engine=self.engine,
            locks=self.locks,
        )

    # ------------------------------------------------------------------
    # Transport entry point
    # ------------------------------------------------------------------

    async def handle_telemetry(self, device_id: str, payload: bytes) -> TelemetrySnapshot | None:
        """MQTT callback: process one ``up`` message to completion."""
        try:
            return await self.gateway.ingest(device_id, payload)
        except Exception:
            logger.exception("Telemetry processing failed for %s; message dropped", device_id)
            return None

    # ------------------------------------------------------------------
    # User entry points
    # ------------------------------------------------------------------

    async def execute_user_command(
        self,
        device_id: str,
        command_type: UserCommandType | str,
        value: str,
        *,
        username: str,
    ) -> SyncOutcome | None:
        command = UserCommand.parse(command_type, value)
        return await self.synchronizer.apply_user_command(device_id, command, username=username)

    async def get_device(self, device_id: str) -> DeviceState | None:
        return await self.synchronizer.get_device(device_id)

    async def register_device(self, device_id: str) -> DeviceState:
        return await self.synchronizer.register_device(device_id)

    async def toggle_automation(self, device_id: str) -> DeviceState | None:
        return await self.synchronizer.toggle_automation(device_id)

    async def history(self, device_id: str, *, limit: int = 100) -> list[Transition]:
        return await self.audit.history(device_id, limit=limit)


__all__ = ["ClimateControlService"]
