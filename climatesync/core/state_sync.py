"""Device state machine shared by the automation loop and user commands.

Both entry points build a :class:`TransitionPlan` and hand it to a single
:class:`TransitionApplier`, which persists the device first, then records the
audit entry (best effort) and finally publishes the command (best effort).
Whether a plan is logged is decided per path by the presence of its
``transition``; the applier itself never decides.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from climatesync.core.audit import AuditRecorder, Transition
from climatesync.core.commands import DeviceCommand, ac_command, mode_command, power_command
from climatesync.core.decision_engine import ControlDecision
from climatesync.core.device_locks import DeviceLockRegistry
from climatesync.core.device_state import DeviceState
from climatesync.core.exceptions import (
    InvalidCommandError,
    PersistenceError,
    PublishError,
)
from climatesync.core.messaging import CommandPublisher
from climatesync.core.stores import DeviceStore
from climatesync.models.enums import (
    ActionType,
    Actor,
    HumidityAdjustment,
    HvacMode,
    PowerState,
    TemperatureAdjustment,
    UserCommandType,
)

logger = logging.getLogger(__name__)

SETPOINT_STEP = 1.0
HUMIDITY_MIN = 0.0
HUMIDITY_MAX = 100.0

_COMMAND_VALUE_TYPES: dict[UserCommandType, type[StrEnum]] = {
    UserCommandType.set_power: PowerState,
    UserCommandType.set_mode: HvacMode,
    UserCommandType.set_temp: TemperatureAdjustment,
    UserCommandType.set_rh: HumidityAdjustment,
}


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UserCommand:
    """A directly user-initiated change, validated against its type."""

    type: UserCommandType
    value: PowerState | HvacMode | TemperatureAdjustment | HumidityAdjustment

    @classmethod
    def parse(cls, command_type: UserCommandType | str, value: str) -> UserCommand:
        try:
            ctype = UserCommandType(command_type)
        except ValueError as exc:
            raise InvalidCommandError(f"Unknown command type: {command_type!r}") from exc
        enum_cls = _COMMAND_VALUE_TYPES[ctype]
        try:
            parsed = enum_cls(value)
        except ValueError as exc:
            allowed = ", ".join(m.value for m in enum_cls)
            raise InvalidCommandError(
                f"Invalid value {value!r} for {ctype.value} (expected one of: {allowed})"
            ) from exc
        return cls(type=ctype, value=parsed)


@dataclass(slots=True)
class TransitionPlan:
    changes: dict[str, Any] = field(default_factory=dict)
    transition: Transition | None = None
    command: DeviceCommand | None = None


@dataclass(frozen=True, slots=True)
class SyncOutcome:
    """What an accepted change did: the stored device, its audit entry and command."""

    device: DeviceState
    transition: Transition | None
    command: DeviceCommand | None
    published: bool


# ---------------------------------------------------------------------------
# Transition applier
# ---------------------------------------------------------------------------


class TransitionApplier:
    def __init__(
        self, *, store: DeviceStore, publisher: CommandPublisher, audit: AuditRecorder
    ) -> None:
        self._store = store
        self._publisher = publisher
        self._audit = audit

    async def commit(self, device: DeviceState, plan: TransitionPlan) -> SyncOutcome:
        for name, value in plan.changes.items():
            setattr(device, name, value)
        device.updated_at = datetime.now(UTC)

        try:
            await self._store.save(device)
        except PersistenceError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Could not persist device {device.device_id}") from exc

        recorded: Transition | None = None
        if plan.transition is not None:
            recorded = await self._audit.record_transition(plan.transition)

        published = False
        if plan.command is not None:
            published = await self._publish(device.device_id, plan.command)

        return SyncOutcome(
            device=device,
            transition=recorded,
            command=plan.command,
            published=published,
        )

    async def _publish(self, device_id: str, command: DeviceCommand) -> bool:
        try:
            await self._publisher.publish_command(device_id, command)
        except (PublishError, OSError) as exc:
            logger.warning("Publishing %s to %s failed: %s", command.get("action"), device_id, exc)
            return False
        logger.info("Sent %s to %s: %s", command.get("action"), device_id, command)
        return True


# ---------------------------------------------------------------------------
# State synchronizer
# ---------------------------------------------------------------------------


class StateSynchronizer:
    """Decide whether a decision or user command warrants a transition and apply it.

    Operations on an unknown device identifier are no-ops and return ``None``.
    """

    def __init__(
        self,
        *,
        store: DeviceStore,
        publisher: CommandPublisher,
        audit: AuditRecorder,
        locks: DeviceLockRegistry | None = None,
        wake_powered_off: bool = False,
    ) -> None:
        self._store = store
        self._locks = locks or DeviceLockRegistry()
        self._applier = TransitionApplier(store=store, publisher=publisher, audit=audit)
        self._wake_powered_off = wake_powered_off

    @property
    def locks(self) -> DeviceLockRegistry:
        return self._locks

    # ------------------------------------------------------------------
    # Automation path
    # ------------------------------------------------------------------

    async def apply_automation(
        self, device_id: str, decision: ControlDecision
    ) -> SyncOutcome | None:
        async with self._locks.hold(device_id):
            device = await self._store.get(device_id)
            if device is None:
                logger.debug("Automation skipped for unknown device %s", device_id)
                return None
            if not device.automation_enabled:
                logger.debug("Automation disabled for %s; decision ignored", device_id)
                return None

            plan = self._plan_automation(device, decision)
            if plan is None:
                return None
            return await self._applier.commit(device, plan)

    def _plan_automation(
        self, device: DeviceState, decision: ControlDecision
    ) -> TransitionPlan | None:
        if decision.is_off:
            if not device.is_on:
                return None
            return TransitionPlan(
                changes={"power": PowerState.off},
                transition=Transition(
                    actor=Actor.automation,
                    action_type=ActionType.set_power,
                    description=f"AC turned OFF - {decision.reason}",
                    device_id=device.device_id,
                ),
                command=power_command(PowerState.off),
            )

        if not device.is_on and not self._wake_powered_off:
            logger.debug(
                "Device %s is powered off; %s decision not applied",
                device.device_id,
                decision.mode.value,
            )
            return None

        mode = HvacMode(decision.mode.value)
        target = decision.target_temperature
        changes: dict[str, Any] = {}
        mode_changed = device.mode != mode
        if mode_changed:
            changes["mode"] = mode
        if not device.is_on:
            changes["power"] = PowerState.on
        if not changes and device.commanded_target_temperature == target:
            return None
        changes["commanded_target_temperature"] = target

        transition = None
        if mode_changed:
            shown = "N/A" if target is None else f"{target:g}"
            transition = Transition(
                actor=Actor.automation,
                action_type=ActionType.set_mode,
                description=(
                    f"Mode set to {mode.value}, target temp: {shown}°C - {decision.reason}"
                ),
                device_id=device.device_id,
            )
        return TransitionPlan(
            changes=changes,
            transition=transition,
            command=ac_command(mode, decision.reason, target),
        )

    # ------------------------------------------------------------------
    # User path
    # ------------------------------------------------------------------

    async def apply_user_command(
        self, device_id: str, command: UserCommand, *, username: str
    ) -> SyncOutcome | None:
        async with self._locks.hold(device_id):
            device = await self._store.get(device_id)
            if device is None:
                logger.debug("User command %s for unknown device %s", command.type, device_id)
                return None
            plan = self._plan_user_command(device, command, username)
            return await self._applier.commit(device, plan)

    def _plan_user_command(
        self, device: DeviceState, command: UserCommand, username: str
    ) -> TransitionPlan:
        match command.type:
            case UserCommandType.set_power:
                power = PowerState(command.value)
                return TransitionPlan(
                    changes={"power": power, "commanded_target_temperature": None},
                    transition=Transition(
                        actor=Actor.user,
                        action_type=ActionType.set_power,
                        description=f"{username} turned power {power.value}",
                        device_id=device.device_id,
                    ),
                    command=power_command(power),
                )
            case UserCommandType.set_mode:
                mode = HvacMode(command.value)
                return TransitionPlan(
                    changes={"mode": mode},
                    transition=Transition(
                        actor=Actor.user,
                        action_type=ActionType.set_mode,
                        description=f"{username} set mode to {mode.value}",
                        device_id=device.device_id,
                    ),
                    command=mode_command(mode) if device.is_on else None,
                )
            case UserCommandType.set_temp:
                warmer = command.value == TemperatureAdjustment.warmer
                step = SETPOINT_STEP if warmer else -SETPOINT_STEP
                return TransitionPlan(
                    changes={"target_temperature": device.target_temperature + step}
                )
            case UserCommandType.set_rh:
                increase = command.value == HumidityAdjustment.increase
                step = SETPOINT_STEP if increase else -SETPOINT_STEP
                humidity = min(HUMIDITY_MAX, max(HUMIDITY_MIN, device.target_humidity + step))
                return TransitionPlan(changes={"target_humidity": humidity})
        raise InvalidCommandError(f"Unsupported command type: {command.type}")

    # ------------------------------------------------------------------
    # Registry-side helpers
    # ------------------------------------------------------------------

    async def get_device(self, device_id: str) -> DeviceState | None:
        return await self._store.get(device_id)

    async def register_device(self, device_id: str) -> DeviceState:
        async with self._locks.hold(device_id):
            return await self._store.create(device_id)

    async def toggle_automation(self, device_id: str) -> DeviceState | None:
        async with self._locks.hold(device_id):
            device = await self._store.get(device_id)
            if device is None:
                return None
            device.automation_enabled = not device.automation_enabled
            device.updated_at = datetime.now(UTC)
            await self._store.save(device)
            logger.info(
                "Automation %s for %s",
                "enabled" if device.automation_enabled else "disabled",
                device_id,
            )
            return device


__all__ = [
    "StateSynchronizer",
    "SyncOutcome",
    "TransitionApplier",
    "TransitionPlan",
    "UserCommand",
]
