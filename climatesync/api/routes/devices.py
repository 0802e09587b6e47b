"""Device state and user command API routes for ClimateSync."""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Annotated, TypeVar

from fastapi import APIRouter, HTTPException, Query, status

from climatesync.api.dependencies import ActorDep, ServiceDep
from climatesync.core.device_state import DeviceState
from climatesync.core.exceptions import InvalidCommandError, PersistenceError
from climatesync.core.state_sync import SyncOutcome
from climatesync.models.enums import UserCommandType
from climatesync.models.schemas import (
    ActionLogResponse,
    CommandResponse,
    DeviceResponse,
    HumidityAdjustRequest,
    ModeRequest,
    PowerRequest,
    TemperatureAdjustRequest,
)
from climatesync.services.control_service import ClimateControlService

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


# ---------------------------------------------------------------------------
# GET /devices/{device_id}: current state
# ---------------------------------------------------------------------------
@router.get("/{device_id}", response_model=DeviceResponse)
async def get_device(device_id: str, service: ServiceDep) -> DeviceResponse:
    """Return the stored state of one device."""
    device = await service.get_device(device_id)
    if device is None:
        raise _not_found(device_id)
    return DeviceResponse.model_validate(device)


# ---------------------------------------------------------------------------
# POST /devices/{device_id}: register with defaults (idempotent)
# ---------------------------------------------------------------------------
@router.post("/{device_id}", response_model=DeviceResponse, status_code=status.HTTP_201_CREATED)
async def register_device(device_id: str, service: ServiceDep) -> DeviceResponse:
    """Create the device record if missing and return it."""
    device = await _guard(service.register_device(device_id))
    return DeviceResponse.model_validate(device)


# ---------------------------------------------------------------------------
# User commands
# ---------------------------------------------------------------------------
@router.post("/{device_id}/power", response_model=CommandResponse)
async def set_power(
    device_id: str, payload: PowerRequest, service: ServiceDep, actor: ActorDep
) -> CommandResponse:
    """Turn the unit ON or OFF."""
    return await _run(service, device_id, UserCommandType.set_power, payload.power, actor)


@router.post("/{device_id}/mode", response_model=CommandResponse)
async def set_mode(
    device_id: str, payload: ModeRequest, service: ServiceDep, actor: ActorDep
) -> CommandResponse:
    """Change the operating mode; only sent to the unit when it is powered."""
    return await _run(service, device_id, UserCommandType.set_mode, payload.mode, actor)


@router.post("/{device_id}/temperature", response_model=CommandResponse)
async def adjust_temperature(
    device_id: str, payload: TemperatureAdjustRequest, service: ServiceDep, actor: ActorDep
) -> CommandResponse:
    """Move the temperature setpoint one degree warmer or colder."""
    return await _run(service, device_id, UserCommandType.set_temp, payload.action, actor)


@router.post("/{device_id}/humidity", response_model=CommandResponse)
async def adjust_humidity(
    device_id: str, payload: HumidityAdjustRequest, service: ServiceDep, actor: ActorDep
) -> CommandResponse:
    """Move the humidity setpoint one point up or down, within 0-100."""
    return await _run(service, device_id, UserCommandType.set_rh, payload.action, actor)


@router.post("/{device_id}/automation", response_model=DeviceResponse)
async def toggle_automation(device_id: str, service: ServiceDep) -> DeviceResponse:
    """Flip the automation flag."""
    device = await _guard(service.toggle_automation(device_id))
    if device is None:
        raise _not_found(device_id)
    return DeviceResponse.model_validate(device)


# ---------------------------------------------------------------------------
# GET /devices/{device_id}/actions: audit history
# ---------------------------------------------------------------------------
@router.get("/{device_id}/actions", response_model=list[ActionLogResponse])
async def list_actions(
    device_id: str,
    service: ServiceDep,
    limit: Annotated[int, Query(ge=1, le=1000)] = 100,
) -> list[ActionLogResponse]:
    """Return recorded transitions for a device, newest first."""
    if await service.get_device(device_id) is None:
        raise _not_found(device_id)
    entries = await _guard(service.history(device_id, limit=limit))
    return [ActionLogResponse.model_validate(entry) for entry in entries]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _not_found(device_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Device {device_id} not found",
    )


async def _guard(operation: Awaitable[T]) -> T:
    try:
        return await operation
    except PersistenceError as exc:
        logger.error("Storage failure: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Device storage unavailable",
        ) from exc


async def _run(
    service: ClimateControlService,
    device_id: str,
    command_type: UserCommandType,
    value: str,
    actor: str,
) -> CommandResponse:
    try:
        outcome = await _guard(
            service.execute_user_command(device_id, command_type, value, username=actor)
        )
    except InvalidCommandError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    if outcome is None:
        raise _not_found(device_id)
    return _to_response(outcome)


def _to_response(outcome: SyncOutcome) -> CommandResponse:
    device: DeviceState = outcome.device
    return CommandResponse(
        device=DeviceResponse.model_validate(device),
        logged=outcome.transition is not None,
        command_sent=outcome.published,
    )
