"""FastAPI dependency injection helpers."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status

from climatesync.services.control_service import ClimateControlService

ANONYMOUS_USER = "anonymous"

# ---------------------------------------------------------------------------
# Control service dependency
# ---------------------------------------------------------------------------


_control_service: ClimateControlService | None = None


def set_control_service(service: ClimateControlService | None) -> None:
    """Set the shared control service (called during app startup)."""
    global _control_service
    _control_service = service


def get_control_service() -> ClimateControlService:
    if _control_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Control service not initialised",
        )
    return _control_service


ServiceDep = Annotated[ClimateControlService, Depends(get_control_service)]


# ---------------------------------------------------------------------------
# Acting user
# ---------------------------------------------------------------------------


def get_actor(x_user: Annotated[str | None, Header()] = None) -> str:
    """Username recorded on user-initiated transitions.

    Authentication happens upstream; the caller only forwards the name.
    """
    name = (x_user or "").strip()
    return name or ANONYMOUS_USER


ActorDep = Annotated[str, Depends(get_actor)]


__all__ = [
    "ANONYMOUS_USER",
    "ActorDep",
    "ServiceDep",
    "get_actor",
    "get_control_service",
    "set_control_service",
]
