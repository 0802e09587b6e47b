"""API route registration for ClimateSync."""

from fastapi import APIRouter

from . import devices

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(devices.router, prefix="/devices", tags=["devices"])


__all__ = ["api_router", "devices"]
