"""ClimateSync application services."""

from .control_service import ClimateControlService

__all__ = [
    "ClimateControlService",
]
