"""
ClimateSync API - Main Entry Point

FastAPI application hosting the G36 decision loop: telemetry arrives over
MQTT, decisions and user commands go back to the units, every accepted
transition lands in the action log.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request, Response, status
from fastapi.responses import JSONResponse

from climatesync import __version__
from climatesync.api.dependencies import set_control_service
from climatesync.api.routes import api_router
from climatesync.config import Settings, get_settings
from climatesync.core.messaging import CommandPublisher, LoggingPublisher
from climatesync.core.stores import (
    AuditLogStore,
    DeviceStore,
    InMemoryAuditLog,
    InMemoryDeviceStore,
)
from climatesync.integrations.mqtt_client import MQTTClient
from climatesync.models.database import close_db, get_session_maker, init_db
from climatesync.models.repository import SqlAuditLog, SqlDeviceStore
from climatesync.services.control_service import ClimateControlService

# Configure logging
settings_instance = get_settings()
logging.basicConfig(
    level=logging.DEBUG if settings_instance.debug else settings_instance.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


# ============================================================================
# Application State
# ============================================================================


class AppState:
    """Centralized application state container."""

    def __init__(self) -> None:
        self.service: ClimateControlService | None = None
        self.mqtt: MQTTClient | None = None
        self.uses_database: bool = False
        self.startup_time: datetime | None = None
        self.is_healthy: bool = False


app_state = AppState()


def build_stores(settings: Settings) -> tuple[DeviceStore, AuditLogStore]:
    """Return the device store and audit log selected by ``settings.storage``."""
    if settings.storage == "memory":
        return (
            InMemoryDeviceStore(
                default_target_temperature=settings.device_default_target_temp_c,
                default_target_humidity=settings.device_default_target_rh,
            ),
            InMemoryAuditLog(),
        )
    session_maker = get_session_maker()
    return (
        SqlDeviceStore(
            session_maker,
            default_target_temperature=settings.device_default_target_temp_c,
            default_target_humidity=settings.device_default_target_rh,
        ),
        SqlAuditLog(session_maker),
    )


def build_mqtt_client(settings: Settings) -> MQTTClient:
    return MQTTClient(
        broker=settings.mqtt_broker,
        port=settings.mqtt_port,
        username=settings.mqtt_username,
        password=settings.mqtt_password,
        use_tls=settings.mqtt_use_tls,
        topic_prefix=settings.mqtt_topic_prefix,
        keepalive=settings.mqtt_keepalive,
        publish_timeout=settings.mqtt_publish_timeout_s,
    )


# ============================================================================
# Lifespan
# ============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager for startup and shutdown.
    """
    settings = settings_instance
    logger.info("Starting ClimateSync API...")

    try:
        if settings.storage == "sql":
            db_url = settings.database_url
            masked = db_url.replace(settings.db_password, "***") if settings.db_password else db_url
            logger.info("Connecting to database: %s", masked)
            await init_db()
            app_state.uses_database = True
        else:
            logger.warning("In-memory storage selected; device state is lost on restart")

        device_store, audit_store = build_stores(settings)

        publisher: CommandPublisher
        if settings.mqtt_enabled:
            app_state.mqtt = build_mqtt_client(settings)
            publisher = app_state.mqtt
        else:
            logger.warning("MQTT disabled; commands will only be logged")
            publisher = LoggingPublisher()

        app_state.service = ClimateControlService(
            device_store=device_store,
            audit_store=audit_store,
            publisher=publisher,
            settings=settings,
        )
        set_control_service(app_state.service)

        if app_state.mqtt is not None:
            app_state.mqtt.add_callback(app_state.service.handle_telemetry)
            logger.info(
                "Connecting to MQTT broker %s:%s...", settings.mqtt_broker, settings.mqtt_port
            )
            await app_state.mqtt.connect()

        automated = await device_store.list_automated()
        logger.info("%d device(s) under automation", len(automated))

        app_state.startup_time = datetime.now(UTC)
        app_state.is_healthy = True
        logger.info("ClimateSync API startup complete")
    except Exception as e:
        logger.error("Startup failed: %s", e)
        app_state.is_healthy = False
        raise

    yield

    # Shutdown
    logger.info("Shutting down ClimateSync API...")
    app_state.is_healthy = False

    if app_state.mqtt is not None:
        logger.info("Disconnecting MQTT...")
        if app_state.service is not None:
            app_state.mqtt.remove_callback(app_state.service.handle_telemetry)
        await app_state.mqtt.disconnect()
        app_state.mqtt = None

    set_control_service(None)
    app_state.service = None

    if app_state.uses_database:
        logger.info("Closing database connections...")
        await close_db()
        app_state.uses_database = False

    logger.info("ClimateSync API shutdown complete")


# ============================================================================
# FastAPI Application
# ============================================================================

settings = settings_instance

app = FastAPI(
    title="ClimateSync API",
    description="""
    ClimateSync API for G36-style HVAC control of networked AC units.

    ## Features

    * **Device State** - Current readings, setpoints, power and mode
    * **User Commands** - Power, mode and setpoint changes
    * **Automation** - Per-device automation toggle
    * **Action Log** - Append-only history of power and mode transitions
    """,
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)


@app.middleware("http")
async def request_logging_middleware(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Log all requests with timing and correlation IDs."""
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    start_time = time.perf_counter()

    request.state.request_id = request_id

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error("Request failed: %s", e, exc_info=True)
        raise

    process_time = time.perf_counter() - start_time
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = f"{process_time:.4f}"

    logger.info(
        "%s %s status=%s duration=%.4fs",
        request.method,
        request.url.path,
        response.status_code,
        process_time,
    )
    return response


# ============================================================================
# Route Registration
# ============================================================================

app.include_router(api_router)


# ============================================================================
# Health Check Endpoints
# ============================================================================


@app.get("/health", tags=["Health"])
async def health_check() -> dict[str, object]:
    """Basic health check with component status."""
    mqtt_status = "disabled"
    if app_state.mqtt is not None:
        mqtt_status = "connected" if app_state.mqtt.is_connected else "disconnected"
    return {
        "status": "healthy" if app_state.is_healthy else "starting",
        "version": __version__,
        "storage": settings.storage,
        "mqtt": mqtt_status,
        "timestamp": datetime.now(UTC).isoformat(),
    }


@app.get("/health/ready", tags=["Health"], response_model=None)
async def readiness_check() -> Response:
    """Kubernetes readiness probe."""
    if not app_state.is_healthy:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready"},
        )
    return JSONResponse(content={"status": "ready"})


@app.get("/health/live", tags=["Health"])
async def liveness_check() -> dict[str, str]:
    """Kubernetes liveness probe."""
    return {"status": "alive"}


# ============================================================================
# Exception Handlers
# ============================================================================


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error("Unhandled exception: %s", exc, exc_info=True)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": 500,
                "message": "An internal error occurred" if not settings.debug else str(exc),
                "request_id": getattr(request.state, "request_id", None),
            },
        },
    )


# ============================================================================
# CLI Entry Point
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "climatesync.api.main:app",
        host=settings.host,
        port=settings.port,
        loop="asyncio",
        reload=settings.debug,
        log_level="debug" if settings.debug else settings.log_level,
        access_log=True,
    )
