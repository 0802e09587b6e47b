"""SQLAlchemy models and async engine management for ClimateSync."""

from __future__ import annotations

import logging
import uuid
from datetime import UTC, datetime
from enum import StrEnum

from sqlalchemy import Boolean, DateTime, Float, Index, String, Text, Uuid
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.ext.asyncio import (
    AsyncAttrs,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from climatesync.models.enums import ActionType, Actor, HvacMode, PowerState


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all ORM models."""


def uuid_pk() -> uuid.UUID:
    return uuid.uuid4()


def utcnow() -> datetime:
    return datetime.now(UTC)


def _enum_values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


class Device(Base):
    """Persisted state of one unit; the primary key is its MAC address."""

    __tablename__ = "devices"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    target_temperature: Mapped[float] = mapped_column(Float(), default=25.0, nullable=False)
    target_humidity: Mapped[float] = mapped_column(Float(), default=60.0, nullable=False)
    current_temperature: Mapped[float | None] = mapped_column(Float())
    current_humidity: Mapped[float | None] = mapped_column(Float())
    automation_enabled: Mapped[bool] = mapped_column(Boolean(), default=False, nullable=False)
    power: Mapped[PowerState] = mapped_column(
        SQLEnum(
            PowerState,
            name="power_state_enum",
            native_enum=False,
            values_callable=_enum_values,
        ),
        default=PowerState.off,
        nullable=False,
    )
    mode: Mapped[HvacMode] = mapped_column(
        SQLEnum(
            HvacMode,
            name="hvac_mode_enum",
            native_enum=False,
            values_callable=_enum_values,
        ),
        default=HvacMode.cool,
        nullable=False,
    )
    # Last target temperature sent to the unit by the automation loop.
    commanded_target_temperature: Mapped[float | None] = mapped_column(Float())
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class ActionLog(Base):
    """Append-only audit entry; rows are never updated or deleted."""

    __tablename__ = "action_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(), primary_key=True, default=uuid_pk)
    actor: Mapped[Actor] = mapped_column(
        SQLEnum(Actor, name="actor_enum", native_enum=False, values_callable=_enum_values),
        nullable=False,
    )
    action_type: Mapped[ActionType] = mapped_column(
        SQLEnum(
            ActionType,
            name="action_type_enum",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    description: Mapped[str] = mapped_column(Text(), default="", nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    device_id: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (Index("idx_action_logs_device_id_timestamp", "device_id", "timestamp"),)


# ============================================================================
# Global engine and session management
# ============================================================================

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


_db_logger = logging.getLogger(__name__)


def get_engine() -> AsyncEngine:
    """Get the global async engine."""
    global _engine
    if _engine is None:
        from climatesync.config import get_settings

        settings = get_settings()

        _db_logger.info(
            "Creating engine -> %s:%s/%s",
            settings.db_host,
            settings.db_port,
            settings.db_name,
        )

        _engine = create_async_engine(
            settings.database_url,
            echo=settings.debug,
            future=True,
            pool_pre_ping=True,
        )
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the global session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def init_db() -> None:
    """Initialize database - create all tables."""
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    _db_logger.info("Database schema ensured")


async def close_db() -> None:
    """Close database connections."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
