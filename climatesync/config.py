"""Application configuration powered by Pydantic settings."""

from __future__ import annotations

from functools import lru_cache
from typing import TYPE_CHECKING, Final, Literal
from urllib.parse import quote_plus

from pydantic import AnyUrl, Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from climatesync.core.decision_engine import ControlParameters


class Settings(BaseSettings):
    """Centralized configuration object with environment fallbacks."""

    model_config = SettingsConfigDict(env_prefix="CLIMATESYNC_", env_file=".env", extra="allow")

    # App
    app_name: str = "ClimateSync"
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8430
    debug: bool = False
    log_level: str = Field(default="info")

    # Persistence: "sql" uses the database below, "memory" keeps state in-process.
    storage: Literal["sql", "memory"] = Field(default="sql")

    # Database
    db_host: str = Field(default="localhost")
    db_port: int = Field(default=5432)
    db_name: str = Field(default="climatesync")
    db_user: str = Field(default="climatesync")
    db_password: str = Field(default="climatesync")
    db_url: AnyUrl | str | None = Field(default=None)

    # MQTT transport
    mqtt_enabled: bool = Field(default=True)
    mqtt_broker: str = Field(default="localhost")
    mqtt_port: int = Field(default=1883)
    mqtt_username: str | None = Field(default=None)
    mqtt_password: str | None = Field(default=None)
    mqtt_use_tls: bool = Field(default=False)
    mqtt_topic_prefix: str = Field(default="home/sensors")
    mqtt_keepalive: int = Field(default=60)
    mqtt_publish_timeout_s: float = Field(default=5.0, gt=0)

    # G36 control parameters
    default_temp_setpoint_c: float = 26.0
    default_rh_setpoint: float = 60.0
    deadband_c: float = Field(default=2.0, gt=0)
    economizer_max_outdoor_c: float = 26.0
    heat_enable_outdoor_c: float = 35.0
    dry_offset_c: float = 1.0

    # Defaults applied to newly registered devices
    device_default_target_temp_c: float = 25.0
    device_default_target_rh: float = Field(default=60.0, ge=0, le=100)

    # When False, active-mode decisions are ignored for devices that are powered off.
    automation_wakes_device: bool = False

    # Simulator
    telemetry_interval_s: float = Field(default=5.0, gt=0)

    @field_validator("mqtt_topic_prefix", mode="after")
    @classmethod
    def _strip_prefix(cls, v: str) -> str:
        return v.strip("/") or "home/sensors"

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Return a fully qualified async SQLAlchemy database URL."""

        if self.db_url:
            return str(self.db_url)
        return (
            f"postgresql+psycopg://{quote_plus(self.db_user)}:{quote_plus(self.db_password)}@"
            f"{self.db_host}:{self.db_port}/{self.db_name}"
        )

    @property
    def control_parameters(self) -> ControlParameters:
        """Decision-engine thresholds built from the configured values."""
        from climatesync.core.decision_engine import ControlParameters

        return ControlParameters(
            default_temp_setpoint=self.default_temp_setpoint_c,
            default_rh_setpoint=self.default_rh_setpoint,
            deadband=self.deadband_c,
            economizer_max_outdoor=self.economizer_max_outdoor_c,
            heat_enable_outdoor=self.heat_enable_outdoor_c,
            dry_offset=self.dry_offset_c,
        )


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


SETTINGS: Final[Settings] = get_settings()
