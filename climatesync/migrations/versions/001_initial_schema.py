"""Initial ClimateSync schema: device records and the action log.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


power_state_enum = sa.Enum("ON", "OFF", name="power_state_enum", native_enum=False)

hvac_mode_enum = sa.Enum("DRY", "COOL", "FAN", "HEAT", name="hvac_mode_enum", native_enum=False)

actor_enum = sa.Enum("AUTOMATION", "USER", name="actor_enum", native_enum=False)

action_type_enum = sa.Enum("SET_POWER", "SET_MODE", name="action_type_enum", native_enum=False)


def upgrade() -> None:
    op.create_table(
        "devices",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("target_temperature", sa.Float(), nullable=False, server_default="25"),
        sa.Column("target_humidity", sa.Float(), nullable=False, server_default="60"),
        sa.Column("current_temperature", sa.Float(), nullable=True),
        sa.Column("current_humidity", sa.Float(), nullable=True),
        sa.Column(
            "automation_enabled", sa.Boolean(), nullable=False, server_default=sa.false()
        ),
        sa.Column("power", power_state_enum, nullable=False, server_default="OFF"),
        sa.Column("mode", hvac_mode_enum, nullable=False, server_default="COOL"),
        sa.Column("commanded_target_temperature", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "action_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("actor", actor_enum, nullable=False),
        sa.Column("action_type", action_type_enum, nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("device_id", sa.String(length=64), nullable=False),
    )
    # Newest-first history per device
    op.create_index(
        "idx_action_logs_device_id_timestamp",
        "action_logs",
        ["device_id", "timestamp"],
        postgresql_ops={"timestamp": "DESC"},
    )


def downgrade() -> None:
    op.drop_index("idx_action_logs_device_id_timestamp", table_name="action_logs")
    op.drop_table("action_logs")
    op.drop_table("devices")
