"""
Initial schema: sites, telemetry_readings and alerts.

telemetry_readings uses the composite primary key (site_id, timestamp),
which is the conflict target of the idempotent ingestion insert.

Revision ID: 001
Revises: None
Create Date: 2026-10-19

CHANGELOG:
- 2026-10-19: Initial creation
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_READING_COLUMNS = (
    "battery_voltage",
    "battery_current",
    "battery_charge_level",
    "battery_temperature",
    "battery_soh",
    "battery_power_kw",
    "solar_power_kw",
    "solar_energy_kwh",
    "solar_efficiency",
    "inverter1_power_kw",
    "inverter1_efficiency",
    "inverter1_temperature",
    "inverter2_power_kw",
    "inverter2_efficiency",
    "inverter2_temperature",
    "grid_voltage",
    "grid_frequency",
    "grid_power_kw",
    "grid_energy_kwh",
    "load_power_kw",
    "load_energy_kwh",
)


def upgrade() -> None:
    """Create sites, telemetry_readings and alerts with their indexes."""
    op.create_table(
        "sites",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("state", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Double(), nullable=True),
        sa.Column("longitude", sa.Double(), nullable=True),
        sa.Column("battery_capacity_kwh", sa.Double(), nullable=True),
        sa.Column("solar_capacity_kw", sa.Double(), nullable=True),
        sa.Column("last_seen_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'maintenance', 'offline')",
            name="sites_status_check",
        ),
    )
    op.create_index("sites_status_idx", "sites", ["status"])

    op.create_table(
        "telemetry_readings",
        sa.Column(
            "site_id",
            sa.Integer(),
            sa.ForeignKey("sites.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        *(sa.Column(name, sa.Double(), nullable=True) for name in _READING_COLUMNS),
        sa.Column("metadata", postgresql.JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("site_id", "timestamp"),
    )
    op.create_index("telemetry_timestamp_idx", "telemetry_readings", ["timestamp"])

    op.create_table(
        "alerts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "site_id",
            sa.Integer(),
            sa.ForeignKey("sites.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("severity", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.CheckConstraint(
            "severity IN ('info', 'warning', 'error', 'critical')",
            name="alerts_severity_check",
        ),
    )
    op.create_index("alerts_site_status_idx", "alerts", ["site_id", "status"])


def downgrade() -> None:
    """Drop alerts, telemetry_readings and sites."""
    op.drop_table("alerts")
    op.drop_table("telemetry_readings")
    op.drop_table("sites")
