"""
SQLAlchemy ORM models for the BMS telemetry database.

Defines Site, TelemetryReading and Alert. TelemetryReading has a composite
primary key (site_id, timestamp) so that re-sent readings are dropped by
ON CONFLICT DO NOTHING at insert time.

CHANGELOG:
- 2026-10-19: Add Alert model for site marker status
- 2026-10-19: Initial creation

TODO:
- None
"""

import datetime
from typing import Any

from sqlalchemy import (
    DateTime,
    Double,
    ForeignKey,
    Index,
    Integer,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

SITE_STATUSES = ("active", "inactive", "maintenance", "offline")
ALERT_SEVERITIES = ("info", "warning", "error", "critical")
ALERT_STATUSES = ("active", "acknowledged", "resolved", "dismissed")


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all BMS ORM models."""

    pass


class Site(Base):
    """A physical battery/solar installation.

    Attributes:
        id: Site identifier.
        name: Display name.
        status: One of ``SITE_STATUSES``.
        city: City of the installation (nullable).
        state: State or province (nullable).
        latitude: Latitude in degrees (nullable).
        longitude: Longitude in degrees (nullable).
        battery_capacity_kwh: Nameplate battery capacity (nullable).
        solar_capacity_kw: Nameplate solar capacity (nullable).
        last_seen_at: Time of the last accepted ingestion batch (nullable).
        created_at: Row creation time.
        updated_at: Last modification time.
    """

    __tablename__ = "sites"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default="active"
    )
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    state: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Double, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_capacity_kwh: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_capacity_kw: Mapped[float | None] = mapped_column(Double, nullable=True)
    last_seen_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the Site."""
        return f"Site(id={self.id!r}, name={self.name!r}, status={self.status!r})"


class TelemetryReading(Base):
    """One sensor sample for one site at one instant.

    Every sensor column is nullable because any sensor may be missing from a
    payload. Sign conventions: ``grid_power_kw`` and ``grid_energy_kwh`` are
    positive for import and negative for export; ``battery_power_kw`` is
    negative while charging and positive while discharging.

    The ``metadata`` column is exposed as ``reading_metadata`` because
    ``metadata`` is reserved on declarative classes.
    """

    __tablename__ = "telemetry_readings"
    __table_args__ = (
        Index("telemetry_timestamp_idx", "timestamp"),
    )

    site_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("sites.id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
    )
    timestamp: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        primary_key=True,
        nullable=False,
    )

    battery_voltage: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_current: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_charge_level: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_temperature: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_soh: Mapped[float | None] = mapped_column(Double, nullable=True)
    battery_power_kw: Mapped[float | None] = mapped_column(Double, nullable=True)

    solar_power_kw: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_energy_kwh: Mapped[float | None] = mapped_column(Double, nullable=True)
    solar_efficiency: Mapped[float | None] = mapped_column(Double, nullable=True)

    inverter1_power_kw: Mapped[float | None] = mapped_column(Double, nullable=True)
    inverter1_efficiency: Mapped[float | None] = mapped_column(Double, nullable=True)
    inverter1_temperature: Mapped[float | None] = mapped_column(Double, nullable=True)
    inverter2_power_kw: Mapped[float | None] = mapped_column(Double, nullable=True)
    inverter2_efficiency: Mapped[float | None] = mapped_column(Double, nullable=True)
    inverter2_temperature: Mapped[float | None] = mapped_column(Double, nullable=True)

    grid_voltage: Mapped[float | None] = mapped_column(Double, nullable=True)
    grid_frequency: Mapped[float | None] = mapped_column(Double, nullable=True)
    grid_power_kw: Mapped[float | None] = mapped_column(Double, nullable=True)
    grid_energy_kwh: Mapped[float | None] = mapped_column(Double, nullable=True)

    load_power_kw: Mapped[float | None] = mapped_column(Double, nullable=True)
    load_energy_kwh: Mapped[float | None] = mapped_column(Double, nullable=True)

    reading_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata", JSONB, nullable=True
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the TelemetryReading."""
        return (
            f"TelemetryReading(site_id={self.site_id!r}, "
            f"timestamp={self.timestamp!r}, solar_power_kw={self.solar_power_kw!r})"
        )


class Alert(Base):
    """Operational alert raised against a site.

    Only the columns needed to count active alerts by severity are modelled;
    alert lifecycle management lives outside this service.
    """

    __tablename__ = "alerts"
    __table_args__ = (
        Index("alerts_site_status_idx", "site_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    site_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("sites.id", ondelete="CASCADE"), nullable=False
    )
    severity: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(Text, nullable=False)
    code: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        Text, nullable=False, server_default="active"
    )
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    def __repr__(self) -> str:
        """Return string representation of the Alert."""
        return (
            f"Alert(id={self.id!r}, site_id={self.site_id!r}, "
            f"severity={self.severity!r}, status={self.status!r})"
        )
