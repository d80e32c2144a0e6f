"""
Pydantic request models for telemetry ingestion.

Each reading carries a required timezone-aware timestamp and optional,
range-checked sensor values. Field names match the snake_case wire format
sent by site gateways.

CHANGELOG:
- 2026-10-19: Accept interval energy fields and battery power
- 2026-10-19: Initial creation

TODO:
- None
"""

from typing import Literal

from pydantic import AwareDatetime, BaseModel, Field

EquipmentStatus = Literal["operational", "degraded", "maintenance", "failed", "offline"]
GridStatus = Literal["connected", "disconnected", "unstable"]
SystemStatus = Literal["normal", "warning", "error", "offline"]

MAX_READINGS_PER_BATCH = 100


class ReadingIn(BaseModel):
    """Single telemetry reading from a BMS site gateway."""

    timestamp: AwareDatetime

    battery_voltage: float | None = Field(default=None, ge=0, le=1000)
    battery_current: float | None = Field(default=None, ge=-500, le=500)
    battery_charge_level: float | None = Field(default=None, ge=0, le=100)
    battery_temperature: float | None = Field(default=None, ge=-40, le=100)
    battery_health: float | None = Field(default=None, ge=0, le=100)
    battery_power_kw: float | None = Field(default=None, ge=-1000, le=1000)

    solar_power_kw: float | None = Field(default=None, ge=0, le=1000)
    solar_voltage: float | None = Field(default=None, ge=0, le=1000)
    solar_current: float | None = Field(default=None, ge=0, le=500)
    solar_efficiency: float | None = Field(default=None, ge=0, le=100)
    solar_energy_kwh: float | None = Field(default=None, ge=0, le=1000)

    inverter_1_power_kw: float | None = Field(default=None, ge=0, le=500)
    inverter_1_status: EquipmentStatus | None = None
    inverter_1_temperature: float | None = Field(default=None, ge=-40, le=100)
    inverter_1_efficiency: float | None = Field(default=None, ge=0, le=100)

    inverter_2_power_kw: float | None = Field(default=None, ge=0, le=500)
    inverter_2_status: EquipmentStatus | None = None
    inverter_2_temperature: float | None = Field(default=None, ge=-40, le=100)
    inverter_2_efficiency: float | None = Field(default=None, ge=0, le=100)

    grid_status: GridStatus | None = None
    grid_frequency: float | None = Field(default=None, ge=0, le=100)
    grid_voltage: float | None = Field(default=None, ge=0, le=1000)
    grid_import_kw: float | None = Field(default=None, ge=0, le=1000)
    grid_export_kw: float | None = Field(default=None, ge=0, le=1000)
    grid_energy_kwh: float | None = Field(default=None, ge=-1000, le=1000)

    load_power_kw: float | None = Field(default=None, ge=0, le=1000)
    load_energy_kwh: float | None = Field(default=None, ge=0, le=1000)

    system_status: SystemStatus | None = None
    ambient_temperature: float | None = Field(default=None, ge=-40, le=60)


class TelemetryPayload(BaseModel):
    """Batch envelope for the telemetry ingestion endpoint."""

    site_id: int = Field(gt=0, strict=True)
    readings: list[ReadingIn] = Field(min_length=1, max_length=MAX_READINGS_PER_BATCH)
