"""
Ingestion service for batch-inserting site telemetry readings.

Verifies the site exists, transforms validated readings into row dicts,
inserts them with ON CONFLICT (site_id, timestamp) DO NOTHING, then bumps the
site's last_seen_at heartbeat. The insert and the site update are two
independent writes; neither is retried.

CHANGELOG:
- 2026-10-19: Record reported status enums in reading metadata
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from bms_telemetry.cache.redis_client import invalidate_site_cache
from bms_telemetry.db.models import Site, TelemetryReading
from bms_telemetry.errors import InternalError, NotFoundError
from bms_telemetry.schemas import ReadingIn

logger = logging.getLogger(__name__)

# Reported values kept in the metadata blob instead of dedicated columns.
_METADATA_FIELDS = (
    "inverter_1_status",
    "inverter_2_status",
    "grid_status",
    "system_status",
    "ambient_temperature",
    "solar_voltage",
    "solar_current",
)


@dataclass(frozen=True)
class IngestResult:
    """Outcome of an accepted batch.

    Attributes:
        inserted: Number of readings submitted. Duplicates are not
            distinguished from new rows.
        site_id: Site the batch was recorded against.
        site_updated: Always True; the heartbeat runs for every batch.
    """

    inserted: int
    site_id: int
    site_updated: bool = True


def net_grid_power(
    grid_import_kw: float | None,
    grid_export_kw: float | None,
) -> float | None:
    """Return net grid power (import minus export), or None without import.

    Args:
        grid_import_kw: Power drawn from the grid in kW.
        grid_export_kw: Power fed to the grid in kW.

    Returns:
        float | None: Signed net power, positive for import.
    """
    if grid_import_kw is None:
        return None
    return grid_import_kw - (grid_export_kw or 0.0)


def reading_to_row(site_id: int, reading: ReadingIn, received_at: datetime) -> dict[str, Any]:
    """Map a validated reading onto a telemetry_readings row dict.

    Args:
        site_id: Owning site.
        reading: Validated reading from the request payload.
        received_at: Server receipt time stamped into the metadata.

    Returns:
        dict: Column-keyed values ready for a bulk insert.
    """
    metadata: dict[str, Any] = {
        "dataQuality": "good",
        "receivedAt": received_at.isoformat(),
    }
    for field in _METADATA_FIELDS:
        value = getattr(reading, field)
        if value is not None:
            metadata[field] = value

    return {
        "site_id": site_id,
        "timestamp": reading.timestamp.astimezone(UTC),
        "battery_voltage": reading.battery_voltage,
        "battery_current": reading.battery_current,
        "battery_charge_level": reading.battery_charge_level,
        "battery_temperature": reading.battery_temperature,
        "battery_soh": reading.battery_health,
        "battery_power_kw": reading.battery_power_kw,
        "solar_power_kw": reading.solar_power_kw,
        "solar_energy_kwh": reading.solar_energy_kwh,
        "solar_efficiency": reading.solar_efficiency,
        "inverter1_power_kw": reading.inverter_1_power_kw,
        "inverter1_efficiency": reading.inverter_1_efficiency,
        "inverter1_temperature": reading.inverter_1_temperature,
        "inverter2_power_kw": reading.inverter_2_power_kw,
        "inverter2_efficiency": reading.inverter_2_efficiency,
        "inverter2_temperature": reading.inverter_2_temperature,
        "grid_voltage": reading.grid_voltage,
        "grid_frequency": reading.grid_frequency,
        "grid_power_kw": net_grid_power(reading.grid_import_kw, reading.grid_export_kw),
        "grid_energy_kwh": reading.grid_energy_kwh,
        "load_power_kw": reading.load_power_kw,
        "load_energy_kwh": reading.load_energy_kwh,
        "reading_metadata": metadata,
    }


def build_insert(rows: list[dict[str, Any]]):
    """Build the idempotent bulk INSERT for telemetry rows."""
    return (
        pg_insert(TelemetryReading)
        .values(rows)
        .on_conflict_do_nothing(index_elements=["site_id", "timestamp"])
    )


async def ingest_readings(
    db: AsyncSession,
    site_id: int,
    readings: list[ReadingIn],
    now: datetime | None = None,
) -> IngestResult:
    """Persist a validated batch of readings for a site.

    Duplicate (site_id, timestamp) rows are silently skipped by the database.
    The site heartbeat is refreshed even when every row was a duplicate.
    After both writes the site's latest-reading cache is invalidated.

    Args:
        db: Async SQLAlchemy session.
        site_id: Target site identifier.
        readings: Validated readings (at least one).
        now: Clock override for receipt and heartbeat timestamps.

    Returns:
        IngestResult: Submitted count and site acknowledgement.

    Raises:
        NotFoundError: If the site does not exist. Nothing is written.
        InternalError: If either write fails. Rows inserted before a later
            failure are not rolled back.
    """
    now = now or datetime.now(UTC)

    try:
        result = await db.execute(select(Site.id).where(Site.id == site_id).limit(1))
        existing = result.scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception("Site lookup failed for site %s", site_id)
        raise InternalError(str(exc)) from exc

    if existing is None:
        raise NotFoundError("Site not found", details={"site_id": site_id})

    rows = [reading_to_row(site_id, reading, now) for reading in readings]

    try:
        await db.execute(build_insert(rows))
        await db.commit()

        await db.execute(
            update(Site)
            .where(Site.id == site_id)
            .values(last_seen_at=now, updated_at=now)
        )
        await db.commit()
    except SQLAlchemyError as exc:
        logger.exception("Telemetry ingestion failed for site %s", site_id)
        raise InternalError(str(exc)) from exc

    logger.info("Ingested %d readings for site %s", len(rows), site_id)

    await invalidate_site_cache(site_id)

    return IngestResult(inserted=len(readings), site_id=site_id)
