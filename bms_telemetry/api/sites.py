"""
Site endpoints: marker status for map/alert views and the latest reading.

GET /v1/sites/status derives operational/warning/critical/offline per site
from active alert counts and telemetry recency. GET /v1/sites/{id}/latest
returns the newest reading of a site through a Redis cache with a short TTL;
the ingestion service invalidates the key after every batch.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
import logging
from dataclasses import asdict
from datetime import datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path, Query
from pydantic import BaseModel
from sqlalchemy import select

from bms_telemetry.api.deps import AppSettings, DbSession
from bms_telemetry.cache.redis_client import get_redis, latest_reading_key
from bms_telemetry.db.models import TelemetryReading
from bms_telemetry.services.site_status import get_site_statuses, status_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/sites", tags=["sites"])

READING_FIELDS = (
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


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class SiteStatusOut(BaseModel):
    """Marker status of one site."""

    id: int
    name: str
    status: str
    city: str | None
    state: str | None
    latitude: float | None
    longitude: float | None
    last_telemetry_at: datetime | None
    critical_alerts: int
    warning_alerts: int
    info_alerts: int
    marker_status: str


class SiteStatusResponse(BaseModel):
    """Response of the site status endpoint."""

    sites: list[SiteStatusOut]
    counts: dict[str, int]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _reading_to_dict(reading: TelemetryReading) -> dict:
    """Serialise a TelemetryReading to a JSON-compatible dict.

    Args:
        reading: The ORM instance to serialise.

    Returns:
        dict: Site id, ISO 8601 timestamp, metadata and every sensor field.
    """
    data = {
        "site_id": reading.site_id,
        "timestamp": reading.timestamp.isoformat(),
        "metadata": reading.reading_metadata,
    }
    for field in READING_FIELDS:
        data[field] = getattr(reading, field)
    return data


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/status", response_model=SiteStatusResponse)
async def site_status(
    db: DbSession,
    settings: AppSettings,
    map_only: Annotated[
        bool, Query(description="Only active sites that have coordinates.")
    ] = False,
) -> SiteStatusResponse:
    """Return marker status for every site plus per-status counts."""
    statuses = await get_site_statuses(
        db,
        offline_after=timedelta(seconds=settings.offline_after_s),
        map_only=map_only,
    )
    return SiteStatusResponse(
        sites=[SiteStatusOut(**asdict(status)) for status in statuses],
        counts=status_counts(statuses),
    )


@router.get("/{site_id}/latest")
async def latest_reading(
    site_id: Annotated[int, Path(gt=0)],
    db: DbSession,
    settings: AppSettings,
) -> dict:
    """Return the most recent reading for a site.

    Uses a Redis cache (key ``latest:{site_id}``) with CACHE_TTL_S to avoid
    repeated database queries. Falls back to the database on cache miss or
    Redis failure.

    Raises:
        HTTPException: 404 if the site has no readings.
    """
    cache_key = latest_reading_key(site_id)

    try:
        redis_client = await get_redis()
        try:
            cached = await redis_client.get(cache_key)
            if cached is not None:
                return json.loads(cached)
        finally:
            await redis_client.aclose()
    except Exception:
        logger.warning(
            "Redis read failed for key %s, falling back to DB",
            cache_key,
            exc_info=True,
        )

    stmt = (
        select(TelemetryReading)
        .where(TelemetryReading.site_id == site_id)
        .order_by(TelemetryReading.timestamp.desc())
        .limit(1)
    )
    result = await db.execute(stmt)
    reading = result.scalar_one_or_none()

    if reading is None:
        raise HTTPException(
            status_code=404,
            detail=f"No telemetry found for site {site_id}.",
        )

    reading_dict = _reading_to_dict(reading)

    try:
        redis_client = await get_redis()
        try:
            await redis_client.set(
                cache_key, json.dumps(reading_dict), ex=settings.cache_ttl_s
            )
        finally:
            await redis_client.aclose()
    except Exception:
        logger.warning("Redis write failed for key %s", cache_key, exc_info=True)

    return reading_dict
