"""
GET /v1/analytics endpoints for dashboard and report surfaces.

Wraps the aggregation engine: parses the date range and site filter, passes
the configured tariff and bounds through, and returns the camelCase payload
the dashboard components render. A failed aggregation is still HTTP 200 with
``success: false``.

CHANGELOG:
- 2026-10-19: Add /v1/analytics/sites site picker
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from bms_telemetry.api.deps import AppSettings, DbSession
from bms_telemetry.services.aggregation import (
    DateRange,
    get_analytics,
    list_sites_for_analytics,
    parse_site_filter,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["analytics"])


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Kpis(CamelModel):
    """Scalar metrics over the whole requested period.

    The ``*_trend`` fields and ``avg_battery_cycles`` are reported as 0.
    """

    total_generated: float
    total_consumed: float
    total_grid_import: float
    total_grid_export: float
    peak_demand: float
    avg_battery_level: float
    avg_battery_cycles: float
    solar_capacity_factor: float
    grid_independence: float
    system_efficiency: float
    energy_savings: float
    generation_trend: float
    consumption_trend: float
    independence_trend: float
    savings_trend: float


class DailyTrend(CamelModel):
    """Energy totals (kWh) for one UTC date."""

    date: str
    generated: float
    consumed: float
    grid_import: float
    grid_export: float
    count: int


class HourlyTrend(CamelModel):
    """Average power (kW) for one UTC hour."""

    hour: str
    solar_power: float
    load_power: float
    battery_power: float
    grid_power: float


class BatteryPattern(CamelModel):
    """Average charge/discharge power for one hour of day."""

    hour: int
    charged: float
    discharged: float


class EnergyShare(CamelModel):
    """One slice of the energy distribution."""

    name: str
    value: float


class AnalyticsResponse(CamelModel):
    """Analytics payload for a period and site filter."""

    success: bool
    error: str | None = None
    truncated: bool = False
    kpis: Kpis
    daily_trends: list[DailyTrend]
    hourly_trends: list[HourlyTrend]
    battery_patterns: list[BatteryPattern]
    energy_distribution: list[EnergyShare]


class SiteOption(CamelModel):
    """Site entry for the analytics site picker."""

    id: int
    name: str


class SiteOptionsResponse(CamelModel):
    """Response of the site picker endpoint."""

    success: bool
    sites: list[SiteOption]


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.get("/analytics", response_model=AnalyticsResponse)
async def analytics(
    db: DbSession,
    settings: AppSettings,
    start: Annotated[
        datetime, Query(alias="from", description="Range start (inclusive).")
    ],
    end: Annotated[datetime, Query(alias="to", description="Range end (inclusive).")],
    site: Annotated[
        str, Query(description="'all' or a site id.")
    ] = "all",
) -> dict:
    """Return KPIs, trends, battery patterns and energy distribution.

    Args:
        db: Async database session.
        settings: Service settings (tariff, row limit, hourly window).
        start: Range start; naive values are read as UTC.
        end: Range end; naive values are read as UTC.
        site: ``all`` or a positive integer site id.

    Returns:
        dict: The analytics payload.

    Raises:
        HTTPException: 422 if ``site`` is malformed or the range is reversed.
    """
    try:
        site_filter = parse_site_filter(site)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from None

    date_range = DateRange(start=_as_utc(start), end=_as_utc(end))
    if date_range.start > date_range.end:
        raise HTTPException(
            status_code=422,
            detail="'from' must not be later than 'to'.",
        )

    return await get_analytics(
        db,
        date_range,
        site_filter,
        unit_rate=settings.energy_unit_rate,
        row_limit=settings.analytics_row_limit,
        hourly_window=settings.hourly_trend_window,
    )


@router.get("/analytics/sites", response_model=SiteOptionsResponse)
async def analytics_sites(db: DbSession) -> dict:
    """Return the sites selectable in analytics views, ordered by name."""
    return await list_sites_for_analytics(db)
