"""
Aggregation engine for site analytics.

Loads raw telemetry readings for a date range and site filter, then reduces
them in memory into period KPIs, UTC daily and hourly trend series, an
hour-of-day battery charge/discharge pattern and an energy distribution.
All bucketing uses UTC. The loader is capped at a configurable row limit and
flags the payload as truncated when the range holds more readings.

get_analytics() never raises: any failure resolves to the zeroed failure
payload so that reporting surfaces can always read the same shape.

CHANGELOG:
- 2026-10-19: Compute solar capacity factor from site nameplate capacity
- 2026-10-19: Surface row-limit truncation in the payload
- 2026-10-19: Initial creation

TODO:
- Period-over-period trend fields stay 0 until a baseline period is agreed.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bms_telemetry.db.models import Site, TelemetryReading

logger = logging.getLogger(__name__)

DEFAULT_UNIT_RATE = 1.5
DEFAULT_ROW_LIMIT = 10_000
DEFAULT_HOURLY_WINDOW = 168

TREND_FIELDS = ("generationTrend", "consumptionTrend", "independenceTrend", "savingsTrend")


# ---------------------------------------------------------------------------
# Site filter
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AllSites:
    """Aggregate across every site."""


@dataclass(frozen=True)
class SpecificSite:
    """Aggregate a single site.

    Attributes:
        site_id: Identifier of the site.
    """

    site_id: int


SiteFilter = AllSites | SpecificSite


def parse_site_filter(raw: str) -> SiteFilter:
    """Parse the ``site`` query value into a SiteFilter.

    Args:
        raw: ``"all"`` or a positive integer site id.

    Returns:
        SiteFilter: AllSites or SpecificSite.

    Raises:
        ValueError: If the value is neither ``"all"`` nor a positive integer.
    """
    value = raw.strip()
    if value.lower() == "all":
        return AllSites()
    if not value.isdigit() or int(value) < 1:
        raise ValueError(f"Invalid site filter '{raw}'. Use 'all' or a site id.")
    return SpecificSite(int(value))


@dataclass(frozen=True)
class DateRange:
    """Inclusive time range for an analytics query."""

    start: datetime
    end: datetime

    @property
    def hours(self) -> float:
        """Length of the range in hours."""
        return (self.end - self.start).total_seconds() / 3600


# ---------------------------------------------------------------------------
# Pure reductions
# ---------------------------------------------------------------------------


def _utc(ts: datetime) -> datetime:
    """Return ``ts`` in UTC, treating naive values as UTC."""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=UTC)
    return ts.astimezone(UTC)


def _import(value: float | None) -> float:
    return max(0.0, value or 0.0)


def _export(value: float | None) -> float:
    return abs(min(0.0, value or 0.0))


def zero_kpis() -> dict[str, float]:
    """Return a KPI dict with every metric set to zero."""
    kpis = {
        "totalGenerated": 0.0,
        "totalConsumed": 0.0,
        "totalGridImport": 0.0,
        "totalGridExport": 0.0,
        "peakDemand": 0.0,
        "avgBatteryLevel": 0.0,
        "avgBatteryCycles": 0.0,
        "solarCapacityFactor": 0.0,
        "gridIndependence": 0.0,
        "systemEfficiency": 0.0,
        "energySavings": 0.0,
    }
    kpis.update({field: 0.0 for field in TREND_FIELDS})
    return kpis


def compute_kpis(
    readings: Sequence[TelemetryReading],
    unit_rate: float = DEFAULT_UNIT_RATE,
    solar_capacity_kw: float = 0.0,
    range_hours: float = 0.0,
) -> dict[str, float]:
    """Reduce the whole reading set into period KPIs.

    Sums and ratios are global over ``readings``; nothing is averaged per day.

    Args:
        readings: Readings in the requested range.
        unit_rate: Currency per kWh used for energy savings.
        solar_capacity_kw: Combined nameplate solar capacity of the filtered
            sites, used for the capacity factor.
        range_hours: Length of the requested range in hours.

    Returns:
        dict: camelCase KPI name to value.
    """
    total_generated = sum(r.solar_energy_kwh or 0.0 for r in readings)
    total_consumed = sum(r.load_energy_kwh or 0.0 for r in readings)
    total_grid_import = sum(_import(r.grid_energy_kwh) for r in readings)
    total_grid_export = sum(_export(r.grid_energy_kwh) for r in readings)

    peak_demand = max((r.load_power_kw or 0.0 for r in readings), default=0.0)
    avg_battery_level = sum(r.battery_charge_level or 0.0 for r in readings) / max(
        len(readings), 1
    )

    if total_consumed > 0:
        grid_independence = 1 - total_grid_import / total_consumed
        system_efficiency = total_generated / total_consumed
    else:
        grid_independence = 0.0
        system_efficiency = 0.0

    capacity_hours = solar_capacity_kw * range_hours
    capacity_factor = total_generated / capacity_hours if capacity_hours > 0 else 0.0

    kpis = zero_kpis()
    kpis.update(
        {
            "totalGenerated": total_generated,
            "totalConsumed": total_consumed,
            "totalGridImport": total_grid_import,
            "totalGridExport": total_grid_export,
            "peakDemand": peak_demand,
            "avgBatteryLevel": avg_battery_level,
            "solarCapacityFactor": capacity_factor,
            "gridIndependence": grid_independence,
            "systemEfficiency": system_efficiency,
            "energySavings": (total_generated - total_grid_import) * unit_rate,
        }
    )
    return kpis


def daily_trends(readings: Sequence[TelemetryReading]) -> list[dict[str, Any]]:
    """Sum energy fields per UTC calendar date, ascending by date."""
    days: dict[str, dict[str, Any]] = {}
    for reading in readings:
        key = _utc(reading.timestamp).date().isoformat()
        day = days.setdefault(
            key,
            {
                "date": key,
                "generated": 0.0,
                "consumed": 0.0,
                "gridImport": 0.0,
                "gridExport": 0.0,
                "count": 0,
            },
        )
        day["generated"] += reading.solar_energy_kwh or 0.0
        day["consumed"] += reading.load_energy_kwh or 0.0
        day["gridImport"] += _import(reading.grid_energy_kwh)
        day["gridExport"] += _export(reading.grid_energy_kwh)
        day["count"] += 1
    return [days[key] for key in sorted(days)]


def hourly_trends(
    readings: Sequence[TelemetryReading],
    window: int = DEFAULT_HOURLY_WINDOW,
) -> list[dict[str, Any]]:
    """Average power fields per UTC hour, keeping the last ``window`` hours."""
    sums: dict[str, list[float]] = {}
    for reading in readings:
        key = _utc(reading.timestamp).strftime("%Y-%m-%dT%H:00:00")
        bucket = sums.setdefault(key, [0.0, 0.0, 0.0, 0.0, 0])
        bucket[0] += reading.solar_power_kw or 0.0
        bucket[1] += reading.load_power_kw or 0.0
        bucket[2] += reading.battery_power_kw or 0.0
        bucket[3] += reading.grid_power_kw or 0.0
        bucket[4] += 1

    trends = []
    for key in sorted(sums)[-window:]:
        solar, load, battery, grid, count = sums[key]
        trends.append(
            {
                "hour": key,
                "solarPower": solar / count,
                "loadPower": load / count,
                "batteryPower": battery / count,
                "gridPower": grid / count,
            }
        )
    return trends


def battery_patterns(readings: Sequence[TelemetryReading]) -> list[dict[str, Any]]:
    """Average charge and discharge power for each UTC hour of day.

    Negative battery power counts as charging, positive as discharging. Both
    averages divide by every reading in that hour of day, and hours without
    readings report zeros, so the result always has 24 entries.
    """
    counts = [0] * 24
    charged = [0.0] * 24
    discharged = [0.0] * 24
    for reading in readings:
        hour = _utc(reading.timestamp).hour
        power = reading.battery_power_kw or 0.0
        counts[hour] += 1
        if power < 0:
            charged[hour] += abs(power)
        elif power > 0:
            discharged[hour] += power

    return [
        {
            "hour": hour,
            "charged": charged[hour] / max(counts[hour], 1),
            "discharged": discharged[hour] / max(counts[hour], 1),
        }
        for hour in range(24)
    ]


def energy_distribution(kpis: dict[str, float]) -> list[dict[str, Any]]:
    """Return the positive entries of the solar/import/export breakdown."""
    entries = [
        {"name": "Solar Generated", "value": kpis["totalGenerated"]},
        {"name": "Grid Import", "value": kpis["totalGridImport"]},
        {"name": "Grid Export", "value": kpis["totalGridExport"]},
    ]
    return [entry for entry in entries if entry["value"] > 0]


def build_analytics(
    readings: Sequence[TelemetryReading],
    *,
    unit_rate: float = DEFAULT_UNIT_RATE,
    hourly_window: int = DEFAULT_HOURLY_WINDOW,
    truncated: bool = False,
    solar_capacity_kw: float = 0.0,
    range_hours: float = 0.0,
) -> dict[str, Any]:
    """Assemble the full analytics payload from loaded readings."""
    kpis = compute_kpis(readings, unit_rate, solar_capacity_kw, range_hours)
    return {
        "success": True,
        "error": None,
        "truncated": truncated,
        "kpis": kpis,
        "dailyTrends": daily_trends(readings),
        "hourlyTrends": hourly_trends(readings, hourly_window),
        "batteryPatterns": battery_patterns(readings),
        "energyDistribution": energy_distribution(kpis),
    }


def empty_analytics(error: str) -> dict[str, Any]:
    """Return the failure payload: zeroed KPIs and empty series."""
    return {
        "success": False,
        "error": error,
        "truncated": False,
        "kpis": zero_kpis(),
        "dailyTrends": [],
        "hourlyTrends": [],
        "batteryPatterns": [],
        "energyDistribution": [],
    }


# ---------------------------------------------------------------------------
# Database access
# ---------------------------------------------------------------------------


async def load_readings(
    db: AsyncSession,
    date_range: DateRange,
    site_filter: SiteFilter,
    limit: int = DEFAULT_ROW_LIMIT,
) -> tuple[list[TelemetryReading], bool]:
    """Load the earliest ``limit`` readings in the inclusive range.

    One extra row is requested to detect whether the range was truncated.

    Returns:
        tuple: (readings ordered by timestamp ASC, truncated flag).
    """
    stmt = select(TelemetryReading).where(
        TelemetryReading.timestamp >= date_range.start,
        TelemetryReading.timestamp <= date_range.end,
    )
    if isinstance(site_filter, SpecificSite):
        stmt = stmt.where(TelemetryReading.site_id == site_filter.site_id)
    stmt = stmt.order_by(TelemetryReading.timestamp.asc()).limit(limit + 1)

    result = await db.execute(stmt)
    rows = list(result.scalars().all())
    truncated = len(rows) > limit
    if truncated:
        logger.warning(
            "Analytics query truncated at %d readings (%s to %s)",
            limit,
            date_range.start.isoformat(),
            date_range.end.isoformat(),
        )
    return rows[:limit], truncated


async def load_solar_capacity(db: AsyncSession, site_filter: SiteFilter) -> float:
    """Return the combined nameplate solar capacity (kW) of the filtered sites."""
    stmt = select(func.coalesce(func.sum(Site.solar_capacity_kw), 0.0))
    if isinstance(site_filter, SpecificSite):
        stmt = stmt.where(Site.id == site_filter.site_id)
    result = await db.execute(stmt)
    return float(result.scalar_one() or 0.0)


async def get_analytics(
    db: AsyncSession,
    date_range: DateRange,
    site_filter: SiteFilter,
    *,
    unit_rate: float = DEFAULT_UNIT_RATE,
    row_limit: int = DEFAULT_ROW_LIMIT,
    hourly_window: int = DEFAULT_HOURLY_WINDOW,
) -> dict[str, Any]:
    """Compute the analytics payload for a date range and site filter.

    Read only. Never raises; failures are logged and returned as the
    ``success: False`` payload from empty_analytics().

    Args:
        db: Async database session.
        date_range: Inclusive range of reading timestamps.
        site_filter: AllSites or SpecificSite.
        unit_rate: Currency per kWh for energy savings.
        row_limit: Maximum number of readings loaded.
        hourly_window: Number of trailing hourly buckets returned.

    Returns:
        dict: The analytics payload.
    """
    try:
        readings, truncated = await load_readings(db, date_range, site_filter, row_limit)
        capacity = await load_solar_capacity(db, site_filter)
        payload = build_analytics(
            readings,
            unit_rate=unit_rate,
            hourly_window=hourly_window,
            truncated=truncated,
            solar_capacity_kw=capacity,
            range_hours=date_range.hours,
        )
    except Exception:
        logger.exception("Failed to compute analytics for %s", site_filter)
        return empty_analytics("Failed to fetch analytics data")

    logger.debug(
        "Analytics computed: filter=%s readings=%d truncated=%s",
        site_filter,
        len(readings),
        truncated,
    )
    return payload


async def list_sites_for_analytics(db: AsyncSession) -> dict[str, Any]:
    """Return ``{id, name}`` for every site, ordered by name.

    Failures resolve to ``{"success": False, "sites": []}``.
    """
    try:
        result = await db.execute(select(Site.id, Site.name).order_by(Site.name))
        sites = [{"id": row.id, "name": row.name} for row in result.all()]
    except Exception:
        logger.exception("Failed to list sites for analytics")
        return {"success": False, "sites": []}
    return {"success": True, "sites": sites}
