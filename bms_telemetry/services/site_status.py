"""
Site liveness and marker status for map and alert views.

Combines three grouped queries (sites, active alert counts per site and
severity, latest reading timestamp per site) in memory, so the number of
queries does not grow with the number of sites.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from bms_telemetry.db.models import Alert, Site, TelemetryReading

logger = logging.getLogger(__name__)

DEFAULT_OFFLINE_AFTER = timedelta(hours=1)


@dataclass(frozen=True)
class SiteStatus:
    """Derived operational state of one site."""

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


def _latest(*values: datetime | None) -> datetime | None:
    present = [v if v.tzinfo else v.replace(tzinfo=UTC) for v in values if v is not None]
    return max(present, default=None)


def marker_status(
    critical_alerts: int,
    warning_alerts: int,
    last_telemetry_at: datetime | None,
    now: datetime,
    offline_after: timedelta = DEFAULT_OFFLINE_AFTER,
) -> str:
    """Classify a site as offline, critical, warning or operational.

    Offline wins over any alert state: a site with no telemetry, or whose
    latest telemetry is older than ``offline_after``, is offline.

    Args:
        critical_alerts: Active critical alert count.
        warning_alerts: Active warning plus error alert count.
        last_telemetry_at: Most recent of reading timestamp and last-seen.
        now: Reference time.
        offline_after: Staleness threshold.

    Returns:
        str: ``offline``, ``critical``, ``warning`` or ``operational``.
    """
    if last_telemetry_at is None or last_telemetry_at < now - offline_after:
        return "offline"
    if critical_alerts > 0:
        return "critical"
    if warning_alerts > 0:
        return "warning"
    return "operational"


async def get_site_statuses(
    db: AsyncSession,
    now: datetime | None = None,
    offline_after: timedelta = DEFAULT_OFFLINE_AFTER,
    map_only: bool = False,
) -> list[SiteStatus]:
    """Return the marker status of every site.

    Args:
        db: Async database session.
        now: Reference time, defaults to the current UTC time.
        offline_after: Staleness threshold for the offline state.
        map_only: Restrict to active sites that have coordinates.

    Returns:
        list[SiteStatus]: One entry per site, ordered by site name.
    """
    now = now or datetime.now(UTC)

    site_stmt = select(Site).order_by(Site.name)
    if map_only:
        site_stmt = site_stmt.where(
            Site.status == "active",
            Site.latitude.is_not(None),
            Site.longitude.is_not(None),
        )
    sites = (await db.execute(site_stmt)).scalars().all()

    alert_rows = await db.execute(
        select(Alert.site_id, Alert.severity, func.count().label("count"))
        .where(Alert.status == "active")
        .group_by(Alert.site_id, Alert.severity)
    )
    alert_counts: dict[int, dict[str, int]] = defaultdict(dict)
    for row in alert_rows.all():
        alert_counts[row.site_id][row.severity] = int(row.count)

    latest_rows = await db.execute(
        select(
            TelemetryReading.site_id,
            func.max(TelemetryReading.timestamp).label("latest"),
        ).group_by(TelemetryReading.site_id)
    )
    latest_by_site = {row.site_id: row.latest for row in latest_rows.all()}

    statuses = []
    for site in sites:
        counts = alert_counts.get(site.id, {})
        critical = counts.get("critical", 0)
        warning = counts.get("warning", 0) + counts.get("error", 0)
        last_telemetry_at = _latest(latest_by_site.get(site.id), site.last_seen_at)
        statuses.append(
            SiteStatus(
                id=site.id,
                name=site.name,
                status=site.status,
                city=site.city,
                state=site.state,
                latitude=site.latitude,
                longitude=site.longitude,
                last_telemetry_at=last_telemetry_at,
                critical_alerts=critical,
                warning_alerts=warning,
                info_alerts=counts.get("info", 0),
                marker_status=marker_status(
                    critical, warning, last_telemetry_at, now, offline_after
                ),
            )
        )

    logger.debug("Computed marker status for %d sites", len(statuses))
    return statuses


def status_counts(statuses: list[SiteStatus]) -> dict[str, Any]:
    """Count sites per marker status for legend summaries."""
    counts = {"operational": 0, "warning": 0, "critical": 0, "offline": 0}
    for status in statuses:
        counts[status.marker_status] += 1
    return counts
