"""
Tests for site marker status (services/site_status.py and GET /v1/sites/status).

Covers the offline/critical/warning/operational precedence, the last-seen
fallback when no readings exist, error alerts counted as warnings, the
three grouped queries, and the HTTP response with per-status counts.

CHANGELOG:
- 2026-10-19: Initial creation
"""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from bms_telemetry.api.deps import get_db
from bms_telemetry.api.main import app
from bms_telemetry.db.models import Site
from bms_telemetry.services.site_status import (
    get_site_statuses,
    marker_status,
    status_counts,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

NOW = datetime(2025, 10, 29, 12, 0, tzinfo=UTC)


def _override_db_factory(mock_session: AsyncMock):
    """Create a dependency override that yields the mock session."""

    async def _override():
        yield mock_session

    return _override


def _site(site_id: int, name: str, last_seen_at: datetime | None = None) -> Site:
    return Site(
        id=site_id,
        name=name,
        status="active",
        city="Cape Town",
        state="Western Cape",
        latitude=-33.92,
        longitude=18.42,
        last_seen_at=last_seen_at,
    )


def _status_session(
    sites: list[Site],
    alerts: list[tuple[int, str, int]],
    latest: list[tuple[int, datetime]],
) -> AsyncMock:
    """Mock session answering the sites, alert-count and latest-reading queries."""
    sites_result = MagicMock()
    sites_result.scalars.return_value.all.return_value = sites
    alerts_result = MagicMock()
    alerts_result.all.return_value = [
        SimpleNamespace(site_id=s, severity=sev, count=n) for s, sev, n in alerts
    ]
    latest_result = MagicMock()
    latest_result.all.return_value = [
        SimpleNamespace(site_id=s, latest=ts) for s, ts in latest
    ]

    session = AsyncMock()
    session.execute = AsyncMock(side_effect=[sites_result, alerts_result, latest_result])
    return session


# ---------------------------------------------------------------------------
# marker_status
# ---------------------------------------------------------------------------


class TestMarkerStatus:
    """Precedence of the derived marker state."""

    def test_no_telemetry_is_offline(self) -> None:
        assert marker_status(5, 5, None, NOW) == "offline"

    def test_stale_telemetry_is_offline(self) -> None:
        """Offline wins over active critical alerts."""
        stale = NOW - timedelta(hours=1, seconds=1)
        assert marker_status(3, 0, stale, NOW) == "offline"

    def test_exactly_at_threshold_is_online(self) -> None:
        assert marker_status(0, 0, NOW - timedelta(hours=1), NOW) == "operational"

    def test_critical(self) -> None:
        assert marker_status(1, 4, NOW, NOW) == "critical"

    def test_warning(self) -> None:
        assert marker_status(0, 2, NOW, NOW) == "warning"

    def test_operational(self) -> None:
        assert marker_status(0, 0, NOW - timedelta(minutes=5), NOW) == "operational"

    def test_custom_threshold(self) -> None:
        recent = NOW - timedelta(minutes=10)
        assert marker_status(0, 0, recent, NOW, timedelta(minutes=5)) == "offline"


# ---------------------------------------------------------------------------
# get_site_statuses
# ---------------------------------------------------------------------------


class TestGetSiteStatuses:
    """Status derivation from the three grouped queries."""

    @pytest.mark.asyncio
    async def test_three_queries(self) -> None:
        session = _status_session([_site(1, "Alpha")], [], [])

        await get_site_statuses(session, now=NOW)

        assert session.execute.await_count == 3

    @pytest.mark.asyncio
    async def test_alert_counts_and_status(self) -> None:
        session = _status_session(
            [_site(1, "Alpha"), _site(2, "Bravo"), _site(3, "Charlie")],
            [
                (1, "critical", 2),
                (1, "info", 1),
                (2, "warning", 1),
                (2, "error", 2),
            ],
            [
                (1, NOW - timedelta(minutes=5)),
                (2, NOW - timedelta(minutes=5)),
                (3, NOW - timedelta(minutes=5)),
            ],
        )

        statuses = await get_site_statuses(session, now=NOW)

        by_id = {s.id: s for s in statuses}
        assert by_id[1].marker_status == "critical"
        assert by_id[1].critical_alerts == 2
        assert by_id[1].info_alerts == 1
        assert by_id[2].marker_status == "warning"
        assert by_id[2].warning_alerts == 3
        assert by_id[3].marker_status == "operational"

    @pytest.mark.asyncio
    async def test_last_seen_fallback(self) -> None:
        """A site with no readings uses its last_seen_at heartbeat."""
        heartbeat = NOW - timedelta(minutes=20)
        session = _status_session([_site(1, "Alpha", last_seen_at=heartbeat)], [], [])

        statuses = await get_site_statuses(session, now=NOW)

        assert statuses[0].last_telemetry_at == heartbeat
        assert statuses[0].marker_status == "operational"

    @pytest.mark.asyncio
    async def test_latest_of_reading_and_heartbeat(self) -> None:
        reading_ts = NOW - timedelta(hours=3)
        heartbeat = NOW - timedelta(minutes=2)
        session = _status_session(
            [_site(1, "Alpha", last_seen_at=heartbeat)], [], [(1, reading_ts)]
        )

        statuses = await get_site_statuses(session, now=NOW)

        assert statuses[0].last_telemetry_at == heartbeat

    @pytest.mark.asyncio
    async def test_never_reported_is_offline(self) -> None:
        session = _status_session([_site(1, "Alpha")], [(1, "critical", 1)], [])

        statuses = await get_site_statuses(session, now=NOW)

        assert statuses[0].last_telemetry_at is None
        assert statuses[0].marker_status == "offline"

    @pytest.mark.asyncio
    async def test_map_only_filters_query(self) -> None:
        session = _status_session([], [], [])

        await get_site_statuses(session, now=NOW, map_only=True)

        sql = str(session.execute.call_args_list[0][0][0])
        assert "sites.latitude IS NOT NULL" in sql
        assert "sites.longitude IS NOT NULL" in sql
        assert "sites.status =" in sql

    def test_status_counts(self) -> None:
        statuses = [
            SimpleNamespace(marker_status="offline"),
            SimpleNamespace(marker_status="offline"),
            SimpleNamespace(marker_status="critical"),
        ]
        assert status_counts(statuses) == {
            "operational": 0,
            "warning": 0,
            "critical": 1,
            "offline": 2,
        }


# ---------------------------------------------------------------------------
# GET /v1/sites/status
# ---------------------------------------------------------------------------


class TestSiteStatusEndpoint:
    """HTTP response for map and alert views."""

    def test_response(self, client: TestClient) -> None:
        recent = datetime.now(UTC) - timedelta(minutes=1)
        session = _status_session(
            [_site(1, "Alpha"), _site(2, "Bravo")],
            [(1, "warning", 1)],
            [(1, recent)],
        )
        app.dependency_overrides[get_db] = _override_db_factory(session)

        response = client.get("/v1/sites/status")

        assert response.status_code == 200
        body = response.json()
        assert [s["name"] for s in body["sites"]] == ["Alpha", "Bravo"]
        assert body["sites"][0]["marker_status"] == "warning"
        assert body["sites"][0]["warning_alerts"] == 1
        assert body["sites"][1]["marker_status"] == "offline"
        assert body["sites"][1]["last_telemetry_at"] is None
        assert body["counts"] == {
            "operational": 0,
            "warning": 1,
            "critical": 0,
            "offline": 1,
        }
