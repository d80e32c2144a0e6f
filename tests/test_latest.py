"""
Tests for GET /v1/sites/{site_id}/latest and the Redis cache helpers.

Validates cache hits skipping the database, cache population with the
configured TTL on a miss, fallback to the database when Redis is down,
404 for sites without readings, and best-effort invalidation.

CHANGELOG:
- 2026-10-19: Initial creation
"""

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from bms_telemetry.api.deps import get_db
from bms_telemetry.api.main import app
from bms_telemetry.cache.redis_client import invalidate_site_cache, latest_reading_key
from bms_telemetry.db.models import TelemetryReading

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _override_db_factory(mock_session: AsyncMock):
    """Create a dependency override that yields the mock session."""

    async def _override():
        yield mock_session

    return _override


def _reading() -> TelemetryReading:
    return TelemetryReading(
        site_id=3,
        timestamp=datetime(2025, 10, 29, 8, 0, tzinfo=UTC),
        battery_charge_level=81.5,
        solar_power_kw=12.0,
        grid_power_kw=-1.5,
        reading_metadata={"dataQuality": "good"},
    )


def _session_returning(reading: TelemetryReading | None) -> AsyncMock:
    result = MagicMock()
    result.scalar_one_or_none.return_value = reading
    session = AsyncMock()
    session.execute = AsyncMock(return_value=result)
    return session


# ---------------------------------------------------------------------------
# GET /v1/sites/{site_id}/latest
# ---------------------------------------------------------------------------


class TestLatestReading:
    """Latest reading through the Redis cache."""

    def test_cache_hit(self, client: TestClient, mock_redis: AsyncMock) -> None:
        cached = {"site_id": 3, "timestamp": "2025-10-29T08:00:00+00:00"}
        mock_redis.get = AsyncMock(return_value=json.dumps(cached).encode())
        session = _session_returning(None)
        app.dependency_overrides[get_db] = _override_db_factory(session)

        with patch("bms_telemetry.api.sites.get_redis", return_value=mock_redis):
            response = client.get("/v1/sites/3/latest")

        assert response.status_code == 200
        assert response.json() == cached
        mock_redis.get.assert_awaited_once_with("latest:3")
        session.execute.assert_not_awaited()

    def test_cache_miss_populates_cache(
        self, client: TestClient, mock_redis: AsyncMock
    ) -> None:
        session = _session_returning(_reading())
        app.dependency_overrides[get_db] = _override_db_factory(session)

        with patch("bms_telemetry.api.sites.get_redis", return_value=mock_redis):
            response = client.get("/v1/sites/3/latest")

        assert response.status_code == 200
        body = response.json()
        assert body["site_id"] == 3
        assert body["timestamp"] == "2025-10-29T08:00:00+00:00"
        assert body["battery_charge_level"] == 81.5
        assert body["grid_power_kw"] == -1.5
        assert body["battery_voltage"] is None
        assert body["metadata"] == {"dataQuality": "good"}

        mock_redis.set.assert_awaited_once()
        args, kwargs = mock_redis.set.call_args
        assert args[0] == "latest:3"
        assert json.loads(args[1]) == body
        assert kwargs["ex"] == 5

    def test_redis_down_falls_back_to_db(self, client: TestClient) -> None:
        session = _session_returning(_reading())
        app.dependency_overrides[get_db] = _override_db_factory(session)

        with patch(
            "bms_telemetry.api.sites.get_redis",
            side_effect=ConnectionError("redis down"),
        ):
            response = client.get("/v1/sites/3/latest")

        assert response.status_code == 200
        assert response.json()["solar_power_kw"] == 12.0
        session.execute.assert_awaited_once()

    def test_no_readings(self, client: TestClient, mock_redis: AsyncMock) -> None:
        app.dependency_overrides[get_db] = _override_db_factory(_session_returning(None))

        with patch("bms_telemetry.api.sites.get_redis", return_value=mock_redis):
            response = client.get("/v1/sites/9/latest")

        assert response.status_code == 404
        assert response.json()["detail"] == "No telemetry found for site 9."
        mock_redis.set.assert_not_awaited()

    def test_invalid_site_id(self, client: TestClient) -> None:
        app.dependency_overrides[get_db] = _override_db_factory(AsyncMock())

        response = client.get("/v1/sites/0/latest")

        assert response.status_code == 422


# ---------------------------------------------------------------------------
# Cache helpers
# ---------------------------------------------------------------------------


class TestCacheHelpers:
    """Key layout and best-effort invalidation."""

    def test_key(self) -> None:
        assert latest_reading_key(42) == "latest:42"

    @pytest.mark.asyncio
    async def test_invalidate_deletes_key(self, mock_redis: AsyncMock) -> None:
        with patch("bms_telemetry.cache.redis_client.get_redis", return_value=mock_redis):
            await invalidate_site_cache(3)

        mock_redis.delete.assert_awaited_once_with("latest:3")
        mock_redis.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_invalidate_swallows_redis_errors(self, mock_redis: AsyncMock) -> None:
        mock_redis.delete = AsyncMock(side_effect=ConnectionError("redis down"))

        with patch("bms_telemetry.cache.redis_client.get_redis", return_value=mock_redis):
            await invalidate_site_cache(3)

        mock_redis.aclose.assert_awaited_once()
