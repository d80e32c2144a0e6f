"""
Redis client for cache operations.

Provides helper functions for creating Redis connections and invalidating
site-specific cache entries. Cache invalidation is best-effort: connection
failures are logged but do not propagate exceptions.

CHANGELOG:
- 2026-10-19: Key latest-reading cache by site id
- 2026-10-19: Initial creation
"""

import logging

import redis.asyncio as redis

from bms_telemetry.config import get_settings

logger = logging.getLogger(__name__)


def latest_reading_key(site_id: int) -> str:
    """Return the cache key holding a site's latest reading."""
    return f"latest:{site_id}"


async def get_redis() -> redis.Redis:
    """Create and return an async Redis client from settings.

    Returns:
        redis.Redis: Async Redis client.
    """
    return redis.from_url(get_settings().redis_url)


async def invalidate_site_cache(site_id: int) -> None:
    """Delete the latest-reading cache key for a site.

    Best-effort operation: if Redis is unavailable or the delete fails,
    the error is logged but not raised. Ingestion must not be blocked by
    cache infrastructure issues.

    Args:
        site_id: The site whose cache should be cleared.
    """
    try:
        client = await get_redis()
        try:
            await client.delete(latest_reading_key(site_id))
        finally:
            await client.aclose()
    except Exception:
        logger.warning(
            "Failed to invalidate cache for site %s",
            site_id,
            exc_info=True,
        )
