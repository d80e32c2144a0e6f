"""
Health check endpoint for the BMS telemetry API.

GET /health returns the service status and version with HTTP 200. It touches
neither the database nor Redis and needs no credentials, so container
HEALTHCHECKs can poll it cheaply.

CHANGELOG:
- 2026-10-19: Initial creation
"""

from fastapi import APIRouter

from bms_telemetry import __version__

router = APIRouter(tags=["health"])


@router.get("/health")
async def health() -> dict[str, str]:
    """Return the liveness status and running version."""
    return {"status": "ok", "version": __version__}
