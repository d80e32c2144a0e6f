"""
FastAPI application entry point for the BMS telemetry API.

Loads and validates Settings at startup, installs structured JSON logging,
and registers the health, telemetry, analytics and site routers. The
database engine is created lazily on the first request and disposed on
shutdown.

CHANGELOG:
- 2026-10-19: Register sites router
- 2026-10-19: Register analytics router
- 2026-10-19: Initial creation
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bms_telemetry import __version__
from bms_telemetry.api.analytics import router as analytics_router
from bms_telemetry.api.health import router as health_router
from bms_telemetry.api.sites import router as sites_router
from bms_telemetry.api.telemetry import router as telemetry_router
from bms_telemetry.config import get_settings
from bms_telemetry.db.session import dispose_engine
from bms_telemetry.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: startup validation and shutdown cleanup.

    Startup:
        - Loads Settings; a missing DATABASE_URL or REDIS_URL aborts startup.
        - Configures JSON logging at LOG_LEVEL.

    Shutdown:
        - Disposes the database engine.
    """
    settings = get_settings()
    app.state.settings = settings
    configure_logging(settings.log_level)

    logger.info(
        "BMS telemetry API ready: max_readings_per_request=%d, "
        "analytics_row_limit=%d, hourly_trend_window=%d, energy_unit_rate=%s",
        settings.max_readings_per_request,
        settings.analytics_row_limit,
        settings.hourly_trend_window,
        settings.energy_unit_rate,
    )
    yield
    await dispose_engine()
    logger.info("BMS telemetry API shutting down")


app = FastAPI(
    title="BMS Telemetry API",
    description="Telemetry ingestion and analytics for battery/solar sites.",
    version=__version__,
    lifespan=lifespan,
)


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
)

app.include_router(health_router)
app.include_router(telemetry_router)
app.include_router(analytics_router)
app.include_router(sites_router)


@app.get("/")
async def root() -> dict:
    """Root health check endpoint.

    Returns:
        dict: JSON object with application status.
    """
    return {"status": "ok"}
