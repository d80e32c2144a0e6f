"""
POST /v1/telemetry endpoint for batch ingestion of site readings.

Accepts ``{"site_id": int, "readings": [...]}``, enforces the request body
limit, validates the whole envelope (no partial acceptance), and delegates
persistence to the ingestion service. Responses use the
``{"success": bool, ...}`` envelope expected by site gateways.

CHANGELOG:
- 2026-10-19: Add GET /v1/telemetry service info
- 2026-10-19: Initial creation

TODO:
- None
"""

import logging

from fastapi import APIRouter, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from bms_telemetry import __version__
from bms_telemetry.api.deps import AppSettings, DbSession
from bms_telemetry.errors import InternalError, TelemetryError, ValidationError
from bms_telemetry.schemas import TelemetryPayload
from bms_telemetry.services.ingestion import ingest_readings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1", tags=["telemetry"])


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class IngestData(BaseModel):
    """Acknowledgement body of a successful ingestion."""

    inserted: int
    site_id: int
    site_updated: bool


class IngestResponse(BaseModel):
    """Response from the ingestion endpoint."""

    success: bool = True
    data: IngestData


def _error_response(exc: TelemetryError) -> JSONResponse:
    content = {"success": False, "error": exc.message}
    if exc.details is not None:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(content))


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/telemetry", status_code=201, response_model=IngestResponse)
async def ingest(
    request: Request,
    db: DbSession,
    settings: AppSettings,
) -> IngestResponse:
    """Ingest a batch of readings for one site.

    Args:
        request: The incoming FastAPI request.
        db: Async database session.
        settings: Service settings loaded at startup.

    Returns:
        IngestResponse: 201 with the submitted count, or a JSON error
        envelope (400 validation, 404 unknown site, 413 oversized body,
        500 storage failure).
    """
    max_request_bytes = settings.max_request_bytes
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            content_length_int = int(content_length)
        except ValueError:
            return _error_response(ValidationError("Invalid Content-Length header."))
        if content_length_int > max_request_bytes:
            return JSONResponse(
                status_code=413,
                content={
                    "success": False,
                    "error": f"Request body exceeds limit of {max_request_bytes} bytes.",
                },
            )

    body = await request.body()
    if len(body) > max_request_bytes:
        return JSONResponse(
            status_code=413,
            content={
                "success": False,
                "error": f"Request body exceeds limit of {max_request_bytes} bytes.",
            },
        )

    try:
        payload = TelemetryPayload.model_validate_json(body)
    except PydanticValidationError as exc:
        return _error_response(
            ValidationError("Validation error", details=exc.errors(include_url=False))
        )

    if len(payload.readings) > settings.max_readings_per_request:
        return _error_response(
            ValidationError(
                "Validation error",
                details=[
                    {
                        "type": "too_long",
                        "loc": ["readings"],
                        "msg": f"Batch size {len(payload.readings)} exceeds limit of "
                        f"{settings.max_readings_per_request}. Split into smaller batches.",
                    }
                ],
            )
        )

    try:
        result = await ingest_readings(db, payload.site_id, payload.readings)
    except InternalError as exc:
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "details": exc.message,
            },
        )
    except TelemetryError as exc:
        return _error_response(exc)
    except Exception as exc:
        logger.exception("Unexpected telemetry ingestion error for site %s", payload.site_id)
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "error": "Internal server error",
                "details": str(exc) or "Unknown error",
            },
        )

    return IngestResponse(
        data=IngestData(
            inserted=result.inserted,
            site_id=result.site_id,
            site_updated=result.site_updated,
        )
    )


@router.get("/telemetry")
async def telemetry_info() -> dict:
    """Describe the ingestion endpoint. No side effects."""
    return {
        "service": "Telemetry Ingestion API",
        "status": "operational",
        "version": __version__,
        "endpoints": {
            "POST": "/v1/telemetry - Ingest telemetry data",
        },
    }
