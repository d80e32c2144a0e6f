"""
Error taxonomy for ingestion and reporting.

Service functions raise these; HTTP routes translate them into the
``{"success": false, "error": ..., "details": ...}`` envelope.

CHANGELOG:
- 2026-10-19: Initial creation
"""

from typing import Any


class TelemetryError(Exception):
    """Base class for telemetry service errors.

    Attributes:
        message: Human-readable error summary.
        details: Optional structured context for the client.
    """

    status_code = 500

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(TelemetryError):
    """Payload failed schema validation; ``details`` lists per-field issues."""

    status_code = 400


class NotFoundError(TelemetryError):
    """A referenced entity (usually a site) does not exist."""

    status_code = 404


class InternalError(TelemetryError):
    """Storage or unexpected failure."""

    status_code = 500
