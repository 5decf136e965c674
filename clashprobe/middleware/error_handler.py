"""Error hierarchy and FastAPI exception handlers.

Per-target probe failures are data (``ProbeOutcome.error``) and never reach
this module. The errors here cover the service itself: unknown targets in
the API, illegal scheduler transitions, and broken configuration. The
handlers turn them (plus Pydantic's RequestValidationError and unhandled
exceptions) into the JSON envelope: { success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from clashprobe.models.responses import ApiResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class ClashProbeError(Exception):
    """Base error for all clashprobe-specific errors."""

    status_code: int = 500
    message: str = "Internal server error"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = kwargs
        super().__init__(self.message)


class TargetNotFoundError(ClashProbeError):
    """No probe target with the requested name."""

    status_code = 404
    message = "Target not found"


class SchedulerStateError(ClashProbeError):
    """Scheduler asked to make an illegal state transition."""

    status_code = 409
    message = "Illegal scheduler state transition"


class ConfigurationError(ClashProbeError):
    """Settings or target list cannot be used."""

    status_code = 500
    message = "Invalid configuration"

# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


async def _clashprobe_error_handler(_request: Request, exc: ClashProbeError) -> JSONResponse:
    return ApiResponse.failure(exc.status_code, exc.message, meta=exc.details)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return ApiResponse.failure(422, "Validation error", meta={"fields": field_errors})


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback, answer with a generic 500."""
    logger.error(
        "Unhandled exception on %s %s: %s\n%s",
        request.method,
        request.url.path,
        exc,
        traceback.format_exc(),
    )
    return ApiResponse.failure(500, ClashProbeError.message)


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(ClashProbeError, _clashprobe_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
