"""Response envelope for the status API.

Successful bodies are built with ``ApiResponse.ok`` inside route handlers;
error bodies with ``ApiResponse.failure`` from the exception handlers. Both
share one shape::

    {"success": bool, "data": ..., "error": str | None, "meta": dict | None}
"""

from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict


class ApiResponse(BaseModel):
    """Envelope around every status, target, health and error body."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    error: str | None = None
    meta: dict[str, Any] | None = None

    @classmethod
    def ok(cls, data: Any, meta: dict[str, Any] | None = None) -> dict:
        """Body for a successful response; FastAPI serializes the dict."""
        return cls(success=True, data=data, meta=meta).model_dump()

    @classmethod
    def failure(
        cls,
        status_code: int,
        error: str,
        meta: dict[str, Any] | None = None,
    ) -> JSONResponse:
        """Error response with ``data`` always null."""
        body = cls(success=False, error=error, meta=meta or None)
        return JSONResponse(status_code=status_code, content=body.model_dump())
