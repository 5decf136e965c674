"""Health endpoint.

- GET /health: service status, scheduler progress and live subscriber count
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request

from clashprobe.models.responses import ApiResponse

if TYPE_CHECKING:
    from clashprobe.services.scheduler import Scheduler


def create_health_router(
    *,
    store: Any = None,
    broadcaster: Any = None,
) -> APIRouter:
    """Factory that creates the health router with injected dependencies.

    The scheduler is read from ``app.state`` because it is only built once
    the application lifespan starts.
    """

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health(request: Request) -> dict:
        """Service health check with probing statistics."""
        scheduler: Scheduler | None = getattr(request.app.state, "scheduler", None)

        return ApiResponse.ok(
            {
                "status": "healthy",
                "scheduler": scheduler.stats() if scheduler else {"state": "idle"},
                "known_targets": len(store) if store is not None else 0,
                "subscribers": broadcaster.subscriber_count if broadcaster else 0,
            }
        )

    return health_router
