"""Probe status endpoints.

- GET /api/status: latest snapshot with summary and per-target stats
- GET /api/targets/{name}: one target with its full history
- GET /events: Server-Sent Events stream of snapshots, current one first
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from fastapi import APIRouter
from fastapi.responses import StreamingResponse

from clashprobe.middleware.error_handler import TargetNotFoundError
from clashprobe.models.responses import ApiResponse
from clashprobe.models.snapshot import Snapshot
from clashprobe.services.broadcaster import Broadcaster

logger = logging.getLogger(__name__)

KEEPALIVE_COMMENT = ": keep-alive\n\n"


def format_event(snapshot: Snapshot) -> str:
    """Encode *snapshot* as one SSE ``update`` event."""
    return f"event: update\ndata: {json.dumps(snapshot.to_dict())}\n\n"


async def snapshot_events(
    broadcaster: Broadcaster,
    *,
    keepalive_seconds: float = 30.0,
) -> AsyncIterator[str]:
    """Subscribe to *broadcaster* and yield SSE frames until the stream ends.

    The subscription is opened on the first iteration, so a client that
    leaves before the body starts never registers one. A comment line is
    emitted after ``keepalive_seconds`` of silence so proxies keep the
    connection open.
    """
    subscription = broadcaster.subscribe()
    try:
        while True:
            try:
                snapshot = await asyncio.wait_for(
                    subscription.get(), timeout=keepalive_seconds
                )
            except asyncio.TimeoutError:
                yield KEEPALIVE_COMMENT
                continue
            except StopAsyncIteration:
                break
            yield format_event(snapshot)
    finally:
        broadcaster.unsubscribe(subscription)
        logger.debug("Event stream for subscriber %d closed", subscription.id)


def create_status_router(
    *,
    store: Any = None,
    broadcaster: Any = None,
    keepalive_seconds: float = 30.0,
) -> APIRouter:
    """Factory that creates the status router with injected dependencies."""

    status_router = APIRouter(tags=["status"])

    @status_router.get("/api/status")
    async def status() -> dict:
        """Latest published snapshot."""
        return ApiResponse.ok(broadcaster.latest.to_dict())

    @status_router.get("/api/targets/{name}")
    async def target(name: str) -> dict:
        """Current state, stats and history of one target."""
        view = store.get(name)
        if view is None:
            raise TargetNotFoundError(f"Unknown target '{name}'", target=name)
        return ApiResponse.ok(view.to_dict(include_history=True))

    @status_router.get("/events")
    async def events() -> StreamingResponse:
        """Live snapshot stream; the first event is the current snapshot."""
        return StreamingResponse(
            snapshot_events(broadcaster, keepalive_seconds=keepalive_seconds),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
        )

    return status_router
