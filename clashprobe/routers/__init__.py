"""HTTP routers for the clashprobe API."""

from clashprobe.routers.health import create_health_router
from clashprobe.routers.status import create_status_router

__all__ = ["create_health_router", "create_status_router"]
