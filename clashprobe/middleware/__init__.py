"""Middleware package: error hierarchy and exception handlers."""

from clashprobe.middleware.error_handler import (
    ClashProbeError,
    ConfigurationError,
    SchedulerStateError,
    TargetNotFoundError,
    register_error_handlers,
)

__all__ = [
    "ClashProbeError",
    "ConfigurationError",
    "SchedulerStateError",
    "TargetNotFoundError",
    "register_error_handlers",
]
