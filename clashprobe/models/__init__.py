"""Public models for clashprobe."""

from clashprobe.models.descriptors import Protocol, ProxyDescriptor
from clashprobe.models.outcomes import ErrorCategory, ProbeOutcome
from clashprobe.models.responses import ApiResponse
from clashprobe.models.snapshot import Snapshot, TargetStats, TargetView

__all__ = [
    "ApiResponse",
    "ErrorCategory",
    "ProbeOutcome",
    "Protocol",
    "ProxyDescriptor",
    "Snapshot",
    "TargetStats",
    "TargetView",
]
