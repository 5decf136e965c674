"""Probe outcome value types.

Every tester call resolves to exactly one ``ProbeOutcome``. Failures are
data, not exceptions: a dead target carries an ``ErrorCategory`` and never
raises across component boundaries.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


class ErrorCategory(str, Enum):
    """Why a probe attempt failed."""

    TIMEOUT = "timeout"
    DNS_FAILURE = "dns_failure"
    CONNECT_FAILURE = "connect_failure"
    TLS_FAILURE = "tls_failure"
    AUTH_FAILURE = "auth_failure"
    PROTOCOL_ERROR = "protocol_error"
    UNKNOWN = "unknown"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe attempt against one target."""

    target: str
    alive: bool
    latency_ms: float | None = None  # only set when alive
    timestamp: datetime = field(default_factory=_utcnow)
    error: ErrorCategory | None = None
    protocol: str | None = None
    detail: str | None = None

    @classmethod
    def success(
        cls,
        target: str,
        latency_ms: float,
        *,
        protocol: str | None = None,
        timestamp: datetime | None = None,
    ) -> ProbeOutcome:
        return cls(
            target=target,
            alive=True,
            latency_ms=latency_ms,
            timestamp=timestamp or _utcnow(),
            protocol=protocol,
        )

    @classmethod
    def failure(
        cls,
        target: str,
        error: ErrorCategory,
        *,
        protocol: str | None = None,
        detail: str | None = None,
        timestamp: datetime | None = None,
    ) -> ProbeOutcome:
        return cls(
            target=target,
            alive=False,
            timestamp=timestamp or _utcnow(),
            error=error,
            protocol=protocol,
            detail=detail,
        )

    @property
    def status(self) -> str:
        return "ALIVE" if self.alive else "DEAD"

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "alive": self.alive,
            "status": self.status,
            "latency_ms": self.latency_ms,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error.value if self.error else None,
            "protocol": self.protocol,
            "detail": self.detail,
        }
