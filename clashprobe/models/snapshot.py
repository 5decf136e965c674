"""Immutable, point-in-time views of the result store.

A ``Snapshot`` is the unit handed to readers and published to subscribers.
It is fully materialized when taken: later writes to the store never reach
a snapshot that has already been handed out.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType

from clashprobe.models.outcomes import ProbeOutcome


@dataclass(frozen=True)
class TargetStats:
    """Aggregate statistics over one target's history ring.

    Latency figures cover alive samples only and are ``None`` when there are
    none. An empty ring yields ``TargetStats.empty()``.
    """

    samples: int = 0
    alive_samples: int = 0
    avg_latency_ms: float | None = None
    min_latency_ms: float | None = None
    max_latency_ms: float | None = None
    uptime_pct: float = 0.0

    @classmethod
    def empty(cls) -> TargetStats:
        return cls()

    @classmethod
    def from_history(cls, history: Iterable[ProbeOutcome]) -> TargetStats:
        outcomes = list(history)
        if not outcomes:
            return cls.empty()

        latencies = [
            o.latency_ms for o in outcomes if o.alive and o.latency_ms is not None
        ]
        alive = sum(1 for o in outcomes if o.alive)

        return cls(
            samples=len(outcomes),
            alive_samples=alive,
            avg_latency_ms=round(sum(latencies) / len(latencies), 2) if latencies else None,
            min_latency_ms=min(latencies) if latencies else None,
            max_latency_ms=max(latencies) if latencies else None,
            uptime_pct=round(alive / len(outcomes) * 100, 2),
        )

    def to_dict(self) -> dict:
        return {
            "samples": self.samples,
            "alive_samples": self.alive_samples,
            "avg_latency_ms": self.avg_latency_ms,
            "min_latency_ms": self.min_latency_ms,
            "max_latency_ms": self.max_latency_ms,
            "uptime_pct": self.uptime_pct,
        }


@dataclass(frozen=True)
class TargetView:
    """Copy of one target record: current outcome, history and stats."""

    name: str
    current: ProbeOutcome | None
    history: tuple[ProbeOutcome, ...]
    stats: TargetStats

    @property
    def alive(self) -> bool:
        return self.current is not None and self.current.alive

    @property
    def status(self) -> str:
        return "ALIVE" if self.alive else "DEAD"

    def to_dict(self, *, include_history: bool = False) -> dict:
        current = self.current
        data = {
            "name": self.name,
            "status": self.status,
            "alive": self.alive,
            "protocol": current.protocol if current else None,
            "latency_ms": current.latency_ms if current and current.alive else None,
            "error": current.error.value if current and current.error else None,
            "checked_at": current.timestamp.isoformat() if current else None,
            "stats": self.stats.to_dict(),
        }
        if include_history:
            data["history"] = [o.to_dict() for o in self.history]
        return data


def _sort_key(view: TargetView) -> tuple:
    # Alive first by latency, then dead by name
    if view.alive:
        latency = view.current.latency_ms if view.current else None
        return (0, latency if latency is not None else float("inf"), view.name)
    return (1, 0.0, view.name)


@dataclass(frozen=True)
class Snapshot:
    """All target views at the end of one probe round.

    ``round`` is 0 for the initial snapshot published before any probing.
    """

    round: int
    taken_at: datetime
    targets: Mapping[str, TargetView] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @classmethod
    def empty(cls) -> Snapshot:
        return cls(round=0, taken_at=datetime.now(timezone.utc))

    def ordered(self) -> list[TargetView]:
        """Views sorted for display: alive by latency, then dead by name."""
        return sorted(self.targets.values(), key=_sort_key)

    def summary(self) -> dict:
        total = len(self.targets)
        alive = sum(1 for v in self.targets.values() if v.alive)
        return {
            "total": total,
            "alive": alive,
            "dead": total - alive,
            "success_rate": round(alive / total * 100, 1) if total else 0.0,
        }

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "timestamp": self.taken_at.isoformat(),
            **self.summary(),
            "proxies": [v.to_dict() for v in self.ordered()],
        }
