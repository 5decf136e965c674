"""In-memory result store: latest outcome plus a bounded history per target.

Each target owns a fixed-capacity FIFO ring (``deque(maxlen=...)``): once
full, appending evicts the oldest outcome in O(1). Outcomes are stored in
arrival order and never reordered or mutated.

Readers never touch the live records. ``snapshot()`` copies everything
under the lock into an immutable ``Snapshot``, so a reader holding one is
unaffected by any later write.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from types import MappingProxyType

from clashprobe.models.outcomes import ProbeOutcome
from clashprobe.models.snapshot import Snapshot, TargetStats, TargetView

DEFAULT_HISTORY_SIZE = 30


@dataclass
class TargetRecord:
    """Mutable per-target state, owned by the store."""

    name: str
    history: deque[ProbeOutcome]
    current: ProbeOutcome | None = None

    def view(self) -> TargetView:
        history = tuple(self.history)
        return TargetView(
            name=self.name,
            current=self.current,
            history=history,
            stats=TargetStats.from_history(history),
        )


class ResultStore:
    """Latest status and rolling history for every probed target.

    Args:
        history_size: Ring capacity per target.
    """

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE) -> None:
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.history_size = history_size
        self._records: dict[str, TargetRecord] = {}
        # Held only while appending or copying, never across a round
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._records)

    def record(self, outcome: ProbeOutcome) -> None:
        """Append *outcome* to its target's ring and make it current.

        Unknown targets are created on first sight.
        """
        with self._lock:
            rec = self._records.get(outcome.target)
            if rec is None:
                rec = TargetRecord(
                    name=outcome.target,
                    history=deque(maxlen=self.history_size),
                )
                self._records[outcome.target] = rec
            rec.history.append(outcome)
            rec.current = outcome

    def targets(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def get(self, target: str) -> TargetView | None:
        """Copy of one target's record, or ``None`` if never recorded."""
        with self._lock:
            rec = self._records.get(target)
            return rec.view() if rec is not None else None

    def stats(self, target: str) -> TargetStats:
        """Aggregate statistics over *target*'s ring.

        Returns ``TargetStats.empty()`` for unknown targets.
        """
        with self._lock:
            rec = self._records.get(target)
            history = tuple(rec.history) if rec is not None else ()
        return TargetStats.from_history(history)

    def snapshot(self, round: int = 0) -> Snapshot:
        """Consistent, fully copied view of every record."""
        with self._lock:
            views = {name: rec.view() for name, rec in self._records.items()}
        return Snapshot(
            round=round,
            taken_at=datetime.now(timezone.utc),
            targets=MappingProxyType(views),
        )
