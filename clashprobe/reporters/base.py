"""Reporter capability: a sink notified with every finished round."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from clashprobe.models.snapshot import Snapshot


@runtime_checkable
class ProbeReporter(Protocol):
    """Receives each round's snapshot after it has been published.

    ``name`` identifies the reporter in log lines. A raising ``report`` is
    logged by the caller and never stops probing.
    """

    name: str

    async def report(self, snapshot: Snapshot) -> None: ...
