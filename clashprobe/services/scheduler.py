"""Periodic driver for probe rounds.

State machine:
- Idle → Running: ``start()`` spawns the loop task
- Running → Stopped: ``stop()`` cancels the loop, abandoning any in-flight
  round; nothing runs or publishes afterwards
- Idle → Stopped: ``stop()`` before ``start()``

The loop runs a round immediately, then sleeps the full interval, then runs
the next one. Rounds therefore never overlap, and no round starts before
``interval_seconds`` has elapsed since the previous one started.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum

from clashprobe.middleware.error_handler import SchedulerStateError
from clashprobe.models.snapshot import Snapshot
from clashprobe.services.probe_round import ProbeRound

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    """Scheduler lifecycle states."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    """Runs *probe_round* every *interval_seconds* until stopped."""

    def __init__(self, probe_round: ProbeRound, *, interval_seconds: float = 30.0) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._round = probe_round
        self._interval = interval_seconds
        self._state = SchedulerState.IDLE
        self._task: asyncio.Task[None] | None = None
        self._rounds_completed = 0
        self._last_round_at: datetime | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def rounds_completed(self) -> int:
        return self._rounds_completed

    @property
    def last_round_at(self) -> datetime | None:
        return self._last_round_at

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Begin probing. Must be called from a running event loop."""
        if self._state is not SchedulerState.IDLE:
            raise SchedulerStateError(
                f"Cannot start scheduler in state '{self._state.value}'"
            )
        self._state = SchedulerState.RUNNING
        self._task = asyncio.create_task(self._loop(), name="probe-scheduler")
        logger.info(
            "Scheduler started: %d targets every %.1fs",
            len(self._round.descriptors),
            self._interval,
        )

    async def stop(self) -> None:
        """Cancel the loop and wait for it to unwind. Idempotent."""
        if self._state is SchedulerState.STOPPED:
            return
        self._state = SchedulerState.STOPPED

        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        logger.info("Scheduler stopped after %d rounds", self._rounds_completed)

    async def run_once(self) -> Snapshot:
        """Execute a single round outside the loop (one-shot mode)."""
        if self._state is not SchedulerState.IDLE:
            raise SchedulerStateError(
                f"Cannot run a one-shot round in state '{self._state.value}'"
            )
        return await self._run_round()

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def _loop(self) -> None:
        while self._state is SchedulerState.RUNNING:
            try:
                await self._run_round()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception(
                    "Probe round %d failed", self._rounds_completed + 1
                )
            await asyncio.sleep(self._interval)

    async def _run_round(self) -> Snapshot:
        snapshot = await self._round.run(self._rounds_completed + 1)
        self._rounds_completed += 1
        self._last_round_at = snapshot.taken_at
        return snapshot

    def stats(self) -> dict:
        """Scheduler figures for the health endpoint."""
        return {
            "state": self._state.value,
            "interval_seconds": self._interval,
            "rounds_completed": self._rounds_completed,
            "last_round_at": (
                self._last_round_at.isoformat() if self._last_round_at else None
            ),
            "targets": len(self._round.descriptors),
        }
