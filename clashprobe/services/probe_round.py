"""One probe sweep over every target.

Each descriptor gets its own asyncio task gated by a semaphore, so at most
``concurrency_limit`` tester calls are in flight at once and the rest queue
until a slot frees. Every call is bounded by ``timeout_seconds``: an attempt
that has not resolved by then is recorded as ``timeout`` and cancelled
without waiting for it to actually finish.

Outcomes go into the result store as they complete. The round's snapshot is
taken, and published, only after every attempt resolved. Registered
reporters are then notified in order; a failing reporter is logged and the
others still run.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

from clashprobe.models.descriptors import ProxyDescriptor
from clashprobe.models.outcomes import ErrorCategory, ProbeOutcome
from clashprobe.models.snapshot import Snapshot
from clashprobe.reporters.base import ProbeReporter
from clashprobe.services.broadcaster import Broadcaster
from clashprobe.store.result_store import ResultStore
from clashprobe.tester.base import ProxyTester

logger = logging.getLogger(__name__)


def _discard_result(task: asyncio.Future) -> None:
    """Retrieve an abandoned attempt's exception so asyncio does not warn."""
    if not task.cancelled():
        task.exception()


class ProbeRound:
    """Runs sweeps of *descriptors* through *tester*.

    Parameters
    ----------
    descriptors:
        Targets to probe; fixed for the lifetime of this object.
    tester:
        Capability performing the actual protocol-level check.
    store:
        Receives every outcome.
    test_url:
        URL fetched through each target.
    concurrency_limit:
        Maximum concurrent tester calls.
    timeout_seconds:
        Per-call deadline.
    broadcaster:
        Optional hub that receives the round's snapshot.
    reporters:
        Sinks notified with the snapshot after it was published.
    """

    def __init__(
        self,
        *,
        descriptors: Sequence[ProxyDescriptor],
        tester: ProxyTester,
        store: ResultStore,
        test_url: str,
        concurrency_limit: int = 10,
        timeout_seconds: float = 5.0,
        broadcaster: Broadcaster | None = None,
        reporters: Sequence[ProbeReporter] = (),
    ) -> None:
        if concurrency_limit < 1:
            raise ValueError("concurrency_limit must be at least 1")
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._descriptors = tuple(descriptors)
        self._tester = tester
        self._store = store
        self._test_url = test_url
        self._concurrency_limit = concurrency_limit
        self._timeout = timeout_seconds
        self._broadcaster = broadcaster
        self._reporters = tuple(reporters)

    @property
    def descriptors(self) -> tuple[ProxyDescriptor, ...]:
        return self._descriptors

    @property
    def reporters(self) -> tuple[ProbeReporter, ...]:
        return self._reporters

    async def run(self, round_number: int = 1) -> Snapshot:
        """Probe every target once and return the resulting snapshot."""
        start = time.monotonic()
        semaphore = asyncio.Semaphore(self._concurrency_limit)

        tasks = [
            asyncio.create_task(
                self._probe_bounded(semaphore, descriptor, round_number),
                name=f"probe-{round_number}-{descriptor.name}",
            )
            for descriptor in self._descriptors
        ]
        try:
            outcomes = await asyncio.gather(*tasks)
        except asyncio.CancelledError:
            for task in tasks:
                task.cancel()
            raise

        snapshot = self._store.snapshot(round=round_number)
        if self._broadcaster is not None:
            self._broadcaster.publish(snapshot)
        await self._notify_reporters(snapshot)

        duration_ms = round((time.monotonic() - start) * 1000, 2)
        alive = sum(1 for o in outcomes if o.alive)
        logger.info(
            "Probe round %d completed in %.2fs - %d/%d proxies alive",
            round_number,
            duration_ms / 1000,
            alive,
            len(outcomes),
            extra={
                "round": round_number,
                "duration_ms": duration_ms,
                "alive": alive,
                "total": len(outcomes),
            },
        )
        return snapshot

    async def _probe_bounded(
        self,
        semaphore: asyncio.Semaphore,
        descriptor: ProxyDescriptor,
        round_number: int,
    ) -> ProbeOutcome:
        async with semaphore:
            outcome = await self._probe(descriptor)

        self._store.record(outcome)
        logger.debug(
            "%s %s",
            descriptor.name,
            outcome.status,
            extra={
                "round": round_number,
                "target": descriptor.name,
                "protocol": descriptor.protocol.value,
                "latency_ms": outcome.latency_ms,
                "error_category": outcome.error.value if outcome.error else None,
            },
        )
        return outcome

    async def _probe(self, descriptor: ProxyDescriptor) -> ProbeOutcome:
        """Run one tester call under the deadline; never raises."""
        protocol = descriptor.protocol.value
        attempt = asyncio.ensure_future(
            self._tester.test(descriptor, self._test_url, self._timeout)
        )

        try:
            done, _ = await asyncio.wait({attempt}, timeout=self._timeout)
        except asyncio.CancelledError:
            attempt.cancel()
            raise

        if not done:
            attempt.cancel()
            attempt.add_done_callback(_discard_result)
            return ProbeOutcome.failure(
                descriptor.name,
                ErrorCategory.TIMEOUT,
                protocol=protocol,
                detail=f"no response within {self._timeout}s",
            )

        try:
            return attempt.result()
        except asyncio.CancelledError:
            return ProbeOutcome.failure(
                descriptor.name,
                ErrorCategory.UNKNOWN,
                protocol=protocol,
                detail="probe attempt was cancelled",
            )
        except Exception as exc:
            logger.warning(
                "Tester raised for %s: %s",
                descriptor.name,
                exc,
                extra={"target": descriptor.name, "protocol": protocol},
            )
            return ProbeOutcome.failure(
                descriptor.name,
                ErrorCategory.UNKNOWN,
                protocol=protocol,
                detail=str(exc) or type(exc).__name__,
            )

    async def _notify_reporters(self, snapshot: Snapshot) -> None:
        for reporter in self._reporters:
            try:
                await reporter.report(snapshot)
            except Exception:
                logger.exception(
                    "Reporter '%s' failed for round %d",
                    getattr(reporter, "name", type(reporter).__name__),
                    snapshot.round,
                    extra={"round": snapshot.round},
                )
