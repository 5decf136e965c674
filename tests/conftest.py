"""Shared test fixtures, fake testers and hypothesis strategies."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone

import pytest
from hypothesis import strategies as st

from clashprobe.config.settings import ProbeSettings
from clashprobe.models.descriptors import Protocol, ProxyDescriptor
from clashprobe.models.outcomes import ErrorCategory, ProbeOutcome
from clashprobe.models.snapshot import Snapshot
from clashprobe.services.broadcaster import Broadcaster
from clashprobe.store.result_store import ResultStore


# ---------------------------------------------------------------------------
# Fake testers
# ---------------------------------------------------------------------------

# (descriptor, attempt number starting at 1) -> outcome
Behaviour = Callable[[ProxyDescriptor, int], Awaitable[ProbeOutcome]]


def alive_after(delay_ms: float) -> Behaviour:
    async def _run(descriptor: ProxyDescriptor, attempt: int) -> ProbeOutcome:
        await asyncio.sleep(delay_ms / 1000)
        return ProbeOutcome.success(
            descriptor.name, delay_ms, protocol=descriptor.protocol.value
        )

    return _run


def hangs() -> Behaviour:
    async def _run(descriptor: ProxyDescriptor, attempt: int) -> ProbeOutcome:
        await asyncio.Event().wait()
        raise AssertionError("unreachable")

    return _run


def alternates(delay_ms: float) -> Behaviour:
    """Alive on odd attempts, connect failure on even ones."""

    async def _run(descriptor: ProxyDescriptor, attempt: int) -> ProbeOutcome:
        await asyncio.sleep(delay_ms / 1000)
        if attempt % 2:
            return ProbeOutcome.success(descriptor.name, delay_ms)
        return ProbeOutcome.failure(descriptor.name, ErrorCategory.CONNECT_FAILURE)

    return _run


def raises(exc: Exception) -> Behaviour:
    async def _run(descriptor: ProxyDescriptor, attempt: int) -> ProbeOutcome:
        raise exc

    return _run


class ScriptedTester:
    """Tester driven by per-target behaviours, recording every call."""

    def __init__(self, behaviours: dict[str, Behaviour], default: Behaviour | None = None) -> None:
        self._behaviours = behaviours
        self._default = default or alive_after(1)
        self.attempts: dict[str, int] = {}
        self.call_times: list[float] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def test(
        self, descriptor: ProxyDescriptor, test_url: str, timeout: float
    ) -> ProbeOutcome:
        attempt = self.attempts.get(descriptor.name, 0) + 1
        self.attempts[descriptor.name] = attempt
        self.call_times.append(asyncio.get_running_loop().time())

        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            behaviour = self._behaviours.get(descriptor.name, self._default)
            return await behaviour(descriptor, attempt)
        finally:
            self.in_flight -= 1


def make_descriptor(name: str, protocol: Protocol = Protocol.DIRECT, **kwargs) -> ProxyDescriptor:
    return ProxyDescriptor(name=name, protocol=protocol, **kwargs)


# ---------------------------------------------------------------------------
# Fake reporters
# ---------------------------------------------------------------------------


class RecordingReporter:
    """Reporter keeping every snapshot it was given; raises when *fail* is set."""

    def __init__(self, name: str = "recording", *, fail: bool = False) -> None:
        self.name = name
        self.fail = fail
        self.snapshots: list[Snapshot] = []

    async def report(self, snapshot: Snapshot) -> None:
        self.snapshots.append(snapshot)
        if self.fail:
            raise RuntimeError(f"{self.name} is down")


class FakeWriteApi:
    """Stands in for the InfluxDB async write API."""

    def __init__(self) -> None:
        self.writes: list[dict] = []

    async def write(self, bucket: str, org: str | None = None, record=None, **kwargs) -> bool:
        self.writes.append({"bucket": bucket, "org": org, "record": list(record)})
        return True


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> ProbeSettings:
    """Test settings with fast timings."""
    return ProbeSettings(
        targets_path="does-not-exist.yaml",
        probe_interval_seconds=1,
        probe_timeout_seconds=0.2,
        concurrency_limit=2,
        history_size=5,
        subscriber_buffer_size=2,
        subscriber_max_overflow=1,
        sse_keepalive_seconds=0.05,
    )


@pytest.fixture
def store() -> ResultStore:
    return ResultStore(history_size=5)


@pytest.fixture
def broadcaster() -> Broadcaster:
    return Broadcaster(buffer_size=2, max_overflow=1)


# ---------------------------------------------------------------------------
# Hypothesis strategies (reusable across property tests)
# ---------------------------------------------------------------------------

target_names = st.from_regex(r"[a-z]{2,8}-[0-9]{1,3}", fullmatch=True)

latencies = st.floats(min_value=0.1, max_value=5000.0, allow_nan=False, allow_infinity=False)

error_categories = st.sampled_from(list(ErrorCategory))

_BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@st.composite
def outcome_sequences(draw, name: str = "target", min_size: int = 0, max_size: int = 80):
    """Chronological outcomes for one target, one second apart."""
    size = draw(st.integers(min_value=min_size, max_value=max_size))
    outcomes = []
    for i in range(size):
        ts = _BASE_TIME + timedelta(seconds=i)
        if draw(st.booleans()):
            outcomes.append(ProbeOutcome.success(name, draw(latencies), timestamp=ts))
        else:
            outcomes.append(
                ProbeOutcome.failure(name, draw(error_categories), timestamp=ts)
            )
    return outcomes
