"""The tester capability consumed by the probe round.

Any object with a matching ``test`` coroutine qualifies; the round never
special-cases a protocol.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from clashprobe.models.descriptors import ProxyDescriptor
from clashprobe.models.outcomes import ProbeOutcome


@runtime_checkable
class ProxyTester(Protocol):
    async def test(
        self, descriptor: ProxyDescriptor, test_url: str, timeout: float
    ) -> ProbeOutcome:
        """Connect through *descriptor* and fetch *test_url*.

        Returns an alive outcome with latency on success, or a dead outcome
        with an error category. Should not raise for ordinary network
        failures.
        """
        ...
