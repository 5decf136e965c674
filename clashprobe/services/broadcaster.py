"""Publish/subscribe hub fanning snapshots out to live viewers.

Publishing never waits on a subscriber. Every subscription owns a small
bounded buffer:

- buffer full on publish: the oldest buffered snapshot is dropped;
- still overflowing after ``max_overflow`` consecutive publishes without
  the subscriber consuming anything: the subscription is forcibly closed
  and removed.

Memory per subscriber is therefore bounded no matter how long the service
runs or how stalled a viewer gets.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections import deque

from clashprobe.models.snapshot import Snapshot

logger = logging.getLogger(__name__)


class Subscription:
    """One subscriber's channel. Async-iterate it to receive snapshots.

    Iteration ends once the subscription is closed and its buffer drained.
    """

    def __init__(self, subscriber_id: int, *, buffer_size: int, max_overflow: int) -> None:
        self.id = subscriber_id
        self._buffer: deque[Snapshot] = deque()
        self._buffer_size = buffer_size
        self._max_overflow = max_overflow
        self._overflow_streak = 0
        self._ready = asyncio.Event()
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def offer(self, snapshot: Snapshot) -> bool:
        """Buffer *snapshot* without blocking.

        Returns ``False`` when the subscriber has overflowed for too long and
        must be disconnected.
        """
        if self._closed:
            return False

        if len(self._buffer) >= self._buffer_size:
            self._buffer.popleft()
            self.dropped += 1
            self._overflow_streak += 1
            if self._overflow_streak > self._max_overflow:
                return False

        self._buffer.append(snapshot)
        self._ready.set()
        return True

    def close(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._ready.set()

    async def get(self) -> Snapshot:
        """Next snapshot in publish order.

        Raises ``StopAsyncIteration`` once closed and drained.
        """
        while not self._buffer:
            if self._closed:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()

        self._overflow_streak = 0
        return self._buffer.popleft()

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Snapshot:
        return await self.get()


class Broadcaster:
    """Fan-out of published snapshots to independent subscribers.

    Parameters
    ----------
    buffer_size:
        Snapshots buffered per subscriber before drop-oldest kicks in.
    max_overflow:
        Consecutive overflowing publishes tolerated before a subscriber is
        disconnected.
    """

    def __init__(self, *, buffer_size: int = 8, max_overflow: int = 8) -> None:
        if buffer_size < 1:
            raise ValueError("buffer_size must be at least 1")
        self._buffer_size = buffer_size
        self._max_overflow = max_overflow
        self._subscribers: dict[int, Subscription] = {}
        self._ids = itertools.count(1)
        self._latest = Snapshot.empty()

    @property
    def latest(self) -> Snapshot:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def publish(self, snapshot: Snapshot) -> int:
        """Deliver *snapshot* to every subscriber; returns how many got it."""
        self._latest = snapshot
        delivered = 0

        # Copy: disconnects below mutate the registry
        for sub in list(self._subscribers.values()):
            if sub.offer(snapshot):
                delivered += 1
                continue
            logger.warning(
                "Disconnecting subscriber %d: overflowed %d consecutive publishes",
                sub.id,
                self._max_overflow + 1,
                extra={"round": snapshot.round},
            )
            self.unsubscribe(sub)

        logger.debug(
            "Published round %d to %d subscribers",
            snapshot.round,
            delivered,
            extra={"round": snapshot.round, "subscribers": delivered},
        )
        return delivered

    def subscribe(self) -> Subscription:
        """Open a new channel; its first item is the latest snapshot."""
        sub = Subscription(
            next(self._ids),
            buffer_size=self._buffer_size,
            max_overflow=self._max_overflow,
        )
        sub.offer(self._latest)
        self._subscribers[sub.id] = sub
        logger.debug("Subscriber %d connected", sub.id)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        """Remove and close *sub*. Idempotent."""
        if self._subscribers.pop(sub.id, None) is not None:
            logger.debug("Subscriber %d removed", sub.id)
        sub.close()

    def close(self) -> None:
        """Close every subscription, ending their iterators."""
        for sub in list(self._subscribers.values()):
            self.unsubscribe(sub)
