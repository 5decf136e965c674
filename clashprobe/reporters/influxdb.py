"""InfluxDB time-series export.

Every round becomes one batch of ``probe`` points, one per target::

    probe,name=hk-01,node=default,protocol=shadowsocks alive=true,delay_ms=48i

Dead targets are written with ``delay_ms=99999`` so dashboards can plot a
single numeric series. All points of a round share the snapshot timestamp.
"""

from __future__ import annotations

import logging
from typing import Any

from influxdb_client import Point, WritePrecision
from influxdb_client.client.influxdb_client_async import InfluxDBClientAsync

from clashprobe.models.snapshot import Snapshot

logger = logging.getLogger(__name__)

MEASUREMENT = "probe"
DEAD_DELAY_MS = 99999


class InfluxDbReporter:
    """Write round snapshots to an InfluxDB 2.x bucket.

    Parameters
    ----------
    url, org, token, bucket:
        InfluxDB connection and destination.
    node_name:
        Value of the ``node`` tag, distinguishing probe locations.
    write_api:
        Optional object with an async ``write(bucket=, org=, record=)``;
        when omitted a client is opened per round.
    """

    name = "influxdb"

    def __init__(
        self,
        *,
        url: str,
        org: str,
        token: str,
        bucket: str,
        node_name: str = "default",
        write_api: Any = None,
    ) -> None:
        self._url = url
        self._org = org
        self._token = token
        self._bucket = bucket
        self._node_name = node_name
        self._write_api = write_api

    def build_points(self, snapshot: Snapshot) -> list[Point]:
        points = []
        for view in snapshot.ordered():
            current = view.current
            if current is None:
                continue
            if current.alive and current.latency_ms is not None:
                delay_ms = int(round(current.latency_ms))
            else:
                delay_ms = DEAD_DELAY_MS
            points.append(
                Point(MEASUREMENT)
                .tag("name", view.name)
                .tag("protocol", current.protocol or "unknown")
                .tag("node", self._node_name)
                .field("alive", current.alive)
                .field("delay_ms", delay_ms)
                .time(snapshot.taken_at, WritePrecision.NS)
            )
        return points

    async def report(self, snapshot: Snapshot) -> None:
        points = self.build_points(snapshot)
        if not points:
            return

        if self._write_api is not None:
            await self._write_api.write(bucket=self._bucket, org=self._org, record=points)
        else:
            async with InfluxDBClientAsync(
                url=self._url, token=self._token, org=self._org
            ) as client:
                await client.write_api().write(
                    bucket=self._bucket, org=self._org, record=points
                )

        logger.debug(
            "Wrote %d points to bucket %s",
            len(points),
            self._bucket,
            extra={"round": snapshot.round, "total": len(points)},
        )
