"""FastAPI application entry point with lifespan management.

Startup: load settings and targets, build the result store, broadcaster,
reporters, probe round and scheduler, mount routers, start probing.
Shutdown: stop the scheduler (abandoning any in-flight round) and close
every live subscription so streaming responses end.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager

from fastapi import FastAPI

from clashprobe.config.settings import ProbeSettings, WorkMode
from clashprobe.config.targets import require_targets
from clashprobe.logging_config import configure_logging
from clashprobe.middleware.error_handler import ConfigurationError, register_error_handlers
from clashprobe.models.descriptors import ProxyDescriptor
from clashprobe.reporters.base import ProbeReporter
from clashprobe.reporters.influxdb import InfluxDbReporter
from clashprobe.routers.health import create_health_router
from clashprobe.routers.status import create_status_router
from clashprobe.services.broadcaster import Broadcaster
from clashprobe.services.probe_round import ProbeRound
from clashprobe.services.scheduler import Scheduler
from clashprobe.store.result_store import ResultStore
from clashprobe.tester.base import ProxyTester
from clashprobe.tester.httpx_tester import HttpProxyTester

logger = logging.getLogger(__name__)


def build_reporters(settings: ProbeSettings) -> list[ProbeReporter]:
    """Reporters for the configured work modes.

    The web mode is served by the broadcaster and needs no reporter.
    """
    reporters: list[ProbeReporter] = []
    if WorkMode.INFLUXDB in settings.work_modes:
        if not settings.influxdb_token:
            raise ConfigurationError(
                "InfluxDB mode needs CLASHPROBE_INFLUXDB_TOKEN", mode=WorkMode.INFLUXDB.value
            )
        reporters.append(
            InfluxDbReporter(
                url=settings.influxdb_url,
                org=settings.influxdb_org,
                token=settings.influxdb_token,
                bucket=settings.influxdb_bucket,
                node_name=settings.influxdb_node_name,
            )
        )
    return reporters


def build_scheduler(
    settings: ProbeSettings,
    *,
    descriptors: Sequence[ProxyDescriptor],
    tester: ProxyTester,
    store: ResultStore,
    broadcaster: Broadcaster | None = None,
    reporters: Sequence[ProbeReporter] = (),
) -> Scheduler:
    """Wire a probe round and its scheduler from *settings*."""
    probe_round = ProbeRound(
        descriptors=descriptors,
        tester=tester,
        store=store,
        test_url=settings.test_url,
        concurrency_limit=settings.concurrency_limit,
        timeout_seconds=settings.probe_timeout_seconds,
        broadcaster=broadcaster,
        reporters=reporters,
    )
    return Scheduler(probe_round, interval_seconds=settings.probe_interval_seconds)


def create_app(
    settings: ProbeSettings | None = None,
    *,
    descriptors: Sequence[ProxyDescriptor] | None = None,
    tester: ProxyTester | None = None,
    reporters: Sequence[ProbeReporter] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    *descriptors*, *tester* and *reporters* default to the targets file
    named in the settings, the httpx tester and the reporters of the
    configured work modes.
    """
    settings = settings or ProbeSettings()

    store = ResultStore(history_size=settings.history_size)
    broadcaster = Broadcaster(
        buffer_size=settings.subscriber_buffer_size,
        max_overflow=settings.subscriber_max_overflow,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan: start probing, stop on shutdown."""
        configure_logging(settings.effective_log_level)

        if descriptors is None:
            targets = require_targets(settings.targets_path)
        elif not descriptors:
            raise ConfigurationError("No probe targets given")
        else:
            targets = list(descriptors)

        scheduler = build_scheduler(
            settings,
            descriptors=targets,
            tester=tester or HttpProxyTester(),
            store=store,
            broadcaster=broadcaster,
            reporters=build_reporters(settings) if reporters is None else reporters,
        )
        app.state.scheduler = scheduler

        scheduler.start()
        logger.info(
            "clashprobe serving on %s:%d with %d targets",
            settings.host,
            settings.port,
            len(targets),
        )

        yield

        logger.info("Shutting down clashprobe…")
        await scheduler.stop()
        broadcaster.close()
        logger.info("clashprobe shut down")

    app = FastAPI(
        title="clashprobe",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.broadcaster = broadcaster

    register_error_handlers(app)

    app.include_router(
        create_health_router(
            store=store,
            broadcaster=broadcaster,
        )
    )
    app.include_router(
        create_status_router(
            store=store,
            broadcaster=broadcaster,
            keepalive_seconds=settings.sse_keepalive_seconds,
        )
    )

    return app
