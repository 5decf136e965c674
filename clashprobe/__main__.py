"""Command-line entry point.

``python -m clashprobe --once`` probes every target a single time and
prints a report. Otherwise probing runs continuously: with the ``web``
work mode the HTTP API is served with uvicorn, without it rounds only feed
the configured reporters. Settings come from CLASHPROBE_* environment
variables; flags override them.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence

import uvicorn

from clashprobe.config.settings import ProbeSettings, WorkMode
from clashprobe.config.targets import require_targets
from clashprobe.logging_config import configure_logging
from clashprobe.main import build_reporters, build_scheduler, create_app
from clashprobe.middleware.error_handler import ConfigurationError
from clashprobe.report import render_table
from clashprobe.reporters.base import ProbeReporter
from clashprobe.store.result_store import ResultStore
from clashprobe.tester.base import ProxyTester
from clashprobe.tester.httpx_tester import HttpProxyTester

logger = logging.getLogger("clashprobe")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="clashprobe",
        description="Probe proxy endpoints for liveness and latency.",
    )
    parser.add_argument("--once", action="store_true", help="run one round and print a report")
    parser.add_argument("--targets", help="targets YAML file (overrides CLASHPROBE_TARGETS_PATH)")
    parser.add_argument("--verbose", action="store_true", help="debug logging and error details for dead targets")
    parser.add_argument("--node-name", help="InfluxDB node tag (overrides CLASHPROBE_INFLUXDB_NODE_NAME)")
    return parser.parse_args(argv)


async def run_once(
    settings: ProbeSettings,
    *,
    tester: ProxyTester | None = None,
    reporters: Sequence[ProbeReporter] | None = None,
) -> str:
    """Probe every target once, notify reporters, return the rendered report.

    Raises ``ConfigurationError`` when the targets file yields nothing to
    probe.
    """
    scheduler = build_scheduler(
        settings,
        descriptors=require_targets(settings.targets_path),
        tester=tester or HttpProxyTester(),
        store=ResultStore(history_size=settings.history_size),
        reporters=build_reporters(settings) if reporters is None else reporters,
    )
    snapshot = await scheduler.run_once()
    return render_table(snapshot, verbose=settings.verbose)


async def run_headless(
    settings: ProbeSettings,
    *,
    tester: ProxyTester | None = None,
    reporters: Sequence[ProbeReporter] | None = None,
) -> None:
    """Probe continuously without the HTTP API until cancelled."""
    scheduler = build_scheduler(
        settings,
        descriptors=require_targets(settings.targets_path),
        tester=tester or HttpProxyTester(),
        store=ResultStore(history_size=settings.history_size),
        reporters=build_reporters(settings) if reporters is None else reporters,
    )
    scheduler.start()
    try:
        await asyncio.Event().wait()
    finally:
        await scheduler.stop()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    overrides: dict = {}
    if args.targets:
        overrides["targets_path"] = args.targets
    if args.verbose:
        overrides["verbose"] = True
    if args.node_name:
        overrides["influxdb_node_name"] = args.node_name
    settings = ProbeSettings(**overrides)

    configure_logging(settings.effective_log_level)

    try:
        if args.once:
            print(asyncio.run(run_once(settings)))
        elif WorkMode.WEB in settings.work_modes:
            uvicorn.run(
                create_app(settings), host=settings.host, port=settings.port, log_config=None
            )
        else:
            asyncio.run(run_headless(settings))
    except ConfigurationError as exc:
        logger.error("%s", exc.message)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted, exiting")
    return 0


if __name__ == "__main__":
    sys.exit(main())
