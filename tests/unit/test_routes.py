"""Endpoint tests for the clashprobe FastAPI application."""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from conftest import RecordingReporter, ScriptedTester, alive_after, hangs, make_descriptor
from clashprobe.config.settings import ProbeSettings
from clashprobe.logging_config import configure_logging
from clashprobe.main import create_app
from clashprobe.middleware.error_handler import ConfigurationError
from clashprobe.models.snapshot import Snapshot
from clashprobe.routers.status import KEEPALIVE_COMMENT, format_event, snapshot_events
from clashprobe.services.broadcaster import Broadcaster


def _wait_for_round(client: TestClient, round_number: int = 1) -> dict:
    for _ in range(100):
        data = client.get("/api/status").json()["data"]
        if data["round"] >= round_number:
            return data
        time.sleep(0.02)
    raise AssertionError("no probe round completed")


@pytest.fixture
def app_client(settings: ProbeSettings):
    tester = ScriptedTester({"alpha": alive_after(5), "beta": hangs()})
    app = create_app(
        settings,
        descriptors=[make_descriptor("alpha"), make_descriptor("beta")],
        tester=tester,
    )
    with TestClient(app) as client:
        yield client


class TestStatusApi:
    def test_status_after_first_round(self, app_client: TestClient):
        data = _wait_for_round(app_client)
        assert data["total"] == 2
        assert data["alive"] == 1
        assert data["dead"] == 1
        assert data["success_rate"] == 50.0
        assert [p["name"] for p in data["proxies"]] == ["alpha", "beta"]
        beta = data["proxies"][1]
        assert beta["status"] == "DEAD"
        assert beta["error"] == "timeout"
        assert beta["latency_ms"] is None

    def test_target_detail(self, app_client: TestClient):
        _wait_for_round(app_client)
        resp = app_client.get("/api/targets/alpha")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["name"] == "alpha"
        assert len(body["data"]["history"]) >= 1
        assert body["data"]["stats"]["uptime_pct"] == 100.0

    def test_unknown_target_is_404(self, app_client: TestClient):
        resp = app_client.get("/api/targets/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Unknown target 'nope'"

    def test_health(self, app_client: TestClient):
        _wait_for_round(app_client)
        data = app_client.get("/health").json()["data"]
        assert data["status"] == "healthy"
        assert data["scheduler"]["state"] == "running"
        assert data["scheduler"]["rounds_completed"] >= 1
        assert data["known_targets"] == 2
        assert data["subscribers"] == 0


class TestEventStream:
    def test_format_event(self):
        snap = Snapshot(round=3, taken_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        frame = format_event(snap)
        assert frame.startswith("event: update\ndata: ")
        assert frame.endswith("\n\n")
        payload = json.loads(frame.split("data: ", 1)[1])
        assert payload["round"] == 3
        assert payload["proxies"] == []

    @pytest.mark.asyncio
    async def test_first_event_is_current_snapshot(self):
        broadcaster = Broadcaster(buffer_size=4)
        broadcaster.publish(Snapshot(round=6, taken_at=datetime.now(timezone.utc)))
        stream = snapshot_events(broadcaster, keepalive_seconds=1)

        first = await stream.__anext__()
        assert json.loads(first.split("data: ", 1)[1])["round"] == 6

        broadcaster.publish(Snapshot(round=7, taken_at=datetime.now(timezone.utc)))
        second = await stream.__anext__()
        assert json.loads(second.split("data: ", 1)[1])["round"] == 7
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_keepalive_when_idle(self):
        broadcaster = Broadcaster()
        stream = snapshot_events(broadcaster, keepalive_seconds=0.02)

        await stream.__anext__()  # current snapshot
        assert await stream.__anext__() == KEEPALIVE_COMMENT
        await stream.aclose()

    @pytest.mark.asyncio
    async def test_unstarted_stream_holds_no_subscription(self):
        broadcaster = Broadcaster()
        stream = snapshot_events(broadcaster, keepalive_seconds=1)
        assert broadcaster.subscriber_count == 0

        # Client gone before the body was iterated
        await stream.aclose()
        assert broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_closing_stream_unsubscribes(self):
        broadcaster = Broadcaster()
        stream = snapshot_events(broadcaster, keepalive_seconds=1)
        await stream.__anext__()
        assert broadcaster.subscriber_count == 1

        await stream.aclose()
        assert broadcaster.subscriber_count == 0

    @pytest.mark.asyncio
    async def test_stream_ends_when_subscription_closed(self):
        broadcaster = Broadcaster()
        stream = snapshot_events(broadcaster, keepalive_seconds=1)
        await stream.__anext__()

        broadcaster.close()
        with pytest.raises(StopAsyncIteration):
            await stream.__anext__()


class TestLifespan:
    def test_verbose_serves_with_debug_logging(self, settings: ProbeSettings):
        configure_logging("DEBUG")
        verbose = settings.model_copy(update={"verbose": True, "log_level": "INFO"})
        app = create_app(
            verbose,
            descriptors=[make_descriptor("alpha")],
            tester=ScriptedTester({}),
        )
        with TestClient(app):
            assert logging.getLogger().level == logging.DEBUG

    def test_log_level_used_without_verbose(self, settings: ProbeSettings):
        quiet = settings.model_copy(update={"log_level": "WARNING"})
        app = create_app(quiet, descriptors=[make_descriptor("alpha")], tester=ScriptedTester({}))
        with TestClient(app):
            assert logging.getLogger().level == logging.WARNING

    def test_missing_targets_fail_startup(self, settings: ProbeSettings):
        app = create_app(settings, tester=ScriptedTester({}))
        with pytest.raises(ConfigurationError):
            with TestClient(app):
                pass

    def test_injected_reporters_are_notified(self, settings: ProbeSettings):
        reporter = RecordingReporter()
        app = create_app(
            settings,
            descriptors=[make_descriptor("alpha")],
            tester=ScriptedTester({}),
            reporters=[reporter],
        )
        with TestClient(app) as client:
            _wait_for_round(client)
        assert reporter.snapshots
        assert reporter.snapshots[0].round == 1
