"""
Integration tests for the HTTP and WebSocket surface.

The application runs in-process through aiohttp's test utilities; runs are
driven by stub orchestrators so no engine is started.
"""

import asyncio

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient as Client, TestServer as Server

from runreport.core.exceptions import SelectionError
from runreport.execution.models import COMPLETION_MARKER, ProgressEvent, ProgressEventKind
from runreport.server.app import PLACEHOLDER_REPORT, create_app
from runreport.server.broadcast import BroadcastChannel


class StubOrchestrator:
    """Stands in for a run; finishes when ``release`` is set."""

    def __init__(self, channel, release, executed):
        self.channel = channel
        self.release = release
        self.executed = executed

    async def execute(self, selection):
        self.executed.append([e.to_key() for e in selection.entries])
        self.channel.publish_event(ProgressEvent(kind=ProgressEventKind.LINE, message="working\n"))
        await self.release.wait()
        self.channel.publish_event(
            ProgressEvent(kind=ProgressEventKind.ALL_FINISHED, counts={"total": 1, "passed": 1})
        )


class FailingOrchestrator:
    async def execute(self, selection):
        raise SelectionError("No tests selected")


class CrashingOrchestrator:
    async def execute(self, selection):
        raise RuntimeError("engine pipe exploded")


@pytest.fixture
def channel():
    return BroadcastChannel()


@pytest_asyncio.fixture
async def release():
    return asyncio.Event()


@pytest.fixture
def executed():
    return []


@pytest_asyncio.fixture
async def client(config, store, channel, release, executed):
    app = create_app(
        config,
        store=store,
        channel=channel,
        orchestrator_factory=lambda run_id: StubOrchestrator(channel, release, executed),
    )
    test_client = Client(Server(app))
    await test_client.start_server()
    yield test_client
    release.set()
    await test_client.close()


class TestDiscoveryRoutes:
    @pytest.mark.asyncio
    async def test_list_test_files(self, client):
        resp = await client.get("/api/test-files")

        assert resp.status == 200
        assert await resp.json() == ["tests/api/users.test.js", "tests/login.test.js"]

    @pytest.mark.asyncio
    async def test_list_test_cases(self, client):
        resp = await client.post("/api/test-cases", json={"filePath": "tests/login.test.js"})

        assert resp.status == 200
        assert await resp.json() == ["login works", "rejects (bad) password"]

    @pytest.mark.asyncio
    async def test_test_cases_requires_file_path(self, client):
        resp = await client.post("/api/test-cases", json={})

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_test_cases_rejects_paths_outside_project(self, client):
        resp = await client.post("/api/test-cases", json={"filePath": "../../etc/passwd"})

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_test_cases_missing_file(self, client):
        resp = await client.post("/api/test-cases", json={"filePath": "tests/missing.test.js"})

        assert resp.status == 404


class TestRunRoute:
    @pytest.mark.asyncio
    async def test_starts_run(self, client, executed, release):
        resp = await client.post("/run", json={"tests": ["tests/login.test.js::login works"]})

        assert resp.status == 200
        body = await resp.json()
        assert body["status"] == "started"
        assert body["runId"].startswith("run_")

        release.set()
        await asyncio.sleep(0.05)
        assert executed == [["tests/login.test.js::login works"]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [{"tests": []}, {}, {"tests": "a::b"}])
    async def test_rejects_empty_selection(self, client, executed, payload):
        resp = await client.post("/run", json=payload)

        assert resp.status == 400
        assert executed == []

    @pytest.mark.asyncio
    async def test_rejects_malformed_entries(self, client):
        resp = await client.post("/run", json={"tests": ["no-separator"]})

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_rejects_non_json_body(self, client):
        resp = await client.post("/run", data="not json")

        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_second_run_conflicts_while_active(self, client, release, executed):
        first = await client.post("/run", json={"tests": ["a.test.js::t1"]})
        second = await client.post("/run", json={"tests": ["b.test.js::t2"]})

        assert first.status == 200
        assert second.status == 409

        health = await (await client.get("/health")).json()
        assert health["running"] is True

        release.set()
        await asyncio.sleep(0.05)
        third = await client.post("/run", json={"tests": ["b.test.js::t2"]})
        assert third.status == 200


class TestWebSocket:
    @pytest.mark.asyncio
    async def test_viewer_receives_progress(self, client, release):
        ws = await client.ws_connect("/ws")
        await asyncio.sleep(0.05)

        await client.post("/run", json={"tests": ["a.test.js::t1"]})
        first = await asyncio.wait_for(ws.receive_str(), timeout=2)
        release.set()
        second = await asyncio.wait_for(ws.receive_str(), timeout=2)

        assert first == "working\n"
        assert COMPLETION_MARKER in second
        await ws.close()

    @pytest.mark.asyncio
    async def test_viewer_messages_are_ignored(self, client, channel):
        ws = await client.ws_connect("/ws")
        await ws.send_str("hello server")
        await asyncio.sleep(0.05)

        assert channel.viewer_count == 1
        await ws.close()
        await asyncio.sleep(0.05)
        assert channel.viewer_count == 0


class TestRunFailure:
    @pytest.mark.asyncio
    async def test_failed_run_is_announced(self, config, store, channel):
        app = create_app(
            config,
            store=store,
            channel=channel,
            orchestrator_factory=lambda run_id: FailingOrchestrator(),
        )
        client = Client(Server(app))
        await client.start_server()
        try:
            ws = await client.ws_connect("/ws")
            await asyncio.sleep(0.05)
            await client.post("/run", json={"tests": ["a.test.js::t1"]})

            message = await asyncio.wait_for(ws.receive_str(), timeout=2)
            marker = await asyncio.wait_for(ws.receive_str(), timeout=2)

            assert "Run failed: No tests selected" in message
            assert COMPLETION_MARKER in marker
            await ws.close()
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_unexpected_crash_is_announced(self, config, store, channel, caplog):
        app = create_app(
            config,
            store=store,
            channel=channel,
            orchestrator_factory=lambda run_id: CrashingOrchestrator(),
        )
        client = Client(Server(app))
        await client.start_server()
        try:
            ws = await client.ws_connect("/ws")
            await asyncio.sleep(0.05)
            resp = await client.post("/run", json={"tests": ["a.test.js::t1"]})
            run_id = (await resp.json())["runId"]

            message = await asyncio.wait_for(ws.receive_str(), timeout=2)
            marker = await asyncio.wait_for(ws.receive_str(), timeout=2)

            assert "Run failed: engine pipe exploded" in message
            assert COMPLETION_MARKER in marker

            health = await (await client.get("/health")).json()
            assert health["running"] is False

            crash = [r for r in caplog.records if r.exc_info and "crashed" in r.getMessage()]
            assert crash and crash[0].run_id == run_id
            await ws.close()
        finally:
            await client.close()


class TestReportRoute:
    @pytest.mark.asyncio
    async def test_placeholder_before_first_run(self, client):
        resp = await client.get("/report")

        assert resp.status == 200
        assert await resp.text() == PLACEHOLDER_REPORT

    @pytest.mark.asyncio
    async def test_serves_latest_report(self, client, config):
        config.report_path.write_text("<html>latest</html>", encoding="utf-8")

        resp = await client.get("/report")

        assert resp.status == 200
        assert "latest" in await resp.text()
