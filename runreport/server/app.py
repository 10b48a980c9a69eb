"""
HTTP and WebSocket surface of the live runner.

Routes:
    GET  /api/test-files  discovered test files
    POST /api/test-cases  test titles declared in one file
    POST /run             start a run in the background
    GET  /ws              live progress lines
    GET  /report          the latest report, or a placeholder
    GET  /health          liveness and run state
"""

import asyncio
import json
import uuid
from pathlib import Path
from typing import Callable, List, Optional

from aiohttp import WSMsgType, web

from ..core.config import Config
from ..core.exceptions import RunReportError, SelectionError
from ..core.logging_config import get_logger
from ..execution.discovery import discover_test_files, extract_test_cases
from ..execution.models import ProgressEvent, ProgressEventKind, RunOutcome, Selection
from ..execution.orchestrator import RunOrchestrator
from ..execution.store import ResultStore
from .broadcast import BroadcastChannel

logger = get_logger(__name__)

PLACEHOLDER_REPORT = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>Test Report</title></head>
<body>
    <h1>No report yet</h1>
    <p>Run some tests to generate the report.</p>
</body>
</html>
"""

OrchestratorFactory = Callable[[str], RunOrchestrator]


class RunnerState:
    """Shared state of one server process."""

    def __init__(
        self,
        config: Config,
        store: ResultStore,
        channel: BroadcastChannel,
        orchestrator_factory: OrchestratorFactory,
    ):
        self.config = config
        self.store = store
        self.channel = channel
        self.orchestrator_factory = orchestrator_factory
        self.current_run: Optional[asyncio.Task] = None
        self.last_outcome: Optional[RunOutcome] = None

    @property
    def is_running(self) -> bool:
        return self.current_run is not None and not self.current_run.done()

    async def run(self, selection: Selection, run_id: str) -> None:
        """
        Execute one run in the background.

        Viewers always get the completion marker, even when the run fails.
        """
        run_logger = get_logger(__name__, run_id=run_id)
        try:
            orchestrator = self.orchestrator_factory(run_id)
            self.last_outcome = await orchestrator.execute(selection)
            return
        except RunReportError as e:
            run_logger.error(f"Run {run_id} failed: {e.message}", extra={"metadata": e.to_dict()})
            reason = e.message
        except Exception as e:
            run_logger.exception(f"Run {run_id} crashed: {e}")
            reason = str(e) or type(e).__name__

        self.channel.publish(f"\n❌ Run failed: {reason}\n")
        self.channel.publish_event(ProgressEvent(kind=ProgressEventKind.ALL_FINISHED))


STATE_KEY = web.AppKey("state", RunnerState)


async def list_files_handler(request: web.Request) -> web.Response:
    state: RunnerState = request.app[STATE_KEY]
    config = state.config
    files = discover_test_files(
        config.project_root, config.test_file_pattern, exclude=[config.store_root]
    )
    return web.json_response(files)


async def list_cases_handler(request: web.Request) -> web.Response:
    state: RunnerState = request.app[STATE_KEY]
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.json_response({"error": "Request body must be JSON"}, status=400)

    file_path = body.get("filePath") if isinstance(body, dict) else None
    if not file_path or not isinstance(file_path, str):
        return web.json_response({"error": "filePath is required"}, status=400)

    root = Path(state.config.project_root).resolve()
    target = (root / file_path).resolve()
    try:
        target.relative_to(root)
    except ValueError:
        return web.json_response({"error": "filePath is outside the project"}, status=400)

    if not target.is_file():
        return web.json_response({"error": "File not found"}, status=404)

    return web.json_response(extract_test_cases(target))


async def run_handler(request: web.Request) -> web.Response:
    state: RunnerState = request.app[STATE_KEY]
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.json_response({"error": "Request body must be JSON"}, status=400)

    tests = body.get("tests") if isinstance(body, dict) else None
    if not isinstance(tests, list) or not tests:
        return web.json_response({"error": "No tests selected"}, status=400)

    try:
        selection = Selection.from_strings(str(t) for t in tests)
    except SelectionError as e:
        return web.json_response({"error": e.message}, status=400)

    if state.is_running:
        return web.json_response({"error": "A run is already in progress"}, status=409)

    run_id = f"run_{uuid.uuid4().hex[:8]}"
    state.current_run = asyncio.create_task(state.run(selection, run_id))
    logger.info(f"Accepted run {run_id} with {len(selection.entries)} tests")
    return web.json_response({"status": "started", "runId": run_id})


async def ws_handler(request: web.Request) -> web.WebSocketResponse:
    """Push progress lines to one viewer; messages from the viewer are ignored."""
    state: RunnerState = request.app[STATE_KEY]
    ws = web.WebSocketResponse()
    await ws.prepare(request)

    queue = state.channel.attach()

    async def forward() -> None:
        while True:
            line = await queue.get()
            await ws.send_str(line)

    sender = asyncio.create_task(forward())
    try:
        async for msg in ws:
            if msg.type == WSMsgType.ERROR:
                logger.debug(f"Viewer connection error: {ws.exception()}")
                break
    finally:
        sender.cancel()
        try:
            await sender
        except (asyncio.CancelledError, ConnectionResetError):
            pass
        state.channel.detach(queue)

    return ws


async def report_handler(request: web.Request) -> web.StreamResponse:
    state: RunnerState = request.app[STATE_KEY]
    report_path = Path(state.config.report_path)
    if report_path.is_file():
        return web.FileResponse(path=report_path)
    return web.Response(text=PLACEHOLDER_REPORT, content_type="text/html")


async def health_handler(request: web.Request) -> web.Response:
    state: RunnerState = request.app[STATE_KEY]
    return web.json_response({"status": "ok", "running": state.is_running})


async def _cancel_active_run(app: web.Application) -> None:
    state: RunnerState = app[STATE_KEY]
    if state.is_running:
        state.current_run.cancel()
        try:
            await state.current_run
        except asyncio.CancelledError:
            pass


def create_app(
    config: Config,
    store: Optional[ResultStore] = None,
    channel: Optional[BroadcastChannel] = None,
    orchestrator_factory: Optional[OrchestratorFactory] = None,
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        config: runreport configuration
        store: Result store shared by every run
        channel: Broadcast channel shared by every viewer
        orchestrator_factory: Builds an orchestrator for a run id
    """
    store = store or ResultStore(config)
    channel = channel or BroadcastChannel()

    if orchestrator_factory is None:

        def orchestrator_factory(run_id: str) -> RunOrchestrator:
            return RunOrchestrator(config, store, channel=channel, run_id=run_id)

    app = web.Application()
    app[STATE_KEY] = RunnerState(config, store, channel, orchestrator_factory)

    routes: List[web.RouteDef] = [
        web.get("/api/test-files", list_files_handler),
        web.post("/api/test-cases", list_cases_handler),
        web.post("/run", run_handler),
        web.get("/ws", ws_handler),
        web.get("/report", report_handler),
        web.get("/health", health_handler),
    ]
    app.add_routes(routes)
    app.on_cleanup.append(_cancel_active_run)
    return app


def run_server(config: Config) -> None:
    """Serve until interrupted."""
    app = create_app(config)
    logger.info(f"Test runner UI available at http://{config.host}:{config.port}")
    web.run_app(app, host=config.host, port=config.port, print=None)
