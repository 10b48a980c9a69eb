"""
Run orchestrator.

Executes a selection file by file through the external engine, keeps the
result store consistent, streams progress to the broadcast channel and
finally builds the report.
"""

import asyncio
import shlex
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from ..core.config import Config
from ..core.exceptions import FileOperationError, RunReportError, SelectionError
from ..core.logging_config import get_logger, log_file_result, log_performance
from .engine import EngineRunner, EngineResult, build_name_filter, classify_engine_error
from .models import (
    FileGroup,
    FileRunResult,
    ProgressEvent,
    ProgressEventKind,
    RunOutcome,
    Selection,
)
from .store import ResultStore

if TYPE_CHECKING:
    from ..reporting.pipeline import ReportPipeline
    from ..server.broadcast import BroadcastChannel


NO_OUTPUT_MESSAGE = (
    "Test did not complete: the test engine exited without writing a result "
    "artifact (it may have crashed or failed to start)"
)


def synthesize_failure_artifact(
    file_path: str,
    test_names: List[str],
    message: str,
    error_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Structured artifact marking every requested test in a file as failed.

    Collecting it yields exactly one failed record per name.
    """
    now = int(time.time() * 1000)
    failure = f"{error_type}: {message}" if error_type else message
    return {
        "testResults": [
            {
                "name": file_path,
                "status": "failed",
                "message": failure,
                "startTime": now,
                "endTime": now,
                "assertionResults": [
                    {
                        "title": name,
                        "fullName": name,
                        "status": "failed",
                        "duration": 0,
                        "failureMessages": [failure],
                        "ancestorTitles": [],
                    }
                    for name in test_names
                ],
            }
        ],
        "numTotalTests": len(test_names),
        "numFailedTests": len(test_names),
        "numPassedTests": 0,
        "success": False,
        "startTime": now,
        "endTime": now,
        "synthesized": True,
    }


def _has_results(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    if data.get("testName") or data.get("description"):
        return True
    return isinstance(data.get("testResults"), list) or isinstance(data.get("tests"), list)


class RunOrchestrator:
    """
    Drives one run at a time over a selection.

    Files run strictly one after another; a failing engine only degrades its
    own file to synthesized failures.
    """

    def __init__(
        self,
        config: Config,
        store: ResultStore,
        channel: Optional["BroadcastChannel"] = None,
        runner: Optional[EngineRunner] = None,
        pipeline: Optional["ReportPipeline"] = None,
        run_id: Optional[str] = None,
    ):
        """
        Initialize the run orchestrator.

        Args:
            config: runreport configuration
            store: Result store the engine writes into
            channel: Broadcast channel for live progress, if any viewers exist
            runner: Engine runner; built from the configured command when omitted
            pipeline: Report pipeline; built from config and store when omitted
            run_id: Identifier used to correlate log lines
        """
        self.config = config
        self.store = store
        self.channel = channel
        self.runner = runner or EngineRunner(config.engine_command, cwd=config.project_root)
        if pipeline is None:
            from ..reporting.pipeline import ReportPipeline

            pipeline = ReportPipeline(config, store)
        self.pipeline = pipeline
        self.run_id = run_id or f"run_{int(time.time())}"
        self.logger = get_logger(__name__, run_id=self.run_id)

    def emit(self, event: ProgressEvent) -> None:
        if self.channel is not None:
            self.channel.publish_event(event)

    def _relay(self, line: str) -> None:
        self.emit(ProgressEvent(kind=ProgressEventKind.LINE, message=line))

    async def execute(self, selection: Selection) -> RunOutcome:
        """
        Run every file group in the selection, then build the report.

        Raises:
            SelectionError: If the selection is empty
            StoreError: If the result store cannot be reset
        """
        if selection.is_empty:
            raise SelectionError("No tests selected")

        started_at = datetime.now()
        start_time = time.time()
        groups = selection.group_by_file()

        self.logger.info(
            f"Starting run: {len(selection.entries)} tests in {len(groups)} files",
            extra={"metadata": {"files": [g.file_path for g in groups]}},
        )

        self.store.reset()

        files = []
        for group in groups:
            try:
                files.append(await self.run_file(group))
            except FileOperationError as e:
                self.logger.error(
                    f"Could not manage artifact for {group.file_path}: {e.message}",
                    extra={"metadata": e.to_dict()},
                )
                self.emit(
                    ProgressEvent(
                        kind=ProgressEventKind.FILE_FINISHED,
                        file_path=group.file_path,
                        exit_code=-1,
                    )
                )
                files.append(
                    FileRunResult(
                        file_path=group.file_path,
                        test_names=list(group.test_names),
                        exit_code=-1,
                        artifact_path=str(self.store.artifact_path(group.file_path)),
                        error_type=type(e).__name__,
                    )
                )

        counts: Dict[str, int] = {}
        report_path = None
        try:
            loop = asyncio.get_running_loop()
            result = await loop.run_in_executor(None, self.pipeline.run)
            counts = result.summary.counts()
            report_path = str(result.report_path)
        except RunReportError as e:
            self.logger.error(f"Report generation failed: {e.message}", extra={"metadata": e.to_dict()})

        self.emit(ProgressEvent(kind=ProgressEventKind.ALL_FINISHED, counts=counts))

        outcome = RunOutcome(
            run_id=self.run_id,
            started_at=started_at,
            completed_at=datetime.now(),
            files=files,
            counts=counts,
            report_path=report_path,
        )
        summary = outcome.to_summary()
        summary.pop("duration")
        log_performance(self.logger, "run", time.time() - start_time, **summary)
        return outcome

    async def run_file(self, group: FileGroup) -> FileRunResult:
        """Execute one file group and guarantee it leaves an artifact behind."""
        start_time = time.time()
        output_file = self.store.prepare_file(group.file_path)
        command = self.runner.build_command(
            group.file_path, build_name_filter(group.test_names), output_file
        )

        self.emit(ProgressEvent(kind=ProgressEventKind.FILE_STARTED, message=shlex.join(command)))
        result = await self.runner.run(command, on_line=self._relay)

        synthesized, error_type = self._ensure_artifact(group, output_file, result)

        self.emit(
            ProgressEvent(
                kind=ProgressEventKind.FILE_FINISHED,
                file_path=group.file_path,
                exit_code=result.exit_code,
            )
        )

        duration = time.time() - start_time
        log_file_result(
            self.logger, group.file_path, result.exit_code, duration, synthesized, error_type
        )

        return FileRunResult(
            file_path=group.file_path,
            test_names=list(group.test_names),
            command=command,
            exit_code=result.exit_code,
            artifact_path=str(output_file),
            synthesized=synthesized,
            error_type=error_type,
            duration=duration,
        )

    def _ensure_artifact(
        self, group: FileGroup, output_file: Path, result: EngineResult
    ) -> tuple:
        """
        Replace a missing or empty-with-error artifact by synthesized failures.

        An artifact that parses as JSON but matches no shape the collector
        understands counts as missing.

        Returns:
            ``(synthesized, error_type)``
        """
        data = self.store.read_artifact(output_file) if output_file.exists() else None

        if not _has_results(data):
            self._relay("❌ JSON output file not found, creating fallback results\n")
            self.store.write_artifact(
                output_file,
                synthesize_failure_artifact(group.file_path, group.test_names, NO_OUTPUT_MESSAGE),
            )
            return True, None

        total = data.get("numTotalTests")
        if total == 0 and result.exit_code != 0:
            error_type, details = classify_engine_error(result.stderr)
            self._relay(f"❌ {error_type} detected\n")
            self._relay(f"📋 Error Details: {details}\n")
            self.store.write_artifact(
                output_file,
                synthesize_failure_artifact(group.file_path, group.test_names, details, error_type),
            )
            return True, error_type

        return False, None
