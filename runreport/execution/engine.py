"""
External test-execution engine invocation.

The engine is a black-box subprocess that runs one test file, filtered to a
set of test names, and writes its result as one JSON artifact.
"""

import asyncio
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, Iterable, List, Optional, Union

from ..core.logging_config import get_logger


LineCallback = Callable[[str], Union[None, Awaitable[None]]]

# Exit code reported when the engine executable cannot be started
ENGINE_NOT_STARTED = 127

READ_CHUNK_SIZE = 64 * 1024


def build_name_filter(test_names: Iterable[str]) -> str:
    """
    Build the engine's name filter for a set of test titles.

    Each title is escaped so regex metacharacters in test names match
    literally, then the titles are joined as alternatives.
    """
    return "|".join(re.escape(name) for name in test_names)


@dataclass
class EngineResult:
    """Exit status and captured output of one engine invocation."""

    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0


class EngineRunner:
    """
    Runs the test-execution engine as an isolated subprocess.

    Output lines from both streams are relayed to a callback as they arrive.
    There is no internal timeout; a hung engine holds its file's turn.
    """

    def __init__(self, base_command: List[str], cwd: Optional[Path] = None):
        """
        Initialize the engine runner.

        Args:
            base_command: Command prefix, e.g. ``["npx", "vitest", "run"]``
            cwd: Working directory for the subprocess
        """
        self.base_command = list(base_command)
        self.cwd = Path(cwd) if cwd else None
        self.logger = get_logger(__name__)

    def build_command(self, file_path: str, name_filter: str, output_file: Path) -> List[str]:
        """Command that runs exactly ``file_path`` filtered to ``name_filter``."""
        return [
            *self.base_command,
            file_path,
            "-t",
            name_filter,
            f"--outputFile={output_file}",
            "--reporter=json",
        ]

    async def run(self, command: List[str], on_line: Optional[LineCallback] = None) -> EngineResult:
        """
        Run ``command`` to completion.

        Args:
            command: Full command line
            on_line: Called with every stdout/stderr line, newline included

        Returns:
            Exit code and captured output
        """
        start_time = time.time()
        self.logger.debug(
            f"Starting engine: {' '.join(command)}",
            extra={"metadata": {"cwd": str(self.cwd) if self.cwd else None}},
        )

        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd) if self.cwd else None,
            )
        except OSError as e:
            message = f"Failed to start test engine: {e}\n"
            self.logger.error(message.strip())
            if on_line is not None:
                await _deliver(on_line, message)
            return EngineResult(
                exit_code=ENGINE_NOT_STARTED,
                stderr=message,
                duration=time.time() - start_time,
            )

        stdout_lines: List[str] = []
        stderr_lines: List[str] = []

        async def _emit(raw: bytes, buf: List[str]) -> None:
            line = raw.decode("utf-8", errors="replace")
            buf.append(line)
            if on_line is not None:
                await _deliver(on_line, line)

        # Chunked reads keep arbitrarily long lines off StreamReader's line limit
        async def _drain(stream: asyncio.StreamReader, buf: List[str]) -> None:
            pending = b""
            while True:
                chunk = await stream.read(READ_CHUNK_SIZE)
                if not chunk:
                    break
                pending += chunk
                *lines, pending = pending.split(b"\n")
                for raw in lines:
                    await _emit(raw + b"\n", buf)
            if pending:
                await _emit(pending, buf)

        try:
            await asyncio.gather(
                _drain(proc.stdout, stdout_lines),
                _drain(proc.stderr, stderr_lines),
            )
        except asyncio.CancelledError:
            _terminate(proc)
            raise
        except Exception as e:
            self.logger.warning(
                f"Lost engine output: {e}",
                extra={"metadata": {"command": command}},
            )
            _terminate(proc)
        finally:
            exit_code = await proc.wait()

        return EngineResult(
            exit_code=exit_code if exit_code is not None else -1,
            stdout="".join(stdout_lines),
            stderr="".join(stderr_lines),
            duration=time.time() - start_time,
        )


def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass


async def _deliver(callback: LineCallback, line: str) -> None:
    result = callback(line)
    if asyncio.iscoroutine(result):
        await result


_ERROR_PATTERNS = [
    (
        "Configuration Error",
        re.compile(r"Cannot read properties of undefined \(reading '([^']+)'\)"),
        "Cannot read property '{0}' - likely incorrect configuration path",
    ),
    ("Syntax Error", re.compile(r"SyntaxError: (.+)"), "{0}"),
    ("Type Error", re.compile(r"TypeError: (.+)"), "{0}"),
    (
        "Import Error",
        re.compile(r"Cannot (?:resolve|find module)"),
        "Cannot resolve module - check import paths and file locations",
    ),
    (
        "File Not Found",
        re.compile(r"ENOENT"),
        "Required file or module not found - check file paths",
    ),
]


def classify_engine_error(stderr: str) -> tuple:
    """
    Classify engine stderr output for a run that reported no tests.

    Returns:
        ``(error_type, details)``; details include the raw output when present
    """
    error_type = "Unknown Error"
    details = "Configuration or syntax error - check test file and imports."

    for name, pattern, template in _ERROR_PATTERNS:
        match = pattern.search(stderr or "")
        if match:
            error_type = name
            details = template.format(*match.groups())
            break

    if stderr and stderr.strip():
        details += "\n\nFull error output:\n" + stderr.strip()

    return error_type, details
