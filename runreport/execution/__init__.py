"""
Test execution components for runreport.

Selection handling, the result store, engine invocation, test discovery and
the sequential run orchestrator.
"""

from .models import (
    SelectionEntry,
    FileGroup,
    Selection,
    ProgressEvent,
    ProgressEventKind,
    FileRunResult,
    RunOutcome,
    COMPLETION_MARKER,
)
from .store import ResultStore, iter_artifact_paths
from .engine import EngineRunner, EngineResult, build_name_filter
from .discovery import discover_test_files, extract_test_cases
from .orchestrator import RunOrchestrator

__all__ = [
    "SelectionEntry",
    "FileGroup",
    "Selection",
    "ProgressEvent",
    "ProgressEventKind",
    "FileRunResult",
    "RunOutcome",
    "COMPLETION_MARKER",
    "ResultStore",
    "iter_artifact_paths",
    "EngineRunner",
    "EngineResult",
    "build_name_filter",
    "discover_test_files",
    "extract_test_cases",
    "RunOrchestrator",
]
