"""
Data models for run selection, orchestration outcome and progress events.

Defines Pydantic models describing what a run was asked to execute, how each
test file's engine invocation ended, and the progress lines pushed to viewers.
"""

from datetime import datetime
from enum import Enum
from typing import Dict, Any, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator, ConfigDict

from ..core.exceptions import SelectionError


SELECTION_SEPARATOR = "::"

COMPLETION_MARKER = "All tests finished."


class SelectionEntry(BaseModel):
    """One requested (file, test name) pair."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    file_path: str = Field(..., description="Test file path relative to the project root")
    test_name: str = Field(..., description="Test title as declared in the file")

    @field_validator("file_path", "test_name")
    @classmethod
    def validate_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Selection fields cannot be empty")
        return v

    @classmethod
    def parse(cls, raw: str) -> "SelectionEntry":
        """Parse a ``"filePath::testName"`` string, splitting on the first separator."""
        file_path, sep, test_name = raw.partition(SELECTION_SEPARATOR)
        if not sep:
            raise SelectionError(
                f"Selection entry is missing '{SELECTION_SEPARATOR}': {raw}",
                entries=[raw],
            )
        try:
            return cls(file_path=file_path, test_name=test_name)
        except ValueError as e:
            raise SelectionError(f"Invalid selection entry {raw!r}: {e}", entries=[raw])

    def to_key(self) -> str:
        return f"{self.file_path}{SELECTION_SEPARATOR}{self.test_name}"


class FileGroup(BaseModel):
    """All requested test names for one test file."""

    model_config = ConfigDict(extra="forbid")

    file_path: str
    test_names: List[str] = Field(default_factory=list)

    def entries(self) -> List[SelectionEntry]:
        return [SelectionEntry(file_path=self.file_path, test_name=n) for n in self.test_names]


class Selection(BaseModel):
    """Ordered set of requested test cases for one run."""

    model_config = ConfigDict(extra="forbid")

    entries: List[SelectionEntry] = Field(default_factory=list)

    @classmethod
    def from_strings(cls, raw_entries: Iterable[str]) -> "Selection":
        """Build a selection from ``"filePath::testName"`` strings."""
        return cls(entries=[SelectionEntry.parse(raw) for raw in raw_entries])

    @property
    def is_empty(self) -> bool:
        return len(self.entries) == 0

    def group_by_file(self) -> List[FileGroup]:
        """
        Group entries by file path.

        Groups come out in the order their file first appears; names keep
        request order with exact duplicates removed.
        """
        groups: Dict[str, FileGroup] = {}
        for entry in self.entries:
            group = groups.get(entry.file_path)
            if group is None:
                group = FileGroup(file_path=entry.file_path)
                groups[entry.file_path] = group
            if entry.test_name not in group.test_names:
                group.test_names.append(entry.test_name)
        return list(groups.values())


class ProgressEventKind(Enum):
    """Kinds of progress events pushed to live viewers."""

    LINE = "line"
    FILE_STARTED = "file_started"
    FILE_FINISHED = "file_finished"
    ALL_FINISHED = "all_finished"


class ProgressEvent(BaseModel):
    """A single progress notification from the orchestrator."""

    model_config = ConfigDict(extra="forbid")

    kind: ProgressEventKind
    message: str = ""
    file_path: Optional[str] = None
    exit_code: Optional[int] = None
    counts: Dict[str, int] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.now)

    def to_line(self) -> str:
        """Render the event as the plain text line sent to viewers."""
        if self.kind == ProgressEventKind.FILE_STARTED:
            return f"\n▶ Running: {self.message}\n"
        if self.kind == ProgressEventKind.FILE_FINISHED:
            return f"\n✅ Finished: {self.file_path} (exit code: {self.exit_code})\n"
        if self.kind == ProgressEventKind.ALL_FINISHED:
            counts = self.counts
            return (
                f"\n✅ {COMPLETION_MARKER}\n"
                f"Total Tests: {counts.get('total', 0)} | "
                f"Passed: {counts.get('passed', 0)} | "
                f"Failed: {counts.get('failed', 0)} | "
                f"Skipped: {counts.get('skipped', 0)}\n"
            )
        return self.message


class FileRunResult(BaseModel):
    """Outcome of one engine invocation for one test file."""

    model_config = ConfigDict(extra="forbid")

    file_path: str
    test_names: List[str]
    command: List[str] = Field(default_factory=list)
    exit_code: int
    artifact_path: str
    synthesized: bool = Field(False, description="Artifact was written by the orchestrator")
    error_type: Optional[str] = None
    duration: float = Field(0.0, ge=0, description="Wall time in seconds")

    @property
    def is_success(self) -> bool:
        return self.exit_code == 0 and not self.synthesized


class RunOutcome(BaseModel):
    """Result of executing a whole selection."""

    model_config = ConfigDict(extra="forbid")

    run_id: str
    started_at: datetime
    completed_at: datetime
    files: List[FileRunResult] = Field(default_factory=list)
    counts: Dict[str, int] = Field(default_factory=dict)
    report_path: Optional[str] = None

    @property
    def duration(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    def to_summary(self) -> Dict[str, Any]:
        """Create a summary dictionary for logging."""
        return {
            "run_id": self.run_id,
            "files": len(self.files),
            "synthesized_files": sum(1 for f in self.files if f.synthesized),
            "counts": self.counts,
            "duration": self.duration,
            "report_path": self.report_path,
        }
