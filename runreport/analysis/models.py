"""
Data models for result artifacts, canonical records and analytics.

Raw artifact models accept whatever extra fields the engine writes. Canonical
records are the deduplicated unit of truth; they serialize with camelCase
aliases for embedding in reports.
"""

from datetime import datetime
from typing import Dict, Any, List, Optional

from pydantic import BaseModel, Field, ConfigDict, field_validator
from pydantic.alias_generators import to_camel

from .status import TestStatus


# ---------------------------------------------------------------------------
# Raw engine output
# ---------------------------------------------------------------------------


class RawAssertionResult(BaseModel):
    """One test entry inside a structured per-file result."""

    model_config = ConfigDict(extra="allow")

    title: Optional[str] = None
    full_name: Optional[str] = Field(None, alias="fullName")
    status: Optional[str] = None
    duration: Optional[float] = None
    failure_messages: List[str] = Field(default_factory=list, alias="failureMessages")
    ancestor_titles: List[str] = Field(default_factory=list, alias="ancestorTitles")
    invocations: Optional[int] = None

    @field_validator("failure_messages", "ancestor_titles", mode="before")
    @classmethod
    def validate_string_list(cls, v):
        if v is None:
            return []
        return [str(item) for item in v]


class RawFileResult(BaseModel):
    """Engine result for one test file."""

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    status: Optional[str] = None
    message: Optional[str] = None
    start_time: Optional[float] = Field(None, alias="startTime")
    end_time: Optional[float] = Field(None, alias="endTime")
    assertion_results: List[RawAssertionResult] = Field(
        default_factory=list, alias="assertionResults"
    )


class RawFlatTest(BaseModel):
    """Entry of the flat ``{"tests": [...]}`` artifact shape."""

    model_config = ConfigDict(extra="allow")

    name: str
    status: Optional[str] = None
    error: Optional[str] = None
    duration: Optional[Any] = None
    file: Optional[str] = None


class ResultArtifact(BaseModel):
    """Structured engine output for one execution."""

    model_config = ConfigDict(extra="allow")

    test_results: List[RawFileResult] = Field(default_factory=list, alias="testResults")
    tests: List[RawFlatTest] = Field(default_factory=list)
    num_total_tests: Optional[int] = Field(None, alias="numTotalTests")
    start_time: Optional[float] = Field(None, alias="startTime")


# ---------------------------------------------------------------------------
# Canonical records
# ---------------------------------------------------------------------------


class CamelModel(BaseModel):
    """Base model serialized with camelCase field names."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class StepTiming(CamelModel):
    """Timing of one step inside a test."""

    name: str = "Unknown Operation"
    duration: float = Field(0.0, ge=0)


class RecordMetadata(CamelModel):
    """Provenance of a canonical record."""

    framework: str = "runreport"
    version: str = ""
    runtime: str = ""
    platform: str = ""
    individual_test: bool = False
    suite_status: Optional[str] = None
    suite_message: Optional[str] = None
    worker_id: Optional[str] = None
    artifact_path: Optional[str] = None


class CanonicalTestRecord(CamelModel):
    """Normalized, deduplicated result of one test case."""

    id: str
    test_name: str
    description: str = ""
    status: TestStatus = TestStatus.UNKNOWN
    duration: float = Field(0.0, ge=0, description="Duration in milliseconds")
    timestamp: datetime
    browser: str = ""
    environment: str = ""
    tags: List[str] = Field(default_factory=list)
    screenshots: List[str] = Field(default_factory=list)
    logs: List[str] = Field(default_factory=list)
    error: Optional[str] = None
    retry_count: int = Field(0, ge=0)
    source_file: str
    metadata: RecordMetadata = Field(default_factory=RecordMetadata)
    steps: List[StepTiming] = Field(default_factory=list)

    @property
    def key(self) -> tuple:
        """Deduplication key."""
        return (self.source_file, self.test_name)

    @property
    def has_logs(self) -> bool:
        return len(self.logs) > 0

    def to_report_dict(self) -> Dict[str, Any]:
        """JSON-ready dictionary with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)


# ---------------------------------------------------------------------------
# Aggregates
# ---------------------------------------------------------------------------


class Summary(CamelModel):
    """Aggregate counts over a record set."""

    total: int = Field(0, ge=0)
    passed: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    skipped: int = Field(0, ge=0)
    unknown: int = Field(0, ge=0)
    total_duration: float = Field(0.0, ge=0)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    browsers: List[str] = Field(default_factory=list)
    environments: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Passed share of all records, as a percentage."""
        if self.total == 0:
            return 0.0
        return round(self.passed / self.total * 100, 1)

    def counts(self) -> Dict[str, int]:
        return {
            "total": self.total,
            "passed": self.passed,
            "failed": self.failed,
            "skipped": self.skipped,
            "unknown": self.unknown,
        }


class FlakyTest(CamelModel):
    """A test flagged as flaky, with the evidence."""

    test_name: str
    source_file: str
    reasons: List[str] = Field(default_factory=list)
    retry_count: int = 0
    pass_rate: Optional[float] = None
    history_runs: int = 0
    duration: float = 0.0
    severity: str = "low"


class RankedTest(CamelModel):
    test_name: str
    source_file: str
    duration: float
    status: TestStatus
    slowest_operation: str


class PerformanceStats(CamelModel):
    """Duration ranking over a record set."""

    slowest_tests: List[RankedTest] = Field(default_factory=list)
    fastest_test: Optional[RankedTest] = None
    average_duration: float = 0.0
    total_duration: float = 0.0


class ResourceSnapshot(CamelModel):
    """
    Resource usage sampled from the process running the analysis.

    These are not per-test measurements; they approximate load at the time
    the report was produced.
    """

    source: str = "analysis-process"
    available: bool = False
    rss_mb: float = 0.0
    memory_percent: float = 0.0
    cpu_seconds: float = 0.0
    num_threads: int = 0
    network_bytes_sent: int = 0
    network_bytes_recv: int = 0
    sampled_at: Optional[datetime] = None
    note: str = (
        "Sampled from the report-generating process, not from the test engine; "
        "treat as an approximation of system load at analysis time."
    )


class ParallelStats(CamelModel):
    """Worker usage derived from explicit worker ids in record metadata."""

    available: bool = False
    workers_observed: int = 0
    tests_by_worker: Dict[str, int] = Field(default_factory=dict)
    max_concurrent_engines: int = 1
    note: str = "Test files are executed one at a time."


class AnalyticsSnapshot(CamelModel):
    """Derived view over canonical records; never persisted as a source of truth."""

    flaky_tests: List[FlakyTest] = Field(default_factory=list)
    stability_score: float = 100.0
    performance: PerformanceStats = Field(default_factory=PerformanceStats)
    resources: ResourceSnapshot = Field(default_factory=ResourceSnapshot)
    parallel: ParallelStats = Field(default_factory=ParallelStats)
