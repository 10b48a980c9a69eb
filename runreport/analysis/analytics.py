"""
Analytics engine.

Derives the run summary and the analytics snapshot (flakiness, performance
ranking, resource sample, worker usage) from canonical records. Everything
except the resource sample is a pure function of the records and the
persisted history.
"""

import logging
import os
import re
from datetime import datetime, timezone
from typing import List, Optional, Tuple

import psutil

from ..core.config import Config
from .history import TestHistory
from .models import (
    AnalyticsSnapshot,
    CanonicalTestRecord,
    FlakyTest,
    ParallelStats,
    PerformanceStats,
    RankedTest,
    ResourceSnapshot,
    Summary,
)
from .status import TestStatus

logger = logging.getLogger(__name__)

VOLATILE_NAME_RE = re.compile(r"(async|timing|race|network|api)", re.IGNORECASE)

# History is only trusted once a test has at least this many entries
MIN_HISTORY_ENTRIES = 4
FLAKY_PASS_RATE_RANGE = (0.1, 0.9)
DEFAULT_OPERATION_NAME = "Test Execution"


def summarize(records: List[CanonicalTestRecord]) -> Summary:
    """Aggregate counts, duration, time window and observed sets in one pass."""
    counts = {status: 0 for status in TestStatus}
    total_duration = 0.0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    browsers, environments, tags = set(), set(), set()

    for record in records:
        counts[record.status] += 1
        total_duration += record.duration
        if record.browser:
            browsers.add(record.browser)
        if record.environment:
            environments.add(record.environment)
        tags.update(record.tags)

        ts = record.timestamp
        if start_time is None or ts < start_time:
            start_time = ts
        if end_time is None or ts > end_time:
            end_time = ts

    return Summary(
        total=len(records),
        passed=counts[TestStatus.PASSED],
        failed=counts[TestStatus.FAILED],
        skipped=counts[TestStatus.SKIPPED],
        unknown=counts[TestStatus.UNKNOWN],
        total_duration=total_duration,
        start_time=start_time,
        end_time=end_time,
        browsers=sorted(browsers),
        environments=sorted(environments),
        tags=sorted(tags),
    )


def slowest_operation(record: CanonicalTestRecord) -> str:
    """Name of the longest step, or the test name when no step timings exist."""
    longest = None
    for step in record.steps:
        if step.duration > 0 and (longest is None or step.duration > longest.duration):
            longest = step
    if longest is not None:
        return longest.name
    return record.test_name or DEFAULT_OPERATION_NAME


def sample_resources() -> ResourceSnapshot:
    """
    Sample resource usage of the current process.

    Any psutil failure yields an unavailable snapshot with zeroed fields.
    """
    try:
        process = psutil.Process(os.getpid())
        with process.oneshot():
            memory = process.memory_info()
            cpu = process.cpu_times()
            snapshot = ResourceSnapshot(
                available=True,
                rss_mb=round(memory.rss / 1024 / 1024, 2),
                memory_percent=round(process.memory_percent(), 2),
                cpu_seconds=round(cpu.user + cpu.system, 3),
                num_threads=process.num_threads(),
                sampled_at=datetime.now(timezone.utc),
            )
    except (psutil.Error, OSError) as e:
        logger.warning(f"Resource sampling unavailable: {e}")
        return ResourceSnapshot(available=False, sampled_at=datetime.now(timezone.utc))

    try:
        net = psutil.net_io_counters()
        if net is not None:
            snapshot.network_bytes_sent = net.bytes_sent
            snapshot.network_bytes_recv = net.bytes_recv
    except (psutil.Error, OSError) as e:
        logger.debug(f"Network counters unavailable: {e}")

    return snapshot


class AnalyticsEngine:
    """Computes the summary and analytics snapshot for a record set."""

    def __init__(self, config: Config, history: Optional[TestHistory] = None):
        self.config = config
        self.history = history
        self.slowest_count = config.slowest_count

    def analyze(self, records: List[CanonicalTestRecord]) -> Tuple[Summary, AnalyticsSnapshot]:
        """
        Derive the summary and snapshot.

        Missing metrics never raise; the affected fields keep their defaults.
        """
        summary = summarize(records)
        flaky = self.detect_flaky(records)

        snapshot = AnalyticsSnapshot(
            flaky_tests=flaky,
            stability_score=self._stability_score(len(records), len(flaky)),
            performance=self.performance_stats(records),
            resources=sample_resources(),
            parallel=self.parallel_stats(records),
        )

        logger.info(
            f"Analysed {summary.total} records: {summary.passed} passed, "
            f"{summary.failed} failed, {summary.skipped} skipped, {len(flaky)} flaky"
        )
        return summary, snapshot

    def detect_flaky(self, records: List[CanonicalTestRecord]) -> List[FlakyTest]:
        flaky = []
        for record in records:
            candidate = self.classify_flaky(record)
            if candidate is not None:
                flaky.append(candidate)
        return flaky

    def classify_flaky(self, record: CanonicalTestRecord) -> Optional[FlakyTest]:
        """Return the flaky classification for one record, or None if stable."""
        reasons = []
        severity = None

        if record.retry_count > 0:
            reasons.append(f"Retried {record.retry_count} time(s)")
            severity = "high" if record.retry_count > 2 else "medium"

        pass_rate = None
        history_runs = 0
        if self.history is not None:
            history_runs = len(self.history.entries_for(record.test_name))
            if history_runs >= MIN_HISTORY_ENTRIES:
                pass_rate = self.history.pass_rate(record.test_name)
                low, high = FLAKY_PASS_RATE_RANGE
                if pass_rate is not None and low < pass_rate < high:
                    reasons.append(
                        f"Pass rate {pass_rate * 100:.0f}% over last {history_runs} runs"
                    )
                    if pass_rate < 0.5:
                        severity = "high"
                    elif severity is None:
                        severity = "medium"

        if VOLATILE_NAME_RE.search(record.test_name):
            reasons.append("Name suggests timing or network sensitivity")
            if severity is None:
                severity = "low"

        if not reasons:
            return None

        return FlakyTest(
            test_name=record.test_name,
            source_file=record.source_file,
            reasons=reasons,
            retry_count=record.retry_count,
            pass_rate=pass_rate,
            history_runs=history_runs,
            duration=record.duration,
            severity=severity,
        )

    def performance_stats(self, records: List[CanonicalTestRecord]) -> PerformanceStats:
        if not records:
            return PerformanceStats()

        ranked = sorted(records, key=lambda r: r.duration, reverse=True)
        total = sum(r.duration for r in records)

        return PerformanceStats(
            slowest_tests=[_ranked(r) for r in ranked[: self.slowest_count]],
            fastest_test=_ranked(ranked[-1]),
            average_duration=round(total / len(records), 2),
            total_duration=total,
        )

    @staticmethod
    def parallel_stats(records: List[CanonicalTestRecord]) -> ParallelStats:
        """Worker usage from explicit worker ids; unavailable when none are recorded."""
        by_worker = {}
        for record in records:
            worker = record.metadata.worker_id
            if worker:
                by_worker[worker] = by_worker.get(worker, 0) + 1

        if not by_worker:
            return ParallelStats(
                available=False,
                note="No worker identifiers were recorded; test files are executed one at a time.",
            )

        return ParallelStats(
            available=True,
            workers_observed=len(by_worker),
            tests_by_worker=dict(sorted(by_worker.items())),
        )

    @staticmethod
    def _stability_score(total: int, flaky: int) -> float:
        if total == 0:
            return 100.0
        return round((total - flaky) / total * 100, 1)


def _ranked(record: CanonicalTestRecord) -> RankedTest:
    return RankedTest(
        test_name=record.test_name,
        source_file=record.source_file,
        duration=record.duration,
        status=record.status,
        slowest_operation=slowest_operation(record),
    )
