"""
Collector, analytics and assembler chained into one report generation step.
"""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..analysis.analytics import AnalyticsEngine
from ..analysis.collector import ResultCollector
from ..analysis.history import TestHistory
from ..analysis.models import AnalyticsSnapshot, CanonicalTestRecord, Summary
from ..core.config import Config
from ..core.logging_config import get_logger, log_performance
from ..execution.store import ResultStore
from .assembler import ReportAssembler


@dataclass
class PipelineResult:
    """Everything one report generation produced."""

    report_path: Path
    summary: Summary = field(default_factory=Summary)
    records: List[CanonicalTestRecord] = field(default_factory=list)
    snapshot: Optional[AnalyticsSnapshot] = None
    degraded: bool = False
    error: Optional[str] = None


class ReportPipeline:
    """Builds the report from whatever artifacts the store currently holds."""

    def __init__(
        self,
        config: Config,
        store: ResultStore,
        assembler: Optional[ReportAssembler] = None,
        history: Optional[TestHistory] = None,
    ):
        self.config = config
        self.store = store
        self.collector = ResultCollector(store, config)
        self.history = history or TestHistory(store.history_path, config.history_limit)
        self.analytics = AnalyticsEngine(config, self.history)
        self.assembler = assembler or ReportAssembler(config)
        self.logger = get_logger(__name__)

    def run(self, record_history: bool = True) -> PipelineResult:
        """
        Collect, analyse and assemble.

        History is appended after analysis so a run never judges itself.
        Any failure before assembly still leaves a fallback report behind.

        Args:
            record_history: Append this run's outcomes to the history log
        """
        start_time = time.time()
        try:
            records = self.collector.collect()
            summary, snapshot = self.analytics.analyze(records)
        except Exception as e:
            self.logger.error(f"Report pipeline failed: {e}")
            path = self.assembler.write_fallback(e)
            return PipelineResult(report_path=path, degraded=True, error=str(e))

        if record_history and records:
            self.history.record(records)

        path = self.assembler.assemble(summary, records, snapshot)

        log_performance(
            self.logger,
            "report_pipeline",
            time.time() - start_time,
            records=len(records),
            flaky=len(snapshot.flaky_tests),
        )
        return PipelineResult(
            report_path=path,
            summary=summary,
            records=records,
            snapshot=snapshot,
        )
