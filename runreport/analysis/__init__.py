"""
Result analysis components for runreport.

Status canonicalization, artifact collection with deduplication, the rolling
test history and the analytics engine.
"""

from .status import TestStatus, canonical_status
from .collector import ResultCollector, deduplicate
from .history import TestHistory
from .analytics import AnalyticsEngine, summarize
from .models import CanonicalTestRecord, Summary, AnalyticsSnapshot

__all__ = [
    "TestStatus",
    "canonical_status",
    "ResultCollector",
    "deduplicate",
    "TestHistory",
    "AnalyticsEngine",
    "summarize",
    "CanonicalTestRecord",
    "Summary",
    "AnalyticsSnapshot",
]
