"""
runreport - sequential test-run orchestrator and offline HTML reporting.

Runs selected browser-automation tests one file at a time, streams progress
to live viewers, and turns the engine's JSON artifacts into a deduplicated,
analysed, self-contained report.
"""

__version__ = "0.1.0"
__author__ = "runreport maintainers"

from .core.config import Config
from .core.exceptions import RunReportError
from .core.logging_config import setup_logging

__all__ = [
    "Config",
    "RunReportError",
    "setup_logging",
]
