"""
Report generation components for runreport.

Assembles the self-contained HTML report and its JSON data export, and
removes generated files on request.
"""

from .assembler import ReportAssembler
from .cleanup import ReportCleaner
from .models import CleanupResult, StatusBarSegment, compute_status_bar
from .pipeline import ReportPipeline, PipelineResult

__all__ = [
    "ReportAssembler",
    "ReportCleaner",
    "CleanupResult",
    "StatusBarSegment",
    "compute_status_bar",
    "ReportPipeline",
    "PipelineResult",
]
