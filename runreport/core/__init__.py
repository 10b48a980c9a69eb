"""Core components for runreport."""

from .config import Config
from .exceptions import (
    RunReportError,
    SelectionError,
    StoreError,
    ArtifactParseError,
    ReportAssemblyError,
    FileOperationError,
    ValidationError,
)
from .logging_config import setup_logging, get_logger

__all__ = [
    "Config",
    "RunReportError",
    "SelectionError",
    "StoreError",
    "ArtifactParseError",
    "ReportAssemblyError",
    "FileOperationError",
    "ValidationError",
    "setup_logging",
    "get_logger",
]
