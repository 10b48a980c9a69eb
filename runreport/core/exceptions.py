"""
Base exception classes for runreport.

Provides a hierarchy of exceptions for the structural failures that can
stop a run. Failures local to a single test file or record are reported as
data instead of being raised.
"""

from typing import Optional, Dict, Any, List


class RunReportError(Exception):
    """Base exception class for all runreport errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for structured logging."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class SelectionError(RunReportError):
    """Raised when a run is requested with an empty or malformed selection."""

    def __init__(self, message: str, entries: Optional[List[str]] = None):
        super().__init__(message, "INVALID_SELECTION")
        self.entries = entries or []
        self.context.update({"entries": self.entries})


class StoreError(RunReportError):
    """Raised when the result store root cannot be prepared."""

    def __init__(
        self,
        message: str,
        store_root: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, "STORE_UNAVAILABLE")
        self.store_root = store_root
        self.operation = operation
        self.context.update(
            {
                "store_root": store_root,
                "operation": operation,
            }
        )


class ArtifactParseError(RunReportError):
    """Raised when a result artifact cannot be parsed."""

    def __init__(self, message: str, artifact_path: Optional[str] = None):
        super().__init__(message, "ARTIFACT_PARSE_FAILED")
        self.artifact_path = artifact_path
        self.context.update({"artifact_path": artifact_path})


class ReportAssemblyError(RunReportError):
    """Raised when the report document cannot be rendered."""

    def __init__(self, message: str, output_path: Optional[str] = None):
        super().__init__(message, "REPORT_ASSEMBLY_FAILED")
        self.output_path = output_path
        self.context.update({"output_path": output_path})


class FileOperationError(RunReportError):
    """Raised when file system operations fail."""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message, "FILE_OPERATION_FAILED")
        self.file_path = file_path
        self.operation = operation
        self.context.update(
            {
                "file_path": file_path,
                "operation": operation,
            }
        )


class ValidationError(RunReportError):
    """Raised when validation fails."""

    def __init__(
        self,
        message: str,
        validation_type: Optional[str] = None,
        violations: Optional[list] = None,
    ):
        super().__init__(message, "VALIDATION_FAILED")
        self.validation_type = validation_type
        self.violations = violations or []
        self.context.update(
            {
                "validation_type": validation_type,
                "violations": violations,
            }
        )
