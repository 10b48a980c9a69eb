"""
Logging configuration for runreport.

Provides structured JSON logging with file rotation and different output formats
for development and CI environments, plus helpers that tag records with the
run and the test file they belong to.
"""

import logging
import logging.handlers
import json
import sys
from datetime import datetime, timezone
from typing import Optional

from .config import Config


class StructuredFormatter(logging.Formatter):
    """
    Custom formatter for structured JSON logging.

    A ``run_id`` carried by the record (see ``get_logger``) wins over the one
    the formatter was built with, so a long-lived server process still tags
    each run's lines with that run's id.
    """

    def __init__(self, run_id: str):
        super().__init__()
        self.run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as structured JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "run_id": getattr(record, "run_id", self.run_id),
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "metadata"):
            log_entry["metadata"] = record.metadata

        for attr in ["test_name", "file_path", "exit_code", "duration", "status"]:
            if hasattr(record, attr):
                log_entry[attr] = getattr(record, attr)

        return json.dumps(log_entry, ensure_ascii=False, default=str)


class TextFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def __init__(self, run_id: str):
        super().__init__()
        self.run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable text."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")

        message = f"[{timestamp}] {record.levelname:8} {record.name:24} | {record.getMessage()}"
        if hasattr(record, "file_path"):
            message += f" [{record.file_path}]"
        message += f" (run: {getattr(record, 'run_id', self.run_id)[:8]})"

        if hasattr(record, "metadata") and record.metadata:
            metadata_str = " | ".join(f"{k}={v}" for k, v in record.metadata.items())
            message += f" | {metadata_str}"

        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)

        return message


def setup_logging(config: Config, run_id: str) -> logging.Logger:
    """
    Set up logging configuration based on environment and config.

    Args:
        config: Configuration object with logging settings
        run_id: Unique run identifier for log correlation

    Returns:
        Configured root logger
    """
    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    log_level = getattr(logging, config.log_level)
    root_logger.setLevel(log_level)

    if config.log_format == "json":
        formatter = StructuredFormatter(run_id)
    else:
        formatter = TextFormatter(run_id)

    # Console handler goes to stderr so stdout stays free for command output
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    root_logger.addHandler(console_handler)

    if not config.is_ci_mode:
        file_handler = logging.handlers.RotatingFileHandler(
            config.get_log_file_path(),
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        root_logger.addHandler(file_handler)

    # aiohttp access logs are noisy at INFO
    logging.getLogger("aiohttp.access").setLevel(
        logging.DEBUG if config.debug_enabled else logging.WARNING
    )

    logger = logging.getLogger("runreport.logging")
    logger.info(
        "Logging configured",
        extra={
            "metadata": {
                "run_id": run_id,
                "log_level": config.log_level,
                "log_format": config.log_format,
                "ci_mode": config.is_ci_mode,
            }
        },
    )

    return root_logger


def get_logger(name: str, **context) -> logging.Logger:
    """
    Get a logger with optional context.

    Args:
        name: Logger name (typically module name)
        **context: Additional context to include in log records

    Returns:
        Configured logger with context
    """
    logger = logging.getLogger(name)

    if context:
        return ContextAdapter(logger, context)

    return logger


class ContextAdapter(logging.LoggerAdapter):
    """Merges fixed context into each call's ``extra`` instead of replacing it."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def log_performance(
    logger: logging.Logger, operation: str, duration: float, **metadata
):
    """
    Log performance metrics for operations.

    Args:
        logger: Logger instance
        operation: Name of the operation
        duration: Duration in seconds
        **metadata: Additional metadata to include
    """
    logger.info(
        f"Performance: {operation} completed in {duration:.2f}s",
        extra={"metadata": {"operation": operation, "duration": duration, **metadata}},
    )


def log_file_result(
    logger: logging.Logger,
    file_path: str,
    exit_code: int,
    duration: float,
    synthesized: bool = False,
    error_type: Optional[str] = None,
):
    """
    Log the outcome of one engine invocation.

    Clean runs log at INFO. A non-zero exit logs at WARNING and a file whose
    results had to be synthesized logs at ERROR. ``status`` is ``passed``,
    ``failed`` or ``synthesized``.
    """
    if synthesized:
        status, level = "synthesized", logging.ERROR
    elif exit_code != 0:
        status, level = "failed", logging.WARNING
    else:
        status, level = "passed", logging.INFO

    message = f"Finished {file_path} (exit code: {exit_code})"
    if error_type:
        message += f": {error_type}"

    logger.log(
        level,
        message,
        extra={
            "file_path": file_path,
            "exit_code": exit_code,
            "duration": round(duration, 3),
            "status": status,
            "metadata": {"synthesized": synthesized, "error_type": error_type},
        },
    )
