"""
Configuration management for runreport.

Handles environment variables, defaults, configuration files and validation
for the orchestrator, collector, analytics and report components.
"""

import json
import os
import shlex
from typing import Optional, Dict, Any, List
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


DEFAULT_CONFIG_FILES = ["runreport.config.yaml", "runreport.config.yml", "runreport.config.json"]

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


@dataclass
class Config:
    """Configuration class for runreport with environment variable support."""

    # Environment detection
    ci_mode: bool = field(default=False)

    # Logging configuration
    log_level: str = field(default="INFO")
    log_format: str = field(default="text")

    # Directory paths
    project_root: Path = field(default_factory=lambda: Path.cwd())
    store_root: Optional[Path] = field(default=None)
    logs_dir: Optional[Path] = field(default=None)
    report_path: Optional[Path] = field(default=None)
    data_path: Optional[Path] = field(default=None)

    # Test discovery and execution
    test_file_pattern: str = field(default="**/*.test.js")
    test_file_suffix: str = field(default=".test.js")
    engine_command: List[str] = field(
        default_factory=lambda: ["npx", "vitest", "run"]
    )

    # Record defaults applied when an artifact does not carry them
    default_browser: str = field(default="Chrome")
    environment_name: str = field(default="Local")
    framework_name: str = field(default="runreport")

    # Analytics
    slowest_count: int = field(default=10)
    history_limit: int = field(default=20)

    # Live server
    host: str = field(default="127.0.0.1")
    port: int = field(default=3000)

    def __post_init__(self):
        """Post-initialization defaults and environment overrides."""
        self.project_root = Path(self.project_root)

        # Derived paths default to locations under the project root
        if self.store_root is None:
            self.store_root = self.project_root / "test-report"
        if self.logs_dir is None:
            self.logs_dir = self.project_root / "logs"
        if self.report_path is None:
            self.report_path = self.project_root / "automationTestReport.html"
        if self.data_path is None:
            self.data_path = self.project_root / "automationTestData.json"
        self.store_root = Path(self.store_root)
        self.logs_dir = Path(self.logs_dir)
        self.report_path = Path(self.report_path)
        self.data_path = Path(self.data_path)

        if os.getenv("CI", "").lower() == "true" and self.ci_mode is False:
            self.ci_mode = True

        log_env = os.getenv("RUNREPORT_LOG_LEVEL")
        if log_env:
            self.log_level = log_env
        self.log_level = self.log_level.upper()
        if self.log_level == "WARN":
            self.log_level = "WARNING"
        if self.log_level not in VALID_LOG_LEVELS:
            self.log_level = "INFO"

        # CI logs are consumed by machines
        if self.ci_mode and self.log_format == "text":
            self.log_format = "json"

        store_env = os.getenv("RUNREPORT_STORE_ROOT")
        if store_env:
            self.store_root = Path(store_env)

        engine_env = os.getenv("RUNREPORT_ENGINE_COMMAND")
        if engine_env:
            self.engine_command = shlex.split(engine_env)
        elif isinstance(self.engine_command, str):
            self.engine_command = shlex.split(self.engine_command)

        host_env = os.getenv("RUNREPORT_HOST")
        if host_env:
            self.host = host_env

        port_env = os.getenv("RUNREPORT_PORT")
        if port_env is not None:
            try:
                self.port = int(port_env)
            except ValueError:
                pass

    @property
    def is_ci_mode(self) -> bool:
        """Check if running in CI environment."""
        return self.ci_mode

    @property
    def debug_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self.log_level == "DEBUG"

    @property
    def results_dir(self) -> Path:
        """Directory holding one artifact subdirectory per executed file."""
        return self.store_root / "results"

    @property
    def screenshots_dir(self) -> Path:
        return self.store_root / "screenshots"

    @property
    def history_path(self) -> Path:
        """Rolling per-test history used for flakiness detection."""
        return self.store_root / "test-history.json"

    def get_log_file_path(self) -> Path:
        """Get the main log file path."""
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        return self.logs_dir / "runreport.log"

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary for logging."""
        return {
            "ci_mode": self.ci_mode,
            "log_level": self.log_level,
            "log_format": self.log_format,
            "project_root": str(self.project_root),
            "store_root": str(self.store_root),
            "logs_dir": str(self.logs_dir),
            "report_path": str(self.report_path),
            "data_path": str(self.data_path),
            "test_file_pattern": self.test_file_pattern,
            "engine_command": " ".join(self.engine_command),
            "slowest_count": self.slowest_count,
            "history_limit": self.history_limit,
            "host": self.host,
            "port": self.port,
        }

    @classmethod
    def from_env(cls, project_root: Optional[Path] = None) -> "Config":
        """Create configuration from environment variables."""
        ci = os.getenv("CI", "").lower() == "true"
        return cls(
            ci_mode=ci,
            log_level=os.getenv("RUNREPORT_LOG_LEVEL", "INFO").upper(),
            log_format="json" if ci else "text",
            project_root=project_root or Path.cwd(),
        )

    @classmethod
    def from_file(cls, path: Path) -> "Config":
        """
        Create configuration from a YAML or JSON file.

        Relative paths in the file are resolved against the file's directory.
        Unknown keys are ignored; environment overrides still apply.

        Args:
            path: Path to a .yaml, .yml or .json configuration file

        Returns:
            Loaded configuration
        """
        from .exceptions import ValidationError

        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                if path.suffix.lower() in (".yaml", ".yml"):
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ValidationError(
                f"Failed to load configuration file {path}: {e}",
                validation_type="config_file",
                violations=[str(e)],
            )

        if not isinstance(data, dict):
            raise ValidationError(
                f"Configuration file {path} must contain a mapping",
                validation_type="config_file",
            )

        known = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}

        base_dir = path.parent
        kwargs.setdefault("project_root", base_dir)
        for key in ("project_root", "store_root", "logs_dir", "report_path", "data_path"):
            if kwargs.get(key) is not None:
                value = Path(kwargs[key])
                kwargs[key] = value if value.is_absolute() else base_dir / value

        return cls(**kwargs)

    @classmethod
    def load(cls, project_root: Optional[Path] = None) -> "Config":
        """Load the first default configuration file found, else use the environment."""
        root = Path(project_root or Path.cwd())
        for name in DEFAULT_CONFIG_FILES:
            candidate = root / name
            if candidate.exists():
                return cls.from_file(candidate)
        return cls.from_env(root)

    def validate(self) -> None:
        """Validate configuration and raise ValidationError if invalid."""
        from .exceptions import ValidationError

        errors = []

        if self.log_level not in VALID_LOG_LEVELS:
            errors.append(
                f"Invalid log level: {self.log_level}. Must be one of {VALID_LOG_LEVELS}"
            )

        if self.log_format not in ("text", "json"):
            errors.append(f"Invalid log format: {self.log_format}")

        if not self.project_root.exists():
            errors.append(f"Project root does not exist: {self.project_root}")

        if not self.engine_command:
            errors.append("Engine command cannot be empty")

        if self.slowest_count < 1:
            errors.append("slowest_count must be at least 1")

        if self.history_limit < 1:
            errors.append("history_limit must be at least 1")

        if not 0 < self.port < 65536:
            errors.append(f"Invalid port: {self.port}")

        if errors:
            message = "Configuration validation failed: " + "; ".join(errors)
            raise ValidationError(
                message,
                validation_type="config",
                violations=errors,
            )
