"""
Deduplicating collector.

Walks the result store, flattens every artifact into canonical records and
resolves duplicate ``(source_file, test_name)`` pairs by producer priority.
"""

import hashlib
import json
import logging
import platform
import re
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from .. import __version__
from ..core.config import Config
from ..core.exceptions import ArtifactParseError
from ..execution.store import ResultStore
from .models import (
    CanonicalTestRecord,
    RecordMetadata,
    ResultArtifact,
    RawFileResult,
    RawAssertionResult,
    StepTiming,
)
from .status import canonical_status

logger = logging.getLogger(__name__)

ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;]*m")

# Producer priority, lower wins
PRIORITY_INDIVIDUAL_WITH_LOGS = 1
PRIORITY_INDIVIDUAL = 2
PRIORITY_SUITE_WITH_LOGS = 3
PRIORITY_SUITE = 4


def strip_ansi(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return ANSI_ESCAPE_RE.sub("", text)


def record_priority(record: CanonicalTestRecord) -> int:
    """Rank a record by how specific its producer is."""
    if record.metadata.individual_test:
        return PRIORITY_INDIVIDUAL_WITH_LOGS if record.has_logs else PRIORITY_INDIVIDUAL
    return PRIORITY_SUITE_WITH_LOGS if record.has_logs else PRIORITY_SUITE


def deduplicate(records: List[CanonicalTestRecord]) -> List[CanonicalTestRecord]:
    """
    Keep exactly one record per ``(source_file, test_name)``.

    The highest-priority member of each group survives; ties keep the first
    seen. Output follows the first appearance of each key.
    """
    survivors: Dict[tuple, CanonicalTestRecord] = {}
    duplicates = 0

    for record in records:
        current = survivors.get(record.key)
        if current is None:
            survivors[record.key] = record
            continue
        duplicates += 1
        if record_priority(record) < record_priority(current):
            survivors[record.key] = record

    if duplicates:
        logger.debug(f"Resolved {duplicates} duplicate records")

    return list(survivors.values())


class ResultCollector:
    """
    Turns the artifacts in a result store into canonical test records.

    Malformed artifacts are skipped with a warning; collection never aborts
    because of a single file.
    """

    def __init__(self, store: ResultStore, config: Config):
        self.store = store
        self.config = config
        self._metadata_defaults = {
            "framework": config.framework_name,
            "version": __version__,
            "runtime": f"Python {platform.python_version()}",
            "platform": sys.platform,
        }

    def collect(self) -> List[CanonicalTestRecord]:
        """Collect and deduplicate every record in the store."""
        records: List[CanonicalTestRecord] = []
        artifact_count = 0

        for path in self.store.iter_artifacts():
            artifact_count += 1
            records.extend(self.parse_artifact(path))

        result = deduplicate(records)
        logger.info(
            f"Collected {len(result)} records from {artifact_count} artifacts",
            extra={"metadata": {"raw_records": len(records), "artifacts": artifact_count}},
        )
        return result

    def parse_artifact(self, path: Path) -> List[CanonicalTestRecord]:
        """
        Parse one artifact file into canonical records.

        Returns an empty list when the file is unreadable or does not match
        any known artifact shape.
        """
        path = Path(path)
        try:
            return self._parse(path)
        except ArtifactParseError as e:
            logger.warning(f"Skipping artifact {path}: {e.message}")
            return []

    def _parse(self, path: Path) -> List[CanonicalTestRecord]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ArtifactParseError(f"Malformed artifact: {e}", artifact_path=str(path))

        if not isinstance(data, dict):
            raise ArtifactParseError("Artifact is not a JSON object", artifact_path=str(path))

        try:
            if isinstance(data.get("testResults"), list):
                return self._from_structured(path, ResultArtifact.model_validate(data))
            if data.get("testName") or data.get("description"):
                return [self._from_individual(path, data)]
            if isinstance(data.get("tests"), list):
                return self._from_flat(path, ResultArtifact.model_validate(data))
        except (PydanticValidationError, TypeError, ValueError) as e:
            raise ArtifactParseError(f"Schema mismatch: {e}", artifact_path=str(path))

        raise ArtifactParseError("Unrecognised artifact shape", artifact_path=str(path))

    # ------------------------------------------------------------------
    # Artifact shapes
    # ------------------------------------------------------------------

    def _from_structured(self, path: Path, artifact: ResultArtifact) -> List[CanonicalTestRecord]:
        records = []
        index = 0
        for file_result in artifact.test_results:
            source_file = self._normalize_source(file_result.name, path)
            timestamp = self._timestamp(file_result.start_time or artifact.start_time, path)
            for assertion in file_result.assertion_results:
                records.append(
                    self._from_assertion(path, index, source_file, timestamp, file_result, assertion)
                )
                index += 1
        return records

    def _from_assertion(
        self,
        path: Path,
        index: int,
        source_file: str,
        timestamp: datetime,
        file_result: RawFileResult,
        assertion: RawAssertionResult,
    ) -> CanonicalTestRecord:
        test_name = assertion.title or assertion.full_name or "Unnamed Test"
        error = None
        if assertion.failure_messages:
            error = strip_ansi("\n".join(assertion.failure_messages))

        retry_count = 0
        if assertion.invocations is not None:
            retry_count = max(0, assertion.invocations - 1)

        metadata = RecordMetadata(
            **self._metadata_defaults,
            individual_test=False,
            suite_status=file_result.status,
            suite_message=file_result.message,
            artifact_path=str(path),
        )

        return CanonicalTestRecord(
            id=self._record_id(path, source_file, test_name, index),
            test_name=test_name,
            description=assertion.full_name or assertion.title or "",
            status=canonical_status(assertion.status),
            duration=max(0.0, float(assertion.duration or 0)),
            timestamp=timestamp,
            browser=self.config.default_browser,
            environment=self.config.environment_name,
            tags=list(assertion.ancestor_titles),
            error=error,
            retry_count=retry_count,
            source_file=source_file,
            metadata=metadata,
        )

    def _from_individual(self, path: Path, data: Dict[str, Any]) -> CanonicalTestRecord:
        """Record written by a per-test capture producer."""
        raw_meta = data.get("metadata") or {}
        if not isinstance(raw_meta, dict):
            raw_meta = {}

        test_name = str(data.get("testName") or data.get("description"))
        source_file = self._normalize_source(
            data.get("sourceFile") or data.get("testFilePath") or data.get("file"), path
        )
        error = data.get("error")

        metadata = RecordMetadata(
            **{
                **self._metadata_defaults,
                **{k: str(raw_meta[k]) for k in ("framework", "version", "platform") if raw_meta.get(k)},
            },
            individual_test=bool(raw_meta.get("individualTest")),
            suite_status=raw_meta.get("suiteStatus"),
            suite_message=raw_meta.get("suiteMessage"),
            worker_id=_optional_str(raw_meta.get("workerId")),
            artifact_path=str(path),
        )

        return CanonicalTestRecord(
            id=self._record_id(path, source_file, test_name, 0),
            test_name=test_name,
            description=str(data.get("description") or test_name),
            status=canonical_status(data.get("status")),
            duration=_to_duration(data.get("duration")),
            timestamp=self._timestamp(data.get("timestamp") or data.get("startTime"), path),
            browser=str(data.get("browser") or self.config.default_browser),
            environment=str(data.get("environment") or self.config.environment_name),
            tags=_string_list(data.get("tags")),
            screenshots=_string_list(data.get("screenshots")),
            logs=_string_list(data.get("logs")),
            error=strip_ansi(str(error)) if error else None,
            retry_count=max(0, int(data.get("retryCount") or 0)),
            source_file=source_file,
            metadata=metadata,
            steps=_steps(data.get("steps")),
        )

    def _from_flat(self, path: Path, artifact: ResultArtifact) -> List[CanonicalTestRecord]:
        """Plain ``{"tests": [...]}`` list with no suite structure."""
        timestamp = self._timestamp(artifact.start_time, path)
        records = []
        for index, test in enumerate(artifact.tests):
            source_file = self._normalize_source(test.file, path)
            records.append(
                CanonicalTestRecord(
                    id=self._record_id(path, source_file, test.name, index),
                    test_name=test.name,
                    description=test.name,
                    status=canonical_status(test.status),
                    duration=_to_duration(test.duration),
                    timestamp=timestamp,
                    browser=self.config.default_browser,
                    environment=self.config.environment_name,
                    error=strip_ansi(test.error) if test.error else None,
                    source_file=source_file,
                    metadata=RecordMetadata(**self._metadata_defaults, artifact_path=str(path)),
                )
            )
        return records

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _normalize_source(self, name: Optional[str], artifact_path: Path) -> str:
        """Source file as a POSIX path relative to the project root when possible."""
        if not name:
            try:
                return artifact_path.parent.relative_to(self.store.results_dir).as_posix()
            except ValueError:
                return artifact_path.parent.name

        candidate = Path(str(name))
        if candidate.is_absolute():
            try:
                return candidate.resolve().relative_to(
                    Path(self.config.project_root).resolve()
                ).as_posix()
            except (ValueError, OSError):
                return candidate.as_posix()
        normalized = str(name).replace("\\", "/")
        if normalized.startswith("./"):
            normalized = normalized[2:]
        return normalized

    @staticmethod
    def _record_id(path: Path, source_file: str, test_name: str, index: int) -> str:
        """Stable id so collecting an unchanged store twice yields equal records."""
        seed = f"{path.as_posix()}|{source_file}|{test_name}|{index}"
        return hashlib.md5(seed.encode("utf-8")).hexdigest()[:16]

    @staticmethod
    def _timestamp(value: Any, path: Path) -> datetime:
        """Artifact start time (epoch ms or ISO string), else the file mtime."""
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
            try:
                return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
            except (OverflowError, OSError, ValueError):
                pass
        elif isinstance(value, str) and value:
            try:
                parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
            except ValueError:
                pass

        try:
            return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
        except OSError:
            return datetime.now(timezone.utc)


def _optional_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value]


def _to_duration(value: Any) -> float:
    """Duration in milliseconds; accepts numbers and strings like ``"120ms"``."""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return max(0.0, float(value))
    if isinstance(value, str):
        match = re.match(r"^\s*([0-9]*\.?[0-9]+)\s*(ms|s)?\s*$", value)
        if match:
            number = float(match.group(1))
            return number * 1000 if match.group(2) == "s" else number
    return 0.0


def _steps(value: Any) -> List[StepTiming]:
    if not isinstance(value, list):
        return []
    steps = []
    for item in value:
        if isinstance(item, dict):
            steps.append(
                StepTiming(
                    name=str(item.get("name") or "Unknown Operation"),
                    duration=_to_duration(item.get("duration")),
                )
            )
    return steps
