"""
Pytest configuration and shared fixtures for runreport tests.

Provides temporary projects, configuration, result stores and factories for
engine artifacts and canonical records.
"""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from runreport.analysis.models import CanonicalTestRecord, RecordMetadata, StepTiming
from runreport.analysis.status import canonical_status
from runreport.core.config import Config
from runreport.execution.store import ResultStore


@pytest.fixture
def project_dir(tmp_path):
    """Temporary project with two test files."""
    tests_dir = tmp_path / "tests"
    tests_dir.mkdir()
    (tests_dir / "login.test.js").write_text(
        """
import { describe, it, expect } from 'vitest';

describe('login', () => {
  it('login works', async () => {
    expect(true).toBe(true);
  });

  it("rejects (bad) password", async () => {
    expect(true).toBe(true);
  });
});
"""
    )
    (tests_dir / "api").mkdir()
    (tests_dir / "api" / "users.test.js").write_text(
        """
test(`lists users`, async () => {});
test('creates user', async () => {});
"""
    )
    return tmp_path


@pytest.fixture
def config(project_dir):
    """Configuration rooted at the temporary project."""
    return Config(project_root=project_dir, ci_mode=True, log_level="DEBUG")


@pytest.fixture
def store(config):
    """Reset result store for the temporary project."""
    result_store = ResultStore(config)
    result_store.reset()
    return result_store


def build_vitest_artifact(
    file_name: str,
    tests: List[Dict[str, Any]],
    start_time: int = 1700000000000,
) -> Dict[str, Any]:
    """Structured engine output for one file."""
    return {
        "numTotalTests": len(tests),
        "startTime": start_time,
        "testResults": [
            {
                "name": file_name,
                "status": "passed",
                "message": "",
                "startTime": start_time,
                "endTime": start_time + 100,
                "assertionResults": [
                    {
                        "title": t["title"],
                        "fullName": t.get("fullName", t["title"]),
                        "status": t.get("status", "passed"),
                        "duration": t.get("duration", 10),
                        "failureMessages": t.get("failureMessages", []),
                        "ancestorTitles": t.get("ancestorTitles", []),
                        **({"invocations": t["invocations"]} if "invocations" in t else {}),
                    }
                    for t in tests
                ],
            }
        ],
    }


@pytest.fixture
def vitest_artifact():
    """Factory for structured engine artifacts."""
    return build_vitest_artifact


@pytest.fixture
def write_artifact(store):
    """Write an artifact for a test file into the store and return its path."""

    def _write(file_path: str, data: Any, name: str = "results.json") -> Path:
        target = store.file_dir(file_path) / name
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            target.write_text(data, encoding="utf-8")
        else:
            target.write_text(json.dumps(data), encoding="utf-8")
        return target

    return _write


@pytest.fixture
def make_record():
    """Factory for canonical records."""
    counter = {"n": 0}

    def _make(
        test_name: str = "sample test",
        status: str = "passed",
        duration: float = 100.0,
        source_file: str = "tests/sample.test.js",
        retry_count: int = 0,
        tags: Optional[List[str]] = None,
        logs: Optional[List[str]] = None,
        error: Optional[str] = None,
        individual: bool = False,
        worker_id: Optional[str] = None,
        steps: Optional[List[Dict[str, Any]]] = None,
        description: str = "",
    ) -> CanonicalTestRecord:
        counter["n"] += 1
        return CanonicalTestRecord(
            id=f"rec{counter['n']}",
            test_name=test_name,
            description=description or test_name,
            status=canonical_status(status),
            duration=duration,
            timestamp=datetime(2024, 1, 1, 12, 0, counter["n"] % 60, tzinfo=timezone.utc),
            browser="Chrome",
            environment="Local",
            tags=tags or [],
            logs=logs or [],
            error=error,
            retry_count=retry_count,
            source_file=source_file,
            metadata=RecordMetadata(individual_test=individual, worker_id=worker_id),
            steps=[StepTiming(**s) for s in (steps or [])],
        )

    return _make
