"""Status vocabulary canonicalization shared by every component."""

from enum import Enum
from typing import Any


class TestStatus(Enum):
    """Canonical test status."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    UNKNOWN = "unknown"


_STATUS_ALIASES = {
    "passed": TestStatus.PASSED,
    "pass": TestStatus.PASSED,
    "success": TestStatus.PASSED,
    "failed": TestStatus.FAILED,
    "fail": TestStatus.FAILED,
    "error": TestStatus.FAILED,
    "skipped": TestStatus.SKIPPED,
    "skip": TestStatus.SKIPPED,
    "pending": TestStatus.SKIPPED,
    "todo": TestStatus.SKIPPED,
}


def canonical_status(label: Any) -> TestStatus:
    """Map a vendor status label to a canonical status; unrecognised labels are unknown."""
    if isinstance(label, TestStatus):
        return label
    if not isinstance(label, str):
        return TestStatus.UNKNOWN
    return _STATUS_ALIASES.get(label.strip().lower(), TestStatus.UNKNOWN)
