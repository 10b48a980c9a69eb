"""Rolling per-test result history used for flakiness detection."""

import json
import logging
from pathlib import Path
from typing import Dict, Any, List, Iterable, Optional

from .models import CanonicalTestRecord
from .status import TestStatus, canonical_status

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 20


class TestHistory:
    """
    JSON log of recent outcomes keyed by test name.

    The file holds ``{testName: [{status, duration, timestamp, retryCount}]}``
    with at most ``limit`` entries per name. Every read or write failure is
    logged and treated as "no history"; it never stops an analysis.
    """

    __test__ = False

    def __init__(self, path: Path, limit: int = DEFAULT_HISTORY_LIMIT):
        self.path = Path(path)
        self.limit = limit
        self._cache: Optional[Dict[str, List[Dict[str, Any]]]] = None

    def load(self) -> Dict[str, List[Dict[str, Any]]]:
        """Read the history file, returning an empty mapping on any failure."""
        if self._cache is not None:
            return self._cache

        data: Dict[str, List[Dict[str, Any]]] = {}
        if self.path.exists():
            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    data = {
                        str(name): [e for e in entries if isinstance(e, dict)]
                        for name, entries in raw.items()
                        if isinstance(entries, list)
                    }
                else:
                    logger.warning(f"Ignoring malformed test history: {self.path}")
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.warning(f"Could not read test history: {e}")

        self._cache = data
        return data

    def entries_for(self, test_name: str) -> List[Dict[str, Any]]:
        return self.load().get(test_name, [])

    def pass_rate(self, test_name: str) -> Optional[float]:
        """Share of passed entries for ``test_name``, or None without history."""
        entries = self.entries_for(test_name)
        if not entries:
            return None
        passed = sum(1 for e in entries if canonical_status(e.get("status")) == TestStatus.PASSED)
        return passed / len(entries)

    def record(self, records: Iterable[CanonicalTestRecord]) -> bool:
        """
        Append one entry per record and write the capped history back.

        Returns:
            True when the file was written
        """
        history = {name: list(entries) for name, entries in self.load().items()}

        for record in records:
            entries = history.setdefault(record.test_name, [])
            entries.append(
                {
                    "status": record.status.value,
                    "duration": record.duration,
                    "timestamp": record.timestamp.isoformat(),
                    "retryCount": record.retry_count,
                }
            )
            if len(entries) > self.limit:
                history[record.test_name] = entries[-self.limit:]

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(history, f, indent=2)
        except OSError as e:
            logger.warning(f"Could not write test history: {e}")
            return False

        self._cache = history
        return True
