"""
Data models for report assembly and cleanup.
"""

from typing import List

from pydantic import BaseModel, Field, ConfigDict

from ..analysis.models import Summary


class StatusBarSegment(BaseModel):
    """One proportional segment of the summary status bar."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(..., description="Status the segment represents")
    count: int = Field(..., ge=0)
    percent: int = Field(..., ge=0, le=100, description="Width as a whole percentage")

    @property
    def width(self) -> str:
        return f"{self.percent}%"


STATUS_BAR_ORDER = ("passed", "failed", "skipped", "unknown")


def compute_status_bar(summary: Summary) -> List[StatusBarSegment]:
    """
    Segment widths proportional to the summary counts.

    Widths are whole percentages distributed by largest remainder so they sum
    to exactly 100 when there is at least one record. An empty summary yields
    all-zero segments.
    """
    counts = {
        "passed": summary.passed,
        "failed": summary.failed,
        "skipped": summary.skipped,
        "unknown": summary.unknown,
    }
    total = sum(counts.values())

    if total == 0:
        return [StatusBarSegment(status=s, count=0, percent=0) for s in STATUS_BAR_ORDER]

    exact = {s: counts[s] * 100 / total for s in STATUS_BAR_ORDER}
    percents = {s: int(exact[s]) for s in STATUS_BAR_ORDER}
    leftover = 100 - sum(percents.values())

    by_remainder = sorted(
        STATUS_BAR_ORDER,
        key=lambda s: (exact[s] - percents[s], counts[s]),
        reverse=True,
    )
    for status in by_remainder[:leftover]:
        percents[status] += 1

    return [
        StatusBarSegment(status=s, count=counts[s], percent=percents[s])
        for s in STATUS_BAR_ORDER
    ]


class CleanupResult(BaseModel):
    """Outcome of a cleanup command."""

    model_config = ConfigDict(extra="forbid")

    removed: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors
