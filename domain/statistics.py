"""
Statistics-related domain models.

Immutable snapshots of analysis progress and results.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


def _add_counts(a: dict[str, int], b: dict[str, int]) -> dict[str, int]:
    merged = dict(a)
    for key, value in b.items():
        merged[key] = merged.get(key, 0) + value
    return merged


@dataclass(frozen=True)
class AnalysisStatistics:
    """
    Statistics for an event analysis run.

    Immutable snapshot of how many events were seen, how often each
    observable was filled or skipped, and how many numerical diagnostics
    each kind produced.
    """

    # Counts
    total_events: int
    analyzed_events: int
    rejected_events: int = 0

    # Per observable / per diagnostic kind
    fills: dict[str, int] = field(default_factory=dict)
    skips: dict[str, int] = field(default_factory=dict)
    diagnostics: dict[str, int] = field(default_factory=dict)

    # Timing
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    def __post_init__(self):
        """Validate analysis statistics."""
        if self.total_events < 0:
            raise ValueError(f"total_events must be non-negative, got {self.total_events}")
        if self.analyzed_events < 0:
            raise ValueError(f"analyzed_events must be non-negative, got {self.analyzed_events}")
        if self.rejected_events < 0:
            raise ValueError(f"rejected_events must be non-negative, got {self.rejected_events}")
        if self.analyzed_events + self.rejected_events != self.total_events:
            raise ValueError(
                f"analyzed_events ({self.analyzed_events}) + rejected_events ({self.rejected_events}) "
                f"must equal total_events ({self.total_events})"
            )
        if self.end_time is not None and self.end_time < self.start_time:
            raise ValueError("end_time must be after start_time")

    @property
    def success_rate(self) -> float:
        """Percentage of events that reached the analyzers."""
        if self.total_events == 0:
            return 0.0
        return (self.analyzed_events / self.total_events) * 100

    @property
    def total_diagnostics(self) -> int:
        return sum(self.diagnostics.values())

    @property
    def elapsed_sec(self) -> float:
        end = self.end_time or datetime.now()
        return (end - self.start_time).total_seconds()

    def merged_with(self, other: 'AnalysisStatistics') -> 'AnalysisStatistics':
        """
        Combine two snapshots, e.g. from separate batch jobs.

        Args:
            other: Statistics of another shard

        Returns:
            New AnalysisStatistics covering both shards
        """
        ends = [t for t in (self.end_time, other.end_time) if t is not None]
        return AnalysisStatistics(
            total_events=self.total_events + other.total_events,
            analyzed_events=self.analyzed_events + other.analyzed_events,
            rejected_events=self.rejected_events + other.rejected_events,
            fills=_add_counts(self.fills, other.fills),
            skips=_add_counts(self.skips, other.skips),
            diagnostics=_add_counts(self.diagnostics, other.diagnostics),
            start_time=min(self.start_time, other.start_time),
            end_time=max(ends) if ends else None,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "total_events": self.total_events,
            "analyzed_events": self.analyzed_events,
            "rejected_events": self.rejected_events,
            "success_rate": f"{self.success_rate:.1f}%",
            "fills": dict(self.fills),
            "skips": dict(self.skips),
            "diagnostics": dict(self.diagnostics),
            "total_diagnostics": self.total_diagnostics,
            "elapsed_sec": f"{self.elapsed_sec:.1f}",
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
        }

    @classmethod
    def from_dict(cls, stats_dict: dict) -> 'AnalysisStatistics':
        """Rebuild a snapshot written by to_dict()."""
        end_time = stats_dict.get("end_time")
        return cls(
            total_events=int(stats_dict["total_events"]),
            analyzed_events=int(stats_dict["analyzed_events"]),
            rejected_events=int(stats_dict.get("rejected_events", 0)),
            fills={k: int(v) for k, v in stats_dict.get("fills", {}).items()},
            skips={k: int(v) for k, v in stats_dict.get("skips", {}).items()},
            diagnostics={k: int(v) for k, v in stats_dict.get("diagnostics", {}).items()},
            start_time=datetime.fromisoformat(stats_dict["start_time"]),
            end_time=datetime.fromisoformat(end_time) if end_time else None,
        )
