"""
Read-only histogram snapshots and their text rendering.

The rendering functions are pure: they take views and return text, they
never touch an accumulator.
"""
from dataclasses import dataclass
from typing import Iterable

BAR_WIDTH = 50


@dataclass(frozen=True)
class HistogramView:
    """Immutable snapshot of a histogram's contents."""

    name: str
    edges: tuple[float, ...]
    counts: tuple[int, ...]
    underflow: int
    overflow: int
    rejected: int
    entries: int
    in_range: int
    mean: float
    rms: float

    def __post_init__(self):
        """Validate the view."""
        if len(self.edges) != len(self.counts) + 1:
            raise ValueError(
                f"{self.name}: expected {len(self.counts) + 1} edges, got {len(self.edges)}"
            )

    @property
    def n_bins(self) -> int:
        return len(self.counts)

    @property
    def lo(self) -> float:
        return self.edges[0]

    @property
    def hi(self) -> float:
        return self.edges[-1]

    @property
    def max_count(self) -> int:
        return max(self.counts) if self.counts else 0


def render_table(view: HistogramView, bar_width: int = BAR_WIDTH) -> str:
    """
    Render one histogram as a text table with a bar per bin.

    Args:
        view: Histogram snapshot
        bar_width: Width of the longest bar in characters

    Returns:
        Multi-line string
    """
    lines = [
        f" {view.name}",
        f"  bins = {view.n_bins}   range = [{view.lo:g}, {view.hi:g})",
        f"  {'lower edge':>12} {'count':>10}",
    ]
    scale = bar_width / view.max_count if view.max_count else 0.0
    for lower, count in zip(view.edges[:-1], view.counts):
        bar = "*" * int(round(count * scale))
        lines.append(f"  {lower:12.4g} {count:10d}  {bar}")
    lines.append(
        f"  underflow = {view.underflow}   overflow = {view.overflow}"
        f"   rejected = {view.rejected}"
    )
    lines.append(
        f"  entries = {view.entries}   in range = {view.in_range}"
        f"   mean = {view.mean:.6g}   rms = {view.rms:.6g}"
    )
    return "\n".join(lines)


def render_summary(views: Iterable[HistogramView]) -> str:
    """One line per histogram: entries, under/overflow, rejected, mean and RMS."""
    header = (
        f"{'histogram':<28} {'entries':>9} {'under':>7} {'over':>7} {'rejected':>9}"
        f" {'mean':>12} {'rms':>12}"
    )
    lines = [header, "-" * len(header)]
    for view in views:
        lines.append(
            f"{view.name:<28} {view.entries:9d} {view.underflow:7d} {view.overflow:7d}"
            f" {view.rejected:9d} {view.mean:12.5g} {view.rms:12.5g}"
        )
    return "\n".join(lines)
