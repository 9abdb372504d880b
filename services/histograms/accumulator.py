"""
Fixed-binning histogram accumulator.

Values below lo go to underflow, values at or above hi to overflow and
non-finite values to a separate rejected counter. Mean and RMS are
accumulated over in-range fills only.
"""
import math

import numpy as np

from domain.config import HistogramSpec
from domain.errors import ConfigurationError
from services.histograms.rendering import HistogramView


class Histogram:
    """
    One-dimensional histogram over [lo, hi) with n_bins equal bins.

    Fills can only be added, never removed.
    """

    def __init__(self, name: str, n_bins: int, lo: float, hi: float):
        """
        Initialize an empty histogram.

        Raises:
            ConfigurationError: On an empty name, n_bins < 1 or an invalid range
        """
        if not name:
            raise ConfigurationError("histogram name cannot be empty")
        if int(n_bins) != n_bins or n_bins < 1:
            raise ConfigurationError(f"{name}: n_bins must be a positive integer, got {n_bins}")
        if not (math.isfinite(lo) and math.isfinite(hi)) or lo >= hi:
            raise ConfigurationError(f"{name}: invalid range [{lo}, {hi})")

        self.name = name
        self.n_bins = int(n_bins)
        self.lo = float(lo)
        self.hi = float(hi)
        self.width = (self.hi - self.lo) / self.n_bins

        self.counts = np.zeros(self.n_bins, dtype=np.int64)
        self.underflow = 0
        self.overflow = 0
        self.rejected = 0

        # Welford accumulators over in-range fills
        self._n = 0
        self._mean = 0.0
        self._m2 = 0.0

    @classmethod
    def from_spec(cls, spec: HistogramSpec) -> 'Histogram':
        return cls(spec.name, spec.n_bins, spec.lo, spec.hi)

    @property
    def edges(self) -> np.ndarray:
        return np.linspace(self.lo, self.hi, self.n_bins + 1)

    @property
    def in_range(self) -> int:
        return self._n

    @property
    def entries(self) -> int:
        """In-range plus underflow plus overflow; rejected values excluded."""
        return self._n + self.underflow + self.overflow

    @property
    def mean(self) -> float:
        return self._mean if self._n else 0.0

    @property
    def rms(self) -> float:
        """Standard deviation of the in-range fills."""
        return math.sqrt(self._m2 / self._n) if self._n else 0.0

    def bin_index(self, x: float) -> int:
        """Bin of an in-range value, clamped against round-off at the edges."""
        index = int(math.floor((x - self.lo) / self.width))
        return min(max(index, 0), self.n_bins - 1)

    def fill(self, x: float):
        """Add one value."""
        x = float(x)
        if not math.isfinite(x):
            self.rejected += 1
        elif x < self.lo:
            self.underflow += 1
        elif x >= self.hi:
            self.overflow += 1
        else:
            self.counts[self.bin_index(x)] += 1
            self._n += 1
            delta = x - self._mean
            self._mean += delta / self._n
            self._m2 += delta * (x - self._mean)

    def fill_many(self, values):
        for x in values:
            self.fill(x)

    def same_binning(self, other: 'Histogram') -> bool:
        return (self.n_bins, self.lo, self.hi) == (other.n_bins, other.lo, other.hi)

    def merge(self, other: 'Histogram'):
        """
        Add the contents of another histogram with identical binning.

        Raises:
            ValueError: If the binning differs
        """
        if not self.same_binning(other):
            raise ValueError(
                f"Cannot merge '{other.name}' ({other.n_bins}, {other.lo}, {other.hi}) into "
                f"'{self.name}' ({self.n_bins}, {self.lo}, {self.hi}): binning differs"
            )

        self.counts += other.counts
        self.underflow += other.underflow
        self.overflow += other.overflow
        self.rejected += other.rejected

        n = self._n + other._n
        if n:
            delta = other._mean - self._mean
            self._m2 += other._m2 + delta * delta * self._n * other._n / n
            self._mean += delta * other._n / n
        self._n = n

    def view(self) -> HistogramView:
        """Read-only snapshot for rendering."""
        return HistogramView(
            name=self.name,
            edges=tuple(float(e) for e in self.edges),
            counts=tuple(int(c) for c in self.counts),
            underflow=self.underflow,
            overflow=self.overflow,
            rejected=self.rejected,
            entries=self.entries,
            in_range=self.in_range,
            mean=self.mean,
            rms=self.rms,
        )

    def to_dict(self) -> dict:
        """Full accumulator state for JSON persistence."""
        return {
            "name": self.name,
            "n_bins": self.n_bins,
            "lo": self.lo,
            "hi": self.hi,
            "counts": [int(c) for c in self.counts],
            "underflow": self.underflow,
            "overflow": self.overflow,
            "rejected": self.rejected,
            "n": self._n,
            "mean": self._mean,
            "m2": self._m2,
        }

    @classmethod
    def from_dict(cls, state: dict) -> 'Histogram':
        """Restore a histogram written by to_dict()."""
        hist = cls(state["name"], state["n_bins"], state["lo"], state["hi"])
        counts = np.asarray(state["counts"], dtype=np.int64)
        if counts.shape != (hist.n_bins,):
            raise ValueError(
                f"{hist.name}: expected {hist.n_bins} bin counts, got {counts.shape[0]}"
            )
        hist.counts = counts
        hist.underflow = int(state["underflow"])
        hist.overflow = int(state["overflow"])
        hist.rejected = int(state.get("rejected", 0))
        hist._n = int(state["n"])
        hist._mean = float(state["mean"])
        hist._m2 = float(state["m2"])
        return hist

    def __repr__(self) -> str:
        return (
            f"Histogram(name={self.name!r}, n_bins={self.n_bins}, lo={self.lo}, hi={self.hi}, "
            f"entries={self.entries})"
        )
