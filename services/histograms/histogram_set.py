"""
Named collection of histograms owned by one pipeline run.
"""
from typing import Iterable, Iterator

from domain.config import HistogramSpec
from domain.errors import ConfigurationError
from services.histograms.accumulator import Histogram
from services.histograms.rendering import HistogramView


class HistogramSet:
    """
    Histograms keyed by observable name, in creation order.

    The set is fixed at construction; filling an unknown name raises.
    """

    def __init__(self, specs: Iterable[HistogramSpec]):
        self._histograms: dict[str, Histogram] = {}
        for spec in specs:
            if spec.name in self._histograms:
                raise ConfigurationError(f"Duplicate histogram name '{spec.name}'")
            self._histograms[spec.name] = Histogram.from_spec(spec)

    @classmethod
    def from_specs(cls, defaults: Iterable[HistogramSpec], overrides: Iterable[HistogramSpec] = ()) -> 'HistogramSet':
        """
        Build a set from default binnings, re-binned by overrides.

        Raises:
            ConfigurationError: If an override names an unknown histogram
        """
        specs = {spec.name: spec for spec in defaults}
        for override in overrides:
            if override.name not in specs:
                raise ConfigurationError(
                    f"Unknown histogram '{override.name}', expected one of: {sorted(specs)}"
                )
            specs[override.name] = override
        return cls(specs.values())

    def fill(self, name: str, x: float):
        self[name].fill(x)

    def __getitem__(self, name: str) -> Histogram:
        try:
            return self._histograms[name]
        except KeyError:
            raise KeyError(f"Unknown histogram '{name}'") from None

    def __contains__(self, name: str) -> bool:
        return name in self._histograms

    def __iter__(self) -> Iterator[Histogram]:
        return iter(self._histograms.values())

    def __len__(self) -> int:
        return len(self._histograms)

    @property
    def names(self) -> list[str]:
        return list(self._histograms)

    def views(self) -> list[HistogramView]:
        return [hist.view() for hist in self._histograms.values()]

    def merge(self, other: 'HistogramSet'):
        """
        Add another set histogram by histogram.

        Raises:
            ValueError: If the sets hold different names or binnings
        """
        if set(self.names) != set(other.names):
            missing = sorted(set(self.names) ^ set(other.names))
            raise ValueError(f"Cannot merge histogram sets, names differ: {missing}")
        for name, hist in self._histograms.items():
            hist.merge(other[name])

    def to_dict(self) -> dict:
        return {"histograms": [hist.to_dict() for hist in self._histograms.values()]}

    @classmethod
    def from_dict(cls, state: dict) -> 'HistogramSet':
        """Restore a set written by to_dict()."""
        histogram_set = cls(())
        for hist_state in state["histograms"]:
            hist = Histogram.from_dict(hist_state)
            if hist.name in histogram_set._histograms:
                raise ValueError(f"Duplicate histogram name '{hist.name}' in saved state")
            histogram_set._histograms[hist.name] = hist
        return histogram_set
