"""
Pairwise distance measures for jet clustering.

Each measure only supplies the distance between clusters; the merge loop
is shared by all of them (see jet_clustering.py). Distances carry units of
energy squared and are compared against max(y_cut * E_vis^2, pt_scale^2).
"""
from abc import ABC, abstractmethod

import numpy as np

from domain.errors import ConfigurationError


def _one_minus_cos(p3: np.ndarray, p_abs: np.ndarray, i: int, others: np.ndarray) -> np.ndarray:
    """1 - cos(theta_ij); zero when either momentum vanishes."""
    dot = p3[others] @ p3[i]
    norms = p_abs[i] * p_abs[others]
    cos_theta = np.divide(dot, norms, out=np.ones_like(dot), where=norms > 0)
    return 1.0 - np.clip(cos_theta, -1.0, 1.0)


class DistanceMeasure(ABC):
    """Strategy supplying the pairwise distance of one clustering variant."""

    name: str = ""

    @abstractmethod
    def distances(
        self,
        e: np.ndarray,
        p3: np.ndarray,
        p_abs: np.ndarray,
        i: int,
        others: np.ndarray
    ) -> np.ndarray:
        """
        Distances between cluster i and each cluster in others.

        Args:
            e: Cluster energies, shape (n,)
            p3: Cluster three-momenta, shape (n, 3)
            p_abs: Cluster |p|, shape (n,)
            i: Index of the reference cluster
            others: Indices of the clusters to compare with

        Returns:
            Array of distances aligned with others
        """

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"


class LundDistance(DistanceMeasure):
    """d^2 = 2 |p_i||p_j| (|p_i||p_j| - p_i.p_j) / (|p_i| + |p_j|)^2"""

    name = "lund"

    def distances(self, e, p3, p_abs, i, others):
        p_i = p_abs[i]
        p_j = p_abs[others]
        product = p_i * p_j
        numerator = 2.0 * product * np.maximum(product - p3[others] @ p3[i], 0.0)
        denominator = (p_i + p_j) ** 2
        return np.divide(numerator, denominator, out=np.zeros_like(numerator), where=denominator > 0)


class JadeDistance(DistanceMeasure):
    """d = 2 E_i E_j (1 - cos theta_ij)"""

    name = "jade"

    def distances(self, e, p3, p_abs, i, others):
        return 2.0 * e[i] * e[others] * _one_minus_cos(p3, p_abs, i, others)


class DurhamDistance(DistanceMeasure):
    """d = 2 min(E_i^2, E_j^2) (1 - cos theta_ij)"""

    name = "durham"

    def distances(self, e, p3, p_abs, i, others):
        e_min = np.minimum(e[i], e[others])
        return 2.0 * e_min * e_min * _one_minus_cos(p3, p_abs, i, others)


DISTANCE_MEASURES = {
    LundDistance.name: LundDistance,
    JadeDistance.name: JadeDistance,
    DurhamDistance.name: DurhamDistance,
}


def get_distance_measure(name: str) -> DistanceMeasure:
    """
    Look up a distance measure by name.

    Args:
        name: "lund", "jade" or "durham" (case-insensitive)

    Returns:
        DistanceMeasure instance

    Raises:
        ConfigurationError: If the name is unknown
    """
    measure_cls = DISTANCE_MEASURES.get(str(name).lower())
    if measure_cls is None:
        raise ConfigurationError(
            f"Unknown distance measure '{name}', expected one of: {sorted(DISTANCE_MEASURES)}"
        )
    return measure_cls()
