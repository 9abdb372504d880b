"""
Hierarchical jet clustering.

Greedy pairwise merging under a pluggable distance measure: every particle
starts as its own cluster, the closest pair is merged by four-vector
addition, and merging stops once the smallest distance exceeds the join
threshold max(y_cut * E_vis^2, pt_scale^2).
"""
import logging
from typing import Sequence, Union

import numpy as np

from domain.config import JetClusteringConfig
from domain.errors import ConfigurationError, DegenerateInputError
from domain.events import Particle
from domain.results import ClusteringResult, JetCluster
from services.calculations.distance_measures import DistanceMeasure, get_distance_measure
from services.calculations.physics_calcs import momenta_array


class JetClusterer:
    """
    Cluster jet finder shared by all distance measures.

    Pairwise distances are cached in an upper-triangular matrix; after a
    merge only the pairs touching the merged cluster are recomputed.
    """

    def __init__(
        self,
        measure: Union[str, DistanceMeasure],
        y_cut: float = 0.01,
        pt_scale: float = 0.0,
        n_jet_min: int = 1,
        n_jet_max: int = 0
    ):
        """
        Initialize clusterer.

        Args:
            measure: Distance measure or its name ("lund", "jade", "durham")
            y_cut: Dimensionless join threshold, scaled by E_vis^2
            pt_scale: Absolute join threshold in energy units
            n_jet_min: Stop merging once this many jets remain
            n_jet_max: If positive, keep merging past the threshold until at
                most this many jets remain
        """
        if isinstance(measure, str):
            measure = get_distance_measure(measure)
        if not y_cut >= 0:
            raise ConfigurationError(f"y_cut must be non-negative, got {y_cut}")
        if not pt_scale >= 0:
            raise ConfigurationError(f"pt_scale must be non-negative, got {pt_scale}")
        if n_jet_min < 1:
            raise ConfigurationError(f"n_jet_min must be at least 1, got {n_jet_min}")
        if n_jet_max < 0 or 0 < n_jet_max < n_jet_min:
            raise ConfigurationError(
                f"n_jet_max must be 0 or at least n_jet_min ({n_jet_min}), got {n_jet_max}"
            )

        self.measure = measure
        self.y_cut = y_cut
        self.pt_scale = pt_scale
        self.n_jet_min = n_jet_min
        self.n_jet_max = n_jet_max
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_config(cls, config: JetClusteringConfig) -> 'JetClusterer':
        """Build a clusterer from its configuration entry."""
        return cls(
            measure=config.measure,
            y_cut=config.y_cut,
            pt_scale=config.pt_scale,
            n_jet_min=config.n_jet_min,
            n_jet_max=config.n_jet_max,
        )

    @property
    def name(self) -> str:
        return self.measure.name

    def cluster(self, particles: Sequence[Particle]) -> ClusteringResult:
        """
        Cluster a particle list into jets.

        Args:
            particles: Particles to cluster

        Returns:
            ClusteringResult with jets ordered by decreasing energy

        Raises:
            DegenerateInputError: If the particle list is empty
        """
        n = len(particles)
        if n == 0:
            raise DegenerateInputError(f"{self.name}: cannot cluster an empty particle list")

        p4 = momenta_array(particles)
        p3 = p4[:, :3].copy()
        e = p4[:, 3].copy()
        p_abs = np.linalg.norm(p3, axis=1)

        scale = float(e.sum()) ** 2
        threshold = max(self.y_cut * scale, self.pt_scale ** 2)

        constituents = [[k] for k in range(n)]
        active = np.ones(n, dtype=bool)
        distances = self._initial_distances(e, p3, p_abs)

        merge_distances = []
        n_active = n
        while n_active > self.n_jet_min:
            flat_index = int(np.argmin(distances))
            i, j = divmod(flat_index, n)
            d_min = float(distances[i, j])

            forced = 0 < self.n_jet_max < n_active
            if d_min > threshold and not forced:
                break

            # Merge j into i; i < j always holds in the upper triangle.
            p3[i] += p3[j]
            e[i] += e[j]
            p_abs[i] = np.linalg.norm(p3[i])
            constituents[i].extend(constituents[j])
            constituents[j] = []
            active[j] = False
            distances[j, :] = np.inf
            distances[:, j] = np.inf
            n_active -= 1
            merge_distances.append(self._scaled(d_min, scale))

            self._update_distances(distances, e, p3, p_abs, active, i)

        smallest = None
        if n_active >= 2:
            smallest = self._scaled(float(distances.min()), scale)

        jets = [
            JetCluster(
                px=float(p3[k, 0]),
                py=float(p3[k, 1]),
                pz=float(p3[k, 2]),
                e=float(e[k]),
                constituents=tuple(sorted(constituents[k])),
            )
            for k in np.flatnonzero(active)
        ]
        jets.sort(key=lambda jet: jet.e, reverse=True)

        self.logger.debug(f"{self.name}: {n} particles -> {len(jets)} jets")
        return ClusteringResult(
            measure=self.name,
            jets=tuple(jets),
            merge_distances=tuple(merge_distances),
            smallest_distance=smallest,
        )

    def _initial_distances(self, e: np.ndarray, p3: np.ndarray, p_abs: np.ndarray) -> np.ndarray:
        """Upper-triangular distance matrix; the rest is +inf."""
        n = len(e)
        distances = np.full((n, n), np.inf)
        for i in range(n - 1):
            others = np.arange(i + 1, n)
            distances[i, others] = self.measure.distances(e, p3, p_abs, i, others)
        return distances

    def _update_distances(
        self,
        distances: np.ndarray,
        e: np.ndarray,
        p3: np.ndarray,
        p_abs: np.ndarray,
        active: np.ndarray,
        i: int
    ):
        """Recompute the pairs touching cluster i after a merge."""
        before = np.flatnonzero(active[:i])
        after = i + 1 + np.flatnonzero(active[i + 1:])
        if before.size:
            distances[before, i] = self.measure.distances(e, p3, p_abs, i, before)
        if after.size:
            distances[i, after] = self.measure.distances(e, p3, p_abs, i, after)

    @staticmethod
    def _scaled(distance: float, scale: float) -> float:
        return distance / scale if scale > 0 else distance
