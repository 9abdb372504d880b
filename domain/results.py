"""
Analysis result domain models.

Immutable per-event results of the event-shape analyzers and the jet clusterer.
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np
import vector

from .diagnostics import NumericalDiagnostic


Vector3 = tuple[float, float, float]


def _check_index(i: int):
    if i not in (1, 2, 3):
        raise IndexError(f"axis index must be 1, 2 or 3, got {i}")


@dataclass(frozen=True)
class AxisSet:
    """
    Three orthonormal axes with their associated values.

    Axes are stored as rows; values are ordered by convention, largest first.
    """

    eigenvalues: Vector3
    axes: tuple[Vector3, Vector3, Vector3]

    def __post_init__(self):
        """Validate the axis set shape."""
        if len(self.eigenvalues) != 3:
            raise ValueError(f"eigenvalues must have 3 entries, got {len(self.eigenvalues)}")
        if len(self.axes) != 3 or any(len(a) != 3 for a in self.axes):
            raise ValueError("axes must be three 3-vectors")

    @classmethod
    def from_arrays(cls, eigenvalues: np.ndarray, axes: np.ndarray) -> 'AxisSet':
        """Build from a length-3 value array and a 3x3 array of row axes."""
        return cls(
            eigenvalues=tuple(float(v) for v in eigenvalues),
            axes=tuple(tuple(float(c) for c in row) for row in axes),
        )

    def axis(self, i: int) -> np.ndarray:
        """Axis i (1-based) as a numpy vector."""
        _check_index(i)
        return np.array(self.axes[i - 1], dtype=float)

    def eigenvalue(self, i: int) -> float:
        """Value i (1-based)."""
        _check_index(i)
        return self.eigenvalues[i - 1]

    def cos_theta(self, i: int) -> float:
        """Cosine of the polar angle of axis i, i.e. its z-component."""
        _check_index(i)
        return self.axes[i - 1][2]

    def as_matrix(self) -> np.ndarray:
        """Axes as a 3x3 array, one axis per row."""
        return np.array(self.axes, dtype=float)


@dataclass(frozen=True)
class SphericityResult:
    """Eigen-analysis of the momentum tensor for one event."""

    power: float
    axis_set: AxisSet
    n_particles: int
    diagnostics: tuple[NumericalDiagnostic, ...] = field(default_factory=tuple)

    @property
    def sphericity(self) -> float:
        """1.5 * (lambda2 + lambda3): 0 for a pencil-like event, 1 for isotropic."""
        return 1.5 * (self.axis_set.eigenvalues[1] + self.axis_set.eigenvalues[2])

    @property
    def aplanarity(self) -> float:
        """1.5 * lambda3."""
        return 1.5 * self.axis_set.eigenvalues[2]

    def eigenvalue(self, i: int) -> float:
        return self.axis_set.eigenvalue(i)

    def event_axis(self, i: int) -> np.ndarray:
        return self.axis_set.axis(i)

    @property
    def is_consistent(self) -> bool:
        return not self.diagnostics

    def describe(self) -> str:
        """Text listing of the result."""
        lines = [
            f" --------  Sphericity Listing (power = {self.power:g})  --------",
            f"  Sphericity = {self.sphericity:10.4f}   Aplanarity = {self.aplanarity:10.4f}"
            f"   particles = {self.n_particles}",
            "  no     eigenvalue      ----- eigenvector (x, y, z) -----",
        ]
        for i in (1, 2, 3):
            x, y, z = self.axis_set.axes[i - 1]
            lines.append(
                f"  {i:2d}   {self.eigenvalue(i):12.6f}   {x:10.6f} {y:10.6f} {z:10.6f}"
            )
        return "\n".join(lines)


@dataclass(frozen=True)
class ThrustResult:
    """Thrust, major and minor axes and values for one event."""

    thrust: float
    major: float
    minor: float
    axes: tuple[Vector3, Vector3, Vector3]
    n_particles: int
    iterations: int = 0
    diagnostics: tuple[NumericalDiagnostic, ...] = field(default_factory=tuple)

    @property
    def oblateness(self) -> float:
        return self.major - self.minor

    def event_axis(self, i: int) -> np.ndarray:
        """Axis i: 1 = thrust, 2 = major, 3 = minor."""
        _check_index(i)
        return np.array(self.axes[i - 1], dtype=float)

    def cos_theta(self, i: int = 1) -> float:
        _check_index(i)
        return self.axes[i - 1][2]

    @property
    def is_consistent(self) -> bool:
        return not self.diagnostics

    def describe(self) -> str:
        """Text listing of the result."""
        lines = [
            " --------  Thrust Listing  --------",
            f"  Oblateness = {self.oblateness:10.4f}   particles = {self.n_particles}"
            f"   iterations = {self.iterations}",
            "          value      ----- axis (x, y, z) -----",
        ]
        for label, value, axis in zip(
            ("Thrust", "Major", "Minor"),
            (self.thrust, self.major, self.minor),
            self.axes,
        ):
            x, y, z = axis
            lines.append(f"  {label:6s} {value:10.6f}   {x:10.6f} {y:10.6f} {z:10.6f}")
        return "\n".join(lines)


@dataclass(frozen=True)
class JetCluster:
    """A four-momentum summed from a non-empty subset of an event's particles."""

    px: float
    py: float
    pz: float
    e: float
    constituents: tuple[int, ...]

    def __post_init__(self):
        """Validate the cluster."""
        if len(self.constituents) == 0:
            raise ValueError("constituents cannot be empty")

    @property
    def momentum(self):
        """Four-momentum as a vector object."""
        return vector.obj(px=self.px, py=self.py, pz=self.pz, E=self.e)

    @property
    def p_abs(self) -> float:
        return float(self.momentum.p)

    @property
    def mass(self) -> float:
        """Invariant mass, clipped at zero against round-off."""
        mass = float(self.momentum.mass)
        return mass if mass > 0 else 0.0

    @property
    def multiplicity(self) -> int:
        return len(self.constituents)


@dataclass(frozen=True)
class ClusteringResult:
    """
    Jets found by one clustering pass, ordered by decreasing energy.

    Distances are reported in dimensionless form, i.e. divided by the
    visible energy squared of the input.
    """

    measure: str
    jets: tuple[JetCluster, ...]
    merge_distances: tuple[float, ...] = field(default_factory=tuple)
    smallest_distance: Optional[float] = None

    def __post_init__(self):
        """Validate the clustering result."""
        if len(self.jets) == 0:
            raise ValueError("jets cannot be empty")

    @property
    def size(self) -> int:
        return len(self.jets)

    def __len__(self) -> int:
        return len(self.jets)

    @property
    def total_energy(self) -> float:
        return sum(jet.e for jet in self.jets)

    def jet_assignment(self) -> dict[int, int]:
        """Map each input particle index to the index of its jet."""
        return {
            particle: j
            for j, jet in enumerate(self.jets)
            for particle in jet.constituents
        }

    def energy_differences(self) -> list[float]:
        """Energy gaps between consecutive jets, e_j - e_(j+1)."""
        return [self.jets[j].e - self.jets[j + 1].e for j in range(len(self.jets) - 1)]

    def describe(self) -> str:
        """Text listing of the result."""
        lines = [
            f" --------  Cluster Jet Listing ({self.measure})  --------",
            "  no     px          py          pz          e        m    particles",
        ]
        for j, jet in enumerate(self.jets):
            lines.append(
                f"  {j:2d} {jet.px:11.3f} {jet.py:11.3f} {jet.pz:11.3f} {jet.e:11.3f}"
                f" {jet.mass:8.3f}   {jet.multiplicity:4d}"
            )
        if self.smallest_distance is not None:
            lines.append(f"  smallest remaining distance = {self.smallest_distance:.5g}")
        return "\n".join(lines)


@dataclass(frozen=True)
class EventAnalysis:
    """Everything the pipeline computed for one event."""

    index: int
    charged_multiplicity: int
    sphericity: Optional[SphericityResult] = None
    linearity: Optional[SphericityResult] = None
    thrust: Optional[ThrustResult] = None
    clusterings: dict[str, ClusteringResult] = field(default_factory=dict)
    skipped: tuple[str, ...] = field(default_factory=tuple)

    @property
    def diagnostics(self) -> list[NumericalDiagnostic]:
        """Diagnostics of all results, in analysis order."""
        collected = []
        for result in (self.sphericity, self.linearity, self.thrust):
            if result is not None:
                collected.extend(result.diagnostics)
        return collected
