"""
Momentum tensor eigen-analysis.

Builds the weighted tensor

    M_ab = sum_i |p_i|^(r-2) p_i^a p_i^b / sum_i |p_i|^r

and diagonalizes it. r = 2 gives sphericity, r = 1 the linearized
(collinear-safe) variant.
"""
import logging
import math
from typing import Optional, Sequence

import numpy as np

from domain.diagnostics import DiagnosticKind, NumericalDiagnostic
from domain.errors import ConfigurationError, DegenerateInputError
from domain.events import Particle
from domain.results import AxisSet, SphericityResult
from services.calculations import consts
from services.calculations.physics_calcs import (
    momenta_array,
    orient_axis,
    orthonormality_deviations,
)


class MomentumTensorAnalyzer:
    """
    Sphericity-type analysis of one particle list at a time.

    Stateless apart from its configuration; one instance can serve a
    whole run.
    """

    def __init__(
        self,
        power: float = 2.0,
        name: Optional[str] = None,
        tolerance: float = consts.EIGENVALUE_SUM_TOLERANCE
    ):
        """
        Initialize analyzer.

        Args:
            power: Weighting exponent r (must be positive)
            name: Label used in diagnostics, derived from power if omitted
            tolerance: Tolerance of the eigenvalue-sum and orthonormality checks
        """
        if not math.isfinite(power) or power <= 0:
            raise ConfigurationError(f"power must be positive, got {power}")

        self.power = float(power)
        self.tolerance = tolerance
        if name is None:
            name = {2.0: "sphericity", 1.0: "linearity"}.get(self.power, f"sphericity_r{self.power:g}")
        self.name = name
        self.logger = logging.getLogger(self.__class__.__name__)

    def tensor(self, particles: Sequence[Particle]) -> np.ndarray:
        """
        Build the normalized momentum tensor.

        Args:
            particles: Particles to analyze

        Returns:
            Symmetric 3x3 array with unit trace

        Raises:
            DegenerateInputError: Fewer than two particles or zero total momentum
        """
        if len(particles) < consts.MIN_PARTICLES:
            raise DegenerateInputError(
                f"{self.name}: need at least {consts.MIN_PARTICLES} particles, got {len(particles)}"
            )

        p3 = momenta_array(particles)[:, :3]
        p2 = np.einsum("ij,ij->i", p3, p3)
        weights = np.maximum(p2, consts.P2_MIN) ** (0.5 * self.power - 1.0)

        denominator = float(np.sum(weights * p2))
        if not denominator > 0:
            raise DegenerateInputError(f"{self.name}: total weighted momentum is zero")

        return (p3.T * weights) @ p3 / denominator

    def analyze(self, particles: Sequence[Particle]) -> SphericityResult:
        """
        Diagonalize the momentum tensor of a particle list.

        Eigenvalues are sorted in descending order and each eigenvector is
        oriented with a non-negative z-component. Postcondition violations
        are attached as diagnostics; the result is never corrected.

        Args:
            particles: Particles to analyze

        Returns:
            SphericityResult with eigenvalues, axes and diagnostics

        Raises:
            DegenerateInputError: Fewer than two particles or zero total momentum
        """
        tensor = self.tensor(particles)
        eigenvalues, eigenvectors = np.linalg.eigh(tensor)

        order = np.argsort(eigenvalues)[::-1]
        values = eigenvalues[order]
        axes = np.array([orient_axis(eigenvectors[:, k]) for k in order])

        diagnostics = self._check_consistency(values, axes)
        if diagnostics:
            self.logger.debug(f"{self.name}: {len(diagnostics)} consistency check(s) failed")

        return SphericityResult(
            power=self.power,
            axis_set=AxisSet.from_arrays(values, axes),
            n_particles=len(particles),
            diagnostics=tuple(diagnostics),
        )

    def _check_consistency(self, values: np.ndarray, axes: np.ndarray) -> list[NumericalDiagnostic]:
        """Check eigenvalue order, trace and eigenvector orthonormality."""
        diagnostics = []
        value_tuple = tuple(float(v) for v in values)

        # Comparisons are false for NaN, so NaN also lands here.
        if not (values[0] >= values[1] >= values[2]):
            diagnostics.append(NumericalDiagnostic(
                kind=DiagnosticKind.EIGENVALUE_ORDER,
                analyzer=self.name,
                message="eigenvalues out of order",
                values=value_tuple,
            ))

        total = float(np.sum(values))
        if not abs(total - 1.0) <= self.tolerance:
            diagnostics.append(NumericalDiagnostic(
                kind=DiagnosticKind.EIGENVALUE_SUM,
                analyzer=self.name,
                message=f"eigenvalues sum to {total:.12g}, expected 1",
                values=value_tuple,
            ))

        deviations = orthonormality_deviations(axes)
        if not np.all(deviations <= self.tolerance):
            diagnostics.append(NumericalDiagnostic(
                kind=DiagnosticKind.AXES_NOT_ORTHONORMAL,
                analyzer=self.name,
                message="eigenvectors not orthonormal",
                values=tuple(float(d) for d in deviations),
            ))

        return diagnostics
