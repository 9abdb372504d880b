"""
Thrust axis search.

Finds the unit vector n maximizing

    T(n) = sum_i |p_i . n| / sum_i |p_i|

by fixed-point refinement n <- normalize(sum_i sign(p_i . n) p_i) started
from several seed axes, then repeats the search in the plane transverse to
the thrust axis to find the major axis. The minor axis is orthogonal to
both.
"""
import itertools
import logging
from typing import Optional, Sequence

import numpy as np

from domain.diagnostics import DiagnosticKind, NumericalDiagnostic
from domain.errors import ConfigurationError, DegenerateInputError
from domain.events import Particle
from domain.results import ThrustResult
from services.calculations import consts
from services.calculations.physics_calcs import (
    momenta_array,
    orient_axis,
    orthogonal_unit_vector,
    orthonormality_deviations,
)


class ThrustAnalyzer:
    """
    Thrust, major and minor analysis of one particle list at a time.

    Seeds are the leading-momentum particle directions, every signed sum of
    those leading momenta, and an optional external guess such as the
    sphericity axis. The best refined axis over all seeds wins.
    """

    name = "thrust"

    def __init__(
        self,
        max_iterations: int = consts.THRUST_MAX_ITERATIONS,
        tolerance: float = consts.THRUST_TOLERANCE,
        n_seed_particles: int = consts.THRUST_SEED_PARTICLES,
        orthonormality_tolerance: float = consts.ORTHONORMALITY_TOLERANCE
    ):
        """
        Initialize analyzer.

        Args:
            max_iterations: Refinement cap per seed
            tolerance: Minimum increase of T that continues a refinement
            n_seed_particles: Number of leading particles used to build seeds
            orthonormality_tolerance: Tolerance of the final axes check
        """
        if max_iterations <= 0:
            raise ConfigurationError(f"max_iterations must be positive, got {max_iterations}")
        if not tolerance >= 0:
            raise ConfigurationError(f"tolerance must be non-negative, got {tolerance}")
        if n_seed_particles <= 0:
            raise ConfigurationError(f"n_seed_particles must be positive, got {n_seed_particles}")

        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.n_seed_particles = n_seed_particles
        self.orthonormality_tolerance = orthonormality_tolerance
        self.logger = logging.getLogger(self.__class__.__name__)

    def analyze(
        self,
        particles: Sequence[Particle],
        seed_axis: Optional[np.ndarray] = None
    ) -> ThrustResult:
        """
        Find the thrust, major and minor axes of a particle list.

        Args:
            particles: Particles to analyze
            seed_axis: Optional extra starting axis (e.g. the sphericity axis)

        Returns:
            ThrustResult with values, axes and diagnostics

        Raises:
            DegenerateInputError: Fewer than two particles or zero total momentum
        """
        if len(particles) < consts.MIN_PARTICLES:
            raise DegenerateInputError(
                f"{self.name}: need at least {consts.MIN_PARTICLES} particles, got {len(particles)}"
            )

        p3 = momenta_array(particles)[:, :3]
        p_abs = np.linalg.norm(p3, axis=1)
        p_sum = float(p_abs.sum())
        if not p_sum > 0:
            raise DegenerateInputError(f"{self.name}: total momentum is zero")

        seeds = self._seed_axes(p3, p_abs, seed_axis)
        thrust_axis, iterations, thrust_converged = self._maximize(p3, seeds, p_sum)

        projected = p3 - np.outer(p3 @ thrust_axis, thrust_axis)
        projected_abs = np.linalg.norm(projected, axis=1)
        if projected_abs.max() <= consts.AXIS_SIGN_TOLERANCE * p_sum:
            # Collinear event: every transverse direction is equivalent.
            major_axis = orthogonal_unit_vector(thrust_axis)
            major_converged = True
        else:
            major_seeds = self._seed_axes(projected, projected_abs, None)
            major_axis, _, major_converged = self._maximize(projected, major_seeds, p_sum)
            major_axis = major_axis - np.dot(major_axis, thrust_axis) * thrust_axis
            major_axis = major_axis / np.linalg.norm(major_axis)

        thrust_axis = orient_axis(thrust_axis)
        major_axis = orient_axis(major_axis)
        minor_axis = np.cross(thrust_axis, major_axis)
        minor_axis = orient_axis(minor_axis / np.linalg.norm(minor_axis))

        axes = np.array([thrust_axis, major_axis, minor_axis])
        thrust, major, minor = np.abs(p3 @ axes.T).sum(axis=0) / p_sum

        diagnostics = []
        if not (thrust_converged and major_converged):
            diagnostics.append(NumericalDiagnostic(
                kind=DiagnosticKind.THRUST_NOT_CONVERGED,
                analyzer=self.name,
                message=f"no seed converged within {self.max_iterations} iterations",
                values=(float(thrust), float(major)),
            ))

        deviations = orthonormality_deviations(axes)
        if not np.all(deviations <= self.orthonormality_tolerance):
            diagnostics.append(NumericalDiagnostic(
                kind=DiagnosticKind.AXES_NOT_ORTHONORMAL,
                analyzer=self.name,
                message="suspicious thrust axes",
                values=tuple(float(d) for d in deviations),
            ))

        return ThrustResult(
            thrust=float(thrust),
            major=float(major),
            minor=float(minor),
            axes=tuple(tuple(float(c) for c in axis) for axis in axes),
            n_particles=len(particles),
            iterations=iterations,
            diagnostics=tuple(diagnostics),
        )

    def _seed_axes(
        self,
        vectors: np.ndarray,
        norms: np.ndarray,
        extra: Optional[np.ndarray]
    ) -> list[np.ndarray]:
        """Build normalized starting axes from the leading vectors."""
        order = np.argsort(-norms, kind="stable")[:self.n_seed_particles]
        leading = vectors[order][norms[order] > 0]

        candidates = list(leading)
        if len(leading) >= 2:
            # First sign fixed: n and -n give the same T.
            for signs in itertools.product((1.0, -1.0), repeat=len(leading) - 1):
                candidates.append(leading[0] + np.asarray(signs) @ leading[1:])
        if extra is not None:
            candidates.append(np.asarray(extra, dtype=float))

        seeds = []
        for candidate in candidates:
            norm = np.linalg.norm(candidate)
            if np.isfinite(norm) and norm > 0:
                seeds.append(candidate / norm)
        return seeds

    def _maximize(
        self,
        vectors: np.ndarray,
        seeds: list[np.ndarray],
        p_sum: float
    ) -> tuple[np.ndarray, int, bool]:
        """
        Refine every seed and keep the best axis.

        Returns:
            Tuple of (best axis, its iteration count, whether any seed converged)
        """
        best = None
        any_converged = False
        for seed in seeds:
            axis, value, iterations, converged = self._refine(vectors, seed, p_sum)
            any_converged = any_converged or converged
            if best is None or value > best[1]:
                best = (axis, value, iterations)

        axis, _, iterations = best
        return axis, iterations, any_converged

    def _refine(
        self,
        vectors: np.ndarray,
        axis: np.ndarray,
        p_sum: float
    ) -> tuple[np.ndarray, float, int, bool]:
        """Fixed-point iteration from one seed, capped at max_iterations."""
        value = float(np.abs(vectors @ axis).sum())

        for iteration in range(1, self.max_iterations + 1):
            signs = np.where(vectors @ axis >= 0.0, 1.0, -1.0)
            candidate = signs @ vectors
            norm = np.linalg.norm(candidate)
            if norm == 0:
                return axis, value, iteration, True

            candidate = candidate / norm
            new_value = float(np.abs(vectors @ candidate).sum())
            if (new_value - value) / p_sum <= self.tolerance:
                if new_value > value:
                    axis, value = candidate, new_value
                return axis, value, iteration, True
            axis, value = candidate, new_value

        return axis, value, self.max_iterations, False
