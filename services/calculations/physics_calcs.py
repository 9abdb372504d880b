"""
Physics helpers shared by the event-shape analyzers.

Provides conversion of particle lists to momentum arrays, axis orientation
and orthonormality checks.
"""
from typing import Sequence

import numpy as np

from domain.events import Particle
from services.calculations import consts


def momenta_array(particles: Sequence[Particle]) -> np.ndarray:
    """
    Stack particle four-momenta into an array.

    Args:
        particles: Particles to convert

    Returns:
        Array of shape (n, 4) with columns px, py, pz, e
    """
    if len(particles) == 0:
        return np.zeros((0, 4), dtype=float)
    return np.array([(p.px, p.py, p.pz, p.e) for p in particles], dtype=float)


def orient_axis(axis: np.ndarray) -> np.ndarray:
    """
    Fix the sign of an axis so the result is reproducible.

    The z-component is made non-negative; when it vanishes, y decides,
    then x.
    """
    for component in (2, 1, 0):
        if abs(axis[component]) > consts.AXIS_SIGN_TOLERANCE:
            return -axis if axis[component] < 0 else axis
    return axis


def orthogonal_unit_vector(axis: np.ndarray) -> np.ndarray:
    """Any unit vector orthogonal to the given unit axis."""
    # Project out the coordinate axis least aligned with the input.
    basis = np.zeros(3)
    basis[int(np.argmin(np.abs(axis)))] = 1.0
    perp = basis - np.dot(basis, axis) * axis
    return perp / np.linalg.norm(perp)


def orthonormality_deviations(axes: np.ndarray) -> np.ndarray:
    """
    Deviations of a set of row axes from an orthonormal set.

    Args:
        axes: Array of shape (3, 3), one axis per row

    Returns:
        Six values: | |a_i| - 1 | for each axis, then |a_i . a_j| for i < j
    """
    gram = axes @ axes.T
    norms = np.abs(np.sqrt(np.diag(gram)) - 1.0)
    dots = np.abs(gram[np.triu_indices(3, k=1)])
    return np.concatenate([norms, dots])


def is_orthonormal(axes: np.ndarray, tolerance: float = consts.ORTHONORMALITY_TOLERANCE) -> bool:
    """Check that row axes are unit and pairwise orthogonal within tolerance."""
    deviations = orthonormality_deviations(axes)
    return bool(np.all(deviations <= tolerance))
