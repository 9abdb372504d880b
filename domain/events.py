"""
Event-related domain models.

Immutable data structures representing generated particles and events.
"""

import math
from dataclasses import dataclass, field
from enum import Enum

import numpy as np
import vector

from .errors import ConfigurationError


NEUTRINO_IDS = frozenset({12, 14, 16})


class ParticleSelection(Enum):
    """Particle subsets an analyzer can run on."""

    FINAL = "final"
    VISIBLE = "visible"
    CHARGED = "charged"

    @classmethod
    def from_name(cls, name: str) -> 'ParticleSelection':
        """
        Look up a selection by its configuration name.

        Args:
            name: One of "final", "visible", "charged" (case-insensitive)

        Returns:
            Matching ParticleSelection

        Raises:
            ConfigurationError: If the name is unknown
        """
        try:
            return cls(str(name).lower())
        except ValueError:
            valid = ", ".join(s.value for s in cls)
            raise ConfigurationError(
                f"Unknown particle selection '{name}', expected one of: {valid}"
            ) from None


@dataclass(frozen=True)
class Particle:
    """A generated particle with its four-momentum."""

    px: float
    py: float
    pz: float
    e: float
    charge: float = 0.0
    is_final: bool = True
    pdg_id: int = 0

    def __post_init__(self):
        """Validate the particle."""
        for name in ("px", "py", "pz", "e"):
            value = getattr(self, name)
            if not math.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")

    @property
    def p_abs(self) -> float:
        """Absolute three-momentum."""
        return float(self.momentum.p)

    @property
    def p3(self) -> np.ndarray:
        """Three-momentum as a numpy vector."""
        return np.array([self.px, self.py, self.pz], dtype=float)

    @property
    def is_charged(self) -> bool:
        return self.charge != 0

    @property
    def is_visible(self) -> bool:
        """Final-state and not a neutrino (unknown ids count as visible)."""
        return self.is_final and abs(self.pdg_id) not in NEUTRINO_IDS

    @property
    def momentum(self):
        """Four-momentum as a vector object."""
        return vector.obj(px=self.px, py=self.py, pz=self.pz, E=self.e)

    def is_selected(self, selection: ParticleSelection) -> bool:
        """Check whether this particle belongs to the given subset."""
        if selection is ParticleSelection.FINAL:
            return self.is_final
        if selection is ParticleSelection.VISIBLE:
            return self.is_visible
        return self.is_final and self.is_charged


@dataclass(frozen=True)
class Event:
    """
    The ordered particle list of one generated collision.

    Events are consumed within a single pipeline pass and never retained.
    """

    index: int
    particles: tuple[Particle, ...] = field(default_factory=tuple)

    def __post_init__(self):
        """Validate the event."""
        if self.index < 0:
            raise ValueError(f"index must be non-negative, got {self.index}")

    def __len__(self) -> int:
        return len(self.particles)

    def select(self, selection: ParticleSelection) -> list[Particle]:
        """
        Extract the particle subset used by an analyzer.

        Args:
            selection: Which particles to keep

        Returns:
            List of selected particles in event order
        """
        return [p for p in self.particles if p.is_selected(selection)]

    @property
    def charged_multiplicity(self) -> int:
        """Number of final-state charged particles."""
        return sum(1 for p in self.particles if p.is_final and p.is_charged)

    @classmethod
    def from_momenta(
        cls,
        index: int,
        momenta,
        charges=None
    ) -> 'Event':
        """
        Build an event of final-state particles from (px, py, pz, e) rows.

        Args:
            index: Event index
            momenta: Iterable of (px, py, pz, e)
            charges: Optional iterable of charges, defaults to neutral

        Returns:
            Event with one final-state particle per row
        """
        rows = [tuple(float(c) for c in row) for row in momenta]
        if charges is None:
            charges = [0.0] * len(rows)
        particles = tuple(
            Particle(px, py, pz, e, charge=float(q))
            for (px, py, pz, e), q in zip(rows, charges)
        )
        return cls(index=index, particles=particles)
