"""
Numerical diagnostics.

Structured records of postconditions an analyzer found violated. They travel
with the (possibly inaccurate) result instead of aborting the run.
"""

from dataclasses import dataclass, field
from enum import Enum


class DiagnosticKind(Enum):
    """Kinds of numerical inconsistency an analyzer can report."""

    EIGENVALUE_ORDER = "eigenvalue_order"
    EIGENVALUE_SUM = "eigenvalue_sum"
    AXES_NOT_ORTHONORMAL = "axes_not_orthonormal"
    THRUST_NOT_CONVERGED = "thrust_not_converged"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NumericalDiagnostic:
    """A single violated numerical postcondition."""

    kind: DiagnosticKind
    analyzer: str
    message: str
    values: tuple[float, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": str(self.kind),
            "analyzer": self.analyzer,
            "message": self.message,
            "values": list(self.values),
        }

    def __str__(self) -> str:
        values = "  ".join(f"{v:.10g}" for v in self.values)
        return f"[{self.analyzer}] {self.kind}: {self.message} ({values})"
