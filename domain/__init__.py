"""
Domain models for the event-shape pipeline.

Pure data structures with validation, no business logic.
"""

from .errors import DegenerateInputError, ConfigurationError
from .events import Particle, Event, ParticleSelection
from .diagnostics import DiagnosticKind, NumericalDiagnostic
from .results import (
    AxisSet,
    SphericityResult,
    ThrustResult,
    JetCluster,
    ClusteringResult,
    EventAnalysis,
)
from .statistics import AnalysisStatistics
from .config import (
    PipelineConfig,
    TaskConfig,
    InputConfig,
    SphericityConfig,
    ThrustConfig,
    JetClusteringConfig,
    HistogramSpec,
    AnalysisConfig,
    ReportingConfig,
)

__all__ = [
    "DegenerateInputError",
    "ConfigurationError",
    "Particle",
    "Event",
    "ParticleSelection",
    "DiagnosticKind",
    "NumericalDiagnostic",
    "AxisSet",
    "SphericityResult",
    "ThrustResult",
    "JetCluster",
    "ClusteringResult",
    "EventAnalysis",
    "AnalysisStatistics",
    "PipelineConfig",
    "TaskConfig",
    "InputConfig",
    "SphericityConfig",
    "ThrustConfig",
    "JetClusteringConfig",
    "HistogramSpec",
    "AnalysisConfig",
    "ReportingConfig",
]
