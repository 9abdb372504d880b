"""
Configuration domain models.

Validated configuration objects for the pipeline. Every check runs at
construction time, so a bad configuration fails before the first event.
"""

import math
import os
from dataclasses import dataclass, field
from typing import Optional

from .errors import ConfigurationError
from .events import ParticleSelection


@dataclass(frozen=True)
class TaskConfig:
    """Configuration for which tasks to run."""

    do_analysis: bool = False
    do_reporting: bool = False

    def any_enabled(self) -> bool:
        """Check if any task is enabled."""
        return any([self.do_analysis, self.do_reporting])


@dataclass(frozen=True)
class InputConfig:
    """Configuration for reading generated events."""

    input_files: tuple[str, ...]
    tree_name: str = "events"
    schema: str = "flat"
    step_size: int = 10_000
    max_events: Optional[int] = None
    show_progress_bar: bool = True

    def __post_init__(self):
        """Validate input configuration."""
        if not self.input_files:
            raise ConfigurationError("input_files cannot be empty")
        if not self.tree_name:
            raise ConfigurationError("tree_name cannot be empty")
        if self.step_size <= 0:
            raise ConfigurationError(f"step_size must be positive, got {self.step_size}")
        if self.max_events is not None and self.max_events < 0:
            raise ConfigurationError(f"max_events must be non-negative, got {self.max_events}")


@dataclass(frozen=True)
class SphericityConfig:
    """Momentum tensor settings: power r = 2 for sphericity, r = 1 for linearity."""

    power: float = 2.0
    selection: ParticleSelection = ParticleSelection.VISIBLE
    enabled: bool = True

    def __post_init__(self):
        """Validate sphericity configuration."""
        if not math.isfinite(self.power) or self.power <= 0:
            raise ConfigurationError(f"power must be positive, got {self.power}")

    @classmethod
    def from_dict(cls, config_dict: dict, default_power: float) -> 'SphericityConfig':
        return cls(
            power=float(config_dict.get("power", default_power)),
            selection=ParticleSelection.from_name(config_dict.get("selection", "visible")),
            enabled=config_dict.get("enabled", True),
        )


@dataclass(frozen=True)
class ThrustConfig:
    """Thrust axis search settings."""

    selection: ParticleSelection = ParticleSelection.VISIBLE
    max_iterations: int = 100
    tolerance: float = 1e-12
    n_seed_particles: int = 4
    use_sphericity_seed: bool = True
    orthonormality_tolerance: float = 1e-8
    enabled: bool = True

    def __post_init__(self):
        """Validate thrust configuration."""
        if self.max_iterations <= 0:
            raise ConfigurationError(f"max_iterations must be positive, got {self.max_iterations}")
        if not self.tolerance >= 0:
            raise ConfigurationError(f"tolerance must be non-negative, got {self.tolerance}")
        if self.n_seed_particles <= 0:
            raise ConfigurationError(f"n_seed_particles must be positive, got {self.n_seed_particles}")
        if not self.orthonormality_tolerance > 0:
            raise ConfigurationError(
                f"orthonormality_tolerance must be positive, got {self.orthonormality_tolerance}"
            )

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'ThrustConfig':
        return cls(
            selection=ParticleSelection.from_name(config_dict.get("selection", "visible")),
            max_iterations=int(config_dict.get("max_iterations", 100)),
            tolerance=float(config_dict.get("tolerance", 1e-12)),
            n_seed_particles=int(config_dict.get("n_seed_particles", 4)),
            use_sphericity_seed=config_dict.get("use_sphericity_seed", True),
            orthonormality_tolerance=float(config_dict.get("orthonormality_tolerance", 1e-8)),
            enabled=config_dict.get("enabled", True),
        )


@dataclass(frozen=True)
class JetClusteringConfig:
    """
    One jet clustering variant.

    The join threshold is max(y_cut * E_vis^2, pt_scale^2).
    """

    measure: str
    y_cut: float = 0.01
    pt_scale: float = 0.0
    n_jet_min: int = 1
    n_jet_max: int = 0
    selection: ParticleSelection = ParticleSelection.VISIBLE

    def __post_init__(self):
        """Validate jet clustering configuration."""
        if not self.measure:
            raise ConfigurationError("measure cannot be empty")
        if not (math.isfinite(self.y_cut) and self.y_cut >= 0):
            raise ConfigurationError(f"y_cut must be non-negative, got {self.y_cut}")
        if not (math.isfinite(self.pt_scale) and self.pt_scale >= 0):
            raise ConfigurationError(f"pt_scale must be non-negative, got {self.pt_scale}")
        if self.n_jet_min < 1:
            raise ConfigurationError(f"n_jet_min must be at least 1, got {self.n_jet_min}")
        if self.n_jet_max < 0:
            raise ConfigurationError(f"n_jet_max must be non-negative, got {self.n_jet_max}")
        if 0 < self.n_jet_max < self.n_jet_min:
            raise ConfigurationError(
                f"n_jet_max ({self.n_jet_max}) must be 0 or at least n_jet_min ({self.n_jet_min})"
            )

    @property
    def name(self) -> str:
        """Lower-case measure name, used in histogram names."""
        return self.measure.lower()

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'JetClusteringConfig':
        return cls(
            measure=config_dict["measure"],
            y_cut=float(config_dict.get("y_cut", 0.01)),
            pt_scale=float(config_dict.get("pt_scale", 0.0)),
            n_jet_min=int(config_dict.get("n_jet_min", 1)),
            n_jet_max=int(config_dict.get("n_jet_max", 0)),
            selection=ParticleSelection.from_name(config_dict.get("selection", "visible")),
        )


def _default_clusterings() -> tuple[JetClusteringConfig, ...]:
    return (
        JetClusteringConfig(measure="lund"),
        JetClusteringConfig(measure="jade"),
        JetClusteringConfig(measure="durham"),
    )


@dataclass(frozen=True)
class HistogramSpec:
    """Binning of one observable histogram over [lo, hi)."""

    name: str
    n_bins: int
    lo: float
    hi: float

    def __post_init__(self):
        """Validate histogram binning."""
        if not self.name:
            raise ConfigurationError("histogram name cannot be empty")
        if int(self.n_bins) != self.n_bins or self.n_bins < 1:
            raise ConfigurationError(f"{self.name}: n_bins must be a positive integer, got {self.n_bins}")
        if not (math.isfinite(self.lo) and math.isfinite(self.hi)):
            raise ConfigurationError(f"{self.name}: range must be finite, got [{self.lo}, {self.hi})")
        if self.lo >= self.hi:
            raise ConfigurationError(f"{self.name}: lo ({self.lo}) must be below hi ({self.hi})")

    @property
    def bin_width(self) -> float:
        return (self.hi - self.lo) / self.n_bins


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for the per-event analysis."""

    sphericity: SphericityConfig = field(default_factory=SphericityConfig)
    linearity: SphericityConfig = field(default_factory=lambda: SphericityConfig(power=1.0))
    thrust: ThrustConfig = field(default_factory=ThrustConfig)
    jet_clusterings: tuple[JetClusteringConfig, ...] = field(default_factory=_default_clusterings)
    histogram_overrides: tuple[HistogramSpec, ...] = field(default_factory=tuple)
    charged_selection: ParticleSelection = ParticleSelection.CHARGED
    list_first_events: int = 3
    max_recorded_diagnostics: int = 100

    def __post_init__(self):
        """Validate analysis configuration."""
        names = [c.name for c in self.jet_clusterings]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigurationError(f"Duplicate jet clustering measures: {duplicates}")
        overrides = [h.name for h in self.histogram_overrides]
        if len(overrides) != len(set(overrides)):
            raise ConfigurationError("Histogram overrides must have unique names")
        if self.list_first_events < 0:
            raise ConfigurationError(
                f"list_first_events must be non-negative, got {self.list_first_events}"
            )
        if self.max_recorded_diagnostics < 0:
            raise ConfigurationError(
                f"max_recorded_diagnostics must be non-negative, got {self.max_recorded_diagnostics}"
            )

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'AnalysisConfig':
        """
        Create AnalysisConfig from a dictionary (e.g., loaded from YAML).

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Validated AnalysisConfig instance
        """
        clusterings_list = config_dict.get("jet_clustering")
        if clusterings_list is None:
            jet_clusterings = _default_clusterings()
        else:
            jet_clusterings = tuple(JetClusteringConfig.from_dict(c) for c in clusterings_list)

        histograms = tuple(
            HistogramSpec(
                name=name,
                n_bins=int(spec["n_bins"]),
                lo=float(spec["lo"]),
                hi=float(spec["hi"]),
            )
            for name, spec in (config_dict.get("histograms") or {}).items()
        )

        return cls(
            sphericity=SphericityConfig.from_dict(config_dict.get("sphericity", {}), default_power=2.0),
            linearity=SphericityConfig.from_dict(config_dict.get("linearity", {}), default_power=1.0),
            thrust=ThrustConfig.from_dict(config_dict.get("thrust", {})),
            jet_clusterings=jet_clusterings,
            histogram_overrides=histograms,
            charged_selection=ParticleSelection.from_name(config_dict.get("charged_selection", "charged")),
            list_first_events=int(config_dict.get("list_first_events", 3)),
            max_recorded_diagnostics=int(config_dict.get("max_recorded_diagnostics", 100)),
        )


@dataclass(frozen=True)
class ReportingConfig:
    """Configuration for histogram output at the end of a run."""

    output_dir: str
    plots_dir: Optional[str] = None
    root_filename: str = "event_shapes.root"
    table_filename: str = "histograms.txt"
    state_filename: str = "histograms.json"
    write_root: bool = True
    write_plots: bool = True
    write_table: bool = True

    def __post_init__(self):
        """Validate reporting configuration."""
        if not self.output_dir:
            raise ConfigurationError("output_dir cannot be empty")
        if self.write_root and not self.root_filename.endswith(".root"):
            raise ConfigurationError(f"root_filename must end with .root, got {self.root_filename}")

    @property
    def plots_path(self) -> str:
        """Directory for PNG plots, output_dir/plots unless set."""
        return self.plots_dir or os.path.join(self.output_dir, "plots")


@dataclass(frozen=True)
class PipelineConfig:
    """
    Complete pipeline configuration.

    Immutable configuration object validated at creation.
    """

    # Task configuration
    tasks: TaskConfig

    # Stage configurations
    input_config: Optional[InputConfig] = None
    analysis_config: AnalysisConfig = field(default_factory=AnalysisConfig)
    reporting_config: Optional[ReportingConfig] = None

    # Run metadata
    run_name: str = "pipeline_run"
    batch_job_index: Optional[int] = None
    total_batch_jobs: Optional[int] = None

    def __post_init__(self):
        """Validate pipeline configuration."""
        if not self.tasks.any_enabled():
            raise ConfigurationError("At least one task must be enabled")

        if self.tasks.do_analysis and not self.input_config:
            raise ConfigurationError("input_config required when do_analysis=True")

        if self.tasks.do_reporting and not self.reporting_config:
            raise ConfigurationError("reporting_config required when do_reporting=True")

        if self.batch_job_index is not None:
            if self.total_batch_jobs is None:
                raise ConfigurationError("total_batch_jobs required when batch_job_index is set")
            if not 1 <= self.batch_job_index <= self.total_batch_jobs:
                raise ConfigurationError(
                    f"batch_job_index ({self.batch_job_index}) must be in 1..{self.total_batch_jobs}"
                )

    @classmethod
    def from_dict(cls, config_dict: dict) -> 'PipelineConfig':
        """
        Create PipelineConfig from a dictionary (e.g., loaded from YAML).

        Args:
            config_dict: Dictionary with configuration values

        Returns:
            Validated PipelineConfig instance
        """
        tasks_dict = config_dict.get("tasks", {})
        tasks = TaskConfig(
            do_analysis=tasks_dict.get("do_analysis", False),
            do_reporting=tasks_dict.get("do_reporting", False),
        )

        input_config = None
        if tasks.do_analysis:
            input_dict = config_dict.get("input_task_config", {})
            input_files = input_dict.get("input_files", [])
            if isinstance(input_files, str):
                input_files = [input_files]
            input_config = InputConfig(
                input_files=tuple(input_files),
                tree_name=input_dict.get("tree_name", "events"),
                schema=input_dict.get("schema", "flat"),
                step_size=int(input_dict.get("step_size", 10_000)),
                max_events=input_dict.get("max_events"),
                show_progress_bar=input_dict.get("show_progress_bar", True),
            )

        analysis_config = AnalysisConfig.from_dict(config_dict.get("analysis_task_config") or {})

        reporting_config = None
        if tasks.do_reporting:
            reporting_dict = config_dict.get("reporting_task_config", {})
            reporting_config = ReportingConfig(
                output_dir=reporting_dict.get("output_dir", "./output/histograms"),
                plots_dir=reporting_dict.get("plots_dir"),
                root_filename=reporting_dict.get("root_filename", "event_shapes.root"),
                table_filename=reporting_dict.get("table_filename", "histograms.txt"),
                state_filename=reporting_dict.get("state_filename", "histograms.json"),
                write_root=reporting_dict.get("write_root", True),
                write_plots=reporting_dict.get("write_plots", True),
                write_table=reporting_dict.get("write_table", True),
            )

        run_metadata = config_dict.get("run_metadata", {})

        return cls(
            tasks=tasks,
            input_config=input_config,
            analysis_config=analysis_config,
            reporting_config=reporting_config,
            run_name=run_metadata.get("run_name", "pipeline_run"),
            batch_job_index=run_metadata.get("batch_job_index"),
            total_batch_jobs=run_metadata.get("total_batch_jobs"),
        )
