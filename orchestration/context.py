"""
Pipeline context.

Immutable context object passed between state handlers.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Any
from datetime import datetime

from domain.config import PipelineConfig
from domain.statistics import AnalysisStatistics
from services.histograms.histogram_set import HistogramSet
from .states import PipelineState


@dataclass(frozen=True)
class PipelineContext:
    """
    Immutable context for pipeline execution.

    Each state handler returns a new context with updated fields. The
    histogram set itself is mutable and owned by the run; the context
    only carries the reference.
    """

    # Configuration
    config: PipelineConfig

    # Current state
    current_state: PipelineState

    # Execution metadata
    start_time: datetime = field(default_factory=datetime.now)

    # Data accumulated during pipeline
    histograms: Optional[HistogramSet] = None
    output_files: list[str] = field(default_factory=list)

    # Statistics
    statistics: Optional[AnalysisStatistics] = None

    # Error tracking
    error_message: Optional[str] = None
    error_details: Optional[dict] = None

    # Custom data (for extension)
    custom_data: dict[str, Any] = field(default_factory=dict)

    def with_state(self, new_state: PipelineState) -> 'PipelineContext':
        """Return new context with updated state."""
        return replace(self, current_state=new_state)

    def with_histograms(self, histograms: HistogramSet) -> 'PipelineContext':
        """
        Return new context with the filled histogram set.

        Args:
            histograms: Histogram set of this run

        Returns:
            New PipelineContext with histograms
        """
        return replace(self, histograms=histograms)

    def with_statistics(self, stats: AnalysisStatistics) -> 'PipelineContext':
        """Return new context with analysis statistics."""
        return replace(self, statistics=stats)

    def with_output_files(self, files: list[str]) -> 'PipelineContext':
        """Return new context with additional written files."""
        return replace(self, output_files=self.output_files + list(files))

    def with_error(self, message: str, details: Optional[dict] = None) -> 'PipelineContext':
        """
        Return new context with error information.

        Args:
            message: Error message
            details: Optional error details dict

        Returns:
            New PipelineContext in the FAILED state
        """
        return replace(
            self,
            current_state=PipelineState.FAILED,
            error_message=message,
            error_details=details or {}
        )

    def with_custom_data(self, key: str, value: Any) -> 'PipelineContext':
        """Return new context with one more custom data entry."""
        new_custom = self.custom_data.copy()
        new_custom[key] = value
        return replace(self, custom_data=new_custom)

    @property
    def elapsed_time(self) -> float:
        """Get elapsed time in seconds."""
        return (datetime.now() - self.start_time).total_seconds()

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self.current_state.is_terminal()

    @property
    def is_successful(self) -> bool:
        """Check if pipeline completed successfully."""
        return self.current_state == PipelineState.COMPLETED

    @property
    def has_error(self) -> bool:
        """Check if pipeline failed."""
        return self.current_state == PipelineState.FAILED

    def get_summary(self) -> dict:
        """
        Get summary of pipeline execution.

        Returns:
            Dict with execution summary
        """
        summary = {
            "state": str(self.current_state),
            "elapsed_time_sec": self.elapsed_time,
            "start_time": self.start_time.isoformat(),
            "histograms_count": len(self.histograms) if self.histograms is not None else 0,
            "output_files_count": len(self.output_files),
            "has_error": self.has_error,
            "error_message": self.error_message,
            "is_successful": self.is_successful,
        }
        if self.statistics is not None:
            summary["analyzed_events"] = self.statistics.analyzed_events
            summary["rejected_events"] = self.statistics.rejected_events
            summary["diagnostics"] = self.statistics.total_diagnostics
        return summary
