"""
Event analysis pipeline.

Runs the event-shape analyzers and jet clusterings on one event at a time
and fills the observable histograms. A degenerate input only skips the
observable it affects; numerical diagnostics are logged and counted.
"""
import logging
from collections import Counter
from datetime import datetime
from typing import Callable, Optional

import numpy as np

from domain.config import AnalysisConfig
from domain.errors import ConfigurationError, DegenerateInputError
from domain.events import Event
from domain.results import EventAnalysis
from domain.statistics import AnalysisStatistics
from services import consts
from services.calculations.jet_clustering import JetClusterer
from services.calculations.momentum_tensor import MomentumTensorAnalyzer
from services.calculations.thrust import ThrustAnalyzer
from services.histograms.histogram_set import HistogramSet


class EventAnalysisPipeline:
    """
    Per-event orchestration of the analyzers.

    The pipeline owns its analyzers and run counters; the histogram set
    is passed in by the caller and filled in place.
    """

    def __init__(self, analysis_config: AnalysisConfig, histograms: HistogramSet):
        """
        Initialize pipeline.

        Args:
            analysis_config: Analyzer and clustering settings
            histograms: Histogram set holding every observable this
                configuration fills

        Raises:
            ConfigurationError: On an invalid analyzer setting or a missing histogram
        """
        self.config = analysis_config
        self.histograms = histograms
        self.logger = logging.getLogger(self.__class__.__name__)

        self.sphericity_analyzer = MomentumTensorAnalyzer(
            power=analysis_config.sphericity.power, name=consts.SPHERICITY
        )
        self.linearity_analyzer = MomentumTensorAnalyzer(
            power=analysis_config.linearity.power, name=consts.LINEARITY
        )
        thrust_config = analysis_config.thrust
        self.thrust_analyzer = ThrustAnalyzer(
            max_iterations=thrust_config.max_iterations,
            tolerance=thrust_config.tolerance,
            n_seed_particles=thrust_config.n_seed_particles,
            orthonormality_tolerance=thrust_config.orthonormality_tolerance,
        )
        self.clusterers = [
            (clustering_config, JetClusterer.from_config(clustering_config))
            for clustering_config in analysis_config.jet_clusterings
        ]

        missing = [name for name in self.observable_names() if name not in histograms]
        if missing:
            raise ConfigurationError(f"No histogram booked for: {missing}")

        self._analyzed = 0
        self._rejected = 0
        self._fills = Counter()
        self._skips = Counter()
        self._diagnostics = Counter()
        self.diagnostic_records: list[dict] = []
        self._start_time = datetime.now()
        self._end_time: Optional[datetime] = None

    @classmethod
    def with_default_histograms(cls, analysis_config: AnalysisConfig) -> 'EventAnalysisPipeline':
        """Build a pipeline with a fresh default histogram set, re-binned by the config."""
        return cls(analysis_config, build_histogram_set(analysis_config))

    def observable_names(self) -> list[str]:
        """Names of the histograms this configuration fills."""
        names = [consts.CHARGED_MULTIPLICITY]
        if self.config.sphericity.enabled:
            names += [consts.SPHERICITY, consts.APLANARITY, consts.COS_THETA_SPHERICITY]
        if self.config.linearity.enabled:
            names += [consts.LINEARITY, consts.COS_THETA_LINEARITY]
        if self.config.thrust.enabled:
            names += [consts.THRUST, consts.OBLATENESS, consts.COS_THETA_THRUST]
        for clustering_config, _ in self.clusterers:
            names += [consts.n_jets_name(clustering_config.name), consts.e_diff_name(clustering_config.name)]
        return names

    def process_event(self, event: Event) -> EventAnalysis:
        """
        Analyze one event and fill the histograms.

        Args:
            event: Event to analyze

        Returns:
            EventAnalysis with every result that could be computed
        """
        skipped = []

        multiplicity = len(event.select(self.config.charged_selection))
        self._fill(consts.CHARGED_MULTIPLICITY, multiplicity)

        sphericity = None
        if self.config.sphericity.enabled:
            sphericity = self._run(
                event, consts.SPHERICITY, skipped,
                lambda: self.sphericity_analyzer.analyze(event.select(self.config.sphericity.selection)),
            )
        if sphericity is not None:
            self._fill(consts.SPHERICITY, sphericity.sphericity)
            self._fill(consts.APLANARITY, sphericity.aplanarity)
            self._fill(consts.COS_THETA_SPHERICITY, sphericity.axis_set.cos_theta(1))

        linearity = None
        if self.config.linearity.enabled:
            linearity = self._run(
                event, consts.LINEARITY, skipped,
                lambda: self.linearity_analyzer.analyze(event.select(self.config.linearity.selection)),
            )
        if linearity is not None:
            self._fill(consts.LINEARITY, linearity.sphericity)
            self._fill(consts.COS_THETA_LINEARITY, linearity.axis_set.cos_theta(1))

        thrust = None
        if self.config.thrust.enabled:
            seed_axis = None
            if self.config.thrust.use_sphericity_seed and sphericity is not None:
                seed_axis = sphericity.event_axis(1)
            thrust = self._run(
                event, consts.THRUST, skipped,
                lambda: self.thrust_analyzer.analyze(
                    event.select(self.config.thrust.selection), seed_axis=seed_axis
                ),
            )
        if thrust is not None:
            self._fill(consts.THRUST, thrust.thrust)
            self._fill(consts.OBLATENESS, thrust.oblateness)
            self._fill(consts.COS_THETA_THRUST, thrust.cos_theta(1))

        clusterings = {}
        for clustering_config, clusterer in self.clusterers:
            name = clustering_config.name
            result = self._run(
                event, name, skipped,
                lambda: clusterer.cluster(event.select(clustering_config.selection)),
            )
            if result is None:
                continue
            clusterings[name] = result
            self._fill(consts.n_jets_name(name), result.size)
            for difference in result.energy_differences():
                self._fill(consts.e_diff_name(name), difference)

        analysis = EventAnalysis(
            index=event.index,
            charged_multiplicity=multiplicity,
            sphericity=sphericity,
            linearity=linearity,
            thrust=thrust,
            clusterings=clusterings,
            skipped=tuple(skipped),
        )
        self._report_diagnostics(analysis)
        if self._analyzed < self.config.list_first_events:
            self._list(analysis)
        self._analyzed += 1
        return analysis

    def record_rejected(self, count: int):
        """Count events the reader could not convert."""
        self._rejected += count

    def finish(self):
        self._end_time = datetime.now()

    def statistics(self) -> AnalysisStatistics:
        """Snapshot of the run counters."""
        return AnalysisStatistics(
            total_events=self._analyzed + self._rejected,
            analyzed_events=self._analyzed,
            rejected_events=self._rejected,
            fills=dict(self._fills),
            skips=dict(self._skips),
            diagnostics=dict(self._diagnostics),
            start_time=self._start_time,
            end_time=self._end_time,
        )

    def _run(self, event: Event, observable: str, skipped: list, compute: Callable):
        """Compute one observable; a degenerate input skips only this observable."""
        try:
            return compute()
        except (DegenerateInputError, np.linalg.LinAlgError) as e:
            self._skips[observable] += 1
            skipped.append(observable)
            self.logger.debug(f"Event {event.index}: skipping {observable}: {e}")
            return None

    def _fill(self, name: str, value: float):
        self.histograms.fill(name, value)
        self._fills[name] += 1

    def _report_diagnostics(self, analysis: EventAnalysis):
        for diagnostic in analysis.diagnostics:
            self._diagnostics[str(diagnostic.kind)] += 1
            self.logger.warning(f"Event {analysis.index}: {diagnostic}")
            if len(self.diagnostic_records) < self.config.max_recorded_diagnostics:
                self.diagnostic_records.append({"event": analysis.index, **diagnostic.to_dict()})

    def _list(self, analysis: EventAnalysis):
        results: list = [analysis.sphericity, analysis.linearity, analysis.thrust]
        results += list(analysis.clusterings.values())
        listing = "\n".join(result.describe() for result in results if result is not None)
        self.logger.info(
            f"Event {analysis.index}: charged multiplicity {analysis.charged_multiplicity}\n{listing}"
        )


def build_histogram_set(analysis_config: AnalysisConfig) -> HistogramSet:
    """
    Book the default histograms for a configuration.

    Raises:
        ConfigurationError: If an override names an unknown histogram
    """
    measures = [c.name for c in analysis_config.jet_clusterings]
    return HistogramSet.from_specs(
        consts.default_histogram_specs(measures),
        analysis_config.histogram_overrides,
    )
