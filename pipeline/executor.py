"""
PipelineExecutor - High-level pipeline orchestrator.

Wires together all services and executes the state machine.

Architecture (multi-job mode):
  Each batch job analyzes its share of the events and saves:
    - batch_N_histograms.json  -> histograms/
    - batch_N_stats.json       -> logs/
  The merge job (--merge-only) adds the histogram shards bin by bin,
  aggregates the statistics and runs the reporting step once.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional

from domain.config import PipelineConfig
from domain.errors import ConfigurationError
from domain.statistics import AnalysisStatistics
from orchestration import PipelineState, PipelineContext, StateMachine
from orchestration.handlers import EventAnalysisHandler, ReportingHandler
from services import consts
from services.histograms.histogram_set import HistogramSet
from services.histograms.plotter import HistogramPlotter
from services.histograms.writer import HistogramWriter
from services.parsing.event_reader import EventReader
from services.pipelines.event_analysis_pipeline import EventAnalysisPipeline, build_histogram_set


class PipelineExecutor:
    """
    High-level pipeline executor.

    Responsible for:
    1. Creating all services with dependency injection
    2. Building the state machine with handlers
    3. Running the pipeline
    4. Saving and merging batch outputs
    """

    def __init__(self, config: PipelineConfig):
        """
        Build services and handlers.

        Raises:
            ConfigurationError: If a service rejects its configuration
        """
        self.config = config
        self.logger = logging.getLogger(self.__class__.__name__)
        self.services = self._create_services()
        self.state_machine = StateMachine(self._create_handlers(self.services))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self) -> PipelineContext:
        """Execute the pipeline and return final context."""
        self.logger.info("Initializing pipeline execution")
        initial_context = PipelineContext(config=self.config, current_state=PipelineState.IDLE)
        final_context = self.state_machine.run(initial_context)
        self._log_results(final_context)
        return final_context

    def save_batch_state(self, run_dir: str, batch_index: int, context: PipelineContext) -> list[str]:
        """
        Save per-batch histogram state and statistics for the merge job.

        Saved to:
            <run_dir>/histograms/batch_<N>_histograms.json
            <run_dir>/logs/batch_<N>_stats.json

        Args:
            run_dir:     Run directory path
            batch_index: 1-based batch index
            context:     Final pipeline context after execution

        Returns:
            Paths of the written files
        """
        written = []
        if context.histograms is not None:
            writer = HistogramWriter(os.path.join(run_dir, "histograms"))
            written.append(writer.save_state(context.histograms, f"batch_{batch_index}_histograms.json"))

        stats = {"batch_index": batch_index, "summary": context.get_summary()}
        if context.statistics is not None:
            stats.update(context.statistics.to_dict())
        if context.custom_data.get("diagnostic_records"):
            stats["diagnostic_records"] = context.custom_data["diagnostic_records"]

        logs_dir = os.path.join(run_dir, "logs")
        os.makedirs(logs_dir, exist_ok=True)
        stats_path = os.path.join(logs_dir, f"batch_{batch_index}_stats.json")
        with open(stats_path, "w") as f:
            json.dump(stats, f, indent=2, default=str)
        written.append(stats_path)

        self.logger.info(f"Saved batch state to: {', '.join(written)}")
        return written

    def merge_outputs(self, run_dir: str) -> PipelineContext:
        """
        Merge outputs from all batch jobs:
          1. Add the batch histogram shards
          2. Aggregate stats from batch JSON files
          3. Run the reporting step on the merged set

        Args:
            run_dir: Run directory path

        Returns:
            Final context of the reporting step
        """
        self.logger.info(f"=== Merging outputs from: {run_dir} ===")

        if self.config.reporting_config is None:
            raise ConfigurationError("reporting_task_config is required to merge outputs")

        hist_dir = os.path.join(run_dir, "histograms")
        logs_dir = os.path.join(run_dir, "logs")

        # ---- 1. Histogram shards ----
        shard_files = sorted(Path(hist_dir).glob("batch_*_histograms.json"))
        if not shard_files:
            raise FileNotFoundError(f"No batch_*_histograms.json files found in {hist_dir}")

        self.logger.info(f"Merging {len(shard_files)} histogram shards")
        merged = self._merge_histogram_shards(shard_files)

        # ---- 2. Batch stats ----
        statistics = None
        batch_stats_files = sorted(Path(logs_dir).glob("batch_*_stats.json"))
        if batch_stats_files:
            self.logger.info(f"Aggregating stats from {len(batch_stats_files)} batch files")
            statistics = self._aggregate_batch_stats(batch_stats_files)
            agg_path = os.path.join(logs_dir, "aggregated_stats.json")
            with open(agg_path, "w") as f:
                json.dump(
                    {"num_batches": len(batch_stats_files), **statistics.to_dict()},
                    f, indent=2, default=str,
                )
            self.logger.info(f"Aggregated stats saved to: {agg_path}")

        # ---- 3. Reporting ----
        context = PipelineContext(
            config=self.config,
            current_state=PipelineState.REPORTING,
            histograms=merged,
            statistics=statistics,
        )
        final_context = StateMachine({PipelineState.REPORTING: self._reporting_handler()}).run(context)
        self._log_results(final_context)
        return final_context

    def generate_plots_from_output(self, run_dir: str) -> list[Path]:
        """
        Re-draw the plots from the saved histogram state of a run.

        Args:
            run_dir: Path to the run directory containing histograms/
        """
        rc = self.config.reporting_config
        state_filename = rc.state_filename if rc else "histograms.json"
        state_path = os.path.join(run_dir, "histograms", state_filename)
        self.logger.info(f"Generating plots from: {state_path}")

        histograms = HistogramWriter.load_state(state_path)
        plotter = HistogramPlotter(os.path.join(run_dir, "plots"), titles=self._titles())
        created_plots = plotter.create_all_plots(histograms.views())

        self.logger.info(f"Created {len(created_plots)} plots")
        return created_plots

    @staticmethod
    def _merge_histogram_shards(shard_files: list[Path]) -> HistogramSet:
        merged: Optional[HistogramSet] = None
        for shard_file in shard_files:
            shard = HistogramWriter.load_state(str(shard_file))
            if merged is None:
                merged = shard
            else:
                merged.merge(shard)
        return merged

    @staticmethod
    def _aggregate_batch_stats(stats_files: list[Path]) -> Optional[AnalysisStatistics]:
        """Combine per-batch statistics into one snapshot."""
        aggregated = None
        for sf in stats_files:
            with open(sf) as f:
                batch_stats = json.load(f)
            if "total_events" not in batch_stats:
                continue
            stats = AnalysisStatistics.from_dict(batch_stats)
            aggregated = stats if aggregated is None else aggregated.merged_with(stats)
        return aggregated

    # ------------------------------------------------------------------
    # Pipeline internals
    # ------------------------------------------------------------------

    def _titles(self) -> dict:
        measures = [c.name for c in self.config.analysis_config.jet_clusterings]
        return consts.histogram_titles(measures)

    def _create_services(self) -> dict:
        services = {}

        if self.config.tasks.do_analysis and self.config.input_config:
            histograms = build_histogram_set(self.config.analysis_config)
            services['pipeline'] = EventAnalysisPipeline(self.config.analysis_config, histograms)
            services['event_reader'] = EventReader(
                self.config.input_config,
                batch_job_index=self.config.batch_job_index,
                total_batch_jobs=self.config.total_batch_jobs,
            )

        if self.config.reporting_config:
            services['writer'] = HistogramWriter(self.config.reporting_config.output_dir)

        return services

    def _reporting_handler(self) -> ReportingHandler:
        return ReportingHandler(writer=self.services['writer'], titles=self._titles())

    def _create_handlers(self, services: dict) -> dict:
        handlers = {}

        if 'pipeline' in services:
            handlers[PipelineState.ANALYZING] = EventAnalysisHandler(
                event_reader=services['event_reader'],
                pipeline=services['pipeline'],
                show_progress=self.config.input_config.show_progress_bar,
            )
        if self.config.tasks.do_reporting and 'writer' in services:
            handlers[PipelineState.REPORTING] = self._reporting_handler()

        return handlers

    def _log_results(self, context: PipelineContext):
        self.logger.info("=" * 60)
        self.logger.info("Pipeline Execution Summary")
        self.logger.info("=" * 60)

        summary = context.get_summary()
        for key, value in summary.items():
            self.logger.info(f"{key:30s}: {value}")

        if context.statistics:
            self.logger.info("Analysis Statistics:")
            for key, value in context.statistics.to_dict().items():
                self.logger.info(f"{key:30s}: {value}")

        self.logger.info("=" * 60)
