"""
ReportingHandler - Handles the reporting state.

Writes the filled histograms and run statistics to disk.
"""

import json
import os
from typing import Optional

from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from .base import StateHandler
from services.histograms.plotter import HistogramPlotter
from services.histograms.rendering import render_summary
from services.histograms.writer import HistogramWriter

STATS_FILENAME = "analysis_stats.json"


class ReportingHandler(StateHandler):
    """
    Handler for REPORTING state.

    Writes the text table, the ROOT file, the JSON accumulator state,
    the statistics and the plots, as enabled in the reporting config.
    """

    def __init__(self, writer: HistogramWriter, titles: Optional[dict] = None):
        """
        Initialize handler.

        Args:
            writer: Histogram writer for the output directory
            titles: Display titles keyed by histogram name
        """
        super().__init__()
        self.writer = writer
        self.titles = titles or {}

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)

        rc = context.config.reporting_config
        if rc is None:
            raise RuntimeError("reporting_config is required in REPORTING state")
        if context.histograms is None:
            raise RuntimeError("No histograms to report")

        views = context.histograms.views()
        self.logger.info("Histogram summary:\n" + render_summary(views))

        written = [self.writer.save_state(context.histograms, rc.state_filename)]
        if rc.write_table:
            written.append(self.writer.write_table(views, rc.table_filename))
        if rc.write_root:
            written.append(self.writer.write_root(views, rc.root_filename, self.titles))
        if context.statistics is not None:
            written.append(self._write_statistics(context, rc.output_dir))
        if rc.write_plots:
            plotter = HistogramPlotter(rc.plots_path, titles=self.titles)
            written.extend(str(p) for p in plotter.create_all_plots(views))

        self.logger.info(f"Reporting wrote {len(written)} files")
        context = context.with_output_files(written)
        next_state = self._determine_next_state(context)
        self._log_state_exit(context, next_state)
        return context, next_state

    def _write_statistics(self, context: PipelineContext, output_dir: str) -> str:
        stats = context.statistics.to_dict()
        records = context.custom_data.get("diagnostic_records")
        if records:
            stats["diagnostic_records"] = records

        os.makedirs(output_dir, exist_ok=True)
        stats_path = os.path.join(output_dir, STATS_FILENAME)
        with open(stats_path, "w") as f:
            json.dump(stats, f, indent=2, default=str)
        self.logger.info(f"Saved analysis stats to: {stats_path}")
        return stats_path
