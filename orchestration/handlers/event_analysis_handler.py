"""
EventAnalysisHandler - Handles the analyzing state.

Streams events from the reader through the analysis pipeline.
"""

from tqdm import tqdm

from orchestration.context import PipelineContext
from orchestration.states import PipelineState
from .base import StateHandler
from services.parsing.event_reader import EventReader
from services.pipelines.event_analysis_pipeline import EventAnalysisPipeline


class EventAnalysisHandler(StateHandler):
    """
    Handler for ANALYZING state.

    Feeds every event of the reader to the pipeline, then stores the
    filled histograms and the run statistics in the context.
    """

    def __init__(self, event_reader: EventReader, pipeline: EventAnalysisPipeline, show_progress: bool = True):
        """
        Initialize handler.

        Args:
            event_reader: Source of events
            pipeline: Per-event analysis pipeline
            show_progress: Show a tqdm progress bar
        """
        super().__init__()
        self.reader = event_reader
        self.pipeline = pipeline
        self.show_progress = show_progress

    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        self._log_state_entry(context)

        n_events = len(self.reader)
        self.logger.info(f"Analyzing {n_events} events")

        with tqdm(total=n_events, desc="Analyzing events", unit="event",
                  disable=not self.show_progress) as progress:
            for event in self.reader:
                self.pipeline.process_event(event)
                progress.update(1)

        self.pipeline.record_rejected(self.reader.rejected_events)
        self.pipeline.finish()
        stats = self.pipeline.statistics()

        self.logger.info(
            f"Analyzed {stats.analyzed_events} events, rejected {stats.rejected_events}, "
            f"{stats.total_diagnostics} numerical diagnostics"
        )
        for observable, count in sorted(stats.skips.items()):
            self.logger.info(f"  {observable}: skipped in {count} events")

        context = (
            context.with_histograms(self.pipeline.histograms)
            .with_statistics(stats)
            .with_custom_data("diagnostic_records", list(self.pipeline.diagnostic_records))
        )
        next_state = self._determine_next_state(context)
        self._log_state_exit(context, next_state)
        return context, next_state
