"""
Base state handler.

Abstract base class for all state handlers.
"""

from abc import ABC, abstractmethod
import logging

from orchestration.context import PipelineContext
from orchestration.states import PipelineState


def next_state_after(context: PipelineContext) -> PipelineState:
    """
    Next state according to the enabled tasks.

    Task order is analysis, then reporting.
    """
    tasks = context.config.tasks
    current = context.current_state

    if current == PipelineState.IDLE:
        if tasks.do_analysis:
            return PipelineState.ANALYZING
        if tasks.do_reporting:
            return PipelineState.REPORTING

    elif current == PipelineState.ANALYZING:
        if tasks.do_reporting:
            return PipelineState.REPORTING

    return PipelineState.COMPLETED


class StateHandler(ABC):
    """
    Base class for state handlers.

    Each state handler implements the logic for transitioning
    from one state to the next.
    """

    def __init__(self):
        """Initialize state handler."""
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def handle(self, context: PipelineContext) -> tuple[PipelineContext, PipelineState]:
        """
        Handle the current state and determine next state.

        Args:
            context: Current pipeline context

        Returns:
            Tuple of (updated_context, next_state)

        Raises:
            Exception: If state handling fails
        """

    def _determine_next_state(self, context: PipelineContext) -> PipelineState:
        return next_state_after(context)

    def _log_state_entry(self, context: PipelineContext):
        """Log entry to state."""
        self.logger.info(f"Entering state: {context.current_state}")

    def _log_state_exit(self, context: PipelineContext, next_state: PipelineState):
        """Log exit from state."""
        self.logger.info(f"Exiting state: {context.current_state} -> {next_state}")
