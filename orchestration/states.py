"""
Pipeline states.

Explicit state enumeration for the pipeline state machine.
"""

from enum import Enum, auto


class PipelineState(Enum):
    """
    All possible states in the pipeline execution.

    States represent discrete phases of pipeline execution with
    clear entry/exit conditions and transitions.
    """

    # Initial state
    IDLE = auto()

    # Event loop: read, analyze, fill histograms
    ANALYZING = auto()

    # Write histograms, plots and statistics
    REPORTING = auto()

    # Terminal states
    COMPLETED = auto()
    FAILED = auto()

    def is_terminal(self) -> bool:
        """Check if this is a terminal state."""
        return self in (PipelineState.COMPLETED, PipelineState.FAILED)

    def __str__(self) -> str:
        """String representation of state."""
        return self.name


# Valid state transitions
VALID_TRANSITIONS = {
    PipelineState.IDLE: {
        PipelineState.ANALYZING,
        PipelineState.REPORTING,
        PipelineState.FAILED,
    },
    PipelineState.ANALYZING: {
        PipelineState.REPORTING,
        PipelineState.COMPLETED,
        PipelineState.FAILED,
    },
    PipelineState.REPORTING: {
        PipelineState.COMPLETED,
        PipelineState.FAILED,
    },
    PipelineState.COMPLETED: set(),  # Terminal
    PipelineState.FAILED: set(),     # Terminal
}


def is_valid_transition(from_state: PipelineState, to_state: PipelineState) -> bool:
    """
    Check if a state transition is valid.

    Args:
        from_state: Current state
        to_state: Target state

    Returns:
        True if transition is valid
    """
    return to_state in VALID_TRANSITIONS.get(from_state, set())
