"""
State handlers for pipeline execution.

Each handler implements logic for a specific pipeline state.
"""

from .base import StateHandler, next_state_after
from .event_analysis_handler import EventAnalysisHandler
from .reporting_handler import ReportingHandler

__all__ = [
    "StateHandler",
    "next_state_after",
    "EventAnalysisHandler",
    "ReportingHandler",
]
