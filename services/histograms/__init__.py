"""
Histogram accumulation, rendering and output.
"""

from .rendering import HistogramView, render_table, render_summary
from .accumulator import Histogram
from .histogram_set import HistogramSet

__all__ = [
    "HistogramView",
    "render_table",
    "render_summary",
    "Histogram",
    "HistogramSet",
]
