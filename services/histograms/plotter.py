"""
Histogram plotter.

Draws each histogram view as a step plot, one PNG per histogram, plus an
overview grid of all of them.
"""

import logging
import math
from pathlib import Path
from typing import Iterable, List, Optional

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend for batch nodes
import matplotlib.pyplot as plt
import numpy as np

from services.histograms.rendering import HistogramView


class HistogramPlotter:
    """
    Renders histogram views to PNG files.
    """

    COLORS = {
        'primary': '#2980b9',
        'fill': '#aed6f1',
        'text_dark': '#2c3e50',
    }

    def __init__(self, output_dir: str, titles: Optional[dict] = None):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.titles = titles or {}
        self.logger = logging.getLogger(self.__class__.__name__)
        plt.style.use('seaborn-v0_8-whitegrid')

    def plot_histogram(self, view: HistogramView) -> Path:
        """Save one histogram as <name>.png."""
        fig, ax = plt.subplots(figsize=(8, 5))
        self._draw(ax, view)
        output_path = self.output_dir / f"{view.name}.png"
        fig.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
        plt.close(fig)
        self.logger.debug(f"Saved histogram plot to: {output_path}")
        return output_path

    def plot_overview(self, views: List[HistogramView], save_name: str = "00_overview.png") -> Optional[Path]:
        """All histograms on one page, three per row."""
        if not views:
            return None

        n_cols = 3
        n_rows = math.ceil(len(views) / n_cols)
        fig, axes = plt.subplots(n_rows, n_cols, figsize=(18, 4.5 * n_rows), squeeze=False)
        fig.suptitle('Event Shapes', fontsize=20, fontweight='bold',
                     color=self.COLORS['text_dark'], y=1.0)

        for ax, view in zip(axes.flat, views):
            self._draw(ax, view, compact=True)
        for ax in list(axes.flat)[len(views):]:
            ax.set_visible(False)

        fig.tight_layout()
        output_path = self.output_dir / save_name
        fig.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
        plt.close(fig)
        self.logger.info(f"Saved overview plot to: {output_path}")
        return output_path

    def create_all_plots(self, views: Iterable[HistogramView]) -> List[Path]:
        """
        Plot every histogram and the overview page.

        Returns:
            Paths of the written files
        """
        views = list(views)
        self.logger.info(f"Plotting {len(views)} histograms...")
        created = [self.plot_histogram(view) for view in views]
        overview = self.plot_overview(views)
        if overview is not None:
            created.append(overview)
        self.logger.info(f"Created {len(created)} plots in {self.output_dir}")
        return created

    def _draw(self, ax, view: HistogramView, compact: bool = False):
        edges = np.asarray(view.edges)
        counts = np.asarray(view.counts, dtype=float)

        if view.in_range == 0:
            self._empty_panel(ax, 'No entries in range')
        else:
            ax.stairs(counts, edges, fill=True, color=self.COLORS['fill'])
            ax.stairs(counts, edges, color=self.COLORS['primary'], linewidth=1.5)
            ax.set_xlim(edges[0], edges[-1])
            ax.set_ylabel('Events', fontsize=10 if compact else 11)

        ax.set_title(self.titles.get(view.name, view.name), fontsize=12 if compact else 13,
                     fontweight='bold', pad=8)
        stats_text = (
            f"entries {view.entries}\n"
            f"mean {view.mean:.4g}\n"
            f"rms {view.rms:.4g}"
        )
        if view.underflow or view.overflow:
            stats_text += f"\nunder/over {view.underflow}/{view.overflow}"
        ax.text(0.97, 0.95, stats_text, transform=ax.transAxes, ha='right', va='top',
                fontsize=8 if compact else 9, family='monospace',
                bbox=dict(boxstyle='round', facecolor='white', alpha=0.8))

    @staticmethod
    def _empty_panel(ax, message: str):
        """Render an empty panel with a placeholder message."""
        ax.text(0.5, 0.5, message, ha='center', va='center',
                transform=ax.transAxes, fontsize=13, color='#95a5a6',
                style='italic')
        ax.set_xticks([])
        ax.set_yticks([])
