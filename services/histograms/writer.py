"""
Histogram output.

Writes histogram views to a ROOT file (TH1D via uproot), the full
accumulator state to JSON for batch merging, and the text table.
"""
import json
import logging
import os
from typing import Iterable

import numpy as np
import uproot
from uproot.writing.identify import to_TAxis, to_TH1x

from services.histograms.histogram_set import HistogramSet
from services.histograms.rendering import HistogramView, render_summary, render_table


def to_th1d(view: HistogramView, title: str = ""):
    """
    Convert a view into an uproot-writable TH1D.

    Underflow and overflow go to the flow bins; the stored sums reproduce
    the in-range mean and RMS.
    """
    data = np.concatenate([[view.underflow], view.counts, [view.overflow]]).astype(np.float64)
    n = float(view.in_range)
    sum_x = view.mean * n
    sum_x2 = (view.rms ** 2 + view.mean ** 2) * n
    x_axis = to_TAxis(
        fName="xaxis",
        fTitle="",
        fNbins=view.n_bins,
        fXmin=view.lo,
        fXmax=view.hi,
    )
    return to_TH1x(
        fName=view.name,
        fTitle=title or view.name,
        data=data,
        fEntries=float(view.entries),
        fTsumw=n,
        fTsumw2=n,
        fTsumwx=sum_x,
        fTsumwx2=sum_x2,
        fSumw2=data.copy(),
        fXaxis=x_axis,
    )


class HistogramWriter:
    """Writes a histogram set to disk in several formats."""

    def __init__(self, output_dir: str):
        self.output_dir = output_dir
        self.logger = logging.getLogger(self.__class__.__name__)

    def _path(self, filename: str) -> str:
        os.makedirs(self.output_dir, exist_ok=True)
        return os.path.join(self.output_dir, filename)

    def write_root(self, views: Iterable[HistogramView], filename: str, titles: dict = None) -> str:
        """
        Write views as TH1D objects into a new ROOT file.

        Returns:
            Path of the written file
        """
        titles = titles or {}
        path = self._path(filename)
        count = 0
        with uproot.recreate(path) as root_file:
            for view in views:
                root_file[view.name] = to_th1d(view, titles.get(view.name, ""))
                count += 1
        self.logger.info(f"Wrote {count} histograms to {path}")
        return path

    def write_table(self, views: Iterable[HistogramView], filename: str) -> str:
        """Write the summary followed by one table per histogram."""
        views = list(views)
        path = self._path(filename)
        with open(path, "w") as f:
            f.write(render_summary(views))
            f.write("\n\n")
            f.write("\n\n".join(render_table(view) for view in views))
            f.write("\n")
        self.logger.info(f"Wrote histogram table to {path}")
        return path

    def save_state(self, histograms: HistogramSet, filename: str) -> str:
        """Save the full accumulator state so shards can be merged later."""
        path = self._path(filename)
        with open(path, "w") as f:
            json.dump(histograms.to_dict(), f, indent=2)
        self.logger.info(f"Saved histogram state to {path}")
        return path

    @staticmethod
    def load_state(path: str) -> HistogramSet:
        with open(path) as f:
            return HistogramSet.from_dict(json.load(f))
