"""
EventReader service - Single responsibility: turn ROOT trees into Events.

Reads jagged per-particle branches with uproot in steps and converts each
entry into an immutable Event. No analysis, no histogramming.
"""

import logging
from typing import Iterator, Optional

import awkward as ak
import numpy as np
import uproot

from domain.config import InputConfig
from domain.events import Event, Particle
from services.parsing import schemas
from utils.batching import get_batch_range

logger = logging.getLogger(__name__)


def _column(array: ak.Array, field: str) -> tuple[np.ndarray, np.ndarray]:
    """Per-event lengths and flattened values of one jagged field."""
    counts = ak.to_numpy(ak.num(array[field], axis=1))
    values = ak.to_numpy(ak.flatten(array[field], axis=1))
    return counts, values


def _build_event(index: int, rows: dict[str, np.ndarray]) -> Event:
    n = len(rows["px"])
    charges = rows.get("charge")
    statuses = rows.get("status")
    pdg_ids = rows.get("pdg_id")
    particles = tuple(
        Particle(
            px=float(rows["px"][i]),
            py=float(rows["py"][i]),
            pz=float(rows["pz"][i]),
            e=float(rows["e"][i]),
            charge=float(charges[i]) if charges is not None else 0.0,
            is_final=bool(statuses[i] == schemas.FINAL_STATE_STATUS) if statuses is not None else True,
            pdg_id=int(pdg_ids[i]) if pdg_ids is not None else 0,
        )
        for i in range(n)
    )
    return Event(index=index, particles=particles)


def events_from_awkward(array: ak.Array, start_index: int = 0) -> tuple[list[Event], int]:
    """
    Convert a jagged record array into Events.

    Args:
        array: Record array with one jagged field per canonical particle
            field (px, py, pz, e and optionally charge, status, pdg_id)
        start_index: Event index of the first entry

    Returns:
        Tuple of (converted events, number of rejected entries). Entries
        whose fields disagree in length or that hold non-finite momenta are
        skipped with a warning; they still consume an event index.
    """
    present = [f for f in schemas.REQUIRED_FIELDS + schemas.OPTIONAL_FIELDS if f in array.fields]
    missing = [f for f in schemas.REQUIRED_FIELDS if f not in present]
    if missing:
        raise ValueError(f"Missing required fields: {missing}")

    columns = {field: _column(array, field) for field in present}
    offsets = {
        field: np.concatenate([[0], np.cumsum(counts)])
        for field, (counts, _) in columns.items()
    }
    n_particles = columns["px"][0]

    events = []
    rejected = 0
    for k in range(len(array)):
        index = start_index + k
        n = n_particles[k]
        if any(columns[field][0][k] != n for field in present):
            logger.warning(f"Skipping event {index}: particle fields have different lengths")
            rejected += 1
            continue

        rows = {
            field: values[offsets[field][k]:offsets[field][k] + n]
            for field, (_, values) in columns.items()
        }
        try:
            events.append(_build_event(index, rows))
        except ValueError as e:
            logger.warning(f"Skipping event {index}: {e}")
            rejected += 1

    return events, rejected


class EventReader:
    """
    Iterates the events of one or more ROOT files.

    The global entry range covers all files in order; max_events caps it
    and a batch job reads only its share.
    """

    def __init__(
        self,
        input_config: InputConfig,
        batch_job_index: Optional[int] = None,
        total_batch_jobs: Optional[int] = None
    ):
        """
        Initialize reader.

        Args:
            input_config: Input files, tree name, schema and step size
            batch_job_index: This job's index (1-based), None for a single job
            total_batch_jobs: Total number of batch jobs

        Raises:
            ConfigurationError: If the schema is unknown
        """
        self.input_config = input_config
        self.schema = schemas.get_schema(input_config.schema)
        self.batch_job_index = batch_job_index
        self.total_batch_jobs = total_batch_jobs
        self.rejected_events = 0
        self.logger = logging.getLogger(self.__class__.__name__)
        self._entries: Optional[list[int]] = None

    def count_entries(self) -> list[int]:
        """Number of entries of the tree in each input file."""
        if self._entries is None:
            entries = []
            for path in self.input_config.input_files:
                with uproot.open(path) as root_file:
                    entries.append(int(root_file[self.input_config.tree_name].num_entries))
            self._entries = entries
        return self._entries

    def entry_range(self) -> tuple[int, int]:
        """Global [start, stop) entry range this reader covers."""
        total = sum(self.count_entries())
        if self.input_config.max_events is not None:
            total = min(total, self.input_config.max_events)
        if self.batch_job_index is not None:
            return get_batch_range(total, self.batch_job_index, self.total_batch_jobs)
        return 0, total

    def __len__(self) -> int:
        start, stop = self.entry_range()
        return stop - start

    def __iter__(self) -> Iterator[Event]:
        start, stop = self.entry_range()
        self.logger.info(
            f"Reading events {start}..{stop} from {len(self.input_config.input_files)} file(s)"
        )

        offset = 0
        for path, n_entries in zip(self.input_config.input_files, self.count_entries()):
            file_start = max(start - offset, 0)
            file_stop = min(stop - offset, n_entries)
            if file_start < file_stop:
                yield from self._read_file(path, file_start, file_stop, offset)
            offset += n_entries

    def _read_file(self, path: str, entry_start: int, entry_stop: int, offset: int) -> Iterator[Event]:
        with uproot.open(path) as root_file:
            tree = root_file[self.input_config.tree_name]
            branch_fields = schemas.resolve_branches(self.schema, tree.keys())
            self.logger.debug(f"{path}: entries {entry_start}..{entry_stop}, branches {sorted(branch_fields)}")

            position = entry_start
            for arrays in tree.iterate(
                list(branch_fields),
                entry_start=entry_start,
                entry_stop=entry_stop,
                step_size=self.input_config.step_size,
                library="ak",
            ):
                records = ak.zip(
                    {field: arrays[branch] for branch, field in branch_fields.items()},
                    depth_limit=1,
                )
                events, rejected = events_from_awkward(records, start_index=offset + position)
                self.rejected_events += rejected
                position += len(records)
                yield from events
