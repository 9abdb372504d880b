"""
Tests for EventReader and the awkward-to-Event conversion.

ROOT access is mocked; the conversion runs on real awkward arrays.
"""

import awkward as ak
import pytest
from unittest.mock import MagicMock, patch

from domain import ConfigurationError, InputConfig
from services.parsing import schemas
from services.parsing.event_reader import EventReader, events_from_awkward


def flat_batch(n_events, with_optional=True):
    """n_events entries of two back-to-back particles each."""
    data = {
        "px": [[1.0, -1.0]] * n_events,
        "py": [[0.0, 0.0]] * n_events,
        "pz": [[0.0, 0.0]] * n_events,
        "e": [[1.0, 1.0]] * n_events,
    }
    if with_optional:
        data["charge"] = [[1, -1]] * n_events
        data["status"] = [[1, 1]] * n_events
        data["pdg_id"] = [[211, -211]] * n_events
    return ak.Array(data)


def mock_root_file(n_entries, branches=None):
    """uproot.open(...) context manager serving one tree."""
    branches = branches or list(schemas.SCHEMAS["flat"].values())
    tree = MagicMock()
    tree.num_entries = n_entries
    tree.keys.return_value = branches

    def iterate(expressions, entry_start, entry_stop, step_size, library):
        for start in range(entry_start, entry_stop, step_size):
            stop = min(start + step_size, entry_stop)
            yield flat_batch(stop - start)

    tree.iterate.side_effect = iterate

    root_file = MagicMock()
    root_file.__enter__.return_value = root_file
    root_file.__exit__.return_value = False
    root_file.__getitem__.return_value = tree
    return root_file, tree


class TestEventsFromAwkward:
    """Tests for events_from_awkward."""

    def test_converts_every_entry(self):
        events, rejected = events_from_awkward(flat_batch(3), start_index=10)

        assert rejected == 0
        assert [e.index for e in events] == [10, 11, 12]
        assert len(events[0]) == 2
        assert events[0].charged_multiplicity == 2
        assert events[0].particles[0].pdg_id == 211

    def test_status_sets_final_state(self):
        array = ak.Array({
            "px": [[1.0, 2.0]], "py": [[0.0, 0.0]], "pz": [[0.0, 0.0]], "e": [[1.0, 2.0]],
            "status": [[1, 2]],
        })
        events, _ = events_from_awkward(array)

        assert [p.is_final for p in events[0].particles] == [True, False]

    def test_optional_fields_default(self):
        events, _ = events_from_awkward(flat_batch(1, with_optional=False))
        particle = events[0].particles[0]

        assert particle.charge == 0.0
        assert particle.is_final
        assert particle.pdg_id == 0

    def test_mismatched_lengths_are_rejected(self, caplog):
        array = ak.Array({
            "px": [[1.0, 2.0], [1.0]],
            "py": [[0.0, 0.0], [0.0]],
            "pz": [[0.0], [0.0]],
            "e": [[1.0, 2.0], [1.0]],
        })
        events, rejected = events_from_awkward(array, start_index=5)

        assert rejected == 1
        assert [e.index for e in events] == [6]
        assert "Skipping event 5" in caplog.text

    def test_non_finite_momentum_is_rejected(self):
        array = ak.Array({
            "px": [[float("nan")], [1.0]],
            "py": [[0.0], [0.0]],
            "pz": [[0.0], [0.0]],
            "e": [[1.0], [1.0]],
        })
        events, rejected = events_from_awkward(array)

        assert rejected == 1
        assert [e.index for e in events] == [1]

    def test_empty_entries_become_empty_events(self):
        array = ak.Array({
            "px": [[], [1.0]], "py": [[], [0.0]], "pz": [[], [0.0]], "e": [[], [1.0]],
        })
        events, rejected = events_from_awkward(array)

        assert rejected == 0
        assert [len(e) for e in events] == [0, 1]

    def test_missing_required_field_fails(self):
        array = ak.Array({"px": [[1.0]], "py": [[0.0]], "pz": [[0.0]]})
        with pytest.raises(ValueError, match="Missing required fields"):
            events_from_awkward(array)


class TestSchemas:
    """Tests for branch-name schemas."""

    def test_unknown_schema_fails(self):
        with pytest.raises(ConfigurationError, match="Unknown input schema"):
            schemas.get_schema("lhe")

    def test_resolve_split_branch_names(self):
        tree_branches = ["Particle", "Particle/Particle.Px", "Particle/Particle.Py",
                         "Particle/Particle.Pz", "Particle/Particle.E", "Particle/Particle.PID"]
        mapping = schemas.resolve_branches(schemas.get_schema("delphes"), tree_branches)

        assert mapping == {
            "Particle.Px": "px", "Particle.Py": "py", "Particle.Pz": "pz",
            "Particle.E": "e", "Particle.PID": "pdg_id",
        }

    def test_missing_momentum_branch_fails(self):
        with pytest.raises(ValueError, match="Missing required branches"):
            schemas.resolve_branches(schemas.get_schema("flat"), ["px", "py", "pz"])


class TestEventReader:
    """Tests for EventReader with mocked ROOT files."""

    def _config(self, files=("a.root",), **kwargs):
        return InputConfig(input_files=tuple(files), step_size=kwargs.pop("step_size", 2), **kwargs)

    @patch('uproot.open')
    def test_reads_all_events(self, mock_open):
        root_file, tree = mock_root_file(5)
        mock_open.return_value = root_file

        reader = EventReader(self._config())
        events = list(reader)

        assert len(reader) == 5
        assert [e.index for e in events] == [0, 1, 2, 3, 4]
        assert reader.rejected_events == 0
        assert tree.iterate.call_args.kwargs["library"] == "ak"

    @patch('uproot.open')
    def test_max_events(self, mock_open):
        root_file, _ = mock_root_file(5)
        mock_open.return_value = root_file

        reader = EventReader(self._config(max_events=3))

        assert reader.entry_range() == (0, 3)
        assert [e.index for e in reader] == [0, 1, 2]

    @patch('uproot.open')
    def test_batch_range_spans_files(self, mock_open):
        """Test that a batch job reads only its share across files."""
        root_file, tree = mock_root_file(3)
        mock_open.return_value = root_file

        reader = EventReader(self._config(files=("a.root", "b.root")), batch_job_index=2, total_batch_jobs=2)
        events = list(reader)

        assert reader.entry_range() == (3, 6)
        assert [e.index for e in events] == [3, 4, 5]
        tree.iterate.assert_called_once()
        assert tree.iterate.call_args.kwargs["entry_start"] == 0
        assert tree.iterate.call_args.kwargs["entry_stop"] == 3

    @patch('uproot.open')
    def test_range_starting_inside_first_file(self, mock_open):
        root_file, _ = mock_root_file(4)
        mock_open.return_value = root_file

        reader = EventReader(self._config(files=("a.root", "b.root")), batch_job_index=1, total_batch_jobs=3)

        assert reader.entry_range() == (0, 2)
        assert [e.index for e in reader] == [0, 1]

    @patch('uproot.open')
    def test_missing_branch_fails(self, mock_open):
        root_file, _ = mock_root_file(2, branches=["px", "py", "e"])
        mock_open.return_value = root_file

        with pytest.raises(ValueError, match="Missing required branches"):
            list(EventReader(self._config()))

    def test_unknown_schema_fails(self):
        with pytest.raises(ConfigurationError, match="Unknown input schema"):
            EventReader(self._config(schema="hepmc"))
