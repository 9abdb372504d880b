"""
Tests for the state machine, the executor and the command line.

Event input is replaced by an in-memory reader; everything downstream
(analysis, histograms, reporting files) runs for real.
"""

import json
import math
import os

import pytest
import yaml
from unittest.mock import Mock, patch

import main
from domain import Event, Particle, PipelineConfig
from orchestration import PipelineContext, PipelineState, StateMachine
from orchestration.handlers import next_state_after
from pipeline.executor import PipelineExecutor


def three_jet_event(index):
    return Event(index=index, particles=tuple(
        Particle(10 * math.cos(phi), 10 * math.sin(phi), 0.0, 10.0, charge=1.0)
        for phi in (0.0, 2.1, 4.2)
    ) + (Particle(0.0, 0.0, 1.0, 1.0, charge=-1.0),))


class FakeReader:
    """In-memory stand-in for EventReader."""

    def __init__(self, input_config, batch_job_index=None, total_batch_jobs=None):
        self.events = [three_jet_event(i) for i in range(3)]
        self.rejected_events = 1

    def __len__(self):
        return len(self.events)

    def __iter__(self):
        return iter(self.events)


def config_dict(output_dir, **reporting):
    return {
        "tasks": {"do_analysis": True, "do_reporting": True},
        "input_task_config": {"input_files": ["events.root"], "show_progress_bar": False},
        "analysis_task_config": {"list_first_events": 0},
        "reporting_task_config": {
            "output_dir": str(output_dir),
            "plots_dir": os.path.join(str(output_dir), "..", "plots"),
            "write_root": False,
            "write_plots": False,
            **reporting,
        },
    }


class TestStateMachine:
    """Tests for state transitions."""

    def _config(self, **tasks):
        return PipelineConfig.from_dict({
            "tasks": tasks,
            "input_task_config": {"input_files": ["events.root"]},
            "reporting_task_config": {"output_dir": "/tmp/unused"},
        })

    def test_next_state_after(self):
        both = PipelineContext(config=self._config(do_analysis=True, do_reporting=True),
                               current_state=PipelineState.IDLE)
        assert next_state_after(both) is PipelineState.ANALYZING
        assert next_state_after(both.with_state(PipelineState.ANALYZING)) is PipelineState.REPORTING
        assert next_state_after(both.with_state(PipelineState.REPORTING)) is PipelineState.COMPLETED

        analysis_only = PipelineContext(config=self._config(do_analysis=True),
                                        current_state=PipelineState.ANALYZING)
        assert next_state_after(analysis_only) is PipelineState.COMPLETED

    def test_handler_exception_fails_pipeline(self):
        handler = Mock()
        handler.handle.side_effect = RuntimeError("boom")
        context = PipelineContext(config=self._config(do_analysis=True), current_state=PipelineState.IDLE)

        final = StateMachine({PipelineState.ANALYZING: handler}).run(context)

        assert final.current_state is PipelineState.FAILED
        assert final.error_message == "Error in ANALYZING: boom"
        assert final.error_details["state"] == "ANALYZING"

    def test_invalid_transition_fails_pipeline(self):
        handler = Mock()
        context = PipelineContext(config=self._config(do_analysis=True), current_state=PipelineState.IDLE)
        handler.handle.side_effect = lambda ctx: (ctx, PipelineState.IDLE)

        final = StateMachine({PipelineState.ANALYZING: handler}).run(context)

        assert final.has_error
        assert "Invalid state transition" in final.error_message

    def test_missing_handler_is_skipped(self):
        context = PipelineContext(config=self._config(do_analysis=True), current_state=PipelineState.IDLE)

        final = StateMachine({}).run(context)

        assert final.is_successful


class TestPipelineExecutor:
    """Tests for PipelineExecutor with an in-memory reader."""

    @pytest.fixture(autouse=True)
    def fake_reader(self):
        with patch("pipeline.executor.EventReader", FakeReader):
            yield

    def test_run_writes_outputs(self, tmp_path):
        config = PipelineConfig.from_dict(config_dict(tmp_path / "histograms"))

        context = PipelineExecutor(config).run()

        assert context.is_successful
        assert context.statistics.analyzed_events == 3
        assert context.statistics.rejected_events == 1
        assert context.histograms["thrust"].in_range == 3
        for name in ("histograms.json", "histograms.txt", "analysis_stats.json"):
            assert (tmp_path / "histograms" / name).exists()

        summary = context.get_summary()
        assert summary["analyzed_events"] == 3
        assert summary["output_files_count"] == 3

    def test_write_root_and_plots(self, tmp_path):
        config = PipelineConfig.from_dict(
            config_dict(tmp_path / "histograms", write_root=True, write_plots=True)
        )

        context = PipelineExecutor(config).run()

        assert context.is_successful
        assert (tmp_path / "histograms" / "event_shapes.root").exists()
        assert (tmp_path / "plots" / "00_overview.png").exists()

    def test_batch_state_and_merge(self, tmp_path):
        """Test that merged shards add up and are reported once."""
        run_dir = tmp_path / "run"
        config = PipelineConfig.from_dict(config_dict(run_dir / "histograms"))

        for batch_index in (1, 2):
            executor = PipelineExecutor(config)
            context = executor.run()
            written = executor.save_batch_state(str(run_dir), batch_index, context)
            assert len(written) == 2

        merged = PipelineExecutor(config).merge_outputs(str(run_dir))

        assert merged.is_successful
        assert merged.histograms["thrust"].in_range == 6
        assert merged.statistics.total_events == 8
        assert merged.statistics.rejected_events == 2

        with open(run_dir / "logs" / "aggregated_stats.json") as f:
            aggregated = json.load(f)
        assert aggregated["num_batches"] == 2
        assert aggregated["analyzed_events"] == 6

    def test_merge_without_shards_fails(self, tmp_path):
        config = PipelineConfig.from_dict(config_dict(tmp_path / "histograms"))
        with pytest.raises(FileNotFoundError, match="No batch_"):
            PipelineExecutor(config).merge_outputs(str(tmp_path))

    def test_generate_plots_from_output(self, tmp_path):
        config = PipelineConfig.from_dict(config_dict(tmp_path / "histograms"))
        executor = PipelineExecutor(config)
        executor.run()

        created = executor.generate_plots_from_output(str(tmp_path))

        assert (tmp_path / "plots" / "thrust.png").exists()
        assert len(created) == len(executor.services["pipeline"].histograms) + 1


class TestMain:
    """Tests for the command line entry point."""

    def _write_config(self, tmp_path, config):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(config))
        return str(path)

    def test_dry_run(self, tmp_path):
        config = config_dict("histograms")
        config["run_metadata"] = {"run_name": "test", "base_output_dir": str(tmp_path / "output")}

        assert main.main(["--config", self._write_config(tmp_path, config), "--dry-run"]) == 0
        assert len(os.listdir(tmp_path / "output")) == 1

    def test_invalid_configuration_returns_error(self, tmp_path):
        config = config_dict("histograms")
        config["analysis_task_config"]["jet_clustering"] = [{"measure": "cambridge"}]
        config["run_metadata"] = {"base_output_dir": str(tmp_path / "output")}

        assert main.main(["--config", self._write_config(tmp_path, config), "--dry-run"]) == 1

    def test_batch_job_defers_reporting(self, tmp_path):
        config = config_dict("histograms")
        run_dir = tmp_path / "run"

        with patch("pipeline.executor.EventReader", FakeReader):
            code = main.main([
                "--config", self._write_config(tmp_path, config),
                "--batch-job-index", "1", "--total-batch-jobs", "2",
                "--run-dir", str(run_dir),
            ])

        assert code == 0
        assert (run_dir / "histograms" / "batch_1_histograms.json").exists()
        assert (run_dir / "logs" / "batch_1_stats.json").exists()
        assert not (run_dir / "histograms" / "histograms.txt").exists()

    def test_merge_only_requires_run_dir(self):
        with pytest.raises(SystemExit):
            main.parse_args(["--merge-only"])
