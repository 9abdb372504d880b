"""
Tests for the per-event analysis pipeline.
"""

import logging
import math

import numpy as np
import pytest
from unittest.mock import Mock

from domain import (
    AnalysisConfig,
    AxisSet,
    ConfigurationError,
    DiagnosticKind,
    Event,
    HistogramSpec,
    JetClusteringConfig,
    NumericalDiagnostic,
    Particle,
    SphericityResult,
)
from services import consts
from services.histograms.histogram_set import HistogramSet
from services.pipelines.event_analysis_pipeline import EventAnalysisPipeline, build_histogram_set


def two_jet_event(index=0):
    return Event(index=index, particles=(
        Particle(0.5, 0.0, 10.0, math.sqrt(100.25), charge=1.0, pdg_id=211),
        Particle(0.0, 0.3, -8.0, math.sqrt(64.09), charge=-1.0, pdg_id=-211),
        Particle(-0.5, 0.0, 10.0, math.sqrt(100.25), pdg_id=22),
        Particle(0.0, -0.3, -8.0, math.sqrt(64.09), charge=1.0, pdg_id=321),
        Particle(0.0, 1.0, 0.0, 1.0, pdg_id=12),
    ))


def single_particle_event(index=0):
    return Event(index=index, particles=(Particle(0.0, 0.0, 5.0, 5.0, charge=1.0),))


@pytest.fixture
def pipeline():
    return EventAnalysisPipeline.with_default_histograms(AnalysisConfig(list_first_events=0))


class TestEventAnalysisPipeline:
    """Tests for EventAnalysisPipeline."""

    def test_process_event_fills_every_observable(self, pipeline):
        """Test that a regular event fills each booked histogram."""
        analysis = pipeline.process_event(two_jet_event())

        assert analysis.skipped == ()
        assert analysis.charged_multiplicity == 3
        assert analysis.thrust.thrust == pytest.approx(1.0, abs=0.01)
        assert set(analysis.clusterings) == {"lund", "jade", "durham"}
        assert all(result.size == 2 for result in analysis.clusterings.values())

        histograms = pipeline.histograms
        assert histograms[consts.CHARGED_MULTIPLICITY].mean == pytest.approx(3.0)
        assert histograms[consts.SPHERICITY].in_range == 1
        assert histograms[consts.THRUST].in_range == 1
        assert histograms[consts.n_jets_name("durham")].mean == pytest.approx(2.0)
        assert histograms[consts.e_diff_name("durham")].entries == 1

    def test_neutrinos_are_not_clustered(self, pipeline):
        analysis = pipeline.process_event(two_jet_event())
        clustered = sum(jet.multiplicity for jet in analysis.clusterings["jade"].jets)
        assert clustered == 4

    def test_degenerate_event_skips_only_affected_observables(self, pipeline):
        """Test that a one-particle event still gets multiplicity and jets."""
        analysis = pipeline.process_event(single_particle_event())

        assert analysis.skipped == ("sphericity", "linearity", "thrust")
        assert analysis.sphericity is None
        assert analysis.thrust is None
        assert analysis.clusterings["durham"].size == 1

        histograms = pipeline.histograms
        assert histograms[consts.CHARGED_MULTIPLICITY].entries == 1
        assert histograms[consts.SPHERICITY].entries == 0
        assert histograms[consts.n_jets_name("lund")].entries == 1
        assert histograms[consts.e_diff_name("lund")].entries == 0

    def test_empty_event_skips_everything_but_multiplicity(self, pipeline):
        analysis = pipeline.process_event(Event(index=3))

        assert analysis.skipped == ("sphericity", "linearity", "thrust", "lund", "jade", "durham")
        assert pipeline.histograms[consts.CHARGED_MULTIPLICITY].mean == pytest.approx(0.0)

        stats = pipeline.statistics()
        assert stats.skips["durham"] == 1
        assert stats.fills == {consts.CHARGED_MULTIPLICITY: 1}

    def test_linear_algebra_failure_skips_observable(self, pipeline):
        pipeline.thrust_analyzer.analyze = Mock(side_effect=np.linalg.LinAlgError("no convergence"))

        analysis = pipeline.process_event(two_jet_event())

        assert analysis.skipped == ("thrust",)
        assert analysis.sphericity is not None
        assert pipeline.histograms[consts.THRUST].entries == 0

    def test_sphericity_axis_seeds_thrust(self, pipeline):
        pipeline.thrust_analyzer.analyze = Mock(wraps=pipeline.thrust_analyzer.analyze)

        analysis = pipeline.process_event(two_jet_event())

        seed_axis = pipeline.thrust_analyzer.analyze.call_args.kwargs["seed_axis"]
        np.testing.assert_allclose(seed_axis, analysis.sphericity.event_axis(1))

    def test_diagnostics_are_logged_and_counted(self, pipeline, caplog):
        """Test that an inconsistent result is kept, logged and counted."""
        diagnostic = NumericalDiagnostic(
            kind=DiagnosticKind.EIGENVALUE_SUM,
            analyzer="sphericity",
            message="eigenvalues sum to 1.1, expected 1",
            values=(0.6, 0.3, 0.2),
        )
        pipeline.sphericity_analyzer.analyze = Mock(return_value=SphericityResult(
            power=2.0,
            axis_set=AxisSet.from_arrays(np.array([0.6, 0.3, 0.2]), np.eye(3)),
            n_particles=4,
            diagnostics=(diagnostic,),
        ))

        with caplog.at_level(logging.WARNING):
            pipeline.process_event(two_jet_event(index=7))
            pipeline.process_event(two_jet_event(index=8))

        assert "Event 7" in caplog.text
        assert "eigenvalue_sum" in caplog.text
        assert pipeline.histograms[consts.SPHERICITY].mean == pytest.approx(0.75)
        assert pipeline.statistics().diagnostics == {"eigenvalue_sum": 2}
        assert [r["event"] for r in pipeline.diagnostic_records] == [7, 8]

    def test_diagnostic_records_are_capped(self):
        pipeline = EventAnalysisPipeline.with_default_histograms(
            AnalysisConfig(list_first_events=0, max_recorded_diagnostics=1)
        )
        diagnostic = NumericalDiagnostic(DiagnosticKind.EIGENVALUE_ORDER, "sphericity", "out of order")
        pipeline.sphericity_analyzer.analyze = Mock(return_value=SphericityResult(
            power=2.0,
            axis_set=AxisSet.from_arrays(np.array([0.5, 0.3, 0.2]), np.eye(3)),
            n_particles=4,
            diagnostics=(diagnostic,),
        ))

        for i in range(3):
            pipeline.process_event(two_jet_event(index=i))

        assert len(pipeline.diagnostic_records) == 1
        assert pipeline.statistics().diagnostics == {"eigenvalue_order": 3}

    def test_first_events_are_listed(self, caplog):
        pipeline = EventAnalysisPipeline.with_default_histograms(AnalysisConfig(list_first_events=1))

        with caplog.at_level(logging.INFO):
            pipeline.process_event(two_jet_event(index=0))
            pipeline.process_event(two_jet_event(index=1))

        assert caplog.text.count("Sphericity Listing") == 2  # sphericity and linearity
        assert caplog.text.count("Thrust Listing") == 1
        assert "Cluster Jet Listing (durham)" in caplog.text

    def test_statistics(self, pipeline):
        pipeline.process_event(two_jet_event(index=0))
        pipeline.process_event(single_particle_event(index=1))
        pipeline.record_rejected(2)
        pipeline.finish()

        stats = pipeline.statistics()

        assert stats.total_events == 4
        assert stats.analyzed_events == 2
        assert stats.rejected_events == 2
        assert stats.fills[consts.THRUST] == 1
        assert stats.skips == {"sphericity": 1, "linearity": 1, "thrust": 1}
        assert stats.end_time is not None

    def test_disabled_analyzer_needs_no_histogram(self):
        config = AnalysisConfig.from_dict({
            "thrust": {"enabled": False},
            "jet_clustering": [{"measure": "durham"}],
        })
        pipeline = EventAnalysisPipeline.with_default_histograms(config)

        analysis = pipeline.process_event(two_jet_event())

        assert analysis.thrust is None
        assert "thrust" not in analysis.skipped
        assert consts.n_jets_name("lund") not in pipeline.observable_names()

    def test_missing_histogram_fails(self):
        histograms = HistogramSet([HistogramSpec(consts.CHARGED_MULTIPLICITY, 10, -0.5, 9.5)])
        with pytest.raises(ConfigurationError, match="No histogram booked for"):
            EventAnalysisPipeline(AnalysisConfig(), histograms)

    def test_build_histogram_set_applies_overrides(self):
        config = AnalysisConfig(
            jet_clusterings=(JetClusteringConfig(measure="jade"),),
            histogram_overrides=(HistogramSpec("n_jets_jade", 10, -0.5, 9.5),),
        )
        histograms = build_histogram_set(config)

        assert histograms["n_jets_jade"].n_bins == 10
        assert "n_jets_durham" not in histograms


def back_to_back_event(index=0):
    return Event(index=index, particles=(
        Particle(0.0, 0.0, 50.0, 50.0, charge=1.0),
        Particle(0.0, 0.0, -50.0, 50.0, charge=-1.0),
    ))


def mercedes_event(index=0):
    return Event(index=index, particles=tuple(
        Particle(math.cos(phi), math.sin(phi), 0.0, 1.0, charge=1.0)
        for phi in (math.pi / 2, math.pi / 2 + 2 * math.pi / 3, math.pi / 2 + 4 * math.pi / 3)
    ))


class TestEndToEndEvents:
    """Tests for complete events run through process_event."""

    def test_back_to_back_event(self, pipeline):
        """Test a pencil-like event through every analyzer."""
        analysis = pipeline.process_event(back_to_back_event())

        assert analysis.skipped == ()
        assert analysis.sphericity.sphericity == pytest.approx(0.0, abs=1e-12)
        assert analysis.thrust.thrust == pytest.approx(1.0)
        for measure, result in analysis.clusterings.items():
            assert result.total_energy == pytest.approx(100.0), measure
            assert sum(jet.multiplicity for jet in result.jets) == 2

    @pytest.mark.parametrize("measure, y_pair", [("lund", 0.25), ("jade", 1.0), ("durham", 1.0)])
    def test_jet_count_follows_y_cut(self, measure, y_pair):
        """Test that the pair merges once y_cut passes its scaled distance."""
        n_jets = []
        for y_cut in (0.5 * y_pair, 2.0 * y_pair):
            config = AnalysisConfig(
                list_first_events=0,
                jet_clusterings=(JetClusteringConfig(measure=measure, y_cut=y_cut),),
            )
            pipeline = EventAnalysisPipeline.with_default_histograms(config)

            result = pipeline.process_event(back_to_back_event()).clusterings[measure]

            n_jets.append(result.size)
            assert result.total_energy == pytest.approx(100.0)
            assert pipeline.histograms[consts.n_jets_name(measure)].mean == pytest.approx(result.size)

        assert n_jets == [2, 1]

    def test_mercedes_event(self, pipeline):
        """Test the symmetric three-prong event through the pipeline."""
        analysis = pipeline.process_event(mercedes_event())

        assert analysis.sphericity.sphericity == pytest.approx(0.75)
        assert analysis.thrust.thrust == pytest.approx(2.0 / 3.0)
        assert pipeline.histograms[consts.THRUST].mean == pytest.approx(2.0 / 3.0)
