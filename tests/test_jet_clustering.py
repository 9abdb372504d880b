"""
Tests for the jet clusterer and its distance measures.
"""

import math

import numpy as np
import pytest

from domain import ConfigurationError, DegenerateInputError, JetClusteringConfig, Particle
from services.calculations.distance_measures import (
    DurhamDistance,
    JadeDistance,
    LundDistance,
    get_distance_measure,
)
from services.calculations.jet_clustering import JetClusterer

MEASURES = ["lund", "jade", "durham"]


def massless(px, py, pz):
    return Particle(px, py, pz, math.sqrt(px * px + py * py + pz * pz))


def two_jet_event():
    """Two narrow pairs along +z and -z."""
    return [
        massless(0.5, 0.0, 10.0),
        massless(0.0, 0.3, -8.0),
        massless(-0.5, 0.0, 10.0),
        massless(0.0, -0.3, -8.0),
    ]


def random_event(seed, n=15):
    rng = np.random.default_rng(seed)
    return [massless(*row) for row in rng.normal(scale=5.0, size=(n, 3))]


def reference_cluster(measure, particles, threshold):
    """Recompute every distance at every step; same merge order as the clusterer."""
    clusters = [[p.px, p.py, p.pz, p.e] for p in particles]
    members = [[k] for k in range(len(particles))]
    while len(clusters) > 1:
        p4 = np.array(clusters)
        p3 = p4[:, :3]
        p_abs = np.linalg.norm(p3, axis=1)
        best = None
        for i in range(len(clusters) - 1):
            others = np.arange(i + 1, len(clusters))
            d = measure.distances(p4[:, 3], p3, p_abs, i, others)
            k = int(np.argmin(d))
            if best is None or d[k] < best[0]:
                best = (d[k], i, int(others[k]))
        d_min, i, j = best
        if d_min > threshold:
            break
        clusters[i] = [a + b for a, b in zip(clusters[i], clusters[j])]
        members[i] = members[i] + members[j]
        del clusters[j]
        del members[j]
    return sorted(zip((c[3] for c in clusters), (sorted(m) for m in members)), reverse=True)


class TestDistanceMeasures:
    """Tests for the pairwise distance formulas."""

    # E = 10 along z and E = 5 along x: cos(theta) = 0
    E = np.array([10.0, 5.0])
    P3 = np.array([[0.0, 0.0, 10.0], [5.0, 0.0, 0.0]])
    P_ABS = np.array([10.0, 5.0])

    def _distance(self, measure):
        return float(measure.distances(self.E, self.P3, self.P_ABS, 0, np.array([1]))[0])

    def test_durham(self):
        assert self._distance(DurhamDistance()) == pytest.approx(50.0)

    def test_jade(self):
        assert self._distance(JadeDistance()) == pytest.approx(100.0)

    def test_lund(self):
        assert self._distance(LundDistance()) == pytest.approx(5000.0 / 225.0)

    def test_collinear_particles_have_zero_distance(self):
        e = np.array([1.0, 2.0])
        p3 = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, 2.0]])
        p_abs = np.array([1.0, 2.0])
        for measure in (LundDistance(), JadeDistance(), DurhamDistance()):
            assert measure.distances(e, p3, p_abs, 0, np.array([1]))[0] == pytest.approx(0.0, abs=1e-12)

    def test_lookup_is_case_insensitive(self):
        assert isinstance(get_distance_measure("DURHAM"), DurhamDistance)
        assert isinstance(get_distance_measure("Lund"), LundDistance)

    def test_unknown_measure_fails(self):
        with pytest.raises(ConfigurationError, match="Unknown distance measure 'kt'"):
            get_distance_measure("kt")


class TestJetClusterer:
    """Tests for JetClusterer."""

    @pytest.mark.parametrize("measure", MEASURES)
    def test_two_jet_event(self, measure):
        """Test that two separated pairs end up as two jets."""
        result = JetClusterer(measure).cluster(two_jet_event())

        assert result.size == 2
        assert result.measure == measure
        assert sorted(sorted(jet.constituents) for jet in result.jets) == [[0, 2], [1, 3]]
        assert result.jets[0].pz == pytest.approx(20.0)
        assert result.smallest_distance > 0.01

    @pytest.mark.parametrize("measure", MEASURES)
    def test_energy_and_momentum_are_conserved(self, measure):
        particles = random_event(1)
        result = JetClusterer(measure, y_cut=0.05).cluster(particles)

        assert result.total_energy == pytest.approx(sum(p.e for p in particles))
        assert sum(jet.px for jet in result.jets) == pytest.approx(sum(p.px for p in particles))
        assert sum(jet.pz for jet in result.jets) == pytest.approx(sum(p.pz for p in particles))

    @pytest.mark.parametrize("measure", MEASURES)
    def test_jets_ordered_by_energy(self, measure):
        result = JetClusterer(measure, y_cut=0.02).cluster(random_event(2, n=25))

        energies = [jet.e for jet in result.jets]
        assert energies == sorted(energies, reverse=True)
        assert all(d >= 0 for d in result.energy_differences())

    @pytest.mark.parametrize("measure", MEASURES)
    def test_every_particle_assigned_once(self, measure):
        particles = random_event(3, n=20)
        result = JetClusterer(measure, y_cut=0.03).cluster(particles)

        assignment = result.jet_assignment()
        assert sorted(assignment) == list(range(len(particles)))
        assert sum(jet.multiplicity for jet in result.jets) == len(particles)

    @pytest.mark.parametrize("measure", MEASURES)
    def test_deterministic(self, measure):
        particles = random_event(4)
        first = JetClusterer(measure).cluster(particles)
        second = JetClusterer(measure).cluster(particles)
        assert first == second

    @pytest.mark.parametrize("measure", MEASURES)
    def test_reclustering_jets_is_stable(self, measure):
        """Test that clustering the jets again returns the same jets."""
        clusterer = JetClusterer(measure, y_cut=0.02)
        result = clusterer.cluster(random_event(5, n=20))

        jets_as_particles = [Particle(j.px, j.py, j.pz, j.e) for j in result.jets]
        again = clusterer.cluster(jets_as_particles)

        assert again.size == result.size
        assert [j.e for j in again.jets] == pytest.approx([j.e for j in result.jets])

    @pytest.mark.parametrize("measure", MEASURES)
    @pytest.mark.parametrize("seed", [10, 11, 12])
    def test_matches_reference_without_cache(self, measure, seed):
        """Test the cached distance matrix against full recomputation."""
        particles = random_event(seed, n=12)
        clusterer = JetClusterer(measure, y_cut=0.03)
        result = clusterer.cluster(particles)

        threshold = 0.03 * sum(p.e for p in particles) ** 2
        expected = reference_cluster(clusterer.measure, particles, threshold)

        assert [j.e for j in result.jets] == pytest.approx([e for e, _ in expected])
        assert [sorted(j.constituents) for j in result.jets] == [m for _, m in expected]

    def test_single_particle(self):
        result = JetClusterer("durham").cluster([massless(1.0, 0.0, 0.0)])

        assert result.size == 1
        assert result.smallest_distance is None
        assert result.merge_distances == ()

    def test_empty_input_fails(self):
        with pytest.raises(DegenerateInputError, match="cannot cluster an empty particle list"):
            JetClusterer("jade").cluster([])

    def test_n_jet_max_forces_merging(self):
        result = JetClusterer("durham", y_cut=0.0, n_jet_max=1).cluster(two_jet_event())

        assert result.size == 1
        assert result.jets[0].constituents == (0, 1, 2, 3)
        assert len(result.merge_distances) == 3

    def test_n_jet_min_stops_merging(self):
        result = JetClusterer("durham", y_cut=10.0, n_jet_min=3).cluster(two_jet_event())
        assert result.size == 3

    def test_pt_scale_sets_absolute_threshold(self):
        """Test that a large absolute scale merges everything."""
        result = JetClusterer("jade", y_cut=0.0, pt_scale=100.0).cluster(two_jet_event())
        assert result.size == 1

    def test_merge_distances_are_dimensionless(self):
        particles = two_jet_event()
        result = JetClusterer("durham").cluster(particles)

        assert len(result.merge_distances) == 2
        assert all(0 <= d <= 0.01 for d in result.merge_distances)

    def test_from_config(self):
        clusterer = JetClusterer.from_config(JetClusteringConfig(measure="Lund", y_cut=0.05, n_jet_max=4))

        assert clusterer.name == "lund"
        assert clusterer.y_cut == 0.05
        assert clusterer.n_jet_max == 4

    def test_invalid_settings(self):
        with pytest.raises(ConfigurationError, match="Unknown distance measure"):
            JetClusterer("anti-kt")
        with pytest.raises(ConfigurationError, match="y_cut must be non-negative"):
            JetClusterer("durham", y_cut=-1.0)
        with pytest.raises(ConfigurationError, match="n_jet_max must be 0 or at least n_jet_min"):
            JetClusterer("durham", n_jet_min=3, n_jet_max=2)
