"""
Observable names and default histogram binning.
"""
from domain.config import HistogramSpec

CHARGED_MULTIPLICITY = "charged_multiplicity"
SPHERICITY = "sphericity"
APLANARITY = "aplanarity"
LINEARITY = "linearity"
THRUST = "thrust"
OBLATENESS = "oblateness"
COS_THETA_SPHERICITY = "cos_theta_sphericity"
COS_THETA_LINEARITY = "cos_theta_linearity"
COS_THETA_THRUST = "cos_theta_thrust"

# (name, n_bins, lo, hi)
EVENT_SHAPE_BINNING = [
    (CHARGED_MULTIPLICITY, 100, -0.5, 99.5),
    (SPHERICITY, 100, 0.0, 1.0),
    (APLANARITY, 100, 0.0, 0.5),
    (LINEARITY, 100, 0.0, 1.0),
    (THRUST, 100, 0.5, 1.0),
    (OBLATENESS, 100, 0.0, 1.0),
    (COS_THETA_SPHERICITY, 100, -1.0, 1.0),
    (COS_THETA_LINEARITY, 100, -1.0, 1.0),
    (COS_THETA_THRUST, 100, -1.0, 1.0),
]

TITLES = {
    CHARGED_MULTIPLICITY: "charged multiplicity",
    SPHERICITY: "Sphericity",
    APLANARITY: "Aplanarity",
    LINEARITY: "Linearity",
    THRUST: "thrust",
    OBLATENESS: "oblateness",
    COS_THETA_SPHERICITY: "cos(theta_Sphericity)",
    COS_THETA_LINEARITY: "cos(theta_Linearity)",
    COS_THETA_THRUST: "cos(theta_Thrust)",
}

N_JETS_BINNING = (40, -0.5, 39.5)
E_DIFF_BINNING = (100, -5.0, 45.0)


def n_jets_name(measure: str) -> str:
    return f"n_jets_{measure}"


def e_diff_name(measure: str) -> str:
    return f"e_diff_{measure}"


def default_histogram_specs(measures) -> list[HistogramSpec]:
    """
    Default histogram binnings for the event-shape observables.

    Args:
        measures: Names of the configured jet clustering variants

    Returns:
        HistogramSpec list, event shapes first, then two per clustering variant
    """
    specs = [HistogramSpec(name, n_bins, lo, hi) for name, n_bins, lo, hi in EVENT_SHAPE_BINNING]
    for measure in measures:
        specs.append(HistogramSpec(n_jets_name(measure), *N_JETS_BINNING))
        specs.append(HistogramSpec(e_diff_name(measure), *E_DIFF_BINNING))
    return specs


def histogram_titles(measures) -> dict[str, str]:
    """Display titles keyed by histogram name."""
    titles = dict(TITLES)
    for measure in measures:
        label = measure.capitalize()
        titles[n_jets_name(measure)] = f"{label} jet multiplicity"
        titles[e_diff_name(measure)] = f"{label} e_i - e_{{i+1}}"
    return titles
