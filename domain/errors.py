"""
Error types shared by the analysis services.

Both derive from ValueError so callers that validate with ValueError keep working.
"""


class DegenerateInputError(ValueError):
    """
    An analyzer cannot produce a result for the given particles.

    Raised for empty input, too few particles or a vanishing total momentum.
    The pipeline skips the affected observable for the current event only.
    """


class ConfigurationError(ValueError):
    """Invalid configuration detected before any event is processed."""
