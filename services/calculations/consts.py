"""
Centralized constants for event-shape calculations.
"""
# Analyzers need at least this many particles.
MIN_PARTICLES = 2

# Floor for |p|^2 when raised to a negative power.
P2_MIN = 1e-20

# Postcondition tolerances.
EIGENVALUE_SUM_TOLERANCE = 1e-8
ORTHONORMALITY_TOLERANCE = 1e-8

# Components smaller than this do not decide an axis orientation.
AXIS_SIGN_TOLERANCE = 1e-12

THRUST_MAX_ITERATIONS = 100
THRUST_TOLERANCE = 1e-12
THRUST_SEED_PARTICLES = 4
