"""Library-wide numerical constants."""

import math

# Event detection defaults
DEFAULT_MAX_CHECK_INTERVAL = math.inf
DEFAULT_CONVERGENCE = 1e-10
DEFAULT_MAX_ITERATIONS = 100

# Relative time accuracy of the event root solver. The effective convergence
# threshold is max(convergence, ROOT_RELATIVE_ACCURACY * |t|).
ROOT_RELATIVE_ACCURACY = 1e-14

# An integration span shorter than this many ulps of the end points is rejected
TOO_SMALL_INTERVAL_ULPS = 1000

# Precision control
MPMATH_DPS = 50  # Decimal places for mpmath (default 50, standard float64 ≈ 15-17)
