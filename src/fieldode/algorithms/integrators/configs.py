import math
from dataclasses import dataclass

from fieldode.algorithms.utils.config import (DEFAULT_CONVERGENCE,
                                              DEFAULT_MAX_CHECK_INTERVAL,
                                              DEFAULT_MAX_ITERATIONS)


@dataclass(frozen=True)
class _EventConfig:
    """Configuration for the detection of one event handler.

    Parameters
    ----------
    max_check_interval : float, default inf
        Largest time span scanned for a sign change without an intermediate
        evaluation of g. Steps longer than this are subdivided, so a root
        pair inside one step is found when the span is small enough.
    convergence : float, default 1e-10
        Absolute time tolerance of the root refinement.
    max_iterations : int, default 100
        Maximum iterations of the root refinement.
    priority : int, default 0
        Tie-break between events located at exactly the same time: lower
        priority fires first, then registration order.
    """

    max_check_interval: float = DEFAULT_MAX_CHECK_INTERVAL
    convergence: float = DEFAULT_CONVERGENCE
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    priority: int = 0

    def __post_init__(self):
        if not (self.max_check_interval > 0.0):
            raise ValueError(f"max_check_interval must be positive, got {self.max_check_interval}")
        if not (self.convergence > 0.0) or math.isinf(self.convergence):
            raise ValueError(f"convergence must be positive and finite, got {self.convergence}")
        if int(self.max_iterations) != self.max_iterations or self.max_iterations <= 0:
            raise ValueError(f"max_iterations must be a positive integer, got {self.max_iterations}")
