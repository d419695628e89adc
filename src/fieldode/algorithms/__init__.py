""" Public API for the :mod:`~fieldode.algorithms` package.
"""

from .dynamics import RHSSystem, create_rhs_system
from .fields import DecimalField, FractionField, MPMathField, RealField
from .integrators import (Action, Continue, EventConfig, EventHandler,
                          ODEState, ODEStateAndDerivative, ResetDerivatives,
                          ResetEvents, ResetState, RungeKutta,
                          SolutionRecorder, StepHandler, StepNormalizer, Stop,
                          create_event_handler)

__all__ = [
    "RealField",
    "MPMathField",
    "DecimalField",
    "FractionField",
    "RHSSystem",
    "create_rhs_system",
    "RungeKutta",
    "EventConfig",
    "EventHandler",
    "create_event_handler",
    "StepHandler",
    "SolutionRecorder",
    "StepNormalizer",
    "ODEState",
    "ODEStateAndDerivative",
    "Action",
    "Stop",
    "ResetState",
    "ResetDerivatives",
    "ResetEvents",
    "Continue",
]
