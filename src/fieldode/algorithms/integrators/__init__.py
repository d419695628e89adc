"""Fixed-step Runge-Kutta integrators with dense output and event handling."""

from .base import _Integrator
from .configs import _EventConfig as EventConfig
from .events import _EventHandler as EventHandler
from .events import create_event_handler
from .rk import RungeKutta, _FixedStepRK
from .sampling import _SolutionRecorder as SolutionRecorder
from .sampling import _StepHandler as StepHandler
from .sampling import _StepNormalizer as StepNormalizer
from .types import (Action, Continue, ResetDerivatives, ResetEvents,
                    ResetState, Stop)
from .types import _ODEState as ODEState
from .types import _ODEStateAndDerivative as ODEStateAndDerivative

__all__ = [
    "_Integrator",
    "_FixedStepRK",
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
