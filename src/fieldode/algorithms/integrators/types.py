"""Value types exchanged between the stepper, the interpolators and the events."""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np


def _frozen_copy(values) -> np.ndarray:
    arr = np.array(values, copy=True)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class _ODEState:
    """Time and state vector.

    Parameters
    ----------
    time : field element
        Independent variable.
    state : numpy.ndarray
        State vector; copied and made read-only on construction.
    """

    time: Any
    state: np.ndarray

    def __post_init__(self):
        object.__setattr__(self, "state", _frozen_copy(self.state))

    @property
    def dim(self) -> int:
        return len(self.state)

    def to_real(self, field):
        """Return ``(time, state)`` projected onto floats through *field*."""
        return field.to_real(self.time), field.to_real_array(self.state)

    def __repr__(self):
        return f"{self.__class__.__name__}(time={self.time!r}, dim={self.dim})"


@dataclass(frozen=True, eq=False, repr=False)
class _ODEStateAndDerivative(_ODEState):
    """Time, state vector and the right-hand side evaluated there.

    Parameters
    ----------
    time : field element
        Independent variable.
    state : numpy.ndarray
        State vector.
    derivative : numpy.ndarray
        ``f(time, state)``; copied and made read-only on construction.
    """

    derivative: np.ndarray = None

    def __post_init__(self):
        super().__post_init__()
        if self.derivative is None:
            raise ValueError("derivative is required")
        if len(self.derivative) != len(self.state):
            raise ValueError(
                f"State and derivative must have same length: "
                f"{len(self.state)} != {len(self.derivative)}"
            )
        object.__setattr__(self, "derivative", _frozen_copy(self.derivative))


@dataclass
class _Solution:
    """
    Container for integration results.
    
    Attributes
    ----------
    times : numpy.ndarray
        Array of time points, shape (n_points,)
    states : numpy.ndarray
        Array of state vectors, shape (n_points, n_dim)
    derivatives : numpy.ndarray
        Array of time derivatives f(t, y) evaluated at the stored time points,
        shape (n_points, n_dim).
    """
    times: np.ndarray
    states: np.ndarray
    derivatives: np.ndarray

    def __post_init__(self):
        if len(self.times) != len(self.states):
            raise ValueError(
                f"Times and states must have same length: "
                f"{len(self.times)} != {len(self.states)}"
            )
        if len(self.derivatives) != len(self.times):
            raise ValueError(
                "Derivatives must have the same length as times "
                f"({len(self.derivatives)} != {len(self.times)})"
            )


class Action(Enum):
    """Decision returned by an event handler."""
    STOP = "stop"
    RESET_STATE = "reset_state"
    RESET_DERIVATIVES = "reset_derivatives"
    RESET_EVENTS = "reset_events"
    CONTINUE = "continue"


@dataclass(frozen=True)
class _EventAction:
    """Base of the tagged event decisions."""

    @property
    def kind(self) -> Action:
        raise NotImplementedError


@dataclass(frozen=True)
class Stop(_EventAction):
    """Terminate integration at the event time."""

    @property
    def kind(self) -> Action:
        return Action.STOP


@dataclass(frozen=True)
class ResetState(_EventAction):
    """Restart integration at the event time from *state*.

    Derivatives are recomputed by the integrator, so *state* may be either a
    :class:`_ODEState` or a :class:`_ODEStateAndDerivative`; its time must be
    the event time.
    """

    state: _ODEState

    @property
    def kind(self) -> Action:
        return Action.RESET_STATE


@dataclass(frozen=True)
class ResetDerivatives(_EventAction):
    """Recompute derivatives at the unchanged event state and restart."""

    @property
    def kind(self) -> Action:
        return Action.RESET_DERIVATIVES


@dataclass(frozen=True)
class ResetEvents(_EventAction):
    """Re-evaluate the sign of every other event function at the event time."""

    @property
    def kind(self) -> Action:
        return Action.RESET_EVENTS


@dataclass(frozen=True)
class Continue(_EventAction):
    """Carry on past the event."""

    @property
    def kind(self) -> Action:
        return Action.CONTINUE
