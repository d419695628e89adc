"""Step observers: hooks notified after every accepted (part of a) step.

:class:`_SolutionRecorder` keeps the dense output of a whole integration and
:class:`_StepNormalizer` turns the integrator steps into a regular output
grid. Both only use the interpolator handed to them, never the equations.
"""

from abc import ABC, abstractmethod
from typing import Callable, List, Sequence

import numpy as np

from fieldode.algorithms.integrators.interpolators import \
    _RungeKuttaStepInterpolator
from fieldode.algorithms.integrators.types import (_ODEStateAndDerivative,
                                                   _Solution)


class _StepHandler(ABC):
    """Define the interface of a step observer."""

    def init(self, initial_state: _ODEStateAndDerivative, target_time) -> None:
        """Hook called once at the start of every integration."""
        pass

    @abstractmethod
    def handle_step(self, interpolator: _RungeKuttaStepInterpolator, is_last: bool) -> None:
        """Observe one accepted step.

        Parameters
        ----------
        interpolator : :class:`~fieldode.algorithms.integrators.interpolators._RungeKuttaStepInterpolator`
            Dense output restricted to the accepted range; valid only during
            the call unless the observer keeps a reference.
        is_last : bool
            True for the final step of the integration.
        """
        pass


class _SolutionRecorder(_StepHandler):
    """Record every accepted step to provide dense output over the whole run.

    Examples
    --------
    >>> recorder = _SolutionRecorder()
    >>> integrator.add_step_handler(recorder)
    >>> integrator.integrate(system, _ODEState(0.0, [1.0]), 2.0)
    >>> recorder.state_at(1.5).state
    """

    def __init__(self):
        self._steps: List[_RungeKuttaStepInterpolator] = []
        self._initial_state = None
        self._field = None
        self._forward = True

    def init(self, initial_state, target_time):
        self._steps = []
        self._initial_state = initial_state
        self._field = None

    def handle_step(self, interpolator, is_last):
        field = interpolator.field
        self._field = field
        self._forward = interpolator.is_forward
        span = field.to_real(interpolator.current_state.time - interpolator.previous_state.time)
        if span == 0.0 and self._steps:
            return
        self._steps.append(interpolator)

    @property
    def steps(self) -> List[_RungeKuttaStepInterpolator]:
        return list(self._steps)

    @property
    def initial_time(self):
        if not self._steps:
            raise ValueError("No step recorded")
        return self._steps[0].previous_state.time

    @property
    def final_time(self):
        if not self._steps:
            raise ValueError("No step recorded")
        return self._steps[-1].current_state.time

    def _offset(self, a, b) -> float:
        """Signed distance from *a* to *b* along the integration direction."""
        d = self._field.to_real(b - a)
        return d if self._forward else -d

    def state_at(self, time) -> _ODEStateAndDerivative:
        """Interpolate the recorded solution at *time*.

        Parameters
        ----------
        time : field element or number
            Query time, inside the recorded range.

        Returns
        -------
        :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
            Interpolated state and derivative.

        Raises
        ------
        ValueError
            If nothing was recorded or *time* is outside the recorded range.
        """
        if not self._steps:
            raise ValueError("No step recorded")
        time = self._field.convert(time)
        if self._offset(self.initial_time, time) < 0.0 or self._offset(time, self.final_time) < 0.0:
            raise ValueError(
                f"Time {self._field.to_real(time)!r} outside the recorded range "
                f"[{self._field.to_real(self.initial_time)!r}, {self._field.to_real(self.final_time)!r}]"
            )

        lo, hi = 0, len(self._steps) - 1
        while lo < hi:
            mid = (lo + hi) // 2
            if self._offset(time, self._steps[mid].current_state.time) >= 0.0:
                hi = mid
            else:
                lo = mid + 1
        return self._steps[lo].state_at(time)

    def sample(self, times: Sequence) -> _Solution:
        """Interpolate the recorded solution on *times*."""
        states = [self.state_at(t) for t in times]
        return _Solution(
            times=np.array([s.time for s in states], dtype=self._field.dtype),
            states=np.array([s.state for s in states]),
            derivatives=np.array([s.derivative for s in states]),
        )

    def solution(self) -> _Solution:
        """Return the step end points, starting with the initial state."""
        if not self._steps:
            raise ValueError("No step recorded")
        points = [self._steps[0].previous_state] + [step.current_state for step in self._steps]
        return _Solution(
            times=np.array([p.time for p in points], dtype=self._field.dtype),
            states=np.array([p.state for p in points]),
            derivatives=np.array([p.derivative for p in points]),
        )


class _StepNormalizer(_StepHandler):
    """Call *callback* on a regular time grid built from the integrator steps.

    Parameters
    ----------
    h : field element or number
        Grid spacing, positive; the sign follows the integration direction.
    callback : Callable
        ``callback(state, is_last)`` invoked with
        :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
        values at ``t0, t0 + h, t0 + 2 h, ...`` and at the final time.

    Notes
    -----
    Both end points of the integration are always reported, so the last
    interval of the grid may be shorter than *h*.
    """

    def __init__(self, h, callback: Callable):
        if not h > 0:
            raise ValueError(f"Grid spacing must be positive, got {h!r}")
        self.h = h
        self.callback = callback
        self._first_time = None
        self._last_state = None
        self._count = 0
        self._step = None

    def init(self, initial_state, target_time):
        self._first_time = None
        self._last_state = None
        self._count = 0
        self._step = None

    def handle_step(self, interpolator, is_last):
        field = interpolator.field
        if self._last_state is None:
            self._last_state = interpolator.previous_state
            self._first_time = self._last_state.time
            h = field.convert(self.h)
            self._step = h if interpolator.is_forward else -h

        forward = interpolator.is_forward
        current = interpolator.current_state

        def in_step(t) -> bool:
            d = field.to_real(t - current.time)
            return d <= 0.0 if forward else d >= 0.0

        next_time = self._first_time + self._step * (self._count + 1)
        while in_step(next_time):
            self.callback(self._last_state, False)
            self._count += 1
            self._last_state = interpolator.state_at(next_time)
            next_time = self._first_time + self._step * (self._count + 1)

        if is_last:
            add_last = field.to_real(self._last_state.time - current.time) != 0.0
            self.callback(self._last_state, not add_last)
            if add_last:
                self._last_state = current
                self.callback(current, True)
