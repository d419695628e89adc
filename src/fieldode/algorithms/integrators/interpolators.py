"""Dense output for the fixed-step Runge-Kutta family.

An interpolator is a short-lived value built from the stage derivatives of a
single step. It reconstructs the state (and its derivative) anywhere in the
step without calling the right-hand side again, and it can be restricted to
a sub-range of the step so that observers only see the part of the step
that precedes an event.

Each tableau-matched interpolator evaluates from the step start when
``theta <= 1/2`` and from the step end otherwise, which keeps the
reconstruction exact at both end points.
"""

from abc import ABC, abstractmethod
from typing import Sequence, Tuple

import numpy as np

from fieldode.algorithms.fields.base import _Field
from fieldode.algorithms.integrators.types import _ODEStateAndDerivative


class _RungeKuttaStepInterpolator(ABC):
    """Provide the shared machinery of Runge-Kutta step interpolators.

    Parameters
    ----------
    field : :class:`~fieldode.algorithms.fields.base._Field`
        Field of the state components.
    forward : bool
        Integration direction.
    ydot_k : sequence of numpy.ndarray
        Stage derivatives ``k_1 .. k_s`` of the step.
    global_previous, global_current : :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
        States at the start and end of the full step.
    soft_previous, soft_current : :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
        Bounds of the visible sub-range; equal to the global states unless
        the interpolator was restricted.
    """

    def __init__(
        self,
        field: _Field,
        forward: bool,
        ydot_k: Sequence[np.ndarray],
        global_previous: _ODEStateAndDerivative,
        global_current: _ODEStateAndDerivative,
        soft_previous: _ODEStateAndDerivative = None,
        soft_current: _ODEStateAndDerivative = None,
    ):
        self._field = field
        self._forward = forward
        self._ydot_k = tuple(ydot_k)
        self._global_previous = global_previous
        self._global_current = global_current
        self._soft_previous = global_previous if soft_previous is None else soft_previous
        self._soft_current = global_current if soft_current is None else soft_current

    @property
    def field(self) -> _Field:
        return self._field

    @property
    def is_forward(self) -> bool:
        return self._forward

    @property
    def previous_state(self) -> _ODEStateAndDerivative:
        """State at the start of the visible range."""
        return self._soft_previous

    @property
    def current_state(self) -> _ODEStateAndDerivative:
        """State at the end of the visible range."""
        return self._soft_current

    @property
    def global_previous_state(self) -> _ODEStateAndDerivative:
        return self._global_previous

    @property
    def global_current_state(self) -> _ODEStateAndDerivative:
        return self._global_current

    def restrict_step(self, previous_state: _ODEStateAndDerivative,
                      current_state: _ODEStateAndDerivative) -> "_RungeKuttaStepInterpolator":
        """Return a copy whose visible range is ``[previous_state, current_state]``.

        The underlying polynomial is unchanged; only
        :attr:`previous_state` and :attr:`current_state` differ.
        """
        return type(self)(
            self._field, self._forward, self._ydot_k,
            self._global_previous, self._global_current,
            previous_state, current_state,
        )

    def state_at(self, time) -> _ODEStateAndDerivative:
        """Interpolate the solution at *time*.

        Parameters
        ----------
        time : field element or number
            Query time, normally inside the step. Values outside are
            extrapolated by the same polynomial.

        Returns
        -------
        :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
            Interpolated state and derivative.
        """
        time = self._field.convert(time) if not self._field.is_element(time) else time
        t_prev = self._global_previous.time
        h = self._global_current.time - t_prev
        theta_h = time - t_prev
        one_minus_theta_h = self._global_current.time - time
        if self._field.to_real(h) == 0.0:
            theta = self._field.zero
        else:
            theta = theta_h / h
        state, derivative = self._compute_interpolated(theta, theta_h, one_minus_theta_h)
        return _ODEStateAndDerivative(time, state, derivative)

    @abstractmethod
    def _compute_interpolated(self, theta, theta_h, one_minus_theta_h) -> Tuple[np.ndarray, np.ndarray]:
        """Return ``(state, derivative)`` at normalized position *theta*."""
        pass

    def _use_previous(self, theta) -> bool:
        return self._field.to_real(theta) <= 0.5

    def _combine(self, base: np.ndarray, coefficients) -> np.ndarray:
        out = base
        for c, k in zip(coefficients, self._ydot_k):
            out = out + k * c
        return out

    def _previous_state_combination(self, *coefficients) -> np.ndarray:
        return self._combine(self._global_previous.state, coefficients)

    def _current_state_combination(self, *coefficients) -> np.ndarray:
        return self._combine(self._global_current.state, coefficients)

    def _derivative_combination(self, *coefficients) -> np.ndarray:
        out = self._ydot_k[0] * coefficients[0]
        for c, k in zip(coefficients[1:], self._ydot_k[1:]):
            out = out + k * c
        return out

    def __repr__(self):
        return (f"{self.__class__.__name__}(previous={self._soft_previous.time!r}, "
                f"current={self._soft_current.time!r}, forward={self._forward})")


class _EulerStepInterpolator(_RungeKuttaStepInterpolator):
    """Linear interpolation matched to the explicit Euler method."""

    def _compute_interpolated(self, theta, theta_h, one_minus_theta_h):
        one = self._field.one
        if self._use_previous(theta):
            state = self._previous_state_combination(theta_h)
        else:
            state = self._current_state_combination(-one_minus_theta_h)
        return state, self._derivative_combination(one)


class _MidpointStepInterpolator(_RungeKuttaStepInterpolator):
    """Quadratic interpolation matched to the explicit midpoint method."""

    def _compute_interpolated(self, theta, theta_h, one_minus_theta_h):
        coeff_dot2 = theta * 2
        coeff_dot1 = self._field.one - coeff_dot2
        if self._use_previous(theta):
            coeff1 = theta * one_minus_theta_h
            coeff2 = theta * theta_h
            state = self._previous_state_combination(coeff1, coeff2)
        else:
            coeff1 = one_minus_theta_h * theta
            coeff2 = -(one_minus_theta_h * (theta + 1))
            state = self._current_state_combination(coeff1, coeff2)
        return state, self._derivative_combination(coeff_dot1, coeff_dot2)


class _ClassicalRKStepInterpolator(_RungeKuttaStepInterpolator):
    """Cubic interpolation matched to the classical 4-stage method.

    The interpolant reproduces the end-of-step value exactly and uses the
    same stage derivatives as the step itself::

        y(t_n + theta h) = y_n + theta h / 6 * [(6 - 9 theta + 4 theta^2) k1
                                                + (6 theta - 4 theta^2) (k2 + k3)
                                                + (4 theta^2 - 3 theta) k4]
    """

    def _compute_interpolated(self, theta, theta_h, one_minus_theta_h):
        one = self._field.one
        one_minus_theta = one - theta
        one_minus_2theta = one - theta * 2
        coeff_dot1 = one_minus_theta * one_minus_2theta
        coeff_dot23 = theta * one_minus_theta * 2
        coeff_dot4 = -(theta * one_minus_2theta)
        if self._use_previous(theta):
            four_theta2 = theta * theta * 4
            s = theta_h / 6
            coeff1 = s * (four_theta2 - theta * 9 + 6)
            coeff23 = s * (theta * 6 - four_theta2)
            coeff4 = s * (four_theta2 - theta * 3)
            state = self._previous_state_combination(coeff1, coeff23, coeff23, coeff4)
        else:
            four_theta = theta * 4
            s = one_minus_theta_h / 6
            coeff1 = s * (theta * (5 - four_theta) - 1)
            coeff23 = s * (theta * (four_theta - 2) - 2)
            coeff4 = s * (theta * (-four_theta - 1) - 1)
            state = self._current_state_combination(coeff1, coeff23, coeff23, coeff4)
        derivative = self._derivative_combination(coeff_dot1, coeff_dot23, coeff_dot23, coeff_dot4)
        return state, derivative


class _ThreeEighthsStepInterpolator(_RungeKuttaStepInterpolator):
    """Cubic interpolation matched to Kutta's 3/8 rule."""

    def _compute_interpolated(self, theta, theta_h, one_minus_theta_h):
        coeff_dot3 = theta * 3 / 4
        coeff_dot1 = coeff_dot3 * (theta * 4 - 5) + 1
        coeff_dot2 = coeff_dot3 * (5 - theta * 6)
        coeff_dot4 = coeff_dot3 * (theta * 2 - 1)
        four_theta2 = theta * theta * 4
        if self._use_previous(theta):
            s = theta_h / 8
            coeff1 = s * (four_theta2 * 2 - theta * 15 + 8)
            coeff2 = s * (theta * 5 - four_theta2) * 3
            coeff3 = s * theta * 3
            coeff4 = s * (four_theta2 - theta * 3)
            state = self._previous_state_combination(coeff1, coeff2, coeff3, coeff4)
        else:
            s = -one_minus_theta_h / 8
            theta_plus1 = theta + 1
            coeff1 = s * (four_theta2 * 2 - theta * 7 + 1)
            coeff2 = s * (theta_plus1 - four_theta2) * 3
            coeff3 = s * theta_plus1 * 3
            coeff4 = s * (theta_plus1 + four_theta2)
            state = self._current_state_combination(coeff1, coeff2, coeff3, coeff4)
        derivative = self._derivative_combination(coeff_dot1, coeff_dot2, coeff_dot3, coeff_dot4)
        return state, derivative


class _HermiteStepInterpolator(_RungeKuttaStepInterpolator):
    """Cubic Hermite blend of the step end points.

    Used for tableaus without a matched interpolator. Only the two bounding
    states and their derivatives enter the blend, so the result is third
    order regardless of the method.
    """

    def _compute_interpolated(self, theta, theta_h, one_minus_theta_h):
        y0 = self._global_previous.state
        f0 = self._global_previous.derivative
        y1 = self._global_current.state
        f1 = self._global_current.derivative
        h = theta_h + one_minus_theta_h
        s = theta
        s2 = s * s
        s3 = s2 * s
        h00 = s3 * 2 - s2 * 3 + 1
        h10 = s3 - s2 * 2 + s
        h01 = s2 * 3 - s3 * 2
        h11 = s3 - s2
        state = y0 * h00 + f0 * (h10 * h) + y1 * h01 + f1 * (h11 * h)

        if self._field.to_real(h) == 0.0:
            return state, f0
        d10 = s2 * 3 - s * 4 + 1
        d01 = (s - s2) * 6
        d11 = s2 * 3 - s * 2
        # the y0 weight is -d01
        derivative = (y1 - y0) * (d01 / h) + f0 * d10 + f1 * d11
        return state, derivative
