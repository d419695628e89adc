"""Provide explicit fixed-step Runge-Kutta integrators over arbitrary fields.

A method is fully described by its Butcher tableau. The tableau is stored
as exact fractions and converted into the integrator field once, so the same
stepping code serves plain floats, arbitrary-precision numbers and any user
field (for instance dual numbers propagating sensitivities).

References
----------
Hairer, E.; Norsett, S.; Wanner, G. (1993). "Solving Ordinary Differential
Equations I".

Butcher, J. C. (2008). "Numerical Methods for Ordinary Differential
Equations".
"""

from typing import Optional, Sequence, Tuple, Type

import numpy as np

from fieldode.algorithms.dynamics.expandable import _ExpandableODE
from fieldode.algorithms.fields.base import _Field
from fieldode.algorithms.integrators.base import _Integrator
from fieldode.algorithms.integrators.coefficients import validate_tableau
from fieldode.algorithms.integrators.coefficients.euler import A as EULER_A
from fieldode.algorithms.integrators.coefficients.euler import B as EULER_B
from fieldode.algorithms.integrators.coefficients.euler import C as EULER_C
from fieldode.algorithms.integrators.coefficients.midpoint import \
    A as MIDPOINT_A
from fieldode.algorithms.integrators.coefficients.midpoint import \
    B as MIDPOINT_B
from fieldode.algorithms.integrators.coefficients.midpoint import \
    C as MIDPOINT_C
from fieldode.algorithms.integrators.coefficients.rk4 import A as RK4_A
from fieldode.algorithms.integrators.coefficients.rk4 import B as RK4_B
from fieldode.algorithms.integrators.coefficients.rk4 import C as RK4_C
from fieldode.algorithms.integrators.coefficients.three_eighths import \
    A as THREE_EIGHTHS_A
from fieldode.algorithms.integrators.coefficients.three_eighths import \
    B as THREE_EIGHTHS_B
from fieldode.algorithms.integrators.coefficients.three_eighths import \
    C as THREE_EIGHTHS_C
from fieldode.algorithms.integrators.interpolators import (
    _ClassicalRKStepInterpolator, _EulerStepInterpolator,
    _HermiteStepInterpolator, _MidpointStepInterpolator,
    _RungeKuttaStepInterpolator, _ThreeEighthsStepInterpolator)
from fieldode.algorithms.integrators.types import (_ODEState,
                                                   _ODEStateAndDerivative)
from fieldode.utils.log_config import logger


def _rk_stages(compute_derivatives, a, b, c, t, y, ydot0, h) -> Tuple[list, np.ndarray]:
    """Compute the stage derivatives and the end state of one explicit step.

    Parameters
    ----------
    compute_derivatives : Callable
        ``(t, y) -> ydot`` in the integrator field.
    a : sequence of sequence of tuple
        Non-zero coupling coefficients ``(j, a_ij)`` of every stage row.
    b : sequence of tuple
        Non-zero weights ``(j, b_j)``.
    c : sequence
        Stage nodes.
    t : field element
        Step start time.
    y, ydot0 : numpy.ndarray
        State at the step start and its derivative, reused as the first
        stage.
    h : field element
        Signed step size.

    Returns
    -------
    tuple
        ``(k, y_new)``: list of stage derivatives and end-of-step state.
    """
    k = [ydot0]
    for i in range(1, len(c)):
        acc = None
        for j, a_ij in a[i]:
            term = k[j] * a_ij
            acc = term if acc is None else acc + term
        y_stage = y if acc is None else y + acc * h
        k.append(compute_derivatives(t + h * c[i], y_stage))

    acc = None
    for j, b_j in b:
        term = k[j] * b_j
        acc = term if acc is None else acc + term
    return k, y + acc * h


class _FixedStepRK(_Integrator):
    """Implement an explicit fixed-step Runge-Kutta scheme.

    Parameters
    ----------
    name : str
        Human readable identifier of the scheme.
    A, B, C : sequence
        Butcher tableau, preferably as exact :class:`fractions.Fraction`
        values (see :mod:`~fieldode.algorithms.integrators.coefficients`).
    order : int
        Formal order of accuracy p of the method.
    step : field element or number
        Positive step size; its sign is set from the integration direction.
    field : :class:`~fieldode.algorithms.fields.base._Field`, optional
        Field of the integration, real by default.
    interpolator : type, optional
        Dense output class for this tableau; a cubic Hermite blend of the
        step end points is used when omitted.
    **options
        Additional keyword options forwarded to
        :class:`~fieldode.algorithms.integrators.base._Integrator`.

    Raises
    ------
    ValueError
        If the tableau is malformed or the step is not positive.

    Notes
    -----
    The last step is shortened to land exactly on the target time. The first
    stage of every step reuses the derivative of the step start state and
    the end-of-step derivative is always recomputed.
    """

    def __init__(
        self,
        name: str,
        A: Sequence,
        B: Sequence,
        C: Sequence,
        order: int,
        step=None,
        field: Optional[_Field] = None,
        interpolator: Optional[Type[_RungeKuttaStepInterpolator]] = None,
        **options,
    ):
        validate_tableau(A, B, C)
        super().__init__(name, field=field, **options)
        if step is None:
            raise ValueError(f"A step size is required for {name}")
        step = self.field.convert(step)
        if not self.field.to_real(step) > 0.0:
            raise ValueError(f"Step size must be positive, got {step!r}")

        self._A = A
        self._B_HIGH = B
        self._C = C
        self._p = order
        self._interpolator_cls = interpolator if interpolator is not None else _HermiteStepInterpolator
        self.step = step

        convert = self.field.convert
        self._a = [[(j, convert(a_ij)) for j, a_ij in enumerate(row[:i]) if a_ij != 0]
                   for i, row in enumerate(A)]
        self._b = [(j, convert(b_j)) for j, b_j in enumerate(B) if b_j != 0]
        self._c = [convert(c_i) for c_i in C]

    @property
    def order(self) -> int:
        """Return the formal order of accuracy of the method.

        Returns
        -------
        int
            The order of accuracy of the Runge-Kutta method.
        """
        return self._p

    @property
    def stages(self) -> int:
        return len(self._B_HIGH)

    def integrate(self, system, initial_state: _ODEState, target_time) -> _ODEStateAndDerivative:
        """Integrate a system of equations with the fixed step size."""
        with self.field.arithmetic_context():
            return self._integrate(system, initial_state, target_time)

    def _integrate(self, system, initial_state: _ODEState, target_time) -> _ODEStateAndDerivative:
        field = self.field
        equations, t0, y0, target_time = self._prepare(system, initial_state, target_time)
        step_start = self._init_integration(equations, t0, y0, target_time)
        forward = field.to_real(target_time - t0) > 0.0

        def reaches_target(t_end) -> bool:
            d = field.to_real(t_end - target_time)
            overshoot = (d >= 0.0) if forward else (d <= 0.0)
            return overshoot or self._at_target(t_end, target_time)

        step_size = self.step if forward else -self.step
        clamped = reaches_target(step_start.time + step_size)
        if clamped:
            step_size = target_time - step_start.time

        self.current_step_start = step_start
        self.current_signed_step_size = step_size
        n_steps = 0
        while True:
            t = step_start.time
            k, y_new = _rk_stages(self._compute_derivatives, self._a, self._b, self._c,
                                  t, step_start.state, step_start.derivative, step_size)
            # the shortened last step lands exactly on the target
            step_end = target_time if clamped else t + step_size
            y_dot_new = self._compute_derivatives(step_end, y_new)
            state_new = _ODEStateAndDerivative(step_end, y_new, y_dot_new)

            interpolator = self._interpolator_cls(field, forward, k, step_start, state_new)
            step_start = self._accept_step(interpolator, target_time)
            self.current_step_start = step_start
            n_steps += 1

            if self._is_last_step:
                break

            clamped = reaches_target(step_start.time + step_size)
            if clamped:
                step_size = target_time - step_start.time
                self.current_signed_step_size = step_size

        logger.debug(
            f"{self.name}: finished at t={field.to_real(step_start.time):.16g} after "
            f"{n_steps} step(s), {equations.evaluations} evaluation(s)"
        )
        self.current_step_start = None
        self.current_signed_step_size = None
        return step_start

    def single_step(self, system, t0, y0: Sequence, t) -> np.ndarray:
        """Advance *y0* from *t0* to *t* in exactly one step.

        No events, observers or interpolators are involved. The arithmetic is
        the one of a driver step, so the result is bit-identical to a step of
        :meth:`integrate` of the same size.

        Parameters
        ----------
        system : :class:`~fieldode.algorithms.dynamics.base._EquationsProtocol`
            Equations to integrate.
        t0 : field element or number
            Start time.
        y0 : sequence
            Start state.
        t : field element or number
            End time; ``t - t0`` is the step size.

        Returns
        -------
        numpy.ndarray
            State at *t*.
        """
        field = self.field
        equations = system if isinstance(system, _ExpandableODE) else _ExpandableODE(system, field)
        with field.arithmetic_context():
            t0 = field.convert(t0)
            t = field.convert(t)
            y = field.array(y0)
            equations.check_dimension(y)
            h = t - t0
            ydot0 = equations.compute_derivatives(t0, y)
            _, y_new = _rk_stages(equations.compute_derivatives, self._a, self._b, self._c, t0, y, ydot0, h)
        return y_new


class _Euler(_FixedStepRK):
    """Implement the explicit Euler method.

    First order, one evaluation per step. Mostly useful as a reference and
    for checking the behaviour of the event machinery on crude steps.
    """
    def __init__(self, step=None, field=None, **opts):
        super().__init__("Euler", EULER_A, EULER_B, EULER_C, 1, step=step, field=field,
                         interpolator=_EulerStepInterpolator, **opts)


class _Midpoint(_FixedStepRK):
    """Implement the explicit midpoint method (second order, two stages)."""
    def __init__(self, step=None, field=None, **opts):
        super().__init__("midpoint", MIDPOINT_A, MIDPOINT_B, MIDPOINT_C, 2, step=step, field=field,
                         interpolator=_MidpointStepInterpolator, **opts)


class _RK4(_FixedStepRK):
    """Implement the classical 4th-order Runge-Kutta method.

    This is the standard 4th-order explicit Runge-Kutta method, also known
    as RK4 or the "classical" Runge-Kutta method. It uses 4 function
    evaluations per step and has order 4.
    """
    def __init__(self, step=None, field=None, **opts):
        super().__init__("classical Runge-Kutta", RK4_A, RK4_B, RK4_C, 4, step=step, field=field,
                         interpolator=_ClassicalRKStepInterpolator, **opts)


class _ThreeEighths(_FixedStepRK):
    """Implement Kutta's 3/8 rule.

    Fourth order with four stages like :class:`_RK4`, but with nodes at
    thirds of the step and a smaller error constant.
    """
    def __init__(self, step=None, field=None, **opts):
        super().__init__("3/8", THREE_EIGHTHS_A, THREE_EIGHTHS_B, THREE_EIGHTHS_C, 4, step=step,
                         field=field, interpolator=_ThreeEighthsStepInterpolator, **opts)


class RungeKutta:
    """Implement a factory class for creating fixed-step Runge-Kutta integrators.

    This factory provides convenient access to fixed-step Runge-Kutta methods
    of different orders. The available orders are 1, 2 and 4; the 3/8 rule,
    which is also of order 4, is selected by name.

    Examples
    --------
    >>> rk4 = RungeKutta(order=4, step=0.01)
    >>> euler = RungeKutta(order=1, step=1e-3)
    >>> rk38 = RungeKutta.from_name("three_eighths", step=0.01)
    """
    _map = {1: _Euler, 2: _Midpoint, 4: _RK4}
    _names = {
        "euler": _Euler,
        "midpoint": _Midpoint,
        "rk4": _RK4,
        "classical": _RK4,
        "three_eighths": _ThreeEighths,
    }

    def __new__(cls, order=4, **opts):
        """Create a fixed-step Runge-Kutta integrator of specified order.

        Parameters
        ----------
        order : int, default 4
            Order of the Runge-Kutta method. Must be 1, 2 or 4.
        **opts
            Additional options passed to the integrator constructor
            (``step``, ``field``).

        Returns
        -------
        :class:`~fieldode.algorithms.integrators.rk._FixedStepRK`
            A fixed-step Runge-Kutta integrator instance.

        Raises
        ------
        ValueError
            If the specified order is not supported.
        """
        if order not in cls._map:
            raise ValueError("RK order must be 1, 2, or 4")
        return cls._map[order](**opts)

    @classmethod
    def from_name(cls, name: str, **opts) -> _FixedStepRK:
        """Create an integrator by method name.

        Parameters
        ----------
        name : str
            One of ``"euler"``, ``"midpoint"``, ``"rk4"`` (alias
            ``"classical"``) or ``"three_eighths"``; case insensitive.
        **opts
            Options passed to the integrator constructor.

        Raises
        ------
        ValueError
            If the name is unknown.
        """
        key = name.lower()
        if key not in cls._names:
            raise ValueError(f"Unknown Runge-Kutta method '{name}', expected one of {sorted(cls._names)}")
        return cls._names[key](**opts)
