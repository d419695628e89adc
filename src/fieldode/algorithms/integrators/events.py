"""Event detection for the fixed-step integrators.

Notes
-----
An event is a sign change of a user function ``g(state)`` along the
solution. Detection works on the dense output of an accepted step: the step
is scanned in sub-intervals no longer than the handler's
``max_check_interval`` and every sign change is refined with an Illinois
(modified regula falsi) bracketing iteration. No right-hand side evaluation
happens during the search; all intermediate states come from the step
interpolator.

The refined root is always taken on the far side of the crossing in the
integration direction, so that the sign of ``g`` right after an event is the
post-event sign and the same crossing is not detected twice.
"""
import math
from abc import ABC, abstractmethod
from typing import Callable, Optional, Tuple

from fieldode.algorithms.fields.base import _Field
from fieldode.algorithms.integrators.configs import _EventConfig
from fieldode.algorithms.integrators.types import (Action, _EventAction,
                                                   _ODEState,
                                                   _ODEStateAndDerivative)
from fieldode.algorithms.utils.config import ROOT_RELATIVE_ACCURACY
from fieldode.algorithms.utils.exceptions import (MaxIterationsExceededError,
                                                  NoBracketingError)
from fieldode.utils.log_config import logger


class _EventHandler(ABC):
    """Define the interface of a discrete event handler.

    Notes
    -----
    ``g`` must be continuous in the neighbourhood of its roots. The integrator
    only watches for sign changes, so a function that touches zero without
    crossing is not reported.
    """

    def init(self, initial_state: _ODEStateAndDerivative, target_time) -> None:
        """Hook called once at the start of every integration."""
        pass

    @abstractmethod
    def g(self, state: _ODEStateAndDerivative):
        """Return the switching function value at *state*."""
        pass

    @abstractmethod
    def event_occurred(self, state: _ODEStateAndDerivative, increasing: bool):
        """Decide what to do at an event.

        Parameters
        ----------
        state : :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
            State at the located event time.
        increasing : bool
            True when ``g`` increases with time across the event, regardless
            of the integration direction.

        Returns
        -------
        :class:`~fieldode.algorithms.integrators.types.Action` or :class:`~fieldode.algorithms.integrators.types._EventAction`
            Either a bare action or one of the tagged actions
            (:class:`~fieldode.algorithms.integrators.types.ResetState` carries
            the replacement state).
        """
        pass

    def reset_state(self, state: _ODEStateAndDerivative) -> _ODEState:
        """Return the replacement state after a bare ``Action.RESET_STATE``."""
        return state


def _direction_allows(increasing: bool, direction: int) -> bool:
    """Return True if a crossing with the given orientation matches *direction*.

    direction = 0 allows any crossing; +1 requires increasing; -1 decreasing.
    """
    if direction == 0:
        return True
    if direction > 0:
        return increasing
    return not increasing


class _FunctionEventHandler(_EventHandler):
    """Adapt a plain ``g(t, y)`` callable to :class:`_EventHandler`.

    Parameters
    ----------
    g : Callable
        Switching function of time and state vector.
    direction : int, default 0
        Crossing direction to report:
        - 0: any sign change
        - +1: only increasing crossings
        - -1: only decreasing crossings
    terminal : bool, default True
        When True, integration stops at the first reported event.

    Attributes
    ----------
    events : list of tuple
        ``(state, increasing)`` for every reported crossing of the last
        integration.
    """

    def __init__(self, g: Callable, direction: int = 0, terminal: bool = True):
        if direction not in (-1, 0, 1):
            raise ValueError(f"direction must be -1, 0 or +1, got {direction}")
        self._g = g
        self.direction = direction
        self.terminal = terminal
        self.events = []

    def init(self, initial_state, target_time):
        self.events = []

    def g(self, state):
        return self._g(state.time, state.state)

    def event_occurred(self, state, increasing):
        if not _direction_allows(increasing, self.direction):
            return Action.CONTINUE
        self.events.append((state, increasing))
        return Action.STOP if self.terminal else Action.CONTINUE

    def __repr__(self):
        name = getattr(self._g, "__name__", repr(self._g))
        return (f"_FunctionEventHandler(g={name}, direction={self.direction}, "
                f"terminal={self.terminal})")


def create_event_handler(g: Callable, direction: int = 0, terminal: bool = True) -> _FunctionEventHandler:
    """Wrap a ``g(t, y)`` callable as an event handler.

    Parameters
    ----------
    g : Callable
        Switching function.
    direction : int, default 0
        Crossing direction filter, see :class:`_FunctionEventHandler`.
    terminal : bool, default True
        Whether a reported crossing stops the integration.

    Returns
    -------
    :class:`_FunctionEventHandler`
        The wrapped handler.
    """
    return _FunctionEventHandler(g, direction=direction, terminal=terminal)


def _normalize_action(result) -> Tuple[Action, Optional[_ODEState]]:
    """Split a handler decision into its kind and optional replacement state."""
    if isinstance(result, Action):
        return result, None
    if isinstance(result, _EventAction):
        return result.kind, getattr(result, "state", None)
    raise TypeError(f"Event handler must return an Action, got {result!r}")


def _time_threshold(field: _Field, convergence: float, *times) -> float:
    scale = max(abs(field.to_real(t)) for t in times)
    return max(convergence, ROOT_RELATIVE_ACCURACY * scale)


def _solve_bracketed(
    func: Callable,
    ta,
    ga,
    tb,
    gb,
    field: _Field,
    convergence: float,
    max_iterations: int,
    handler=None,
):
    """Locate a root of *func* between *ta* and *tb* by the Illinois method.

    Parameters
    ----------
    func : Callable
        Scalar function of time returning field elements.
    ta, tb : field element
        Bracket end points, *ta* first in integration order.
    ga, gb : field element
        ``func(ta)`` and ``func(tb)``, of opposite signs.
    field : :class:`~fieldode.algorithms.fields.base._Field`
        Field of times and function values.
    convergence : float
        Absolute time tolerance.
    max_iterations : int
        Maximum number of evaluations of *func*.
    handler : object, optional
        Reported in :class:`~fieldode.algorithms.utils.exceptions.MaxIterationsExceededError`.

    Returns
    -------
    field element
        A time within tolerance of the root and on the *tb* side of it, or
        an exact zero of *func*.

    Raises
    ------
    NoBracketingError
        If ``ga`` and ``gb`` have the same strict sign.
    MaxIterationsExceededError
        If the bracket is not narrowed below tolerance within the budget.
    """
    ra = field.to_real(ga)
    rb = field.to_real(gb)
    if ra == 0.0:
        return ta
    if rb == 0.0:
        return tb
    if (ra > 0.0) == (rb > 0.0):
        raise NoBracketingError(field.to_real(ta), field.to_real(tb), ra, rb)

    b_positive = rb > 0.0
    a, b = ta, tb
    last_side = 0

    def converged():
        width = abs(field.to_real(b - a))
        return width <= _time_threshold(field, convergence, a, b)

    for _ in range(max_iterations):
        if converged():
            return b

        x = b - gb * (b - a) / (gb - ga)
        if not field.to_real(x - a) * field.to_real(b - x) > 0.0:
            # secant point left the bracket, bisect instead
            x = a + (b - a) / 2

        gx = func(x)
        rx = field.to_real(gx)
        if rx == 0.0:
            return x

        if (rx > 0.0) == b_positive:
            b, gb = x, gx
            if last_side == 1:
                ga = ga / 2
            last_side = 1
        else:
            a, ga = x, gx
            if last_side == -1:
                gb = gb / 2
            last_side = -1

    if converged():
        return b
    raise MaxIterationsExceededError(max_iterations, handler)


class _EventState:
    """Track the switching function of one handler across steps.

    Parameters
    ----------
    handler : :class:`_EventHandler`
        The user handler.
    config : :class:`~fieldode.algorithms.integrators.configs._EventConfig`
        Detection settings.
    field : :class:`~fieldode.algorithms.fields.base._Field`
        Field of the integration.
    index : int
        Registration index, used to order simultaneous events.

    Notes
    -----
    Per step the state goes from "no crossing" to "candidate found" (after
    :meth:`evaluate_step`) and to "dispatched" once the driver accepts the
    step up to the event (:meth:`step_accepted`). A pending reset is then
    collected with :meth:`reset`.
    """

    def __init__(self, handler: _EventHandler, config: _EventConfig, field: _Field, index: int = 0):
        self.handler = handler
        self.config = config
        self.field = field
        self.index = index

        self._t0 = None
        self._g0 = None
        self._g0_positive = True
        self._pending_event = False
        self._pending_event_time = None
        self._dispatched = False
        self._previous_event_time = None
        self._increasing = True
        self._forward = True
        self._next_action = Action.CONTINUE
        self._reset_payload = None

    @property
    def priority(self) -> int:
        return self.config.priority

    @property
    def next_action(self) -> Action:
        return self._next_action

    @property
    def pending(self) -> bool:
        """True when a candidate event is located but not yet dispatched."""
        return self._pending_event and not self._dispatched

    @property
    def dispatched(self) -> bool:
        """True once the event located by the last scan was handed to the handler."""
        return self._dispatched

    @property
    def event_time(self):
        """Time of the pending event, or None."""
        if self._pending_event:
            return self._pending_event_time
        return None

    def init(self, initial_state: _ODEStateAndDerivative, target_time) -> None:
        """Forget everything from previous integrations and call the handler hook."""
        self._t0 = None
        self._g0 = None
        self._g0_positive = True
        self._pending_event = False
        self._pending_event_time = None
        self._dispatched = False
        self._previous_event_time = None
        self._increasing = True
        self._forward = self.field.to_real(target_time - initial_state.time) >= 0.0
        self._next_action = Action.CONTINUE
        self._reset_payload = None
        self.handler.init(initial_state, target_time)

    def _threshold(self, t) -> float:
        return _time_threshold(self.field, self.config.convergence, t)

    def _near(self, t1, t2) -> bool:
        return abs(self.field.to_real(t1 - t2)) <= self._threshold(t1)

    def _before(self, t1, t2) -> bool:
        d = self.field.to_real(t1 - t2)
        return d < 0.0 if self._forward else d > 0.0

    def _g_at(self, interpolator, t):
        return self.handler.g(interpolator.state_at(t))

    def reinitialize_begin(self, interpolator) -> None:
        """Evaluate the sign of g at the start of the first step.

        A root exactly at the start is not an event: the sign is then taken
        slightly after the start, in the integration direction.
        """
        field = self.field
        self._forward = interpolator.is_forward
        s0 = interpolator.previous_state
        self._t0 = s0.time
        self._g0 = self.handler.g(s0)
        if field.to_real(self._g0) == 0.0:
            half = field.convert(0.5 * self._threshold(self._t0))
            t_start = self._t0 + half if self._forward else self._t0 - half
            self._g0 = self._g_at(interpolator, t_start)
        self._g0_positive = field.to_real(self._g0) >= 0.0

    def evaluate_step(self, interpolator) -> bool:
        """Look for a sign change of g over the visible range of *interpolator*.

        Parameters
        ----------
        interpolator : :class:`~fieldode.algorithms.integrators.interpolators._RungeKuttaStepInterpolator`
            Step (or sub-step) to scan, starting at the time of the last
            accepted state.

        Returns
        -------
        bool
            True if an event occurs in the range; its time is then
            :attr:`event_time`.
        """
        field = self.field
        self._forward = interpolator.is_forward
        self._dispatched = False
        t1 = interpolator.current_state.time
        dt = t1 - self._t0
        span = abs(field.to_real(dt))
        if span < self.config.convergence:
            self._pending_event = False
            self._pending_event_time = None
            return False

        n = max(1, int(math.ceil(span / self.config.max_check_interval)))
        h = dt / n

        ta = self._t0
        ga = self._g0
        i = 0
        while i < n:
            tb = t1 if i == n - 1 else self._t0 + h * (i + 1)
            gb = self._g_at(interpolator, tb)

            if self._g0_positive ^ (field.to_real(gb) >= 0.0):
                self._increasing = field.to_real(gb - ga) >= 0.0
                root = _solve_bracketed(
                    lambda t: self._g_at(interpolator, t),
                    ta, ga, tb, gb, field,
                    self.config.convergence, self.config.max_iterations,
                    handler=self.handler,
                )

                if (self._previous_event_time is not None
                        and self._near(root, ta)
                        and self._near(root, self._previous_event_time)):
                    # already handled: step past it and rescan the sub-interval
                    while True:
                        shift = field.convert(self._threshold(ta))
                        ta = ta + shift if self._forward else ta - shift
                        ga = self._g_at(interpolator, ta)
                        if not ((self._g0_positive ^ (field.to_real(ga) >= 0.0))
                                and self._before(ta, tb)):
                            break
                    if self._before(ta, tb):
                        continue
                    ta, ga = tb, gb

                elif (self._previous_event_time is None
                        or not self._near(self._previous_event_time, root)):
                    self._pending_event_time = root
                    self._pending_event = True
                    return True

                else:
                    ta, ga = tb, gb
            else:
                ta, ga = tb, gb
            i += 1

        self._pending_event = False
        self._pending_event_time = None
        return False

    def step_accepted(self, state: _ODEStateAndDerivative) -> None:
        """Move the tracking point to *state*, dispatching the event if it is here."""
        field = self.field
        self._t0 = state.time
        self._g0 = self.handler.g(state)
        if self.pending and self._near(self._pending_event_time, state.time):
            # force the sign to its value just after the event
            self._previous_event_time = state.time
            self._g0_positive = self._increasing
            self._dispatched = True
            increasing = not (self._increasing ^ self._forward)
            result = self.handler.event_occurred(state, increasing)
            self._next_action, self._reset_payload = _normalize_action(result)
            logger.debug(
                f"Event {self.handler!r} at t={field.to_real(state.time):.16g} "
                f"({'increasing' if increasing else 'decreasing'}): {self._next_action.name}"
            )
        else:
            self._g0_positive = field.to_real(self._g0) >= 0.0
            self._next_action = Action.CONTINUE
            self._reset_payload = None

    def stop(self) -> bool:
        return self._next_action is Action.STOP

    def reset(self, state: _ODEStateAndDerivative) -> Optional[_ODEState]:
        """Return the state to restart from, or None if no reset is requested.

        Parameters
        ----------
        state : :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
            State at the event.

        Returns
        -------
        :class:`~fieldode.algorithms.integrators.types._ODEState` or None
            The replacement state for ``RESET_STATE``, *state* itself for
            ``RESET_DERIVATIVES``, None otherwise.
        """
        if not (self._pending_event and self._near(self._pending_event_time, state.time)):
            return None

        if self._next_action is Action.RESET_STATE:
            if self._reset_payload is not None:
                new_state = self._reset_payload
            else:
                new_state = self.handler.reset_state(state)
        elif self._next_action is Action.RESET_DERIVATIVES:
            new_state = state
        else:
            new_state = None

        self._pending_event = False
        self._pending_event_time = None
        return new_state

    def __repr__(self):
        return f"_EventState(handler={self.handler!r}, config={self.config!r})"
