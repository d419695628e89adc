"""Provide the abstract driver shared by the fixed-step integrators.

The driver owns everything that does not depend on the stepping formula:
the event-handler and step-observer registries, the sanity checks of an
integration request, the evaluation counter and the acceptance of a step,
which is where events are located, ordered and acted upon.

References
----------
Hairer, E., Norsett, S. P., & Wanner, G. (1993). "Solving Ordinary
Differential Equations I: Non-stiff Problems".
"""

import math
from abc import ABC, abstractmethod
from functools import cmp_to_key
from typing import List, Optional

import numpy as np

from fieldode.algorithms.dynamics.expandable import _ExpandableODE
from fieldode.algorithms.fields.base import _Field
from fieldode.algorithms.fields.real import _RealField
from fieldode.algorithms.integrators.configs import _EventConfig
from fieldode.algorithms.integrators.events import _EventHandler, _EventState
from fieldode.algorithms.integrators.types import (Action, _ODEState,
                                                   _ODEStateAndDerivative)
from fieldode.algorithms.utils.config import (DEFAULT_CONVERGENCE,
                                              DEFAULT_MAX_CHECK_INTERVAL,
                                              DEFAULT_MAX_ITERATIONS,
                                              TOO_SMALL_INTERVAL_ULPS)
from fieldode.algorithms.utils.exceptions import TooSmallIntervalError
from fieldode.utils.log_config import logger


class _Integrator(ABC):
    """Define the interface and the step acceptance logic of every integrator.

    Parameters
    ----------
    name : str
        Human-readable identifier of the method.
    field : :class:`~fieldode.algorithms.fields.base._Field`, optional
        Field of times and state components. Defaults to
        :class:`~fieldode.algorithms.fields.real._RealField`.
    **options
        Extra keyword arguments left untouched and stored in
        :attr:`~fieldode.algorithms.integrators.base._Integrator.options`.

    Attributes
    ----------
    max_evaluations : int or None
        Budget of right-hand side evaluations per integration; None means
        unbounded.
    current_step_start : :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative` or None
        Start of the step in progress, only set during :meth:`integrate`.
    current_signed_step_size : field element or None
        Signed size of the step in progress, only set during :meth:`integrate`.

    Notes
    -----
    Subclasses *must* implement :attr:`order` and :meth:`integrate`, and call
    :meth:`_prepare`, :meth:`_init_integration` and :meth:`_accept_step` from
    their stepping loop.
    """

    def __init__(self, name: str, field: Optional[_Field] = None, **options):
        self.name = name
        self.field = field if field is not None else _RealField()
        self.options = options
        self.max_evaluations = None
        self.current_step_start = None
        self.current_signed_step_size = None

        self._event_states: List[_EventState] = []
        self._n_registered = 0
        self._step_handlers = []
        self._equations: Optional[_ExpandableODE] = None
        self._states_initialized = False
        self._is_last_step = False
        self._reset_occurred = False

    @property
    @abstractmethod
    def order(self) -> int:
        """Order of accuracy of the integrator.

        Returns
        -------
        int
            Order of the method.
        """
        pass

    @abstractmethod
    def integrate(self, system, initial_state: _ODEState, target_time) -> _ODEStateAndDerivative:
        """Integrate *system* from *initial_state* up to *target_time*.

        Parameters
        ----------
        system : :class:`~fieldode.algorithms.dynamics.base._EquationsProtocol` or :class:`~fieldode.algorithms.dynamics.expandable._ExpandableODE`
            Equations to integrate.
        initial_state : :class:`~fieldode.algorithms.integrators.types._ODEState`
            Initial time and state.
        target_time : field element or number
            Final time, before the initial time for backward integration.

        Returns
        -------
        :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
            State at *target_time*, or at the event that stopped integration.
        """
        pass

    def add_event_handler(
        self,
        handler: _EventHandler,
        max_check_interval: float = DEFAULT_MAX_CHECK_INTERVAL,
        convergence: float = DEFAULT_CONVERGENCE,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        *,
        config: Optional[_EventConfig] = None,
    ) -> None:
        """Register an event handler.

        Parameters
        ----------
        handler : :class:`~fieldode.algorithms.integrators.events._EventHandler`
            Handler to register.
        max_check_interval : float, default inf
            Largest span scanned without an intermediate check of g.
        convergence : float, default 1e-10
            Absolute time tolerance of the root refinement.
        max_iterations : int, default 100
            Iteration budget of the root refinement.
        config : :class:`~fieldode.algorithms.integrators.configs._EventConfig`, optional
            Complete configuration; overrides the three previous arguments.

        Raises
        ------
        ValueError
            If *handler* does not expose ``g`` and ``event_occurred`` or the
            configuration is invalid.
        """
        if not (hasattr(handler, "g") and hasattr(handler, "event_occurred")):
            raise ValueError(f"Event handler must implement 'g' and 'event_occurred' for {self.name}")
        if config is None:
            config = _EventConfig(max_check_interval=max_check_interval,
                                  convergence=convergence,
                                  max_iterations=max_iterations)
        self._event_states.append(_EventState(handler, config, self.field, self._n_registered))
        self._n_registered += 1
        # stable sort: registration order within a priority
        self._event_states.sort(key=lambda s: s.priority)

    def get_event_handlers(self) -> list:
        """Return the registered event handlers in dispatch order."""
        return [state.handler for state in self._event_states]

    def clear_event_handlers(self) -> None:
        self._event_states = []
        self._n_registered = 0

    def add_step_handler(self, handler) -> None:
        """Register a step observer (see :mod:`~fieldode.algorithms.integrators.sampling`)."""
        if not hasattr(handler, "handle_step"):
            raise ValueError(f"Step handler must implement 'handle_step' for {self.name}")
        self._step_handlers.append(handler)

    def get_step_handlers(self) -> list:
        return list(self._step_handlers)

    def clear_step_handlers(self) -> None:
        self._step_handlers = []

    @property
    def evaluations(self) -> int:
        """Number of right-hand side evaluations of the last integration."""
        return 0 if self._equations is None else self._equations.evaluations

    def _prepare(self, system, initial_state: _ODEState, target_time):
        """Wrap the equations and convert the request into the integrator field.

        Returns
        -------
        tuple
            ``(equations, t0, y0, target_time)``.
        """
        if isinstance(system, _ExpandableODE):
            equations = system
            if self.max_evaluations is not None:
                equations.max_evaluations = self.max_evaluations
        else:
            equations = _ExpandableODE(system, self.field, self.max_evaluations)
        self._equations = equations

        t0 = self.field.convert(initial_state.time)
        y0 = self.field.array(initial_state.state)
        target_time = self.field.convert(target_time)
        self.sanity_checks(equations, t0, y0, target_time)
        return equations, t0, y0, target_time

    def sanity_checks(self, equations: _ExpandableODE, t0, y0: np.ndarray, target_time) -> None:
        """Validate that the request forms a consistent integration task.

        Raises
        ------
        DimensionMismatchError
            If ``len(y0)`` differs from the equation dimension.
        TooSmallIntervalError
            If the span is within a thousand ulps of the end points.
        """
        equations.check_dimension(y0)

        t0_real = self.field.to_real(t0)
        t_real = self.field.to_real(target_time)
        threshold = TOO_SMALL_INTERVAL_ULPS * math.ulp(max(abs(t0_real), abs(t_real)))
        span = abs(self.field.to_real(target_time - t0))
        if span <= threshold:
            raise TooSmallIntervalError(span, threshold)

    def _compute_derivatives(self, t, y: np.ndarray) -> np.ndarray:
        return self._equations.compute_derivatives(t, y)

    def _init_integration(self, equations: _ExpandableODE, t0, y0: np.ndarray, target_time) -> _ODEStateAndDerivative:
        """Reset the per-integration state and notify every handler."""
        equations.init(t0, y0, target_time)
        y0_dot = self._compute_derivatives(t0, y0)
        state0 = _ODEStateAndDerivative(t0, y0, y0_dot)

        for event_state in self._event_states:
            event_state.init(state0, target_time)
        for handler in self._step_handlers:
            handler.init(state0, target_time)

        self._states_initialized = False
        self._is_last_step = False
        self._reset_occurred = False
        logger.debug(
            f"{self.name}: integrating {equations.dim} equations from "
            f"t={self.field.to_real(t0):.16g} to t={self.field.to_real(target_time):.16g} "
            f"over {self.field.name}, {len(self._event_states)} event handler(s)"
        )
        return state0

    def _event_order(self, forward: bool):
        field = self.field
        ordering_sign = 1 if forward else -1

        def compare(s1: _EventState, s2: _EventState) -> int:
            d = field.sign(s1.event_time - s2.event_time) * ordering_sign
            if d != 0:
                return d
            if s1.priority != s2.priority:
                return -1 if s1.priority < s2.priority else 1
            return -1 if s1.index < s2.index else (1 if s1.index > s2.index else 0)

        return cmp_to_key(compare)

    def _at_target(self, t, target_time) -> bool:
        return abs(self.field.to_real(t - target_time)) <= math.ulp(self.field.to_real(target_time))

    def _accept_step(self, interpolator, target_time) -> _ODEStateAndDerivative:
        """Handle events over one step and notify the observers.

        Parameters
        ----------
        interpolator : :class:`~fieldode.algorithms.integrators.interpolators._RungeKuttaStepInterpolator`
            Dense output of the step just computed.
        target_time : field element
            Final time of the integration.

        Returns
        -------
        :class:`~fieldode.algorithms.integrators.types._ODEStateAndDerivative`
            State to start the next step from: the step end, the event
            state after a ``STOP``, or the reset state after a reset.
        """
        previous_state = interpolator.global_previous_state
        current_state = interpolator.global_current_state

        if not self._states_initialized:
            for event_state in self._event_states:
                event_state.reinitialize_begin(interpolator)
            self._states_initialized = True

        order_key = self._event_order(interpolator.is_forward)
        occurring = [s for s in self._event_states if s.evaluate_step(interpolator)]

        restricted = interpolator
        while occurring:
            occurring.sort(key=order_key)
            current_event = occurring.pop(0)

            event_state = restricted.state_at(current_event.event_time)
            restricted = restricted.restrict_step(previous_state, event_state)

            for event_state_machine in self._event_states:
                event_state_machine.step_accepted(event_state)
                self._is_last_step = self._is_last_step or event_state_machine.stop()

            new_state = None
            if not self._is_last_step:
                for event_state_machine in self._event_states:
                    new_state = event_state_machine.reset(event_state)
                    if new_state is not None:
                        break

            at_target = self._at_target(event_state.time, target_time)
            is_last = self._is_last_step or (new_state is not None and at_target)
            for handler in self._step_handlers:
                handler.handle_step(restricted, is_last)

            if self._is_last_step:
                logger.debug(f"{self.name}: stopped by event at t={self.field.to_real(event_state.time):.16g}")
                return event_state

            if new_state is not None:
                y = self.field.array(new_state.state)
                y_dot = self._compute_derivatives(new_state.time, y)
                self._reset_occurred = True
                self._is_last_step = at_target
                logger.debug(f"{self.name}: state reset at t={self.field.to_real(new_state.time):.16g}")
                return _ODEStateAndDerivative(new_state.time, y, y_dot)

            previous_state = event_state
            restricted = restricted.restrict_step(event_state, current_state)

            if current_event.next_action is Action.RESET_EVENTS:
                occurring = [s for s in self._event_states if s.evaluate_step(restricted)]
            else:
                # every handler dispatched at this instant scans the rest of the step again
                dispatched = [s for s in self._event_states if s.dispatched]
                occurring = [s for s in occurring if s.pending and not s.dispatched]
                occurring.extend(s for s in dispatched if s.evaluate_step(restricted))

        for event_state_machine in self._event_states:
            event_state_machine.step_accepted(current_state)
            self._is_last_step = self._is_last_step or event_state_machine.stop()
        self._is_last_step = self._is_last_step or self._at_target(current_state.time, target_time)

        for handler in self._step_handlers:
            handler.handle_step(restricted, self._is_last_step)

        return current_state

    def __str__(self):
        return f"FieldODE-{self.name}"

    def __repr__(self):
        return f"{self.__class__.__name__}(name='{self.name}', field={self.field!r}, options={self.options})"
