import math

import numpy as np
import pytest

from fieldode.algorithms.dynamics.base import _FirstOrderEquations
from fieldode.algorithms.integrators.events import _EventHandler
from fieldode.algorithms.integrators.sampling import _StepHandler
from fieldode.algorithms.integrators.types import Action, _ODEState


class _TestProblem(_FirstOrderEquations):
    """Reference problem with a known closed-form solution (real field)."""

    def __init__(self, t0, y0, t_final):
        super().__init__(len(y0))
        self.t0 = t0
        self.y0 = np.asarray(y0, dtype=np.float64)
        self.t_final = t_final
        self.calls = 0

    @property
    def initial_state(self) -> _ODEState:
        return _ODEState(self.t0, self.y0)

    def event_handlers(self):
        return []

    def theoretical_event_times(self):
        return []

    def derivatives(self, t, y):
        self.calls += 1
        return self.compute(t, y)

    def compute(self, t, y):
        raise NotImplementedError

    def theoretical(self, t) -> np.ndarray:
        raise NotImplementedError


class _ExponentialDecay(_TestProblem):
    """y' = -y, y(0) = [1, 0.1] on [0, 4]."""

    def __init__(self, t_final=4.0):
        super().__init__(0.0, [1.0, 0.1], t_final)

    def compute(self, t, y):
        return -y

    def theoretical(self, t):
        return self.y0 * math.exp(-(t - self.t0))


class _Polynomial(_TestProblem):
    """y' = t^3 - t y, y(0) = 0 on [0, 1]; y = t^2 - 2 + 2 exp(-t^2 / 2)."""

    def __init__(self):
        super().__init__(0.0, [0.0], 1.0)

    def compute(self, t, y):
        return [t * t * t - t * y[0]]

    def theoretical(self, t):
        return np.array([t * t - 2.0 + 2.0 * math.exp(-0.5 * t * t)])


class _Kepler(_TestProblem):
    """Two-body problem of eccentricity *e*, started at the pericenter."""

    def __init__(self, e=0.1):
        self.e = e
        super().__init__(0.0, [1.0 - e, 0.0, 0.0, math.sqrt((1.0 + e) / (1.0 - e))], 20.0)

    def compute(self, t, y):
        r2 = y[0] * y[0] + y[1] * y[1]
        inv_r3 = 1.0 / (r2 * math.sqrt(r2))
        return [y[2], y[3], -y[0] * inv_r3, -y[1] * inv_r3]

    def theoretical(self, t):
        # solve Kepler's equation E - e sin E = t by Newton iterations on d = E - t
        e = self.e
        d = 0.0
        ecc_anomaly = t
        while True:
            f2 = e * math.sin(ecc_anomaly)
            f0 = d - f2
            f1 = 1.0 - e * math.cos(ecc_anomaly)
            f12 = f1 + f1
            corr = f0 * f12 / (f1 * f12 - f0 * f2)
            d -= corr
            ecc_anomaly = t + d
            if abs(corr) <= 1.0e-12:
                break
        cos_e = math.cos(ecc_anomaly)
        sin_e = math.sin(ecc_anomaly)
        root = math.sqrt(1.0 - e * e)
        return np.array([
            cos_e - e,
            root * sin_e,
            -sin_e / (1.0 - e * cos_e),
            root * cos_e / (1.0 - e * cos_e),
        ])


class _Bounce(_EventHandler):
    def __init__(self):
        self.sign = 1
        self.times = []

    def init(self, initial_state, target_time):
        self.sign = 1
        self.times = []

    def g(self, state):
        return self.sign * state.state[0]

    def event_occurred(self, state, increasing):
        self.sign = -self.sign
        self.times.append(state.time)
        return Action.RESET_STATE

    def reset_state(self, state):
        return _ODEState(state.time, -state.state)


class _StopAt(_EventHandler):
    def __init__(self, t_stop):
        self.t_stop = t_stop

    def g(self, state):
        return state.time - self.t_stop

    def event_occurred(self, state, increasing):
        return Action.STOP


class _BouncingBall(_TestProblem):
    """x'' = -x reflected at x = 0 and stopped at t = 12.

    The solution is ``x = |sin(t + a)|``.
    """

    def __init__(self, a=1.2):
        self.a = a
        super().__init__(0.0, [math.sin(a), math.cos(a)], 15.0)
        self.bounce = _Bounce()
        self.stop = _StopAt(12.0)

    def event_handlers(self):
        return [self.bounce, self.stop]

    def theoretical_event_times(self):
        times = []
        k = 1
        while k * math.pi - self.a < 12.0:
            times.append(k * math.pi - self.a)
            k += 1
        times.append(12.0)
        return times

    def compute(self, t, y):
        return [y[1], -y[0]]

    def theoretical(self, t):
        s = math.sin(t + self.a)
        c = math.cos(t + self.a)
        return np.array([abs(s), math.copysign(1.0, s) * c])


class _BackwardDecay(_ExponentialDecay):
    """Same as the decay problem, integrated from 0 down to -4."""

    def __init__(self):
        super().__init__(t_final=-4.0)


class _Oscillator(_TestProblem):
    """y'' = -w^2 y with y(0) = 0, y'(0) = w, on [0, 2 pi / w]."""

    def __init__(self, w=2.0):
        self.w = w
        super().__init__(0.0, [0.0, w], 2.0 * math.pi / w)

    def compute(self, t, y):
        return [y[1], -self.w * self.w * y[0]]

    def theoretical(self, t):
        return np.array([math.sin(self.w * t), self.w * math.cos(self.w * t)])


class _ProblemHandler(_StepHandler):
    """Compare every accepted step with the closed-form solution.

    Tracks the largest interpolated value error over 21 points per step,
    the error at the final point, and the largest mismatch between a step
    start and the end of the previous step (events excepted). Points closer
    than *event_window* to a theoretical event are not compared.
    """

    def __init__(self, problem, integrator, event_window=1.0e-6):
        self.problem = problem
        self.integrator = integrator
        self.event_window = event_window
        self.max_value_error = 0.0
        self.max_time_error = 0.0
        self.last_error = 0.0
        self.last_time = None
        self._expected_step_start = None

    def init(self, initial_state, target_time):
        self.max_value_error = 0.0
        self.max_time_error = 0.0
        self.last_error = 0.0
        self.last_time = None
        self._expected_step_start = None

    def handle_step(self, interpolator, is_last):
        start = self.integrator.current_step_start.time
        h = self.integrator.current_signed_step_size
        if self._expected_step_start is not None:
            step_error = max(self.max_time_error, abs(start - self._expected_step_start))
            for event_time in self.problem.theoretical_event_times():
                step_error = min(step_error, abs(start - event_time))
            self.max_time_error = max(self.max_time_error, step_error)
        self._expected_step_start = start + h

        p_t = interpolator.previous_state.time
        c_t = interpolator.current_state.time
        if is_last:
            y = interpolator.current_state.state
            self.last_error = max(self.last_error, float(np.max(np.abs(y - self.problem.theoretical(c_t)))))
            self.last_time = c_t

        event_times = self.problem.theoretical_event_times()
        for k in range(21):
            t = p_t + (c_t - p_t) * k / 20
            if any(abs(t - te) < self.event_window for te in event_times):
                # the reflected velocity is discontinuous there
                continue
            y = interpolator.state_at(t).state
            error = float(np.max(np.abs(y - self.problem.theoretical(t))))
            self.max_value_error = max(self.max_value_error, error)


@pytest.fixture
def decay():
    return _ExponentialDecay()


@pytest.fixture
def polynomial():
    return _Polynomial()


@pytest.fixture
def backward_decay():
    return _BackwardDecay()


@pytest.fixture
def oscillator():
    return _Oscillator()


@pytest.fixture
def kepler():
    """Factory ``kepler(e)`` of two-body problems."""
    return _Kepler


@pytest.fixture
def bouncing_ball():
    return _BouncingBall()


@pytest.fixture
def all_problems():
    return [_ExponentialDecay(), _Polynomial(), _Kepler(), _BouncingBall(), _BackwardDecay(), _Oscillator()]


@pytest.fixture
def problem_handler():
    """Factory ``problem_handler(problem, integrator)`` of checking observers."""
    return _ProblemHandler
