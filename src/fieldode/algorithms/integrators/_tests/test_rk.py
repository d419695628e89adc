import math
from fractions import Fraction

import numpy as np
import pytest
from scipy.integrate import solve_ivp

from fieldode.algorithms.dynamics.rhs import create_rhs_system
from fieldode.algorithms.fields import RealField
from fieldode.algorithms.integrators.interpolators import \
    _HermiteStepInterpolator
from fieldode.algorithms.integrators.rk import (RungeKutta, _Euler,
                                                _FixedStepRK, _Midpoint,
                                                _RK4, _ThreeEighths)
from fieldode.algorithms.integrators.sampling import _StepHandler
from fieldode.algorithms.integrators.types import _ODEState
from fieldode.algorithms.utils.exceptions import (DimensionMismatchError,
                                                  MaxEvaluationsExceededError,
                                                  TooSmallIntervalError)


def _decay_system(k):
    return create_rhs_system(lambda t, y: -k * y, dim=1, name=f"decay_{k}")


def test_factory_orders_and_names():
    assert isinstance(RungeKutta(order=4, step=0.1), _RK4)
    assert isinstance(RungeKutta(order=2, step=0.1), _Midpoint)
    assert isinstance(RungeKutta(order=1, step=0.1), _Euler)
    assert isinstance(RungeKutta.from_name("three_eighths", step=0.1), _ThreeEighths)
    assert isinstance(RungeKutta.from_name("Classical", step=0.1), _RK4)
    assert RungeKutta(order=4, step=0.1).name == "classical Runge-Kutta"
    assert RungeKutta(order=4, step=0.1).order == 4
    assert RungeKutta(order=4, step=0.1).stages == 4

    with pytest.raises(ValueError):
        RungeKutta(order=3, step=0.1)
    with pytest.raises(ValueError):
        RungeKutta.from_name("dopri", step=0.1)
    with pytest.raises(ValueError):
        RungeKutta(order=4, step=0.0)
    with pytest.raises(ValueError):
        RungeKutta(order=4, step=-0.1)
    with pytest.raises(ValueError):
        RungeKutta(order=4)


def test_sanity_checks(decay):
    integrator = RungeKutta(order=4, step=0.01)

    with pytest.raises(DimensionMismatchError):
        integrator.integrate(decay, _ODEState(0.0, np.zeros(decay.dim + 10)), 1.0)
    assert decay.calls == 0

    with pytest.raises(TooSmallIntervalError):
        integrator.integrate(decay, _ODEState(0.0, np.zeros(decay.dim)), 0.0)
    assert decay.calls == 0


def test_error_ratio_is_close_to_sixteen():
    """Halving the step divides the global error by about 2^4."""
    for k in (0.5, 1.0, 1.5):
        system = _decay_system(k)
        exact = math.exp(-k)
        errors = []
        for n in (16, 32, 64, 128):
            integrator = RungeKutta(order=4, step=1.0 / n)
            final = integrator.integrate(system, _ODEState(0.0, [1.0]), 1.0)
            errors.append(abs(final.state[0] - exact))

        ratios = [errors[i] / errors[i + 1] for i in range(len(errors) - 1)]
        for ratio in ratios:
            assert 15.0 < ratio < 17.5, f"k={k}: ratios {ratios}"


def test_decreasing_steps(all_problems, problem_handler):
    for problem in all_problems:
        event_handlers = problem.event_handlers()
        event_times = problem.theoretical_event_times()
        previous_value_error = None
        previous_time_error = None
        for i in range(4, 10):
            step = abs(problem.t_final - problem.t0) * 2.0 ** -i
            integrator = RungeKutta(order=4, step=step)
            handler = problem_handler(problem, integrator)
            integrator.add_step_handler(handler)
            for event_handler in event_handlers:
                integrator.add_event_handler(event_handler, math.inf, 1.0e-6 * step, 1000)
            assert len(integrator.get_event_handlers()) == len(event_handlers)

            stop = integrator.integrate(problem, problem.initial_state, problem.t_final)
            if event_handlers:
                # the last theoretical event stops the integration
                assert abs(stop.time - event_times[-1]) < 1e-6
            else:
                assert abs(stop.time - problem.t_final) < 1e-10
            integrator.clear_event_handlers()
            assert len(integrator.get_event_handlers()) == 0

            error = handler.max_value_error
            if previous_value_error is not None:
                assert error < 1.01 * previous_value_error, (
                    f"{type(problem).__name__}: error {error} after {previous_value_error}"
                )
            previous_value_error = error

            time_error = handler.max_time_error
            if previous_time_error is not None:
                assert time_error <= previous_time_error
            previous_time_error = time_error


def test_small_step(decay, problem_handler):
    step = (decay.t_final - decay.t0) * 0.001
    integrator = RungeKutta(order=4, step=step)
    handler = problem_handler(decay, integrator)
    integrator.add_step_handler(handler)
    integrator.integrate(decay, decay.initial_state, decay.t_final)

    assert handler.last_error < 2.0e-13
    assert handler.max_value_error < 4.0e-12
    assert handler.max_time_error == pytest.approx(0.0, abs=1e-12)
    assert integrator.name == "classical Runge-Kutta"


def test_big_step(decay, problem_handler):
    step = (decay.t_final - decay.t0) * 0.2
    integrator = RungeKutta(order=4, step=step)
    handler = problem_handler(decay, integrator)
    integrator.add_step_handler(handler)
    integrator.integrate(decay, decay.initial_state, decay.t_final)

    assert handler.last_error > 0.0004
    assert handler.max_value_error > 0.005
    assert handler.max_time_error == pytest.approx(0.0, abs=1e-12)


def test_backward(backward_decay, problem_handler):
    step = abs(backward_decay.t_final - backward_decay.t0) * 0.001
    integrator = RungeKutta(order=4, step=step)
    handler = problem_handler(backward_decay, integrator)
    integrator.add_step_handler(handler)
    final = integrator.integrate(backward_decay, backward_decay.initial_state, backward_decay.t_final)

    assert final.time == backward_decay.t_final
    assert handler.last_error < 5.0e-10
    assert handler.max_value_error < 7.0e-10
    assert handler.max_time_error == pytest.approx(0.0, abs=1e-12)


def test_backward_reproduces_forward(oscillator):
    """Integrating forward then back along the same grid returns to the start."""
    integrator = RungeKutta(order=4, step=0.01)
    forward = integrator.integrate(oscillator, oscillator.initial_state, 1.0)
    back = integrator.integrate(oscillator, _ODEState(forward.time, forward.state), 0.0)

    assert back.time == 0.0
    np.testing.assert_allclose(back.state, oscillator.y0, atol=1e-8)
    np.testing.assert_allclose(forward.state, oscillator.theoretical(1.0), atol=1e-8)


def test_kepler_eccentric_orbit_is_not_resolved(kepler):
    problem = kepler(0.9)
    step = (problem.t_final - problem.t0) * 0.0003

    class KeplerHandler(_StepHandler):
        def init(self, initial_state, target_time):
            self.max_error = 0.0
            self.finished = False

        def handle_step(self, interpolator, is_last):
            current = interpolator.current_state
            expected = problem.theoretical(current.time)
            dx = current.state[0] - expected[0]
            dy = current.state[1] - expected[1]
            self.max_error = max(self.max_error, dx * dx + dy * dy)
            if is_last:
                self.finished = True

    handler = KeplerHandler()
    integrator = RungeKutta(order=4, step=step)
    integrator.add_step_handler(handler)
    integrator.integrate(problem, problem.initial_state, problem.t_final)

    # even with more than 1000 evaluations per period, RK4 cannot follow
    # such an eccentric orbit accurately
    assert handler.finished
    assert handler.max_error > 0.005


def test_step_size_seen_by_observers():
    step = 1.23456
    seen = []

    class StepRecorder(_StepHandler):
        def handle_step(self, interpolator, is_last):
            seen.append((interpolator.current_state.time - interpolator.previous_state.time, is_last))

    system = create_rhs_system(lambda t, y: [1.0], dim=1, name="unit_slope")
    integrator = RungeKutta(order=4, step=step)
    integrator.add_step_handler(StepRecorder())
    final = integrator.integrate(system, _ODEState(0.0, [0.0]), 5.0)

    assert final.time == 5.0
    assert final.state[0] == pytest.approx(5.0, abs=1e-12)
    assert len(seen) == 5
    for dt, is_last in seen:
        if not is_last:
            assert dt == pytest.approx(step, abs=1e-12)
    assert seen[-1][1]


def test_too_large_first_step():
    t0, target = 0.0, 0.5
    times = []

    def rhs(t, y):
        assert t0 <= t <= target, f"derivatives evaluated outside the interval at t={t}"
        times.append(t)
        return [-100.0 * y[0]]

    integrator = RungeKutta(order=4, step=1.0)
    system = create_rhs_system(rhs, dim=1)
    final = integrator.integrate(system, _ODEState(t0, [1.0]), target)

    assert final.time == target
    assert min(times) == t0 and max(times) == target
    # one derivative at start, four stages minus the reused one, one at the end
    assert integrator.evaluations == 5


def test_first_stage_reuses_start_derivative(decay):
    integrator = RungeKutta(order=4, step=0.5)
    integrator.integrate(decay, decay.initial_state, 4.0)

    # 1 initial derivative + 8 steps * (3 stages + 1 end derivative)
    assert integrator.evaluations == 1 + 8 * 4
    assert decay.calls == integrator.evaluations


def test_max_evaluations(decay):
    integrator = RungeKutta(order=4, step=0.5)
    integrator.max_evaluations = 10
    with pytest.raises(MaxEvaluationsExceededError):
        integrator.integrate(decay, decay.initial_state, 4.0)
    assert integrator.evaluations == 10


def test_single_step_matches_integration_bit_for_bit(polynomial):
    integrator = RungeKutta(order=4, step=0.25)
    final = integrator.integrate(polynomial, polynomial.initial_state, 1.0)

    y = polynomial.y0
    for t_start in (0.0, 0.25, 0.5, 0.75):
        y = integrator.single_step(polynomial, t_start, y, t_start + 0.25)

    assert np.array_equal(y, final.state)


def test_other_tableaus_converge_with_their_order(decay):
    exact = decay.theoretical(1.0)
    for factory, order in ((_Euler, 1), (_Midpoint, 2), (_ThreeEighths, 4)):
        errors = []
        for n in (20, 40):
            integrator = factory(step=1.0 / n)
            final = integrator.integrate(decay, decay.initial_state, 1.0)
            errors.append(np.max(np.abs(final.state - exact)))
        observed = math.log2(errors[0] / errors[1])
        assert abs(observed - order) < 0.2, f"{factory.__name__}: observed order {observed}"


def test_custom_tableau_uses_hermite_dense_output(oscillator):
    # Heun's method
    A = ((Fraction(0), Fraction(0)), (Fraction(1), Fraction(0)))
    B = (Fraction(1, 2), Fraction(1, 2))
    C = (Fraction(0), Fraction(1))
    integrator = _FixedStepRK("Heun", A, B, C, 2, step=0.001)
    assert integrator._interpolator_cls is _HermiteStepInterpolator

    final = integrator.integrate(oscillator, oscillator.initial_state, 1.0)
    np.testing.assert_allclose(final.state, oscillator.theoretical(1.0), atol=1e-5)

    with pytest.raises(ValueError):
        _FixedStepRK("broken", A, (Fraction(1, 2), Fraction(1, 3)), C, 2, step=0.1)


def test_vs_solve_ivp(kepler):
    problem = kepler(0.3)
    integrator = RungeKutta(order=4, step=1e-3)
    final = integrator.integrate(problem, problem.initial_state, 5.0)

    reference = solve_ivp(lambda t, y: problem.compute(t, y), (0.0, 5.0), problem.y0,
                          method="DOP853", rtol=1e-12, atol=1e-12)
    np.testing.assert_allclose(final.state, reference.y[:, -1], rtol=1e-8, atol=1e-9)


def test_real_field_states_stay_float64(decay):
    integrator = RungeKutta(order=4, step=0.1, field=RealField())
    final = integrator.integrate(decay, decay.initial_state, 1.0)
    assert final.state.dtype == np.float64
    assert final.derivative.dtype == np.float64
    assert isinstance(final.time, float)
    with pytest.raises(ValueError):
        final.state[0] = 1.0
