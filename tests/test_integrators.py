import math

import numpy as np
import pytest

from conftest import ExponentialDecay
from phytosim.errors import AdaptiveIncompatible, IntegrationError, StepLimitExceeded
from phytosim.framework.module import DerivativeModule
from phytosim.framework.system import DynamicalSystem
from phytosim.module_library.thermal_time import ThermalTimeLinear
from phytosim.solvers.integrator import (
    AdaptiveFallback,
    AutoIntegrator,
    FixedStepIntegrator,
    RosenbrockIntegrator,
    ScipyAdaptiveIntegrator,
    SolverKind,
)
from phytosim.solvers.steppers import rosenbrock2_step


class Explodes(DerivativeModule):
    NAME = "explodes"

    @classmethod
    def get_inputs(cls):
        return ["A"]

    @classmethod
    def get_outputs(cls):
        return ["A"]

    def do_operation(self, inputs):
        return {"A": math.inf}


class UndefinedAboveLimit(DerivativeModule):
    """dA/dt = A, undefined once A exceeds 1.042"""
    NAME = "undefined_above_limit"

    @classmethod
    def get_inputs(cls):
        return ["A"]

    @classmethod
    def get_outputs(cls):
        return ["A"]

    def do_operation(self, inputs):
        return {"A": inputs["A"] if inputs["A"] <= 1.042 else math.nan}


def thermal_time_system(t_end=24.0):
    return DynamicalSystem(
        initial_values={"TTc": 0.0},
        parameters={"temp": 15.0, "tbase": 10.0},
        steady_modules=[],
        derivative_modules=[ThermalTimeLinear()],
        time_span=(0.0, t_end),
    )


def final_error(result, k=0.5):
    exact = math.exp(-k * result.times[-1])
    return abs(result.final_state()["A"] - exact)


def test_euler_converges_at_first_order(decay_system):
    coarse = FixedStepIntegrator(SolverKind.HOMEMADE_EULER, step_size=0.1).integrate(decay_system())
    fine = FixedStepIntegrator(SolverKind.HOMEMADE_EULER, step_size=0.05).integrate(decay_system())
    assert final_error(coarse) / final_error(fine) == pytest.approx(2.0, rel=0.1)


def test_rk4_is_much_more_accurate_than_euler(decay_system):
    euler = FixedStepIntegrator(SolverKind.HOMEMADE_EULER, step_size=0.1).integrate(decay_system())
    rk4 = FixedStepIntegrator(SolverKind.RK4, step_size=0.1).integrate(decay_system())
    assert final_error(rk4) < final_error(euler) / 1000.0


def test_fixed_step_clips_the_last_step(decay_system):
    result = FixedStepIntegrator(SolverKind.HOMEMADE_EULER, step_size=0.3).integrate(decay_system())
    assert result.steps == 7
    assert len(result) == 8
    assert result.times[0] == 0.0
    assert result.times[-1] == 2.0
    assert np.all(np.diff(result.times) > 0.0)


def test_derivative_call_counts(decay_system):
    euler = FixedStepIntegrator(SolverKind.HOMEMADE_EULER, step_size=0.5).integrate(decay_system())
    rk4 = FixedStepIntegrator(SolverKind.RK4, step_size=0.5).integrate(decay_system())
    assert euler.ncalls == 4
    assert rk4.ncalls == 16


@pytest.mark.parametrize("kind", [SolverKind.RK45, SolverKind.RK23])
def test_scipy_methods_reach_the_end_time(decay_system, kind):
    result = ScipyAdaptiveIntegrator(kind, step_size=0.1).integrate(decay_system())
    assert result.solver_name == kind.value
    assert result.times[-1] == pytest.approx(2.0)
    assert final_error(result) < 1e-3
    assert not result.degraded


def test_rosenbrock_reaches_the_end_time(decay_system):
    result = RosenbrockIntegrator(step_size=0.1).integrate(decay_system())
    assert result.times[-1] == 2.0
    assert final_error(result) < 5e-3


def test_rosenbrock_handles_a_stiff_system(decay_system):
    result = RosenbrockIntegrator(step_size=0.01).integrate(decay_system(k=1000.0, t_end=1.0))
    assert result.final_state()["A"] == pytest.approx(0.0, abs=1e-3)
    assert result.steps < 1000


def test_step_limit_carries_partial_result(decay_system):
    with pytest.raises(StepLimitExceeded) as excinfo:
        FixedStepIntegrator(SolverKind.HOMEMADE_EULER, step_size=0.1, max_steps=1).integrate(decay_system())
    error = excinfo.value
    assert error.max_steps == 1
    assert error.final_time == 2.0
    assert len(error.partial_result) == 2
    assert error.partial_result.times[-1] == pytest.approx(0.1)


@pytest.mark.parametrize(
    "integrator",
    [
        ScipyAdaptiveIntegrator(SolverKind.RK45, step_size=1.0, max_steps=1),
        RosenbrockIntegrator(step_size=0.5, max_steps=1),
    ],
)
def test_adaptive_step_limit(decay_system, integrator):
    with pytest.raises(StepLimitExceeded) as excinfo:
        integrator.integrate(decay_system())
    assert len(excinfo.value.partial_result) == 2


def test_adaptive_solver_falls_back_to_euler():
    integrator = ScipyAdaptiveIntegrator(SolverKind.RK45, step_size=1.0)
    result = integrator.integrate(thermal_time_system())
    assert result.degraded
    assert result.solver_name == SolverKind.HOMEMADE_EULER.value
    assert result.steps == 24
    assert result.final_state()["TTc"] == pytest.approx(5.0)
    assert "Degraded" in integrator.integrate_report()


def test_adaptive_solver_can_refuse_incompatible_systems():
    integrator = RosenbrockIntegrator(fallback=AdaptiveFallback.RAISE)
    with pytest.raises(AdaptiveIncompatible) as excinfo:
        integrator.integrate(thermal_time_system())
    assert excinfo.value.module_names == ["thermal_time_linear"]


def test_fixed_step_solvers_do_not_check_compatibility():
    result = FixedStepIntegrator(SolverKind.RK4, step_size=1.0).integrate(thermal_time_system())
    assert not result.degraded
    assert result.solver_name == SolverKind.RK4.value


def test_auto_picks_a_method(decay_system):
    auto = AutoIntegrator(step_size=1.0)
    compatible = auto.integrate(decay_system())
    incompatible = auto.integrate(thermal_time_system())

    assert compatible.solver_name == SolverKind.ROSENBROCK.value
    assert incompatible.solver_name == SolverKind.HOMEMADE_EULER.value
    assert not incompatible.degraded


@pytest.mark.parametrize(
    "integrator",
    [FixedStepIntegrator(SolverKind.HOMEMADE_EULER, step_size=0.1), RosenbrockIntegrator(step_size=0.1)],
)
def test_non_finite_state_is_an_error(integrator):
    system = DynamicalSystem({"A": 1.0}, {}, [], [Explodes()], time_span=(0.0, 1.0))
    with pytest.raises(IntegrationError):
        integrator.integrate(system)


@pytest.mark.parametrize(
    "kwargs",
    [{"step_size": 0.0}, {"rel_error_tolerance": -1.0}, {"abs_error_tolerance": 0.0}, {"max_steps": 0}],
)
def test_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        RosenbrockIntegrator(**kwargs)


def test_fixed_step_integrator_rejects_adaptive_kind():
    with pytest.raises(ValueError):
        FixedStepIntegrator(SolverKind.RK45)


def test_reports(decay_system):
    integrator = FixedStepIntegrator(SolverKind.RK4, step_size=0.5)
    assert "rk4" in integrator.info_report()
    assert not integrator.integrate_method_has_been_called
    assert "has not completed" in integrator.integrate_report()

    integrator.integrate(decay_system())
    assert integrator.integrate_method_has_been_called
    report = integrator.integrate_report()
    assert "Accepted steps: 4" in report
    assert "Derivative evaluations: 16" in report


def test_rosenbrock_step_with_undefined_stage_is_not_finite():
    def f(y, t):
        return y if y[0] <= 1.042 else np.full_like(y, np.nan)

    y = np.array([1.0])
    y_new, error = rosenbrock2_step(f, y, 0.0, 0.04, f(y, 0.0), np.array([[1.0]]), np.array([0.0]))
    assert not np.all(np.isfinite(y_new))
    assert not np.all(np.isfinite(error))


def test_rosenbrock_rejects_steps_with_undefined_stages():
    # The first attempted stage overshoots the limit; the exact solution stays below it
    system = DynamicalSystem({"A": 1.0}, {}, [], [UndefinedAboveLimit()], time_span=(0.0, 0.04))
    result = RosenbrockIntegrator(step_size=0.04).integrate(system)

    assert result.steps > 1
    assert result.final_state()["A"] == pytest.approx(math.exp(0.04), rel=1e-3)
