import pytest

from phytosim.config import SolverSettings
from phytosim.errors import UnknownSolver
from phytosim.solvers.factory import SolverFactory
from phytosim.solvers.integrator import (
    AdaptiveFallback,
    AutoIntegrator,
    FixedStepIntegrator,
    RosenbrockIntegrator,
    ScipyAdaptiveIntegrator,
)


def test_standard_names():
    assert SolverFactory.standard().names() == ["auto", "homemade_euler", "rk23", "rk4", "rk45", "rosenbrock"]


@pytest.mark.parametrize(
    "name, cls",
    [
        ("homemade_euler", FixedStepIntegrator),
        ("rk4", FixedStepIntegrator),
        ("rk45", ScipyAdaptiveIntegrator),
        ("rk23", ScipyAdaptiveIntegrator),
        ("rosenbrock", RosenbrockIntegrator),
        ("auto", AutoIntegrator),
    ],
)
def test_create_each_standard_solver(name, cls):
    solver = SolverFactory.standard().create(name, step_size=0.5, max_steps=10)
    assert isinstance(solver, cls)
    assert solver.name == name
    assert solver.step_size == 0.5
    assert solver.max_steps == 10


def test_unknown_solver_message_quotes_the_name():
    with pytest.raises(UnknownSolver) as excinfo:
        SolverFactory.standard().create("DoesNotExist")
    message = str(excinfo.value)
    assert '"DoesNotExist"' in message
    assert "rosenbrock" in message
    assert isinstance(excinfo.value, KeyError)


def test_register_custom_solver():
    factory = SolverFactory()
    factory.register("my_euler", FixedStepIntegrator)
    solver = factory.create("my_euler", step_size=2.0)
    assert isinstance(solver, FixedStepIntegrator)
    assert "my_euler" in factory


def test_duplicate_registration_is_rejected():
    factory = SolverFactory.standard()
    with pytest.raises(ValueError):
        factory.register("rk4", FixedStepIntegrator)


def test_extra_keyword_arguments_reach_the_solver():
    solver = SolverFactory.standard().create("rk45", fallback=AdaptiveFallback.RAISE)
    assert solver.fallback is AdaptiveFallback.RAISE


def test_from_settings():
    settings = SolverSettings(solver="rosenbrock", step_size=0.25, rel_error_tolerance=1e-6)
    solver = SolverFactory.standard().from_settings(settings)
    assert isinstance(solver, RosenbrockIntegrator)
    assert solver.rel_error_tolerance == 1e-6
    assert solver.step_size == 0.25
