"""
Integrators
===========
Strategies that advance a dynamical system from its start time to its end time.

Why is this file needed?
------------------------
1. Time-Stepping: It manages the temporal loop (t_start to t_end) for every
   supported method and records one snapshot per accepted step.
2. Guard rails: It enforces ``max_steps`` and the adaptive-compatibility check
   shared by all methods.

The set of methods is closed (see ``SolverKind``): fixed-step Euler and RK4,
adaptive Runge-Kutta pairs provided by ``scipy.integrate``, an adaptive
Rosenbrock method, and ``auto`` which picks between Rosenbrock and Euler.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Callable

import numpy as np
import scipy as sp

from phytosim.config import (
    DEFAULT_ABS_ERROR_TOLERANCE,
    DEFAULT_MAX_STEPS,
    DEFAULT_REL_ERROR_TOLERANCE,
    DEFAULT_STEP_SIZE,
)
from phytosim.errors import AdaptiveIncompatible, IntegrationError, StepLimitExceeded
from phytosim.framework.result import SimulationResult
from phytosim.solvers.steppers import (
    error_norm,
    euler_step,
    finite_difference_jacobian,
    rk4_step,
    rosenbrock2_step,
)

if TYPE_CHECKING:
    import numpy.typing as npt

    from phytosim.framework.system import DynamicalSystem

logger = logging.getLogger(__name__)

# Relative slack used when deciding whether the end time has been reached
_TIME_EPS = 1e-12


class SolverKind(StrEnum):
    HOMEMADE_EULER = "homemade_euler"
    RK4 = "rk4"
    RK45 = "rk45"
    RK23 = "rk23"
    ROSENBROCK = "rosenbrock"
    AUTO = "auto"


class AdaptiveFallback(StrEnum):
    """What an adaptive integrator does with an adaptive-incompatible system."""
    EULER = "euler"
    RAISE = "raise"


def _check_finite(y: npt.NDArray[np.float64], time: float, solver_name: str) -> None:
    if not np.all(np.isfinite(y)):
        raise IntegrationError(f"The '{solver_name}' solver produced a non-finite state at time {time:.6g}.")


def _start_result(system: DynamicalSystem, solver_name: str) -> tuple[SimulationResult, npt.NDArray[np.float64]]:
    y0 = system.initial_state()
    result = SimulationResult(solver_name=solver_name)
    result.append(system.t_start, system.snapshot(y0, system.t_start))
    return result, y0


def run_fixed_step(
    system: DynamicalSystem,
    step: Callable,
    step_size: float,
    max_steps: int,
    solver_name: str
) -> SimulationResult:
    """
    Integrate with a constant step size.

    The number of steps is ``ceil((t_end - t_start) / step_size)``; the last
    step is shortened so the run ends exactly at ``t_end``.

    Args:
        system: The system to integrate.
        step: Stepper with the signature of :func:`euler_step`.
        step_size: Step size.
        max_steps: Maximum number of steps.
        solver_name: Name recorded in the result.

    Returns:
        The recorded snapshots.

    Raises:
        StepLimitExceeded: If more than ``max_steps`` steps are needed.
    """
    t_start, t_end = system.time_span
    n_steps = max(1, math.ceil((t_end - t_start) / step_size - _TIME_EPS))
    result, y = _start_result(system, solver_name)

    time = t_start
    for k in range(1, n_steps + 1):
        if k > max_steps:
            result.ncalls = system.ncalls
            raise StepLimitExceeded(max_steps, time, t_end, result)

        next_time = t_end if k == n_steps else t_start + k * step_size
        y = step(system.get_differential, y, time, next_time - time)
        _check_finite(y, next_time, solver_name)
        time = next_time
        result.append(time, system.snapshot(y, time))

    result.ncalls = system.ncalls
    return result


class Integrator(ABC):
    """
    Abstract base class for integration strategies.
    """
    KIND: SolverKind
    ADAPTIVE: bool = False

    def __init__(
        self,
        step_size: float = DEFAULT_STEP_SIZE,
        rel_error_tolerance: float = DEFAULT_REL_ERROR_TOLERANCE,
        abs_error_tolerance: float = DEFAULT_ABS_ERROR_TOLERANCE,
        max_steps: int = DEFAULT_MAX_STEPS,
        check_adaptive_compatible: bool | None = None,
        fallback: AdaptiveFallback = AdaptiveFallback.EULER
    ) -> None:
        """
        Initialize the integrator.

        Args:
            step_size: Fixed step size, or the initial step of adaptive methods.
            rel_error_tolerance: Relative error tolerance of adaptive methods.
            abs_error_tolerance: Absolute error tolerance of adaptive methods.
            max_steps: Maximum number of accepted steps.
            check_adaptive_compatible: Whether to check the system before running.
                Defaults to True for adaptive methods.
            fallback: Behaviour when the check fails.
        """
        if not step_size > 0.0:
            raise ValueError(f"step_size must be positive, got {step_size}")
        if not rel_error_tolerance > 0.0 or not abs_error_tolerance > 0.0:
            raise ValueError("Error tolerances must be positive.")
        if isinstance(max_steps, bool) or not isinstance(max_steps, int) or max_steps < 1:
            raise ValueError(f"max_steps must be a positive integer, got {max_steps!r}")

        self.step_size = float(step_size)
        self.rel_error_tolerance = float(rel_error_tolerance)
        self.abs_error_tolerance = float(abs_error_tolerance)
        self.max_steps = max_steps
        self.check_adaptive_compatible = self.ADAPTIVE if check_adaptive_compatible is None else check_adaptive_compatible
        self.fallback = AdaptiveFallback(fallback)

        self.integrate_method_has_been_called = False
        self.last_result: SimulationResult | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', step_size={self.step_size}, max_steps={self.max_steps})"

    @property
    def name(self) -> str:
        return self.KIND.value

    def integrate(self, system: DynamicalSystem) -> SimulationResult:
        """
        Integrate ``system`` over its time span.

        Args:
            system: The system to integrate. It must not be modified while this runs.

        Returns:
            One snapshot for the start time and one per accepted step.

        Raises:
            AdaptiveIncompatible: If the system is incompatible and the fallback is RAISE.
            StepLimitExceeded: If more than ``max_steps`` steps are needed.
            IntegrationError: If the state becomes non-finite or a step cannot be taken.
        """
        self.integrate_method_has_been_called = True

        if self.check_adaptive_compatible and not system.is_adaptive_compatible():
            result = self.handle_adaptive_incompatibility(system)
        else:
            system.reset_ncalls()
            logger.info(f"Integrating from {system.t_start:g} to {system.t_end:g} with the '{self.name}' solver.")
            result = self.do_integrate(system)

        logger.info(
            f"'{result.solver_name}' finished: {result.steps} steps, {result.ncalls} derivative evaluations."
        )
        self.last_result = result
        return result

    def handle_adaptive_incompatibility(self, system: DynamicalSystem) -> SimulationResult:
        """
        Apply the configured fallback to an adaptive-incompatible system.

        With ``AdaptiveFallback.EULER`` the system is integrated with the
        fixed-step Euler method using this integrator's step size and step
        limit, and the result is flagged as degraded.
        """
        modules = system.adaptive_incompatible_modules()
        if self.fallback is AdaptiveFallback.RAISE:
            raise AdaptiveIncompatible(self.name, modules)

        logger.warning(
            f"The '{self.name}' solver requires an adaptive-compatible system, but these modules are not "
            f"compatible: {', '.join(modules)}. Using the '{SolverKind.HOMEMADE_EULER.value}' solver instead."
        )
        system.reset_ncalls()
        result = run_fixed_step(
            system, euler_step, self.step_size, self.max_steps, SolverKind.HOMEMADE_EULER.value
        )
        result.degraded = True
        return result

    @abstractmethod
    def do_integrate(self, system: DynamicalSystem) -> SimulationResult:
        pass

    def info_report(self) -> str:
        """Summary of the integrator settings."""
        lines = [
            f"Solver: {self.name}",
            f"Step size: {self.step_size:g}",
            f"Maximum steps: {self.max_steps}",
            f"Checks adaptive compatibility: {self.check_adaptive_compatible} (fallback: {self.fallback.value})",
        ]
        if self.ADAPTIVE:
            lines.append(f"Relative error tolerance: {self.rel_error_tolerance:g}")
            lines.append(f"Absolute error tolerance: {self.abs_error_tolerance:g}")
        return "\n".join(lines)

    def integrate_report(self) -> str:
        """Summary of the most recent call to :meth:`integrate`."""
        if not self.integrate_method_has_been_called or self.last_result is None:
            return f"The '{self.name}' solver has not completed an integration."

        result = self.last_result
        lines = [
            f"Method used: {result.solver_name}",
            f"Accepted steps: {result.steps}",
            f"Derivative evaluations: {result.ncalls}",
        ]
        if result.degraded:
            lines.append("Degraded: the system was not adaptive compatible and fixed-step Euler was used.")
        return "\n".join(lines)


class FixedStepIntegrator(Integrator):
    """
    Constant step size methods: explicit Euler and classical RK4.
    """
    _STEPPERS = {
        SolverKind.HOMEMADE_EULER: euler_step,
        SolverKind.RK4: rk4_step,
    }

    def __init__(self, kind: SolverKind = SolverKind.HOMEMADE_EULER, **kwargs) -> None:
        kind = SolverKind(kind)
        if kind not in self._STEPPERS:
            raise ValueError(f"'{kind.value}' is not a fixed-step method.")
        self.KIND = kind
        super().__init__(**kwargs)

    def do_integrate(self, system: DynamicalSystem) -> SimulationResult:
        return run_fixed_step(system, self._STEPPERS[self.KIND], self.step_size, self.max_steps, self.name)


class ScipyAdaptiveIntegrator(Integrator):
    """
    Adaptive explicit Runge-Kutta pairs from ``scipy.integrate``.
    """
    ADAPTIVE = True
    _METHODS = {
        SolverKind.RK45: "RK45",
        SolverKind.RK23: "RK23",
    }

    def __init__(self, kind: SolverKind = SolverKind.RK45, **kwargs) -> None:
        kind = SolverKind(kind)
        if kind not in self._METHODS:
            raise ValueError(f"'{kind.value}' is not a scipy Runge-Kutta method.")
        self.KIND = kind
        super().__init__(**kwargs)

    def do_integrate(self, system: DynamicalSystem) -> SimulationResult:
        result, y0 = _start_result(system, self.name)
        t_start, t_end = system.time_span

        method = getattr(sp.integrate, self._METHODS[self.KIND])
        solver = method(
            fun=lambda t, y: system.get_differential(y, t),
            t0=t_start,
            y0=y0,
            t_bound=t_end,
            first_step=min(self.step_size, t_end - t_start),
            rtol=self.rel_error_tolerance,
            atol=self.abs_error_tolerance,
        )

        steps = 0
        while solver.status == "running":
            if steps >= self.max_steps:
                result.ncalls = system.ncalls
                raise StepLimitExceeded(self.max_steps, float(solver.t), t_end, result)

            message = solver.step()
            if solver.status == "failed":
                result.ncalls = system.ncalls
                raise IntegrationError(f"The '{self.name}' solver failed at time {solver.t:.6g}: {message}")

            steps += 1
            y = np.array(solver.y, dtype=np.float64)
            _check_finite(y, float(solver.t), self.name)
            result.append(float(solver.t), system.snapshot(y, float(solver.t)))

        result.ncalls = system.ncalls
        return result


class RosenbrockIntegrator(Integrator):
    """
    Adaptive second-order Rosenbrock method (ROS2) for stiff systems.

    The Jacobian is approximated by forward differences once per attempted
    step. Step sizes are controlled with the embedded first-order solution.
    """
    KIND = SolverKind.ROSENBROCK
    ADAPTIVE = True

    SAFETY = 0.9
    MIN_FACTOR = 0.2
    MAX_FACTOR = 5.0

    def do_integrate(self, system: DynamicalSystem) -> SimulationResult:
        result, y = _start_result(system, self.name)
        t_start, t_end = system.time_span
        f = system.get_differential
        rtol, atol = self.rel_error_tolerance, self.abs_error_tolerance

        time = t_start
        h = min(self.step_size, t_end - t_start)
        steps = 0
        while time < t_end - _TIME_EPS * max(1.0, abs(t_end)):
            if steps >= self.max_steps:
                result.ncalls = system.ncalls
                raise StepLimitExceeded(self.max_steps, time, t_end, result)

            f0 = f(y, time)
            jacobian, dfdt = finite_difference_jacobian(f, y, time, f0)

            while True:
                h = min(h, t_end - time)
                if h <= _TIME_EPS * max(1.0, abs(time)):
                    result.ncalls = system.ncalls
                    raise IntegrationError(f"The '{self.name}' step size became too small at time {time:.6g}.")

                y_new, error = rosenbrock2_step(f, y, time, h, f0, jacobian, dfdt)
                norm = error_norm(error, y, y_new, rtol, atol) if np.all(np.isfinite(y_new)) else np.inf

                if norm <= 1.0:
                    break

                factor = max(self.MIN_FACTOR, self.SAFETY * norm ** -0.5) if np.isfinite(norm) else self.MIN_FACTOR
                logger.debug(f"Rejected step of {h:.3g} at time {time:.6g} (error norm {norm:.3g}).")
                h *= factor

            accepted_h = h
            time = t_end if t_end - (time + accepted_h) <= _TIME_EPS * max(1.0, abs(t_end)) else time + accepted_h
            y = y_new
            steps += 1
            result.append(time, system.snapshot(y, time))

            factor = self.MAX_FACTOR if norm == 0.0 else min(self.MAX_FACTOR, max(self.MIN_FACTOR, self.SAFETY * norm ** -0.5))
            h = accepted_h * factor

        result.ncalls = system.ncalls
        return result


class AutoIntegrator(Integrator):
    """
    Rosenbrock for adaptive-compatible systems, fixed-step Euler otherwise.

    Choosing Euler here is the documented policy of this solver, so the result
    is not flagged as degraded.
    """
    KIND = SolverKind.AUTO

    def __init__(self, **kwargs) -> None:
        kwargs.setdefault("check_adaptive_compatible", False)
        super().__init__(**kwargs)

    def _settings(self) -> dict:
        return {
            "step_size": self.step_size,
            "rel_error_tolerance": self.rel_error_tolerance,
            "abs_error_tolerance": self.abs_error_tolerance,
            "max_steps": self.max_steps,
        }

    def do_integrate(self, system: DynamicalSystem) -> SimulationResult:
        if system.is_adaptive_compatible():
            delegate: Integrator = RosenbrockIntegrator(**self._settings())
        else:
            delegate = FixedStepIntegrator(SolverKind.HOMEMADE_EULER, **self._settings())
        logger.info(f"The '{self.name}' solver selected the '{delegate.name}' method.")
        return delegate.do_integrate(system)
