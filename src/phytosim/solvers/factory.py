"""
Solver Factory
==============
Maps solver names to integrator constructors.

Why is this file needed?
------------------------
Simulations name their solver in configuration (``"homemade_euler"``,
``"rosenbrock"``, ...). The factory turns that name plus the numeric settings
into a ready-to-use :class:`Integrator`, and reports unknown names with the
list of available ones.
"""
from __future__ import annotations

import logging
from functools import partial
from typing import Callable, Dict, List

from phytosim.config import (
    DEFAULT_ABS_ERROR_TOLERANCE,
    DEFAULT_MAX_STEPS,
    DEFAULT_REL_ERROR_TOLERANCE,
    DEFAULT_STEP_SIZE,
    SolverSettings,
)
from phytosim.errors import UnknownSolver
from phytosim.solvers.integrator import (
    AutoIntegrator,
    FixedStepIntegrator,
    Integrator,
    RosenbrockIntegrator,
    ScipyAdaptiveIntegrator,
    SolverKind,
)

logger = logging.getLogger(__name__)

IntegratorConstructor = Callable[..., Integrator]


class SolverFactory:
    """
    Registry of integrator constructors keyed by name.

    A constructor is called with the keyword arguments ``step_size``,
    ``rel_error_tolerance``, ``abs_error_tolerance`` and ``max_steps``.
    """

    def __init__(self) -> None:
        self._constructors: Dict[str, IntegratorConstructor] = {}

    @classmethod
    def standard(cls) -> SolverFactory:
        """Factory with every built-in solver registered."""
        factory = cls()
        factory.register(SolverKind.HOMEMADE_EULER.value, partial(FixedStepIntegrator, SolverKind.HOMEMADE_EULER))
        factory.register(SolverKind.RK4.value, partial(FixedStepIntegrator, SolverKind.RK4))
        factory.register(SolverKind.RK45.value, partial(ScipyAdaptiveIntegrator, SolverKind.RK45))
        factory.register(SolverKind.RK23.value, partial(ScipyAdaptiveIntegrator, SolverKind.RK23))
        factory.register(SolverKind.ROSENBROCK.value, RosenbrockIntegrator)
        factory.register(SolverKind.AUTO.value, AutoIntegrator)
        return factory

    def register(self, name: str, constructor: IntegratorConstructor) -> None:
        """
        Add a solver under ``name``.

        Raises:
            ValueError: If the name is empty or already registered.
        """
        if not name:
            raise ValueError("Solver name must be a non-empty string.")
        if name in self._constructors:
            raise ValueError(f"A solver named '{name}' is already registered.")
        self._constructors[name] = constructor

    def names(self) -> List[str]:
        return sorted(self._constructors)

    def __contains__(self, name: str) -> bool:
        return name in self._constructors

    def create(
        self,
        name: str,
        step_size: float = DEFAULT_STEP_SIZE,
        rel_error_tolerance: float = DEFAULT_REL_ERROR_TOLERANCE,
        abs_error_tolerance: float = DEFAULT_ABS_ERROR_TOLERANCE,
        max_steps: int = DEFAULT_MAX_STEPS,
        **kwargs
    ) -> Integrator:
        """
        Build the solver registered under ``name``.

        Args:
            name: Registered solver name.
            step_size: Fixed step size, or the initial adaptive step size.
            rel_error_tolerance: Relative tolerance of adaptive methods.
            abs_error_tolerance: Absolute tolerance of adaptive methods.
            max_steps: Maximum number of accepted steps.
            **kwargs: Passed to the constructor (e.g. ``fallback``).

        Raises:
            UnknownSolver: If no solver is registered under ``name``.
        """
        try:
            constructor = self._constructors[name]
        except KeyError:
            raise UnknownSolver(name, self._constructors) from None

        solver = constructor(
            step_size=step_size,
            rel_error_tolerance=rel_error_tolerance,
            abs_error_tolerance=abs_error_tolerance,
            max_steps=max_steps,
            **kwargs
        )
        logger.debug(f"Created solver {solver!r}")
        return solver

    def from_settings(self, settings: SolverSettings) -> Integrator:
        return self.create(
            settings.solver,
            step_size=settings.step_size,
            rel_error_tolerance=settings.rel_error_tolerance,
            abs_error_tolerance=settings.abs_error_tolerance,
            max_steps=settings.max_steps,
        )
