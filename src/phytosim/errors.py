"""
Error Taxonomy
==============
Exceptions raised by the simulation engine.

Construction-time errors (missing inputs, cycles, unclassified outputs,
collisions, unknown solvers or modules) abort building a module, system or
solver. Runtime errors (step limit, unknown quantity, non-finite derivatives)
abort the current ``integrate`` call.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from phytosim.framework.result import SimulationResult


class PhytosimError(Exception):
    """Base class for all errors raised by phytosim."""


class UnknownQuantity(PhytosimError, KeyError):
    """A quantity was read before it was ever written or bound."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown quantity '{name}'")

    def __str__(self) -> str:
        # KeyError would otherwise wrap the message in quotes
        return self.args[0]


class MissingInput(PhytosimError):
    """A module declares inputs that are absent from the store at bind time."""

    def __init__(self, module_name: str, missing: Iterable[str]) -> None:
        self.module_name = module_name
        self.missing = sorted(missing)
        super().__init__(
            f"Module '{module_name}' requires quantities that are not available: "
            f"{', '.join(self.missing)}"
        )


class CyclicDependency(PhytosimError):
    """The steady-module dependency graph contains a cycle."""

    def __init__(self, module_names: Iterable[str]) -> None:
        self.module_names = list(module_names)
        super().__init__(
            f"Steady modules form a dependency cycle: {', '.join(self.module_names)}"
        )


class UnclassifiedOutput(PhytosimError):
    """A multilayer output is in neither the multiclass nor the pure multilayer list."""

    def __init__(self, template_name: str, names: Iterable[str]) -> None:
        self.template_name = template_name
        self.names = sorted(names)
        super().__init__(
            f"Multilayer template '{template_name}' has outputs that are neither "
            f"multiclass nor pure multilayer: {', '.join(self.names)}"
        )


class QuantityCollision(PhytosimError):
    """The same quantity name would be produced or defined twice."""

    def __init__(self, names: Iterable[str], reason: str) -> None:
        self.names = sorted(names)
        self.reason = reason
        super().__init__(f"{reason}: {', '.join(self.names)}")


class UnmatchedDerivative(PhytosimError):
    """A derivative module writes a quantity that is not a state variable."""

    def __init__(self, module_name: str, names: Iterable[str]) -> None:
        self.module_name = module_name
        self.names = sorted(names)
        super().__init__(
            f"Derivative module '{module_name}' produces outputs that are not "
            f"state variables: {', '.join(self.names)}"
        )


class ModuleContractError(PhytosimError):
    """A module wrote a set of quantities different from the one it declared."""

    def __init__(self, module_name: str, message: str) -> None:
        self.module_name = module_name
        super().__init__(f"Module '{module_name}': {message}")


class UnknownSolver(PhytosimError, KeyError):
    """Solver-name lookup failure."""

    def __init__(self, name: str, available: Iterable[str] = ()) -> None:
        self.name = name
        self.available = sorted(available)
        message = f'"{name}" was given as a solver name, but no solver with that name could be found.'
        if self.available:
            message += f" Available solvers: {', '.join(self.available)}"
        super().__init__(message)

    def __str__(self) -> str:
        return self.args[0]


class UnknownModule(PhytosimError, KeyError):
    """Module-name lookup failure."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'"{name}" was given as a module name, but no module with that name could be found.')

    def __str__(self) -> str:
        return self.args[0]


class IntegrationError(PhytosimError):
    """The integrator could not advance the system."""


class StepLimitExceeded(IntegrationError):
    """Integration needed more accepted steps than ``max_steps`` allows."""

    def __init__(self, max_steps: int, time: float, final_time: float, partial_result: SimulationResult) -> None:
        self.max_steps = max_steps
        self.time = time
        self.final_time = final_time
        self.partial_result = partial_result
        super().__init__(
            f"Exceeded the maximum of {max_steps} steps at time {time:.6g} "
            f"before reaching the final time {final_time:.6g}"
        )


class AdaptiveIncompatible(PhytosimError):
    """The system cannot be integrated with an adaptive step-size method."""

    def __init__(self, solver_name: str, module_names: Iterable[str]) -> None:
        self.solver_name = solver_name
        self.module_names = list(module_names)
        super().__init__(
            f"The '{solver_name}' solver requires an adaptive-compatible system, but these "
            f"modules are not compatible: {', '.join(self.module_names)}"
        )
