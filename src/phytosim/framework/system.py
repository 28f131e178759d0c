"""
Dynamical System
================
The full bound module graph, evaluable as a derivative function of
(state, time).

Why is this file needed?
------------------------
1. Wiring: It registers every quantity (time, parameters, drivers, state
   variables and steady-module outputs) in one store and binds each module to
   it, so unresolved inputs and name collisions are reported before anything
   runs.
2. Ordering: Steady modules are sorted once, at construction, so every module
   runs after the modules producing its inputs.
3. Evaluation: ``get_differential`` is the right-hand side handed to the
   integrators.
"""
from __future__ import annotations

import copy
import heapq
import logging
from enum import StrEnum
from typing import TYPE_CHECKING, Mapping, Sequence

import numpy as np

from phytosim.errors import CyclicDependency, QuantityCollision, UnknownQuantity, UnmatchedDerivative
from phytosim.framework.module import DerivativeModule, Module, SteadyModule
from phytosim.framework.quantities import QuantityStore

if TYPE_CHECKING:
    import numpy.typing as npt

    from phytosim.framework.drivers import Drivers

logger = logging.getLogger(__name__)

TIME = "time"


class QuantityKind(StrEnum):
    STATE = "state"
    PARAMETER = "parameter"
    DRIVER = "driver"
    DERIVED = "derived"


def sort_steady_modules(modules: Sequence[Module]) -> list[Module]:
    """
    Order steady modules so that producers run before their consumers.

    Kahn's algorithm; whenever several modules are ready, the one declared
    first is taken, which makes the order deterministic.

    Args:
        modules: Modules in declaration order.

    Returns:
        The modules in evaluation order.

    Raises:
        CyclicDependency: If the modules depend on each other in a cycle.
    """
    producer: dict[str, int] = {}
    for index, module in enumerate(modules):
        for name in module.declared_outputs():
            producer[name] = index

    successors: list[set[int]] = [set() for _ in modules]
    in_degree = [0] * len(modules)
    for index, module in enumerate(modules):
        for name in module.declared_inputs():
            source = producer.get(name)
            if source is not None and index not in successors[source]:
                successors[source].add(index)
                in_degree[index] += 1

    ready = [index for index, degree in enumerate(in_degree) if degree == 0]
    heapq.heapify(ready)
    order: list[int] = []
    while ready:
        index = heapq.heappop(ready)
        order.append(index)
        for successor in successors[index]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                heapq.heappush(ready, successor)

    if len(order) < len(modules):
        remaining = {index for index, degree in enumerate(in_degree) if degree > 0}
        # Drop modules that only sit downstream of a cycle
        pruned = True
        while pruned:
            pruned = False
            for index in sorted(remaining):
                if not successors[index] & remaining:
                    remaining.discard(index)
                    pruned = True
        raise CyclicDependency(modules[index].name for index in sorted(remaining))

    return [modules[index] for index in order]


class DynamicalSystem:
    """
    Modules, quantities and state variables of one simulation.
    """

    def __init__(
        self,
        initial_values: Mapping[str, float],
        parameters: Mapping[str, float],
        steady_modules: Sequence[SteadyModule],
        derivative_modules: Sequence[DerivativeModule],
        time_span: tuple[float, float] | None = None,
        drivers: Drivers | None = None
    ) -> None:
        """
        Build and bind the system.

        Args:
            initial_values: State variables and their values at the start time.
                The iteration order defines the order of state vectors.
            parameters: Constant inputs.
            steady_modules: Steady modules, in declaration order. The system binds
                shallow copies, so one module list can build several systems.
            derivative_modules: Derivative modules, copied the same way.
            time_span: Start and end time. Defaults to the time span of ``drivers``.
            drivers: Optional time-varying inputs.

        Raises:
            QuantityCollision: If a name is defined twice (e.g. both a parameter
                and a state variable, or output by two steady modules).
            UnmatchedDerivative: If a derivative module writes a non-state quantity.
            MissingInput: If a module input cannot be resolved.
            CyclicDependency: If steady modules depend on each other in a cycle.
        """
        for module in steady_modules:
            if not isinstance(module, SteadyModule):
                raise TypeError(f"'{module.name}' is not a steady module.")
        for module in derivative_modules:
            if not isinstance(module, DerivativeModule):
                raise TypeError(f"'{module.name}' is not a derivative module.")

        self.drivers = drivers
        self.time_span = self._resolve_time_span(time_span, drivers)
        self.state_names: list[str] = list(initial_values)
        self._initial_values = {name: float(value) for name, value in initial_values.items()}
        self.steady_modules: list[SteadyModule] = [copy.copy(module) for module in steady_modules]
        self.derivative_modules: list[DerivativeModule] = [copy.copy(module) for module in derivative_modules]

        self._kinds: dict[str, QuantityKind] = {}
        self.store = QuantityStore(capacity=64)
        self._register(TIME, self.time_span[0], QuantityKind.PARAMETER)
        for name, value in parameters.items():
            self._register(name, value, QuantityKind.PARAMETER)
        if drivers is not None:
            for name, value in drivers.at(self.time_span[0]).items():
                self._register(name, value, QuantityKind.DRIVER)
        for name, value in initial_values.items():
            self._register(name, value, QuantityKind.STATE)

        self._register_steady_outputs()

        self.derivative_store = QuantityStore({name: 0.0 for name in self.state_names})
        for module in self.derivative_modules:
            unmatched = [name for name in module.declared_outputs() if name not in self.derivative_store]
            if unmatched:
                raise UnmatchedDerivative(module.name, unmatched)

        for module in self.steady_modules:
            module.bind(self.store, self.store)
        for module in self.derivative_modules:
            module.bind(self.store, self.derivative_store)

        self.module_order: list[SteadyModule] = sort_steady_modules(self.steady_modules)

        self._time_slot = self.store.slot(TIME)
        self._state_slots = np.array([self.store.slot(name) for name in self.state_names], dtype=np.int64)
        self._derivative_slots = np.array(
            [self.derivative_store.slot(name) for name in self.state_names], dtype=np.int64
        )
        self._driver_slots = (
            {name: self.store.slot(name) for name in drivers.names()} if drivers is not None else {}
        )
        self._incompatible = [
            module.name
            for module in [*self.steady_modules, *self.derivative_modules]
            if not module.adaptive_compatible
        ]
        self.ncalls = 0

        logger.info(
            f"Built dynamical system: {len(self.state_names)} state variables, "
            f"{len(self.steady_modules)} steady modules, {len(self.derivative_modules)} derivative modules, "
            f"{len(self.store)} quantities."
        )
        logger.debug(f"Steady module order: {[module.name for module in self.module_order]}")

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(states={self.state_names}, "
            f"modules={[module.name for module in self.module_order + self.derivative_modules]})"
        )

    @staticmethod
    def _resolve_time_span(time_span: tuple[float, float] | None, drivers: Drivers | None) -> tuple[float, float]:
        if time_span is None:
            if drivers is None:
                raise ValueError("A time span is required when no drivers are given.")
            time_span = drivers.time_span
        t_start, t_end = float(time_span[0]), float(time_span[1])
        if not np.isfinite(t_start) or not np.isfinite(t_end) or t_end <= t_start:
            raise ValueError(f"Invalid time span ({t_start}, {t_end}); the end must be after the start.")
        return t_start, t_end

    def _register(self, name: str, value: float, kind: QuantityKind) -> None:
        if name in self._kinds:
            raise QuantityCollision(
                [name], f"Quantity defined as both {self._kinds[name].value} and {kind.value}"
            )
        self.store.add(name, float(value))
        self._kinds[name] = kind

    def _register_steady_outputs(self) -> None:
        producers: dict[str, str] = {}
        for module in self.steady_modules:
            clashes = [name for name in module.declared_outputs() if name in self._kinds]
            if clashes:
                owners = {producers.get(name, self._kinds[name].value) for name in clashes}
                raise QuantityCollision(
                    clashes, f"Module '{module.name}' writes quantities already provided by {sorted(owners)}"
                )
            for name in module.declared_outputs():
                self._register(name, 0.0, QuantityKind.DERIVED)
                producers[name] = module.name

    @property
    def t_start(self) -> float:
        return self.time_span[0]

    @property
    def t_end(self) -> float:
        return self.time_span[1]

    @property
    def n_states(self) -> int:
        return len(self.state_names)

    def classify(self, name: str) -> QuantityKind:
        """Return the kind of a quantity."""
        try:
            return self._kinds[name]
        except KeyError:
            raise UnknownQuantity(name) from None

    def quantities(self, kind: QuantityKind) -> list[str]:
        return [name for name, value in self._kinds.items() if value is kind]

    def initial_state(self) -> npt.NDArray[np.float64]:
        """State vector at the start time, in ``state_names`` order."""
        return np.array([self._initial_values[name] for name in self.state_names], dtype=np.float64)

    def is_adaptive_compatible(self) -> bool:
        return not self._incompatible

    def adaptive_incompatible_modules(self) -> list[str]:
        return list(self._incompatible)

    def reset_ncalls(self) -> None:
        self.ncalls = 0

    def _bind_state(self, state: npt.NDArray[np.float64], time: float) -> None:
        state = np.asarray(state, dtype=np.float64)
        if state.shape != (self.n_states,):
            raise ValueError(f"Expected a state vector of length {self.n_states}, got shape {state.shape}.")

        self.store.set_slot(self._time_slot, time)
        if self.drivers is not None:
            for name, value in self.drivers.at(time).items():
                self.store.set_slot(self._driver_slots[name], value)
        self.store.set_many(self._state_slots, state)

    def _run_steady(self) -> None:
        for module in self.module_order:
            module.evaluate()

    def get_differential(self, state: npt.NDArray[np.float64], time: float) -> npt.NDArray[np.float64]:
        """
        Evaluate the time derivative of the state vector.

        Args:
            state: State vector ordered like ``state_names``.
            time: Simulation time.

        Returns:
            d(state)/dt in the same order.
        """
        self.ncalls += 1
        self._bind_state(state, time)
        self._run_steady()

        self.derivative_store.fill(0.0)
        for module in self.derivative_modules:
            module.evaluate()

        return self.derivative_store.get_many(self._derivative_slots)

    def snapshot(self, state: npt.NDArray[np.float64], time: float) -> dict[str, float]:
        """
        Every quantity of the system at ``(state, time)``.

        Runs the steady modules so derived quantities are consistent with the
        state. Does not count as a derivative evaluation.
        """
        self._bind_state(state, time)
        self._run_steady()
        return self.store.as_dict()

    def describe(self) -> str:
        """Human-readable summary of the system."""
        lines = [
            f"Time span: {self.t_start:g} to {self.t_end:g}",
            f"State variables ({self.n_states}): {', '.join(self.state_names)}",
            f"Steady modules in evaluation order ({len(self.module_order)}): "
            f"{', '.join(module.name for module in self.module_order)}",
            f"Derivative modules ({len(self.derivative_modules)}): "
            f"{', '.join(module.name for module in self.derivative_modules)}",
            f"Adaptive compatible: {self.is_adaptive_compatible()}",
        ]
        if self._incompatible:
            lines.append(f"Adaptive incompatible modules: {', '.join(self._incompatible)}")
        return "\n".join(lines)
