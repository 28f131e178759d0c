"""
Modules
=======
Base classes for the computational units composed by a dynamical system.

A module declares the names it reads and the names it writes. It is created
unbound (configuration only) and bound once to a pair of quantity stores, at
which point every declared name is resolved to a slot index. Evaluation then
reads and writes through those indices.

Two variants exist:

* ``SteadyModule`` outputs are pure functions of the current quantities and
  overwrite their slots on every call.
* ``DerivativeModule`` outputs are time derivatives of state variables. They
  are added into the derivative store, so several modules may contribute to
  the rate of change of the same state variable.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Iterable, Mapping, Sequence

from phytosim.errors import MissingInput, ModuleContractError, QuantityCollision

if TYPE_CHECKING:
    from phytosim.framework.quantities import QuantityStore


def find_duplicates(names: Sequence[str]) -> set[str]:
    seen: set[str] = set()
    repeated: set[str] = set()
    for name in names:
        if name in seen:
            repeated.add(name)
        seen.add(name)
    return repeated


class Module(ABC):
    """
    Abstract base class for all modules.
    """
    NAME: str = ""

    # Set to False for modules with thresholds or clamps that break the
    # smoothness assumed by adaptive step-size error estimates.
    adaptive_compatible: bool = True

    def __init__(self, name: str | None = None) -> None:
        """
        Initialize an unbound module.

        Args:
            name: Optional instance name. Defaults to the class ``NAME`` or the class name.
        """
        self.name = name or self.NAME or self.__class__.__name__
        self._input_store: QuantityStore | None = None
        self._output_store: QuantityStore | None = None
        self._input_slots: dict[str, int] = {}
        self._output_slots: dict[str, int] = {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', bound={self.is_bound})"

    @classmethod
    def get_inputs(cls) -> list[str]:
        """Names of the quantities read by every instance of this module type."""
        raise NotImplementedError(f"{cls.__name__} does not define a fixed list of inputs")

    @classmethod
    def get_outputs(cls) -> list[str]:
        """Names of the quantities written by every instance of this module type."""
        raise NotImplementedError(f"{cls.__name__} does not define a fixed list of outputs")

    def declared_inputs(self) -> tuple[str, ...]:
        return tuple(self.get_inputs())

    def declared_outputs(self) -> tuple[str, ...]:
        return tuple(self.get_outputs())

    @property
    def is_steady(self) -> bool:
        return isinstance(self, SteadyModule)

    @property
    def is_bound(self) -> bool:
        return self._input_store is not None

    def bind(self, input_store: QuantityStore, output_store: QuantityStore) -> None:
        """
        Resolve every declared name to a slot in the given stores.

        Outputs that are not yet present in ``output_store`` are registered
        with a value of zero.

        Args:
            input_store: Store the module reads from.
            output_store: Store the module writes to.

        Raises:
            MissingInput: If any declared input is absent from ``input_store``.
            QuantityCollision: If a name is declared twice.
        """
        inputs = self.declared_inputs()
        outputs = self.declared_outputs()

        repeated = find_duplicates(inputs) | find_duplicates(outputs)
        if repeated:
            raise QuantityCollision(repeated, f"Module '{self.name}' declares quantities more than once")

        missing = [name for name in inputs if not input_store.has(name)]
        if missing:
            raise MissingInput(self.name, missing)

        self._input_slots = {name: input_store.slot(name) for name in inputs}
        self._output_slots = {
            name: output_store.slot(name) if output_store.has(name) else output_store.add(name, 0.0)
            for name in outputs
        }
        self._input_store = input_store
        self._output_store = output_store

    @abstractmethod
    def do_operation(self, inputs: Mapping[str, float]) -> Mapping[str, float]:
        """
        Compute the module outputs.

        Args:
            inputs: Current values of every declared input.

        Returns:
            Mapping containing exactly the declared outputs.
        """
        pass

    def compute(self, inputs: Mapping[str, float]) -> dict[str, float]:
        """
        Run the module on plain values without touching any store.

        Args:
            inputs: Values for (at least) every declared input.

        Returns:
            The declared outputs.
        """
        missing = [name for name in self.declared_inputs() if name not in inputs]
        if missing:
            raise MissingInput(self.name, missing)
        outputs = self.do_operation({name: inputs[name] for name in self.declared_inputs()})
        self._check_outputs(outputs, self.declared_outputs())
        return {name: float(outputs[name]) for name in self.declared_outputs()}

    def evaluate(self) -> None:
        """Read the bound inputs, run the module and write the bound outputs."""
        if self._input_store is None or self._output_store is None:
            raise ModuleContractError(self.name, "evaluated before being bound to a quantity store")

        input_store = self._input_store
        inputs = {name: input_store.get_slot(index) for name, index in self._input_slots.items()}
        outputs = self.do_operation(inputs)
        self._check_outputs(outputs, self._output_slots)

        for name, index in self._output_slots.items():
            self._write(self._output_store, index, outputs[name])

    def _check_outputs(self, outputs: Mapping[str, float], declared: Iterable[str]) -> None:
        if outputs.keys() == set(declared):
            return
        missing = sorted(set(declared) - outputs.keys())
        undeclared = sorted(outputs.keys() - set(declared))
        parts = []
        if missing:
            parts.append(f"did not produce declared outputs {missing}")
        if undeclared:
            parts.append(f"produced undeclared outputs {undeclared}")
        raise ModuleContractError(self.name, " and ".join(parts))

    @abstractmethod
    def _write(self, store: QuantityStore, index: int, value: float) -> None:
        pass


class SteadyModule(Module):
    """
    Module whose outputs are pure functions of the current quantities.
    """

    def _write(self, store: QuantityStore, index: int, value: float) -> None:
        store.set_slot(index, value)


class DerivativeModule(Module):
    """
    Module whose outputs are time derivatives of state variables.

    Each output name must be the name of a state variable. Outputs are added to
    the derivative store, which the dynamical system zeroes before every
    derivative pass.
    """

    def _write(self, store: QuantityStore, index: int, value: float) -> None:
        store.add_to_slot(index, value)
