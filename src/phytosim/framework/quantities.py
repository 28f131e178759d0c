"""
Quantity Store
==============
Mutable mapping from quantity name to a float value.

Values live in a contiguous NumPy array; every name owns a stable slot index
that modules resolve once when they are bound, so the evaluation loop never
needs a name lookup.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Iterator, Mapping

import numpy as np

from phytosim.errors import UnknownQuantity

if TYPE_CHECKING:
    import numpy.typing as npt


class QuantityStore:
    """
    Named float storage with stable slot indices.
    """

    def __init__(self, values: Mapping[str, float] | None = None, capacity: int = 16) -> None:
        """
        Initialize the store.

        Args:
            values: Optional initial quantities, registered in iteration order.
            capacity: Initial size of the backing array.
        """
        self._slots: dict[str, int] = {}
        self._values: npt.NDArray[np.float64] = np.zeros(max(capacity, 1), dtype=np.float64)

        if values:
            for name, value in values.items():
                self.add(name, value)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.as_dict()!r})"

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, name: object) -> bool:
        return name in self._slots

    def __iter__(self) -> Iterator[str]:
        return iter(self._slots)

    def has(self, name: str) -> bool:
        """Whether ``name`` has a slot in this store."""
        return name in self._slots

    def add(self, name: str, value: float = 0.0) -> int:
        """
        Register a new quantity.

        Args:
            name: Quantity name. Must not already exist.
            value: Initial value.

        Returns:
            The slot index assigned to the quantity.
        """
        if name in self._slots:
            raise ValueError(f"Quantity '{name}' is already registered.")

        index = len(self._slots)
        if index >= self._values.size:
            grown = np.zeros(self._values.size * 2, dtype=np.float64)
            grown[:self._values.size] = self._values
            self._values = grown

        self._slots[name] = index
        self._values[index] = value
        return index

    def slot(self, name: str) -> int:
        """Return the slot index of ``name``."""
        try:
            return self._slots[name]
        except KeyError:
            raise UnknownQuantity(name) from None

    def get(self, name: str) -> float:
        """Return the current value of ``name``."""
        return float(self._values[self.slot(name)])

    def set(self, name: str, value: float) -> None:
        """Overwrite the value of an existing quantity."""
        self._values[self.slot(name)] = value

    def get_slot(self, index: int) -> float:
        return float(self._values[index])

    def set_slot(self, index: int, value: float) -> None:
        self._values[index] = value

    def add_to_slot(self, index: int, value: float) -> None:
        self._values[index] += value

    def set_many(self, indices: npt.NDArray[np.int64], values: npt.NDArray[np.float64]) -> None:
        """Write ``values`` into the slots ``indices`` in one vectorised call."""
        self._values[indices] = values

    def get_many(self, indices: npt.NDArray[np.int64]) -> npt.NDArray[np.float64]:
        return self._values[indices].copy()

    def fill(self, value: float) -> None:
        """Set every registered quantity to ``value``."""
        self._values[:len(self._slots)] = value

    def names(self) -> list[str]:
        """Quantity names in registration order."""
        return list(self._slots)

    def as_dict(self, names: Iterable[str] | None = None) -> dict[str, float]:
        """
        Copy the store into a plain dictionary.

        Args:
            names: Restrict the copy to these names. Defaults to every quantity.

        Returns:
            Mapping of quantity name to value.
        """
        if names is None:
            names = self._slots
        return {name: float(self._values[self.slot(name)]) for name in names}
