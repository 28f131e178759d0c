"""
Integration Result
==================
Append-only sequence of timestamped snapshots produced by an integrator.

One snapshot is recorded for the initial point and one for every accepted
step. Each snapshot holds every quantity of the system (parameters, drivers,
state variables and steady-module outputs) at that time.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, Mapping

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt


@dataclass
class Snapshot:
    time: float
    values: dict[str, float]

    def __getitem__(self, name: str) -> float:
        return self.values[name]


@dataclass
class SimulationResult:
    """
    Time series of full-state snapshots.

    Attributes:
        solver_name: Name of the stepping method that actually produced the result.
        degraded: True when an adaptive solver fell back to fixed-step Euler.
        ncalls: Number of derivative evaluations performed.
        snapshots: Recorded snapshots in increasing time order.
    """
    solver_name: str
    degraded: bool = False
    ncalls: int = 0
    snapshots: list[Snapshot] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.snapshots)

    def __iter__(self) -> Iterator[Snapshot]:
        return iter(self.snapshots)

    def __getitem__(self, index: int) -> Snapshot:
        return self.snapshots[index]

    def append(self, time: float, values: Mapping[str, float]) -> None:
        if self.snapshots and time < self.snapshots[-1].time:
            raise ValueError(
                f"Snapshots must be appended in time order ({time} < {self.snapshots[-1].time})."
            )
        self.snapshots.append(Snapshot(time=float(time), values=dict(values)))

    @property
    def steps(self) -> int:
        """Number of accepted steps (the initial snapshot is not a step)."""
        return max(len(self.snapshots) - 1, 0)

    @property
    def times(self) -> npt.NDArray[np.float64]:
        return np.array([snapshot.time for snapshot in self.snapshots], dtype=np.float64)

    def names(self) -> list[str]:
        return list(self.snapshots[0].values) if self.snapshots else []

    def column(self, name: str) -> npt.NDArray[np.float64]:
        """
        Values of one quantity over time.

        Args:
            name: Quantity name.

        Returns:
            One value per snapshot.
        """
        if self.snapshots and name not in self.snapshots[0].values:
            raise KeyError(f"Quantity '{name}' is not part of this result.")
        return np.array([snapshot.values[name] for snapshot in self.snapshots], dtype=np.float64)

    def to_arrays(self) -> dict[str, npt.NDArray[np.float64]]:
        """Every quantity as a column, plus a ``time`` column."""
        arrays = {name: self.column(name) for name in self.names()}
        arrays["time"] = self.times
        return arrays

    def final_state(self) -> dict[str, float]:
        if not self.snapshots:
            raise ValueError("The result does not contain any snapshots.")
        return dict(self.snapshots[-1].values)
