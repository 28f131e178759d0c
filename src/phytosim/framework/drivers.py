"""
Drivers
=======
Time-varying inputs of a simulation (weather, irradiance, ...).

Drivers are tabulated against time and linearly interpolated, so adaptive
solvers can evaluate them at any time inside the tabulated range. Outside the
range the first or last value is held.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Mapping, Sequence

import numpy as np

if TYPE_CHECKING:
    import numpy.typing as npt


class Drivers:
    """
    Tabulated time series of named quantities.
    """

    def __init__(self, times: Sequence[float], values: Mapping[str, Sequence[float]]) -> None:
        """
        Args:
            times: Strictly increasing sample times.
            values: For every driver name, one value per sample time.

        Raises:
            ValueError: If the times are not strictly increasing or a series has the wrong length.
        """
        self.times: npt.NDArray[np.float64] = np.asarray(times, dtype=np.float64)

        if self.times.ndim != 1 or self.times.size == 0:
            raise ValueError("Driver times must be a non-empty one-dimensional sequence.")
        if np.any(np.diff(self.times) <= 0.0):
            raise ValueError("Driver times must be strictly increasing.")

        self.values: dict[str, npt.NDArray[np.float64]] = {}
        for name, series in values.items():
            array = np.asarray(series, dtype=np.float64)
            if array.shape != self.times.shape:
                raise ValueError(
                    f"Driver '{name}' has {array.size} values but there are {self.times.size} sample times."
                )
            self.values[name] = array

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(names={self.names()}, samples={self.times.size})"

    def __contains__(self, name: object) -> bool:
        return name in self.values

    def names(self) -> list[str]:
        return list(self.values)

    @property
    def time_span(self) -> tuple[float, float]:
        return float(self.times[0]), float(self.times[-1])

    def at(self, time: float) -> dict[str, float]:
        """
        Interpolate every driver at ``time``.

        Args:
            time: Simulation time.

        Returns:
            Mapping of driver name to interpolated value.
        """
        return {name: float(np.interp(time, self.times, series)) for name, series in self.values.items()}
