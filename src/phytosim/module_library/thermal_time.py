"""
Thermal Time
============
Accumulation of growing degree time above a base temperature.
"""
from __future__ import annotations

from typing import Mapping

from phytosim.framework.module import DerivativeModule
from phytosim.utils import HOURS_PER_DAY


class ThermalTimeLinear(DerivativeModule):
    """
    Rate of thermal time accumulation, linear above the base temperature.

    The rate is zero at or below ``tbase`` and ``(temp - tbase)`` degree days
    per day above it. Time is measured in hours, so the rate is expressed in
    degrees C * day / hour.

    The kink at ``tbase`` is not smooth, so adaptive step-size control cannot
    be used with this module.
    """
    NAME = "thermal_time_linear"
    adaptive_compatible = False

    @classmethod
    def get_inputs(cls) -> list[str]:
        return [
            "temp",   # degrees C
            "tbase",  # degrees C
        ]

    @classmethod
    def get_outputs(cls) -> list[str]:
        return [
            "TTc",  # degrees C * day / hour
        ]

    def do_operation(self, inputs: Mapping[str, float]) -> dict[str, float]:
        temp = inputs["temp"]
        tbase = inputs["tbase"]

        rate = 0.0 if temp <= tbase else (temp - tbase) / HOURS_PER_DAY
        return {"TTc": rate}
