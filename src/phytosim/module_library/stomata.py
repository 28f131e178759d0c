"""
Stomatal Conductance
====================
Ball-Berry model of stomatal conductance to water vapor.
"""
from __future__ import annotations

import math
from typing import Mapping

from phytosim.framework.module import SteadyModule
from phytosim.utils import saturation_vapor_pressure

# Ratio of the diffusivities of water vapor and CO2 through the boundary layer
_BOUNDARY_LAYER_CO2_RATIO = 1.37

# Lower limit for the CO2 mole fraction at the leaf surface (mol / mol)
_MIN_SURFACE_CO2 = 1e-6


def ball_berry_gs(
    assimilation: float,
    atmospheric_co2: float,
    rh: float,
    b0: float,
    b1: float,
    gbw: float,
    leaf_temperature: float,
    air_temperature: float
) -> float:
    """
    Stomatal conductance from the Ball-Berry model.

    ``gs = b0 + b1 * A * hs / Cs`` where the relative humidity at the leaf
    surface ``hs`` depends on ``gs`` itself; the coupled pair is solved as a
    quadratic in ``hs``.

    Args:
        assimilation: Net CO2 assimilation rate (mol / m^2 / s).
        atmospheric_co2: CO2 mole fraction in the air (mol / mol).
        rh: Relative humidity of the air (Pa / Pa).
        b0: Ball-Berry intercept (mol / m^2 / s).
        b1: Ball-Berry slope (dimensionless).
        gbw: Boundary layer conductance to water vapor (mol / m^2 / s).
        leaf_temperature: Leaf temperature (degrees C).
        air_temperature: Air temperature (degrees C).

    Returns:
        Stomatal conductance to water vapor (mmol / m^2 / s).
    """
    if assimilation <= 0.0:
        return b0 * 1e3

    surface_co2 = max(atmospheric_co2 - _BOUNDARY_LAYER_CO2_RATIO * assimilation / gbw, _MIN_SURFACE_CO2)
    air_vapor_pressure = rh * saturation_vapor_pressure(air_temperature)
    leaf_vapor_pressure = saturation_vapor_pressure(leaf_temperature)

    a = b1 * assimilation / surface_co2
    b = gbw + b0 - a
    c = -(b0 + gbw * air_vapor_pressure / leaf_vapor_pressure)
    surface_rh = (-b + math.sqrt(b * b - 4.0 * a * c)) / (2.0 * a)
    surface_rh = min(max(surface_rh, 0.0), 1.0)

    gs = b0 + a * surface_rh
    return gs * 1e3


class BallBerry(SteadyModule):
    NAME = "ball_berry"

    @classmethod
    def get_inputs(cls) -> list[str]:
        return [
            "net_assimilation_rate",  # mol / m^2 / s
            "Catm",                   # mol / mol
            "rh",                     # Pa / Pa
            "b0",                     # mol / m^2 / s
            "b1",                     # dimensionless
            "gbw",                    # mol / m^2 / s
            "leaf_temperature",       # degrees C
            "temp",                   # degrees C
        ]

    @classmethod
    def get_outputs(cls) -> list[str]:
        return [
            "leaf_stomatal_conductance",  # mmol / m^2 / s
        ]

    def do_operation(self, inputs: Mapping[str, float]) -> dict[str, float]:
        gs = ball_berry_gs(
            inputs["net_assimilation_rate"],
            inputs["Catm"],
            inputs["rh"],
            inputs["b0"],
            inputs["b1"],
            inputs["gbw"],
            inputs["leaf_temperature"],
            inputs["temp"],
        )
        return {"leaf_stomatal_conductance": gs}
