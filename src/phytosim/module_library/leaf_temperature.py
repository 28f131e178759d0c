"""
Leaf Temperature
================
Penman-Monteith estimate of the leaf temperature from the leaf energy balance.
"""
from __future__ import annotations

from typing import Mapping

from phytosim.framework.module import SteadyModule

# Molar volume of air at about 20 degrees C and 100 kPa (m^3 / mol)
VOLUME_OF_ONE_MOLE_OF_AIR = 24.39e-3


class PenmanMonteithLeafTemperature(SteadyModule):
    """
    Leaf temperature from the Penman-Monteith equation (Thornley and Johnson,
    1990, eq. 14.11e).

    The stomatal conductance is converted from mmol / m^2 / s to m / s with
    :data:`VOLUME_OF_ONE_MOLE_OF_AIR`.
    """
    NAME = "penman_monteith_leaf_temperature"

    @classmethod
    def get_inputs(cls) -> list[str]:
        return [
            "slope_water_vapor",                  # kg / m^3 / K
            "psychrometric_parameter",            # kg / m^3 / K
            "latent_heat_vaporization_of_water",  # J / kg
            "leaf_boundary_layer_conductance",    # m / s
            "leaf_stomatal_conductance",          # mmol / m^2 / s
            "leaf_net_irradiance",                # W / m^2
            "vapor_density_deficit",              # kg / m^3
            "temp",                               # degrees C
        ]

    @classmethod
    def get_outputs(cls) -> list[str]:
        return [
            "leaf_temperature",  # degrees C
        ]

    def do_operation(self, inputs: Mapping[str, float]) -> dict[str, float]:
        slope = inputs["slope_water_vapor"]
        psychrometric = inputs["psychrometric_parameter"]
        lhv = inputs["latent_heat_vaporization_of_water"]
        ga = inputs["leaf_boundary_layer_conductance"]
        gc = inputs["leaf_stomatal_conductance"] * 1e-3 * VOLUME_OF_ONE_MOLE_OF_AIR  # m / s
        net_irradiance = inputs["leaf_net_irradiance"]
        vdd = inputs["vapor_density_deficit"]

        delta_t = (
            (net_irradiance * (1.0 / ga + 1.0 / gc) - lhv * vdd)
            / (lhv * (slope + psychrometric * (1.0 + ga / gc)))
        )
        return {"leaf_temperature": inputs["temp"] + delta_t}
