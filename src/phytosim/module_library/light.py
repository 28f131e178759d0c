"""
Light Macro-Environment
=======================
Partitioning of sunlight above the canopy into direct and diffuse parts
(Campbell and Norman, An Introduction to Environmental Biophysics, ch. 11).
"""
from __future__ import annotations

from typing import Mapping

from phytosim.framework.module import SteadyModule
from phytosim.utils import ATMOSPHERIC_PRESSURE_AT_SEA_LEVEL


def light_macro_environment(
    cosine_zenith_angle: float,
    atmospheric_pressure: float,
    atmospheric_transmittance: float,
    atmospheric_scattering: float
) -> dict[str, float]:
    """
    Transmittances and fractions of direct and diffuse light at the surface.

    Args:
        cosine_zenith_angle: Cosine of the solar zenith angle (1 with the Sun overhead).
        atmospheric_pressure: Local pressure (Pa).
        atmospheric_transmittance: Transmittance of a small volume of atmosphere.
        atmospheric_scattering: Atmospheric scattering factor.

    Returns:
        Mapping with the four ``irradiance_*`` outputs of :class:`LightMacroEnvironment`.
    """
    pressure_ratio = atmospheric_pressure / ATMOSPHERIC_PRESSURE_AT_SEA_LEVEL

    if cosine_zenith_angle <= 0.0:
        # Sun at or below the horizon
        direct_transmittance = 0.0
        diffuse_transmittance = 1.0
    else:
        direct_transmittance = atmospheric_transmittance ** (pressure_ratio / cosine_zenith_angle)
        diffuse_transmittance = atmospheric_scattering * (1.0 - direct_transmittance) * cosine_zenith_angle

    direct_fraction = direct_transmittance / (direct_transmittance + diffuse_transmittance)

    return {
        "irradiance_direct_transmittance": direct_transmittance,
        "irradiance_diffuse_transmittance": diffuse_transmittance,
        "irradiance_direct_fraction": direct_fraction,
        "irradiance_diffuse_fraction": 1.0 - direct_fraction,
    }


class LightMacroEnvironment(SteadyModule):
    NAME = "light_macro_environment"

    @classmethod
    def get_inputs(cls) -> list[str]:
        return [
            "cosine_zenith_angle",        # dimensionless
            "atmospheric_pressure",       # Pa
            "atmospheric_transmittance",  # dimensionless
            "atmospheric_scattering",     # dimensionless
        ]

    @classmethod
    def get_outputs(cls) -> list[str]:
        return [
            "irradiance_direct_transmittance",   # dimensionless
            "irradiance_diffuse_transmittance",  # dimensionless
            "irradiance_direct_fraction",        # dimensionless
            "irradiance_diffuse_fraction",       # dimensionless
        ]

    def do_operation(self, inputs: Mapping[str, float]) -> dict[str, float]:
        return light_macro_environment(
            inputs["cosine_zenith_angle"],
            inputs["atmospheric_pressure"],
            inputs["atmospheric_transmittance"],
            inputs["atmospheric_scattering"],
        )
