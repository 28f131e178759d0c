"""
Multilayer Canopy
=================
Environmental conditions inside a layered canopy of sunlit and shaded leaves,
and leaf modules replicated over those layers.

Why is this file needed?
------------------------
1. Canopy profile: ``CanopyProperties`` computes, for every layer, the light
   received by sunlit and shaded leaves and the layer's humidity, wind speed,
   height and leaf nitrogen.
2. Composition: ``TenLayerCanopyProperties`` and ``TenLayerBallBerry`` are the
   ready-made ten layer variants that can be created by name from the module
   registry.

Layer 0 is the top of the canopy. Cumulative leaf area is evaluated at the
middle of each layer.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Mapping

import numpy as np

from phytosim.framework.multilayer import MultilayerLeafModule, MultilayerModule, MultilayerTemplate
from phytosim.module_library.stomata import BallBerry

if TYPE_CHECKING:
    import numpy.typing as npt

# Extinction coefficient of wind speed with cumulative leaf area
WIND_EXTINCTION = 0.7

# Below this the Sun is treated as being at the horizon
_MIN_COSINE_ZENITH = 1e-10


@dataclass
class CanopyProfile:
    """Per-layer quantities shared by every leaf class."""
    sunlit_fraction: npt.NDArray[np.float64]
    sunlit_incident_par: npt.NDArray[np.float64]
    scattered_par: npt.NDArray[np.float64]
    height: npt.NDArray[np.float64]
    rh: npt.NDArray[np.float64]
    windspeed: npt.NDArray[np.float64]
    leaf_n: npt.NDArray[np.float64]
    absorptivity_par: float
    par_energy_content: float


def direct_extinction_coefficient(cosine_zenith_angle: float, chil: float) -> float:
    """
    Extinction coefficient of direct light for an ellipsoidal leaf angle
    distribution (Campbell and Norman, eq. 15.4).

    Args:
        cosine_zenith_angle: Cosine of the solar zenith angle (> 0).
        chil: Ratio of horizontal to vertical projected leaf area.
    """
    cos_z = min(cosine_zenith_angle, 1.0)
    tan_z_squared = (1.0 - cos_z ** 2) / cos_z ** 2
    return np.sqrt(chil ** 2 + tan_z_squared) / (chil + 1.774 * (chil + 1.182) ** -0.733)


class CanopyProperties(MultilayerTemplate):
    """
    Light, humidity, wind and nitrogen profiles of a canopy with sunlit and
    shaded leaves.
    """
    NAME = "canopy_properties"

    @classmethod
    def get_inputs(cls) -> list[str]:
        return [
            "par_incident_direct",   # micromol / m^2 / s
            "par_incident_diffuse",  # micromol / m^2 / s
            "absorptivity_par",      # dimensionless
            "lai",                   # m^2 / m^2
            "cosine_zenith_angle",   # dimensionless
            "kd",                    # dimensionless
            "chil",                  # dimensionless
            "heightf",               # m^-1
            "rh",                    # dimensionless
            "windspeed",             # m / s
            "LeafN",                 # mmol / m^2
            "kpLN",                  # dimensionless
            "lnfun",                 # dimensionless switch
            "par_energy_content",    # J / micromol
        ]

    @classmethod
    def define_leaf_classes(cls) -> list[str]:
        return ["sunlit", "shaded"]

    @classmethod
    def define_multiclass_multilayer_outputs(cls) -> list[str]:
        return [
            "incident_par",         # micromol / m^2 / s
            "fraction",             # dimensionless
            "absorbed_shortwave",   # W / m^2
        ]

    @classmethod
    def define_pure_multilayer_outputs(cls) -> list[str]:
        return [
            "incident_scattered_par",  # micromol / m^2 / s
            "incident_average_par",    # micromol / m^2 / s
            "height",                  # m
            "rh",                      # dimensionless
            "windspeed",               # m / s
            "LeafN",                   # mmol / m^2
        ]

    def prepare(self, inputs: Mapping[str, float], nlayers: int) -> CanopyProfile:
        lai = inputs["lai"]
        layer_lai = lai / nlayers
        cumulative_lai = layer_lai * (np.arange(nlayers) + 0.5)
        relative_depth = (np.arange(nlayers) + 0.5) / nlayers

        direct = inputs["par_incident_direct"]
        diffuse = inputs["par_incident_diffuse"]
        absorptivity = inputs["absorptivity_par"]
        cos_z = inputs["cosine_zenith_angle"]

        if cos_z > _MIN_COSINE_ZENITH:
            k = direct_extinction_coefficient(cos_z, inputs["chil"])
            sunlit_fraction = np.exp(-k * cumulative_lai)
            # Beam light intercepted and re-emitted by leaves higher up
            scattered_beam = direct * (np.exp(-np.sqrt(absorptivity) * k * cumulative_lai) - sunlit_fraction)
            beam_on_sunlit = k * direct
        else:
            sunlit_fraction = np.zeros(nlayers)
            scattered_beam = np.zeros(nlayers)
            beam_on_sunlit = 0.0

        scattered_par = diffuse * np.exp(-inputs["kd"] * cumulative_lai) + np.maximum(scattered_beam, 0.0)

        canopy_height = lai / inputs["heightf"]
        rh = inputs["rh"]
        rh_profile = np.minimum(rh * np.exp((1.0 - rh) * relative_depth), 1.0)

        if inputs["lnfun"] == 0:
            leaf_n = np.full(nlayers, inputs["LeafN"])
        else:
            leaf_n = inputs["LeafN"] * np.exp(-inputs["kpLN"] * cumulative_lai)

        return CanopyProfile(
            sunlit_fraction=sunlit_fraction,
            sunlit_incident_par=scattered_par + beam_on_sunlit,
            scattered_par=scattered_par,
            height=canopy_height * (1.0 - relative_depth),
            rh=rh_profile,
            windspeed=inputs["windspeed"] * np.exp(-WIND_EXTINCTION * cumulative_lai),
            leaf_n=leaf_n,
            absorptivity_par=absorptivity,
            par_energy_content=inputs["par_energy_content"],
        )

    def layer_values(self, context: CanopyProfile, layer: int, nlayers: int) -> dict[str, float]:
        fraction = context.sunlit_fraction[layer]
        average = fraction * context.sunlit_incident_par[layer] + (1.0 - fraction) * context.scattered_par[layer]
        return {
            "incident_scattered_par": context.scattered_par[layer],
            "incident_average_par": average,
            "height": context.height[layer],
            "rh": context.rh[layer],
            "windspeed": context.windspeed[layer],
            "LeafN": context.leaf_n[layer],
        }

    def leaf_class_values(
        self,
        context: CanopyProfile,
        layer: int,
        nlayers: int,
        leaf_class: str
    ) -> dict[str, float]:
        if leaf_class == "sunlit":
            incident = context.sunlit_incident_par[layer]
            fraction = context.sunlit_fraction[layer]
        else:
            incident = context.scattered_par[layer]
            fraction = 1.0 - context.sunlit_fraction[layer]

        return {
            "incident_par": incident,
            "fraction": fraction,
            "absorbed_shortwave": context.absorptivity_par * incident * context.par_energy_content,
        }


class TenLayerCanopyProperties(MultilayerModule):
    NAME = "ten_layer_canopy_properties"
    NLAYERS = 10

    def __init__(self, name: str | None = None) -> None:
        super().__init__(CanopyProperties(), self.NLAYERS, name=name or self.NAME)


class TenLayerBallBerry(MultilayerLeafModule):
    """
    Ball-Berry stomatal conductance for sunlit and shaded leaves in each of
    the ten layers produced by :class:`TenLayerCanopyProperties`.
    """
    NAME = "ten_layer_ball_berry"
    NLAYERS = 10

    def __init__(self, name: str | None = None) -> None:
        super().__init__(BallBerry(), CanopyProperties, self.NLAYERS, name=name or self.NAME)
