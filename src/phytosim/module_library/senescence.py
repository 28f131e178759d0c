"""
Senescence Coefficients
=======================
Fraction of each organ's biomass senesced per time step, as a logistic
function of the development index.
"""
from __future__ import annotations

from typing import Mapping

from phytosim.framework.module import SteadyModule
from phytosim.utils import logistic_decay

ORGANS = ("Stem", "Leaf", "Root", "Rhizome")


class SenescenceCoefficientLogistic(SteadyModule):
    """
    ``kSene<organ> = rateSene<organ> / (1 + exp(alphaSene<organ> + betaSene<organ> * DVI))``
    for the stem, leaf, root and rhizome.
    """
    NAME = "senescence_coefficient_logistic"

    @classmethod
    def get_inputs(cls) -> list[str]:
        names = ["DVI"]  # dimensionless, development index
        for organ in ORGANS:
            names += [f"alphaSene{organ}", f"betaSene{organ}", f"rateSene{organ}"]
        return names

    @classmethod
    def get_outputs(cls) -> list[str]:
        return [f"kSene{organ}" for organ in ORGANS]

    def do_operation(self, inputs: Mapping[str, float]) -> dict[str, float]:
        dvi = inputs["DVI"]
        return {
            f"kSene{organ}": logistic_decay(
                inputs[f"rateSene{organ}"],
                inputs[f"alphaSene{organ}"],
                inputs[f"betaSene{organ}"],
                dvi,
            )
            for organ in ORGANS
        }
