from __future__ import annotations

import logging

from phytosim.errors import UnknownModule
from phytosim.framework.module import Module

logger = logging.getLogger(__name__)


class ModuleRegistry:
    """
    Module classes keyed by their ``NAME``.

    Usable as a class decorator::

        registry = ModuleRegistry()

        @registry.register
        class MyModule(SteadyModule):
            NAME = "my_module"
    """

    def __init__(self) -> None:
        self._modules: dict[str, type[Module]] = {}

    def register(self, cls: type[Module]) -> type[Module]:
        """Class decorator to register a module by its NAME."""
        name = getattr(cls, "NAME", None)
        if not name:
            raise ValueError(f"{cls.__name__} must define NAME")
        if name in self._modules:
            raise ValueError(f"A module named '{name}' is already registered.")
        self._modules[name] = cls
        return cls

    def get(self, name: str) -> type[Module]:
        try:
            return self._modules[name]
        except KeyError:
            raise UnknownModule(name) from None

    def create(self, name: str, /, **kwargs) -> Module:
        """Instantiate the module registered under ``name``; ``kwargs`` go to its constructor."""
        return self.get(name)(**kwargs)

    def names(self) -> list[str]:
        return sorted(self._modules)

    def __contains__(self, name: str) -> bool:
        return name in self._modules

    def inputs_of(self, name: str) -> tuple[str, ...]:
        return self.create(name).declared_inputs()

    def outputs_of(self, name: str) -> tuple[str, ...]:
        return self.create(name).declared_outputs()


def standard_library() -> ModuleRegistry:
    """Registry holding every module shipped with phytosim."""
    from phytosim.module_library.canopy import TenLayerBallBerry, TenLayerCanopyProperties
    from phytosim.module_library.leaf_temperature import PenmanMonteithLeafTemperature
    from phytosim.module_library.light import LightMacroEnvironment
    from phytosim.module_library.senescence import SenescenceCoefficientLogistic
    from phytosim.module_library.stomata import BallBerry
    from phytosim.module_library.thermal_time import ThermalTimeLinear

    registry = ModuleRegistry()
    for cls in (
        BallBerry,
        LightMacroEnvironment,
        PenmanMonteithLeafTemperature,
        SenescenceCoefficientLogistic,
        TenLayerBallBerry,
        TenLayerCanopyProperties,
        ThermalTimeLinear,
    ):
        registry.register(cls)
    logger.debug(f"Standard module library: {registry.names()}")
    return registry
