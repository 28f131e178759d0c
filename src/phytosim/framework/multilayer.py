"""
Multilayer Modules
==================
Replicates a computation across the layers and leaf classes of a canopy.

A canopy can be divided into layers and into leaf classes (for example sunlit
and shaded leaves). Some quantities only vary between layers (air temperature
inside the canopy), others also depend on the leaf class (incident PAR). The
names of these quantities are built from a base name, an optional leaf class
prefix and a layer suffix::

    sunlit_incident_par_layer_3    (multiclass multilayer)
    windspeed_layer_3              (pure multilayer)

Layer indices are zero based and never zero padded. Downstream consumers rely
on this exact format.

``MultilayerTemplate`` describes one such canopy computation; the number of
layers is supplied when the ``MultilayerModule`` is built, so a single template
serves any canopy depth. ``MultilayerLeafModule`` runs an ordinary single-leaf
steady module once for every leaf class in every layer.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Sequence

from phytosim.errors import ModuleContractError, QuantityCollision, UnclassifiedOutput
from phytosim.framework.module import SteadyModule, find_duplicates

LAYER_SUFFIX = "_layer_"


def multilayer_name(base_name: str, layer: int, leaf_class: str = "") -> str:
    """
    Build the name of a per-layer quantity.

    Args:
        base_name: Base quantity name, e.g. ``incident_par``.
        layer: Zero-based layer index.
        leaf_class: Leaf class, e.g. ``sunlit``. Empty for pure multilayer quantities.

    Returns:
        ``<leaf_class>_<base_name>_layer_<layer>`` or ``<base_name>_layer_<layer>``.
    """
    prefix = f"{leaf_class}_" if leaf_class else ""
    return f"{prefix}{base_name}{LAYER_SUFFIX}{layer}"


def _effective_classes(leaf_classes: Sequence[str]) -> list[str]:
    # No leaf classes means a single, unprefixed class
    return list(leaf_classes) if leaf_classes else [""]


def generate_multiclass_names(base_names: Sequence[str], nlayers: int, leaf_classes: Sequence[str]) -> list[str]:
    """Names for every (base, leaf class, layer) combination, in that nesting order."""
    return [
        multilayer_name(base, layer, leaf_class)
        for base in base_names
        for leaf_class in _effective_classes(leaf_classes)
        for layer in range(nlayers)
    ]


def generate_pure_names(base_names: Sequence[str], nlayers: int) -> list[str]:
    """Names for every (base, layer) combination."""
    return [multilayer_name(base, layer) for base in base_names for layer in range(nlayers)]


def _check_nlayers(nlayers: int) -> int:
    if isinstance(nlayers, bool) or not isinstance(nlayers, int) or nlayers <= 0:
        raise ValueError(f"nlayers must be a positive integer, got {nlayers!r}")
    return nlayers


class MultilayerTemplate(ABC):
    """
    Single-layer description of a canopy computation.

    Subclasses list their inputs, leaf classes and the base names of their
    outputs split by category, then implement the per-layer computations.
    """
    NAME: str = ""
    adaptive_compatible: bool = True

    @classmethod
    @abstractmethod
    def get_inputs(cls) -> list[str]:
        pass

    @classmethod
    def define_leaf_classes(cls) -> list[str]:
        return []

    @classmethod
    def define_multiclass_multilayer_outputs(cls) -> list[str]:
        return []

    @classmethod
    def define_pure_multilayer_outputs(cls) -> list[str]:
        return []

    @classmethod
    def get_base_outputs(cls) -> list[str]:
        """
        Base names of every output. Each one must appear in exactly one of the
        two multilayer categories.
        """
        return cls.define_multiclass_multilayer_outputs() + cls.define_pure_multilayer_outputs()

    def prepare(self, inputs: Mapping[str, float], nlayers: int) -> Any:
        """
        Compute whatever the per-layer calls share (e.g. a light profile).

        The returned object is passed to :meth:`layer_values` and
        :meth:`leaf_class_values`. The default passes the inputs through.
        """
        return inputs

    def layer_values(self, context: Any, layer: int, nlayers: int) -> Mapping[str, float]:
        """Pure multilayer outputs for one layer, keyed by base name."""
        return {}

    def leaf_class_values(self, context: Any, layer: int, nlayers: int, leaf_class: str) -> Mapping[str, float]:
        """Multiclass multilayer outputs for one leaf class in one layer, keyed by base name."""
        return {}


class MultilayerModule(SteadyModule):
    """
    Steady module that evaluates a :class:`MultilayerTemplate` for every layer.
    """

    def __init__(self, template: MultilayerTemplate, nlayers: int, name: str | None = None) -> None:
        """
        Build the composed module.

        Args:
            template: The single-layer computation.
            nlayers: Number of canopy layers (> 0).
            name: Optional module name. Defaults to ``<template name>_<nlayers>_layers``.

        Raises:
            ValueError: If ``nlayers`` is not a positive integer.
            UnclassifiedOutput: If a base output is in neither multilayer category.
            QuantityCollision: If leaf classes repeat, a base output is in both
                categories, or two generated names coincide.
        """
        self.template = template
        self.nlayers = _check_nlayers(nlayers)
        template_name = template.NAME or template.__class__.__name__
        super().__init__(name or f"{template_name}_{nlayers}_layers")

        self.leaf_classes = list(template.define_leaf_classes())
        self.multiclass_outputs = list(template.define_multiclass_multilayer_outputs())
        self.pure_outputs = list(template.define_pure_multilayer_outputs())

        repeated_classes = find_duplicates(self.leaf_classes)
        if repeated_classes:
            raise QuantityCollision(repeated_classes, f"Template '{template_name}' repeats leaf classes")

        both = set(self.multiclass_outputs) & set(self.pure_outputs)
        if both:
            raise QuantityCollision(both, f"Template '{template_name}' declares outputs in both multilayer categories")

        classified = set(self.multiclass_outputs) | set(self.pure_outputs)
        unclassified = [base for base in template.get_base_outputs() if base not in classified]
        if unclassified:
            raise UnclassifiedOutput(template_name, unclassified)

        self._inputs = tuple(template.get_inputs())
        self._outputs = tuple(
            generate_multiclass_names(self.multiclass_outputs, self.nlayers, self.leaf_classes)
            + generate_pure_names(self.pure_outputs, self.nlayers)
        )
        clashes = find_duplicates(self._outputs)
        if clashes:
            raise QuantityCollision(clashes, f"Template '{template_name}' generates the same name twice")

        self.adaptive_compatible = template.adaptive_compatible

    def declared_inputs(self) -> tuple[str, ...]:
        return self._inputs

    def declared_outputs(self) -> tuple[str, ...]:
        return self._outputs

    def do_operation(self, inputs: Mapping[str, float]) -> dict[str, float]:
        context = self.template.prepare(inputs, self.nlayers)
        outputs: dict[str, float] = {}

        # Layers in increasing order; leaf classes in declaration order
        for layer in range(self.nlayers):
            if self.pure_outputs:
                values = self.template.layer_values(context, layer, self.nlayers)
                self._check_layer_values(values, self.pure_outputs, layer, "")
                for base in self.pure_outputs:
                    outputs[multilayer_name(base, layer)] = float(values[base])

            if self.multiclass_outputs:
                for leaf_class in _effective_classes(self.leaf_classes):
                    values = self.template.leaf_class_values(context, layer, self.nlayers, leaf_class)
                    self._check_layer_values(values, self.multiclass_outputs, layer, leaf_class)
                    for base in self.multiclass_outputs:
                        outputs[multilayer_name(base, layer, leaf_class)] = float(values[base])

        return outputs

    def _check_layer_values(
        self,
        values: Mapping[str, float],
        expected: Sequence[str],
        layer: int,
        leaf_class: str
    ) -> None:
        if values.keys() != set(expected):
            where = f"layer {layer}" + (f", leaf class '{leaf_class}'" if leaf_class else "")
            raise ModuleContractError(
                self.name,
                f"{where} produced {sorted(values.keys())} but declares {sorted(expected)}"
            )


class MultilayerLeafModule(SteadyModule):
    """
    Runs a single-leaf steady module for every leaf class in every layer.

    Inputs of the leaf module whose names match a base output of ``template``
    are read from the generated per-layer quantities; all other inputs are read
    unchanged. Every leaf output is written to
    ``<leaf_class>_<output>_layer_<k>``.
    """

    def __init__(
        self,
        leaf_module: SteadyModule,
        template: type[MultilayerTemplate] | MultilayerTemplate,
        nlayers: int,
        name: str | None = None
    ) -> None:
        self.leaf_module = leaf_module
        self.nlayers = _check_nlayers(nlayers)
        super().__init__(name or f"multilayer_{leaf_module.name}_{nlayers}_layers")

        self.leaf_classes = _effective_classes(template.define_leaf_classes())
        multiclass = set(template.define_multiclass_multilayer_outputs())
        pure = set(template.define_pure_multilayer_outputs())

        # For every (layer, leaf class): leaf input name -> store name
        self._sources: dict[tuple[int, str], dict[str, str]] = {}
        inputs: dict[str, None] = {}
        for layer in range(self.nlayers):
            for leaf_class in self.leaf_classes:
                mapping = {}
                for base in leaf_module.declared_inputs():
                    if base in multiclass:
                        source = multilayer_name(base, layer, leaf_class)
                    elif base in pure:
                        source = multilayer_name(base, layer)
                    else:
                        source = base
                    mapping[base] = source
                    inputs[source] = None
                self._sources[(layer, leaf_class)] = mapping

        self._inputs = tuple(inputs)
        self._outputs = tuple(
            generate_multiclass_names(leaf_module.declared_outputs(), self.nlayers, template.define_leaf_classes())
        )
        self.adaptive_compatible = leaf_module.adaptive_compatible

    def declared_inputs(self) -> tuple[str, ...]:
        return self._inputs

    def declared_outputs(self) -> tuple[str, ...]:
        return self._outputs

    def do_operation(self, inputs: Mapping[str, float]) -> dict[str, float]:
        outputs: dict[str, float] = {}
        for layer in range(self.nlayers):
            for leaf_class in self.leaf_classes:
                sources = self._sources[(layer, leaf_class)]
                leaf_inputs = {base: inputs[source] for base, source in sources.items()}
                for base, value in self.leaf_module.compute(leaf_inputs).items():
                    outputs[multilayer_name(base, layer, leaf_class)] = value
        return outputs
