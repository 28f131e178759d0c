import pytest

from conftest import Doubler
from phytosim.errors import QuantityCollision, UnclassifiedOutput
from phytosim.framework.module import SteadyModule
from phytosim.framework.multilayer import (
    MultilayerLeafModule,
    MultilayerModule,
    MultilayerTemplate,
    generate_multiclass_names,
    generate_pure_names,
    multilayer_name,
)
from phytosim.framework.quantities import QuantityStore


class LayeredLight(MultilayerTemplate):
    NAME = "layered_light"

    def __init__(self):
        self.calls = []

    @classmethod
    def get_inputs(cls):
        return ["light"]

    @classmethod
    def define_leaf_classes(cls):
        return ["sunlit", "shaded"]

    @classmethod
    def define_multiclass_multilayer_outputs(cls):
        return ["incident_par"]

    @classmethod
    def define_pure_multilayer_outputs(cls):
        return ["windspeed"]

    def layer_values(self, context, layer, nlayers):
        self.calls.append((layer, ""))
        return {"windspeed": 10.0 - layer}

    def leaf_class_values(self, context, layer, nlayers, leaf_class):
        self.calls.append((layer, leaf_class))
        scale = 1.0 if leaf_class == "sunlit" else 0.5
        return {"incident_par": context["light"] * scale / (layer + 1)}


class Unclassified(LayeredLight):
    @classmethod
    def get_base_outputs(cls):
        return ["incident_par", "windspeed", "mystery"]


class NoClasses(MultilayerTemplate):
    @classmethod
    def get_inputs(cls):
        return ["x"]

    @classmethod
    def define_multiclass_multilayer_outputs(cls):
        return ["a"]

    def leaf_class_values(self, context, layer, nlayers, leaf_class):
        return {"a": float(layer)}


class InBothCategories(LayeredLight):
    @classmethod
    def define_pure_multilayer_outputs(cls):
        return ["windspeed", "incident_par"]


class RepeatedClasses(LayeredLight):
    @classmethod
    def define_leaf_classes(cls):
        return ["sunlit", "sunlit"]


class LeafConductance(SteadyModule):
    NAME = "leaf_conductance"

    @classmethod
    def get_inputs(cls):
        return ["incident_par", "windspeed", "scale"]

    @classmethod
    def get_outputs(cls):
        return ["conductance"]

    def do_operation(self, inputs):
        return {"conductance": inputs["scale"] * inputs["incident_par"] + inputs["windspeed"]}


def test_name_format():
    assert multilayer_name("incident_par", 3, "sunlit") == "sunlit_incident_par_layer_3"
    assert multilayer_name("windspeed", 12) == "windspeed_layer_12"


def test_ten_layers_with_two_classes_give_twenty_names():
    names = generate_multiclass_names(["incident_par"], 10, ["sunlit", "shaded"])
    assert len(names) == 20
    assert len(set(names)) == 20
    assert "sunlit_incident_par_layer_0" in names
    assert "shaded_incident_par_layer_9" in names
    assert "sunlit_incident_par_layer_10" not in names


def test_empty_class_list_means_no_prefix():
    assert generate_multiclass_names(["a"], 2, []) == ["a_layer_0", "a_layer_1"]
    assert generate_pure_names(["a", "b"], 2) == ["a_layer_0", "a_layer_1", "b_layer_0", "b_layer_1"]


def test_module_declares_generated_outputs():
    module = MultilayerModule(LayeredLight(), 10)
    assert module.declared_inputs() == ("light",)
    assert len(module.declared_outputs()) == 20 + 10
    assert module.name == "layered_light_10_layers"


def test_module_without_classes():
    module = MultilayerModule(NoClasses(), 3)
    assert module.declared_outputs() == ("a_layer_0", "a_layer_1", "a_layer_2")


def test_evaluation_order_and_values():
    template = LayeredLight()
    module = MultilayerModule(template, 2)
    store = QuantityStore({"light": 100.0})
    module.bind(store, store)
    module.evaluate()

    assert template.calls == [(0, ""), (0, "sunlit"), (0, "shaded"), (1, ""), (1, "sunlit"), (1, "shaded")]
    assert store.get("sunlit_incident_par_layer_0") == 100.0
    assert store.get("shaded_incident_par_layer_1") == 25.0
    assert store.get("windspeed_layer_1") == 9.0


@pytest.mark.parametrize("nlayers", [0, -1, 2.5])
def test_invalid_layer_count(nlayers):
    with pytest.raises(ValueError):
        MultilayerModule(LayeredLight(), nlayers)


def test_unclassified_output():
    with pytest.raises(UnclassifiedOutput) as excinfo:
        MultilayerModule(Unclassified(), 2)
    assert excinfo.value.names == ["mystery"]


def test_output_in_both_categories():
    with pytest.raises(QuantityCollision):
        MultilayerModule(InBothCategories(), 2)


def test_repeated_leaf_class():
    with pytest.raises(QuantityCollision):
        MultilayerModule(RepeatedClasses(), 2)


def test_leaf_module_reads_layer_quantities():
    canopy = MultilayerModule(LayeredLight(), 2)
    leaf = MultilayerLeafModule(LeafConductance(), LayeredLight, 2)

    assert "sunlit_incident_par_layer_1" in leaf.declared_inputs()
    assert "windspeed_layer_0" in leaf.declared_inputs()
    assert "scale" in leaf.declared_inputs()
    assert set(leaf.declared_outputs()) == {
        "sunlit_conductance_layer_0",
        "sunlit_conductance_layer_1",
        "shaded_conductance_layer_0",
        "shaded_conductance_layer_1",
    }

    store = QuantityStore({"light": 100.0, "scale": 2.0})
    canopy.bind(store, store)
    leaf.bind(store, store)
    canopy.evaluate()
    leaf.evaluate()

    assert store.get("sunlit_conductance_layer_0") == 2.0 * 100.0 + 10.0
    assert store.get("shaded_conductance_layer_1") == 2.0 * 25.0 + 9.0


def test_leaf_module_passes_through_plain_modules():
    leaf = MultilayerLeafModule(Doubler(), NoClasses, 2)
    assert leaf.declared_inputs() == ("x",)
    assert leaf.declared_outputs() == ("y_layer_0", "y_layer_1")
