import numpy as np
import pytest

from phytosim.errors import UnknownQuantity
from phytosim.framework.quantities import QuantityStore


def test_get_and_set_by_name():
    store = QuantityStore({"a": 1.0, "b": 2.0})
    store.set("a", 5.0)
    assert store.get("a") == 5.0
    assert store.get("b") == 2.0
    assert store.names() == ["a", "b"]
    assert len(store) == 2


def test_unknown_quantity_is_a_key_error():
    store = QuantityStore({"a": 1.0})
    with pytest.raises(UnknownQuantity) as excinfo:
        store.get("missing")
    assert excinfo.value.name == "missing"
    assert "missing" in str(excinfo.value)
    with pytest.raises(KeyError):
        store.slot("missing")


def test_add_rejects_existing_name():
    store = QuantityStore({"a": 1.0})
    with pytest.raises(ValueError):
        store.add("a", 2.0)


def test_slots_survive_growth():
    store = QuantityStore(capacity=1)
    first = store.add("q0", 0.5)
    for i in range(1, 50):
        store.add(f"q{i}", float(i))
    assert store.slot("q0") == first
    assert store.get_slot(first) == 0.5
    assert store.get("q49") == 49.0


def test_vectorised_access_and_fill():
    store = QuantityStore({"a": 1.0, "b": 2.0, "c": 3.0})
    indices = np.array([store.slot("c"), store.slot("a")])
    store.set_many(indices, np.array([30.0, 10.0]))
    values = store.get_many(indices)
    np.testing.assert_allclose(values, [30.0, 10.0])

    values[0] = -1.0
    assert store.get("c") == 30.0

    store.add_to_slot(store.slot("b"), 0.5)
    assert store.get("b") == 2.5

    store.fill(0.0)
    assert store.as_dict() == {"a": 0.0, "b": 0.0, "c": 0.0}


def test_as_dict_subset_keeps_requested_order():
    store = QuantityStore({"a": 1.0, "b": 2.0, "c": 3.0})
    assert list(store.as_dict(["c", "a"]).items()) == [("c", 3.0), ("a", 1.0)]
    assert "b" in store
    assert "d" not in store
