from __future__ import annotations

import sys
from pathlib import Path

import pytest

SRC = Path(__file__).resolve().parents[1] / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from phytosim.framework.module import DerivativeModule, SteadyModule  # noqa: E402


class Doubler(SteadyModule):
    NAME = "doubler"

    @classmethod
    def get_inputs(cls):
        return ["x"]

    @classmethod
    def get_outputs(cls):
        return ["y"]

    def do_operation(self, inputs):
        return {"y": 2.0 * inputs["x"]}


class Incrementer(SteadyModule):
    NAME = "incrementer"

    @classmethod
    def get_inputs(cls):
        return ["y"]

    @classmethod
    def get_outputs(cls):
        return ["z"]

    def do_operation(self, inputs):
        return {"z": inputs["y"] + 1.0}


class ExponentialDecay(DerivativeModule):
    """dA/dt = -k * A"""
    NAME = "exponential_decay"

    @classmethod
    def get_inputs(cls):
        return ["A", "k"]

    @classmethod
    def get_outputs(cls):
        return ["A"]

    def do_operation(self, inputs):
        return {"A": -inputs["k"] * inputs["A"]}


class ConstantSource(DerivativeModule):
    NAME = "constant_source"

    @classmethod
    def get_inputs(cls):
        return ["source_rate"]

    @classmethod
    def get_outputs(cls):
        return ["A"]

    def do_operation(self, inputs):
        return {"A": inputs["source_rate"]}


@pytest.fixture
def decay_system():
    from phytosim.framework.system import DynamicalSystem

    def build(k: float = 0.5, t_end: float = 2.0):
        return DynamicalSystem(
            initial_values={"A": 1.0},
            parameters={"k": k},
            steady_modules=[],
            derivative_modules=[ExponentialDecay()],
            time_span=(0.0, t_end),
        )

    return build
