import json

import pytest

from phytosim import config
from phytosim.config import SolverSettings, load_settings


def test_defaults():
    settings = SolverSettings()
    assert settings.solver == config.DEFAULT_SOLVER == "homemade_euler"
    assert settings.step_size == 1.0
    assert settings.max_steps == 200_000


@pytest.mark.parametrize(
    "kwargs",
    [
        {"solver": ""},
        {"step_size": -1.0},
        {"rel_error_tolerance": 0.0},
        {"abs_error_tolerance": -1e-3},
        {"max_steps": 0},
        {"max_steps": 2.5},
    ],
)
def test_invalid_settings(kwargs):
    with pytest.raises(ValueError):
        SolverSettings(**kwargs)


def test_round_trip_through_dict():
    settings = SolverSettings(solver="rk4", step_size=0.5)
    assert SolverSettings.from_dict(settings.to_dict()) == settings


def test_unknown_keys_are_rejected():
    with pytest.raises(ValueError, match="output_step"):
        SolverSettings.from_dict({"solver": "rk4", "output_step": 1.0})


def test_load_settings(tmp_path):
    path = tmp_path / "solver.json"
    path.write_text(json.dumps({"solver": "rk45", "rel_error_tolerance": 1e-6}), encoding="utf-8")
    settings = load_settings(path)
    assert settings.solver == "rk45"
    assert settings.rel_error_tolerance == 1e-6
    assert settings.abs_error_tolerance == config.DEFAULT_ABS_ERROR_TOLERANCE


def test_load_settings_requires_an_object(tmp_path):
    path = tmp_path / "solver.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(path)
