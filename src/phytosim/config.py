"""
Configuration
=============
Central place for solver defaults and the settings object used to build
integrators from user configuration.

Why is this file needed?
------------------------
1. Defaults: Integrators, the solver factory and the settings loader all read
   the same constants instead of repeating literal numbers.
2. Validation: ``SolverSettings`` checks values once, when configuration is
   read, so a bad tolerance fails before any simulation starts.

Exports:
    DEFAULT_SOLVER (str): Solver used when the configuration names none.
    DEFAULT_STEP_SIZE (float): Fixed step size / initial adaptive step size.
    DEFAULT_REL_ERROR_TOLERANCE (float): Relative tolerance of adaptive solvers.
    DEFAULT_ABS_ERROR_TOLERANCE (float): Absolute tolerance of adaptive solvers.
    DEFAULT_MAX_STEPS (int): Maximum number of accepted steps per integration.
"""
from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)

# Global Constants
DEFAULT_SOLVER: str = "homemade_euler"
DEFAULT_STEP_SIZE: float = 1.0
DEFAULT_REL_ERROR_TOLERANCE: float = 1e-4
DEFAULT_ABS_ERROR_TOLERANCE: float = 1e-4
DEFAULT_MAX_STEPS: int = 200_000


@dataclass
class SolverSettings:
    """
    User-facing solver configuration.
    """
    solver: str = DEFAULT_SOLVER
    step_size: float = DEFAULT_STEP_SIZE
    rel_error_tolerance: float = DEFAULT_REL_ERROR_TOLERANCE
    abs_error_tolerance: float = DEFAULT_ABS_ERROR_TOLERANCE
    max_steps: int = DEFAULT_MAX_STEPS

    def __post_init__(self) -> None:
        if not self.solver:
            raise ValueError("solver must be a non-empty string")
        if not self.step_size > 0.0:
            raise ValueError(f"step_size must be positive, got {self.step_size}")
        if not self.rel_error_tolerance > 0.0:
            raise ValueError(f"rel_error_tolerance must be positive, got {self.rel_error_tolerance}")
        if not self.abs_error_tolerance > 0.0:
            raise ValueError(f"abs_error_tolerance must be positive, got {self.abs_error_tolerance}")
        if isinstance(self.max_steps, bool) or not isinstance(self.max_steps, int) or self.max_steps < 1:
            raise ValueError(f"max_steps must be a positive integer, got {self.max_steps!r}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> SolverSettings:
        known = {f.name for f in fields(SolverSettings)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown solver settings: {', '.join(sorted(unknown))}")
        return SolverSettings(**data)


def load_settings(filepath: str | Path) -> SolverSettings:
    """
    Read solver settings from a JSON file.

    Args:
        filepath: Path to a JSON object with any of the ``SolverSettings`` fields.

    Returns:
        The validated settings; missing fields take their defaults.
    """
    logger.info(f"Loading solver settings from: {filepath}")
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Solver settings in '{filepath}' must be a JSON object.")
    return SolverSettings.from_dict(data)
