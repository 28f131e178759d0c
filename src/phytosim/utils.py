from __future__ import annotations

import math

ATMOSPHERIC_PRESSURE_AT_SEA_LEVEL = 101325.0  # Pa
HOURS_PER_DAY = 24.0


def saturation_vapor_pressure(temperature: float) -> float:
    """
    Saturation water vapor pressure over a flat water surface.

    Tetens' formula, adequate between 0 and 50 degrees C.

    Args:
        temperature: Air temperature in degrees C.

    Returns:
        Saturation vapor pressure in Pa.
    """
    return 610.78 * math.exp(17.27 * temperature / (temperature + 237.3))


def logistic_decay(rate: float, alpha: float, beta: float, x: float) -> float:
    """``rate / (1 + exp(alpha + beta * x))``; decreasing in ``x`` when beta > 0."""
    exponent = alpha + beta * x
    # exp overflows above ~709
    if exponent > 700.0:
        return 0.0
    return rate / (1.0 + math.exp(exponent))
