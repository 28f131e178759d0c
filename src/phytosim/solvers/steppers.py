"""
Steppers
========
Single-step formulas shared by the integrators.

Every stepper takes the right-hand side ``f(y, t) -> dy/dt`` in the argument
order used by :meth:`DynamicalSystem.get_differential`.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Callable

import numpy as np
import scipy as sp

from phytosim.errors import IntegrationError

if TYPE_CHECKING:
    import numpy.typing as npt

    Derivative = Callable[[npt.NDArray[np.float64], float], npt.NDArray[np.float64]]

# Rosenbrock ROS2 (Verwer et al., 1999)
ROS2_GAMMA = 1.0 + 1.0 / np.sqrt(2.0)


def euler_step(f: Derivative, y: npt.NDArray[np.float64], t: float, h: float) -> npt.NDArray[np.float64]:
    """Explicit Euler step."""
    return y + h * f(y, t)


def rk4_step(f: Derivative, y: npt.NDArray[np.float64], t: float, h: float) -> npt.NDArray[np.float64]:
    """Classical fourth-order Runge-Kutta step."""
    k1 = f(y, t)
    k2 = f(y + 0.5 * h * k1, t + 0.5 * h)
    k3 = f(y + 0.5 * h * k2, t + 0.5 * h)
    k4 = f(y + h * k3, t + h)
    return y + h / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)


def finite_difference_jacobian(
    f: Derivative,
    y: npt.NDArray[np.float64],
    t: float,
    f0: npt.NDArray[np.float64]
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    Forward-difference Jacobian of ``f`` with respect to the state and to time.

    Args:
        f: Right-hand side.
        y: State at which to differentiate.
        t: Time at which to differentiate.
        f0: ``f(y, t)``, already evaluated.

    Returns:
        Tuple of the (n, n) Jacobian df/dy and the (n,) vector df/dt.
    """
    n = y.size
    eps = np.sqrt(np.finfo(np.float64).eps)
    jacobian = np.empty((n, n), dtype=np.float64)

    for j in range(n):
        delta = eps * max(1.0, abs(y[j]))
        shifted = y.copy()
        shifted[j] += delta
        jacobian[:, j] = (f(shifted, t) - f0) / delta

    dt = eps * max(1.0, abs(t))
    dfdt = (f(y, t + dt) - f0) / dt
    return jacobian, dfdt


def rosenbrock2_step(
    f: Derivative,
    y: npt.NDArray[np.float64],
    t: float,
    h: float,
    f0: npt.NDArray[np.float64],
    jacobian: npt.NDArray[np.float64],
    dfdt: npt.NDArray[np.float64]
) -> tuple[npt.NDArray[np.float64], npt.NDArray[np.float64]]:
    """
    One ROS2 step with an embedded first-order error estimate.

    Time is treated as an extra state variable with dt/dt = 1, which keeps the
    method second order for non-autonomous systems.

    Args:
        f: Right-hand side.
        y: State at ``t``.
        t: Current time.
        h: Step size.
        f0: ``f(y, t)``.
        jacobian: df/dy at ``(y, t)``.
        dfdt: df/dt at ``(y, t)``.

    Returns:
        Tuple of the new state and the local error estimate. Both are
        non-finite when ``f`` is not finite at the second stage.

    Raises:
        IntegrationError: If the stage matrix cannot be factorised.
    """
    n = y.size
    gamma = ROS2_GAMMA

    # Extended Jacobian for z = (y, t)
    matrix = np.eye(n + 1, dtype=np.float64)
    matrix[:n, :n] -= gamma * h * jacobian
    matrix[:n, n] -= gamma * h * dfdt

    try:
        lu_piv = sp.linalg.lu_factor(matrix)
    except (ValueError, np.linalg.LinAlgError) as e:
        raise IntegrationError(f"Rosenbrock stage matrix could not be factorised at time {t:.6g}: {e}") from e

    k1 = sp.linalg.lu_solve(lu_piv, np.append(f0, 1.0))
    y_stage = y + h * k1[:n]
    rhs2 = np.append(f(y_stage, t + h), 1.0) - 2.0 * k1
    k2 = sp.linalg.lu_solve(lu_piv, rhs2, check_finite=False)

    y_new = y + h * (1.5 * k1[:n] + 0.5 * k2[:n])
    error = 0.5 * h * (k1[:n] + k2[:n])
    return y_new, error


def error_norm(
    error: npt.NDArray[np.float64],
    y_old: npt.NDArray[np.float64],
    y_new: npt.NDArray[np.float64],
    rtol: float,
    atol: float
) -> float:
    """Root-mean-square of the error scaled by ``atol + rtol * max(|y_old|, |y_new|)``."""
    scale = atol + rtol * np.maximum(np.abs(y_old), np.abs(y_new))
    return float(np.sqrt(np.mean((error / scale) ** 2)))
