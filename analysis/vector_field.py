"""
Phase-plane analysis helpers.

Provides the data behind phase-portrait views: the deterministic vector
field on a 2-D slice of the state space and a fixed-point test on the
tail of a trajectory.

Limitations:
    - Delay equations have no instantaneous vector field; for the DDE
      family vector_field() returns an empty field instead of failing.
    - For SDEs only the drift is shown.
    - has_converged() is a heuristic on the last three samples, not a
      stability proof.
"""

import logging
import numpy as np
from dataclasses import dataclass
from typing import Optional, Tuple

from core.descriptor import EquationFamily, SystemDescriptor

logger = logging.getLogger(__name__)


@dataclass
class VectorField:
    """Vector field sampled on a mesh."""
    x: np.ndarray
    y: np.ndarray
    dx: np.ndarray
    dy: np.ndarray

    @property
    def is_empty(self) -> bool:
        return self.x.size == 0

    @classmethod
    def empty(cls) -> 'VectorField':
        blank = np.empty((0, 0))
        return cls(blank, blank.copy(), blank.copy(), blank.copy())


def vector_field(descriptor: SystemDescriptor, solution,
                 x_index: int, y_index: int,
                 x_limits: Tuple[float, float], y_limits: Tuple[float, float],
                 family: Optional[EquationFamily] = None,
                 time_index: int = -1,
                 resolution: int = 21) -> VectorField:
    """
    Evaluate the deterministic right-hand side on a 2-D mesh.

    Components other than x_index and y_index are frozen at their values
    in solution.values[:, time_index].

    Args:
        descriptor: Validated descriptor providing the equations
        solution: Solution supplying the frozen state components
        x_index: Flat state index for the horizontal axis
        y_index: Flat state index for the vertical axis
        x_limits: (min, max) of the horizontal axis
        y_limits: (min, max) of the vertical axis
        family: Equation family (default: solution.family)
        time_index: Trajectory sample used for the frozen components
        resolution: Mesh points per axis

    Returns:
        VectorField (empty for the DDE family)
    """
    family = solution.family if family is None else family
    if family is EquationFamily.DDE:
        logger.debug("No vector field for delay equations")
        return VectorField.empty()

    spec = descriptor.spec_for(family)
    if spec is None:
        raise ValueError(f"Family '{family.value}' is not declared by the descriptor")
    fun = spec.rhs if family is EquationFamily.ODE else spec.drift

    xs = np.linspace(x_limits[0], x_limits[1], resolution)
    ys = np.linspace(y_limits[0], y_limits[1], resolution)
    X, Y = np.meshgrid(xs, ys)
    dX = np.full(X.shape, np.nan)
    dY = np.full(Y.shape, np.nan)

    t = float(solution.times[time_index])
    base = solution.values[:, time_index].copy()
    params = descriptor.parameter_values

    for idx in np.ndindex(X.shape):
        state = base.copy()
        state[x_index] = X[idx]
        state[y_index] = Y[idx]
        d = np.ravel(np.asarray(fun(t, state, *params), dtype=float))
        dX[idx] = d[x_index]
        dY[idx] = d[y_index]

    return VectorField(X, Y, dX, dY)


def has_converged(solution, tol: float = 1e-3) -> bool:
    """
    Check whether the trajectory has settled on a fixed point.

    Uses the second difference of the last three samples:
        ||Δ²y|| < tol * Δt

    Args:
        solution: Solution to inspect
        tol: Relative threshold

    Returns:
        True if the tail of the trajectory is flat
    """
    if solution.times.size < 3:
        return False
    dt = solution.times[-1] - solution.times[-2]
    d1 = np.diff(solution.values[:, -3:], axis=1)
    d2 = np.diff(d1, axis=1)
    return bool(np.linalg.norm(d2) < tol * dt)
