"""
Linear decay ODE.

    dY/dt = mu * Y

With mu = -0.1 and Y(0) = 5 the exact solution is Y(t) = 5 exp(-0.1 t),
so Y(10) = 5/e ≈ 1.839.
"""

from typing import Tuple

from core.descriptor import Entry, ODESpec, SystemDescriptor
from .base import SystemModel


def linear_rhs(t, Y, mu):
    """Right-hand side dY/dt = mu*Y."""
    return mu * Y


class LinearDecay(SystemModel):
    """
    Scalar linear ODE with exponential solution.

    The simplest system: used as a smoke test for every ODE solver.
    """

    def __init__(self, mu: float = -0.1, y0: float = 5.0,
                 time_span: Tuple[float, float] = (0.0, 10.0)):
        """
        Initialize linear decay model.

        Args:
            mu: Growth rate (negative for decay)
            y0: Initial value of Y
            time_span: Default integration interval
        """
        self.mu = mu
        self.y0 = y0
        self.time_span = time_span

    def build(self) -> SystemDescriptor:
        return SystemDescriptor(
            parameters=[Entry('mu', self.mu, lim=(-1.0, 1.0))],
            variables=[Entry('Y', self.y0, lim=(0.0, 10.0))],
            time_span=self.time_span,
            ode=ODESpec(rhs=linear_rhs),
            panels={'TimePortrait': {}},
            self_constructor=LinearDecay.default_descriptor)
