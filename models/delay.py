"""
Delayed negative feedback DDE.

    dY/dt = -a * Y(t - tau)

For a*tau < π/2 the equilibrium Y = 0 is asymptotically stable; beyond
that the solution oscillates with growing amplitude.
"""

from typing import Tuple

from core.descriptor import DDESpec, Entry, SolverOptions, SystemDescriptor
from .base import SystemModel


def delayed_rhs(t, Y, Z, a):
    """Right-hand side; Z[:, 0] holds Y(t - tau)."""
    return -a * Z[:, 0]


class DelayedDecay(SystemModel):
    """Scalar linear DDE with a single delay."""

    def __init__(self, a: float = 1.0, tau: float = 1.0, y0: float = 1.0,
                 time_span: Tuple[float, float] = (0.0, 20.0),
                 step: float = 0.05):
        """
        Initialize delayed decay model.

        Args:
            a: Feedback gain
            tau: Delay
            y0: Initial value, also the constant history before t0
            time_span: Default integration interval
            step: Fixed step size (capped at tau)
        """
        self.a = a
        self.tau = tau
        self.y0 = y0
        self.time_span = time_span
        self.step = step

    def build(self) -> SystemDescriptor:
        return SystemDescriptor(
            parameters=[Entry('a', self.a)],
            variables=[Entry('Y', self.y0)],
            time_span=self.time_span,
            dde=DDESpec(rhs=delayed_rhs,
                        lags=[self.tau],
                        options=SolverOptions(initial_step=self.step)),
            self_constructor=DelayedDecay.default_descriptor)
