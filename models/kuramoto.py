"""
Network of Kuramoto phase oscillators.

    dθ_i/dt = ω_i + (k/n) Σ_j K_ij sin(θ_j - θ_i)

Auxiliary outputs (derived from the completed trajectory):
    sin(θ_i)                 one per oscillator
    R = |mean_j exp(iθ_j)|   Kuramoto order parameter
"""

import numpy as np
from typing import Optional, Tuple

from core.descriptor import Entry, ODESpec, SystemDescriptor
from solvers.registry import RK45, RK23, RK4
from .base import SystemModel


def kuramoto_rhs(t, theta, Kij, k, omega):
    n = theta.size
    diff = theta[None, :] - theta[:, None]
    return omega + (k / n) * np.sum(Kij * np.sin(diff), axis=1)


def kuramoto_aux(times, values, Kij, k, omega):
    """Auxiliary outputs sampled at the trajectory times."""
    R = np.abs(np.mean(np.exp(1j * values), axis=0))
    return np.vstack([np.sin(values), R[None, :]])


class KuramotoNet(SystemModel):
    """
    Kuramoto network with coupling matrix Kij.

    Shows matrix-valued parameters, a vector-valued state variable and
    auxiliary outputs.
    """

    def __init__(self, Kij: Optional[np.ndarray] = None, k: float = 1.0,
                 omega: Optional[np.ndarray] = None,
                 theta0: Optional[np.ndarray] = None,
                 time_span: Tuple[float, float] = (0.0, 100.0),
                 seed: Optional[int] = None):
        """
        Initialize Kuramoto network.

        Args:
            Kij: Coupling matrix (n x n), default global coupling with n=20
            k: Coupling strength
            omega: Natural frequencies (n,), default drawn from N(1, 0.1)
            theta0: Initial phases (n,), default uniform on [-π, π]
            time_span: Default integration interval
            seed: Random seed for the default frequencies and phases
        """
        rng = np.random.default_rng(seed)
        self.Kij = np.ones((20, 20)) if Kij is None else np.asarray(Kij, dtype=float)
        n = self.Kij.shape[0]
        self.k = k
        self.omega = rng.normal(1.0, 0.1, n) if omega is None else np.asarray(omega, dtype=float)
        self.theta0 = rng.uniform(-np.pi, np.pi, n) if theta0 is None else np.asarray(theta0, dtype=float)
        self.time_span = time_span

    @property
    def n(self) -> int:
        return self.Kij.shape[0]

    def build(self) -> SystemDescriptor:
        return SystemDescriptor(
            parameters=[Entry('Kij', self.Kij),
                        Entry('k', self.k, lim=(0.0, 10.0)),
                        Entry('omega', self.omega)],
            variables=[Entry('theta', self.theta0, length=self.n, lim=(-np.pi, np.pi))],
            time_span=self.time_span,
            ode=ODESpec(rhs=kuramoto_rhs, solvers=[RK45, RK23, RK4]),
            auxdef=[Entry('sin_theta', np.zeros(self.n)), Entry('R', 0.0)],
            auxfun=kuramoto_aux,
            panels={'TimePortrait': {}, 'PhasePortrait': {}},
            self_constructor=KuramotoNet.default_descriptor)
