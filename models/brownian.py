"""
Geometric Brownian motion SDE.

Ito stochastic differential equation:
    dY = mu*Y dt + sigma*Y dW

The deterministic and stochastic parts are implemented separately:
    F(t, Y) = mu*Y       (drift)
    G(t, Y) = sigma*Y    (diffusion)

and integrated with the fixed-step Euler-Maruyama scheme
    Y(t+dt) = Y + F dt + G sqrt(dt) randn()

Supplying pre-generated samples in SolverOptions.noise_samples makes
repeated solves identical.
"""

import numpy as np
from typing import Optional, Tuple

from core.descriptor import Entry, SDESpec, SolverOptions, SystemDescriptor
from solvers.registry import EULER_MARUYAMA, STRATONOVICH_HEUN
from .base import SystemModel


def gbm_drift(t, Y, mu, sigma):
    return mu * Y


def gbm_diffusion(t, Y, mu, sigma):
    return sigma * Y


class BrownianMotion(SystemModel):
    """Geometric Brownian motion driven by a single Wiener process."""

    def __init__(self, mu: float = -0.1, sigma: float = 0.1, y0: float = 5.0,
                 time_span: Tuple[float, float] = (0.0, 10.0),
                 step: float = 0.01,
                 noise_samples: Optional[np.ndarray] = None):
        """
        Initialize Brownian motion model.

        Args:
            mu: Drift coefficient
            sigma: Volatility
            y0: Initial value of Y
            time_span: Default integration interval
            step: Fixed step size
            noise_samples: Pre-generated standard normal samples (1 x n_steps)
        """
        self.mu = mu
        self.sigma = sigma
        self.y0 = y0
        self.time_span = time_span
        self.step = step
        self.noise_samples = noise_samples

    def build(self) -> SystemDescriptor:
        return SystemDescriptor(
            parameters=[Entry('mu', self.mu), Entry('sigma', self.sigma)],
            variables=[Entry('Y', self.y0)],
            time_span=self.time_span,
            sde=SDESpec(
                drift=gbm_drift,
                diffusion=gbm_diffusion,
                solvers=[EULER_MARUYAMA, STRATONOVICH_HEUN],
                options=SolverOptions(initial_step=self.step,
                                      noise_sources=1,
                                      noise_samples=self.noise_samples)),
            panels={'TimePortrait': {}},
            self_constructor=BrownianMotion.default_descriptor)
