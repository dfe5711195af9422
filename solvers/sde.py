"""
Integrators for stochastic differential equations.

    dy = F(t, y) dt + G(t, y) dW

F is the deterministic drift and G the noise coefficients, supplied as
separate functions. The engine draws (or replays) standard normal
samples and hands each scheme the Wiener increments
dW = sqrt(dt) * noise[:, k].

G may return:
    (n, m) matrix          general noise, G @ dW
    (n,) vector, m == n    diagonal noise, G * dW
    (n,) vector, m == 1    one shared noise source, G * dW[0]
"""

import numpy as np
from abc import abstractmethod
from typing import Callable, Tuple

from core.descriptor import EquationFamily, SolverOptions
from core.exceptions import IntegrationError
from .base import (CallCounter, Integrator, IntegrationOutput, StopCheck,
                   check_finite, check_stop, output_halts)


def diffusion_increment(G: np.ndarray, dW: np.ndarray, n_states: int) -> np.ndarray:
    """
    Combine noise coefficients with Wiener increments.

    Args:
        G: Diffusion coefficients, (n,) or (n, m)
        dW: Wiener increments, (m,)
        n_states: State dimension n

    Returns:
        Noise contribution to the state increment, (n,)
    """
    G = np.asarray(G, dtype=float)
    if G.ndim == 2 and G.shape == (n_states, dW.size):
        return G @ dW
    if G.ndim <= 1 and G.size == n_states:
        G = np.ravel(G)
        if dW.size == n_states:
            return G * dW
        if dW.size == 1:
            return G * dW[0]
    raise IntegrationError("Diffusion shape does not match the noise sources",
                           {'diffusion_shape': G.shape, 'noise_sources': dW.size})


class SDEIntegrator(Integrator):
    """
    Base class for fixed-step SDE schemes.

    Subclasses implement step(); the time loop, noise scaling and
    bookkeeping live here.
    """

    family = EquationFamily.SDE

    @abstractmethod
    def step(self, drift: Callable, diffusion: Callable, t: float,
             y: np.ndarray, dt: float, dW: np.ndarray) -> np.ndarray:
        """
        Advance one step.

        Args:
            drift: F(t, y)
            diffusion: G(t, y)
            t: Current time
            y: Current state
            dt: Step size
            dW: Wiener increments for this step, (m,)

        Returns:
            y_next: State at t + dt
        """
        pass

    def integrate(self, drift: Callable, diffusion: Callable,
                  t_span: Tuple[float, float], y0: np.ndarray,
                  noise: np.ndarray, options: SolverOptions,
                  should_stop: StopCheck = None) -> IntegrationOutput:
        """
        Integrate over the fixed grid returned by time_grid().

        Args:
            drift: Drift with parameters already bound
            diffusion: Diffusion with parameters already bound
            t_span: (start, end)
            y0: Flat initial state
            noise: Standard normal samples, (m, n_steps) at least
            options: Step size and output hook
            should_stop: Cancellation check, polled between steps

        Returns:
            IntegrationOutput with extras 'dW', shape (m, len(t)); the
            last column is zero since no step follows the final sample
        """
        times = self.time_grid(t_span, options)
        n_steps = len(times) - 1
        noise = np.atleast_2d(np.asarray(noise, dtype=float))
        if noise.shape[1] < n_steps:
            raise IntegrationError("Not enough noise samples for the time grid",
                                   {'required': n_steps, 'supplied': noise.shape[1]})

        drift_counted = CallCounter(drift)
        diffusion_counted = CallCounter(diffusion)
        states = np.empty((len(y0), len(times)))
        states[:, 0] = y0
        dW = np.zeros((noise.shape[0], len(times)))

        last = n_steps
        halted = False
        for k in range(n_steps):
            t = times[k]
            check_stop(should_stop, t)
            dt = times[k + 1] - t
            dW[:, k] = np.sqrt(dt) * noise[:, k]
            states[:, k + 1] = self.step(drift_counted, diffusion_counted,
                                         t, states[:, k], dt, dW[:, k])
            check_finite(states[:, k + 1], times[k + 1])
            if output_halts(options, times[k + 1], states[:, k + 1]):
                last = k + 1
                halted = True
                break

        return IntegrationOutput(
            t=times[:last + 1],
            y=states[:, :last + 1],
            stats={'nsteps': last,
                   'nfev': drift_counted.calls + diffusion_counted.calls},
            extras={'dW': dW[:, :last + 1]},
            halted=halted)


class EulerMaruyama(SDEIntegrator):
    """
    Ito Euler-Maruyama scheme.

        y(t+dt) = y + F(t, y) dt + G(t, y) dW
    """

    def __init__(self, name: str = "Euler-Maruyama"):
        super().__init__(name)

    def step(self, drift, diffusion, t, y, dt, dW):
        return y + drift(t, y) * dt + diffusion_increment(diffusion(t, y), dW, y.size)


class StratonovichHeun(SDEIntegrator):
    """
    Stratonovich-Heun predictor-corrector scheme.

        ȳ = y + F(t, y) dt + G(t, y) dW
        y(t+dt) = y + ½(F(t, y) + F(t+dt, ȳ)) dt + ½(G(t, y) + G(t+dt, ȳ)) dW
    """

    def __init__(self, name: str = "Stratonovich-Heun"):
        super().__init__(name)

    def step(self, drift, diffusion, t, y, dt, dW):
        F0 = drift(t, y)
        G0 = np.asarray(diffusion(t, y), dtype=float)
        y_pred = y + F0 * dt + diffusion_increment(G0, dW, y.size)
        F1 = drift(t + dt, y_pred)
        G1 = np.asarray(diffusion(t + dt, y_pred), dtype=float)
        return (y + 0.5 * (F0 + F1) * dt
                + diffusion_increment(0.5 * (G0 + G1), dW, y.size))
