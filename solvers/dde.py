"""
Integrators for delay differential equations.

    dy/dt = f(t, y(t), Z(t)),   Z(t)[:, j] = y(t - lags[j])

Uses the method of steps on a uniform grid. The step size is capped at
the smallest lag so every delayed time falls on the part of the
trajectory that is already computed; the history between grid points
is linearly interpolated and equals the initial state before t0.
"""

import numpy as np
from abc import abstractmethod
from typing import Callable, Sequence, Tuple

from core.descriptor import EquationFamily, SolverOptions
from core.exceptions import IntegrationError
from .base import (CallCounter, Integrator, IntegrationOutput, StopCheck,
                   check_finite, check_stop, fixed_step_grid, output_halts)


class DelayHistory:
    """
    Piecewise-linear state history of a DDE run.

    Callable as history(t) for any t up to the last computed sample.
    """

    def __init__(self, times: np.ndarray, values: np.ndarray, y0: np.ndarray):
        self.times = times
        self.values = values
        self.y0 = np.asarray(y0, dtype=float)
        self.count = 1

    def __call__(self, t: float) -> np.ndarray:
        t = float(t)
        if t <= self.times[0]:
            return self.y0.copy()
        last = self.count - 1
        if t >= self.times[last]:
            if t > self.times[last] + 1e-9 * max(1.0, abs(self.times[last])):
                raise IntegrationError("Delay history queried beyond the computed trajectory",
                                       {'t': t, 't_last': self.times[last]})
            return self.values[:, last].copy()
        j = int(np.searchsorted(self.times[:self.count], t, side='right')) - 1
        w = (t - self.times[j]) / (self.times[j + 1] - self.times[j])
        return self.values[:, j] + w * (self.values[:, j + 1] - self.values[:, j])

    def delayed(self, t: float, lags: np.ndarray) -> np.ndarray:
        """Delayed states Z with one column per lag."""
        return np.column_stack([self(t - lag) for lag in lags])


class DDEIntegrator(Integrator):
    """Base class for DDE integrators."""

    family = EquationFamily.DDE

    @abstractmethod
    def integrate(self, fun: Callable[[float, np.ndarray, np.ndarray], np.ndarray],
                  t_span: Tuple[float, float], y0: np.ndarray,
                  lags: Sequence[float], options: SolverOptions,
                  should_stop: StopCheck = None) -> IntegrationOutput:
        """
        Integrate dy/dt = fun(t, y, Z) over t_span.

        Args:
            fun: Right-hand side with parameters already bound
            t_span: (start, end)
            y0: Flat initial state, also the history before t_span[0]
            lags: Positive delays
            options: Step size and output hook
            should_stop: Cancellation check, polled between steps

        Returns:
            IntegrationOutput with extras 'history' and 'lags'
        """
        pass


class DelayRK4(DDEIntegrator):
    """Classical RK4 with delayed states read from the interpolated history."""

    def __init__(self, name: str = "DDE-RK4"):
        super().__init__(name)

    def time_grid(self, t_span, options, lags=None):
        step = options.initial_step
        if step is None:
            step = (t_span[1] - t_span[0]) / 100.0
        if lags is not None and len(lags) > 0:
            step = min(step, float(np.min(lags)))
        return fixed_step_grid(t_span, step)

    def integrate(self, fun, t_span, y0, lags, options, should_stop=None):
        lags = np.asarray(lags, dtype=float)
        if lags.size == 0 or np.any(lags <= 0):
            raise IntegrationError("Delays must be positive", {'lags': lags.tolist()})

        counted = CallCounter(fun)
        times = self.time_grid(t_span, options, lags)
        states = np.empty((len(y0), len(times)))
        states[:, 0] = y0
        history = DelayHistory(times, states, y0)

        last = len(times) - 1
        halted = False
        for k in range(len(times) - 1):
            t = times[k]
            check_stop(should_stop, t)
            dt = times[k + 1] - t
            half_dt = dt * 0.5
            y = states[:, k]

            k1 = counted(t, y, history.delayed(t, lags))
            k2 = counted(t + half_dt, y + half_dt * k1, history.delayed(t + half_dt, lags))
            k3 = counted(t + half_dt, y + half_dt * k2, history.delayed(t + half_dt, lags))
            k4 = counted(t + dt, y + dt * k3, history.delayed(t + dt, lags))
            states[:, k + 1] = y + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
            history.count = k + 2

            check_finite(states[:, k + 1], times[k + 1])
            if output_halts(options, times[k + 1], states[:, k + 1]):
                last = k + 1
                halted = True
                break

        final_history = DelayHistory(times[:last + 1], states[:, :last + 1], y0)
        final_history.count = last + 1
        return IntegrationOutput(
            t=times[:last + 1],
            y=states[:, :last + 1],
            stats={'nsteps': last, 'nfev': counted.calls},
            extras={'history': final_history, 'lags': tuple(lags.tolist())},
            halted=halted)
