"""
Integrators for ordinary differential equations.

    dy/dt = f(t, y)

Adaptive Runge-Kutta schemes delegate to scipy's step-by-step
OdeSolver classes (RK45, RK23, DOP853) so that the engine keeps control
between steps. Fixed-step schemes (forward Euler, classical RK4) only
implement step().
"""

import numpy as np
from abc import abstractmethod
from typing import Callable, Tuple

from scipy import integrate

from core.descriptor import EquationFamily, SolverOptions
from core.exceptions import IntegrationError
from .base import (CallCounter, Integrator, IntegrationOutput, StopCheck,
                   check_finite, check_stop, output_halts)


class ODEIntegrator(Integrator):
    """Base class for ODE integrators."""

    family = EquationFamily.ODE

    @abstractmethod
    def integrate(self, fun: Callable[[float, np.ndarray], np.ndarray],
                  t_span: Tuple[float, float], y0: np.ndarray,
                  options: SolverOptions,
                  should_stop: StopCheck = None) -> IntegrationOutput:
        """
        Integrate dy/dt = fun(t, y) over t_span.

        Args:
            fun: Right-hand side with parameters already bound
            t_span: (start, end)
            y0: Flat initial state
            options: Tolerances, step sizes and output hook
            should_stop: Cancellation check, polled between steps

        Returns:
            IntegrationOutput
        """
        pass


class AdaptiveRungeKutta(ODEIntegrator):
    """
    Embedded Runge-Kutta pair with adaptive step size.

    Wraps scipy.integrate.RK45 / RK23 / DOP853.
    """

    METHODS = {
        'RK45': integrate.RK45,
        'RK23': integrate.RK23,
        'DOP853': integrate.DOP853,
    }

    def __init__(self, method: str = 'RK45', name: str = None):
        if method not in self.METHODS:
            raise ValueError(f"Unknown method '{method}', expected one of {list(self.METHODS)}")
        super().__init__(name or method)
        self.method = method

    def integrate(self, fun, t_span, y0, options, should_stop=None):
        t0, t1 = float(t_span[0]), float(t_span[1])
        counted = CallCounter(fun)
        solver = self.METHODS[self.method](
            counted, t0, np.asarray(y0, dtype=float), t1,
            rtol=options.rtol,
            atol=options.atol,
            first_step=options.initial_step,
            max_step=options.max_step if options.max_step is not None else np.inf)

        times = [t0]
        states = [solver.y.copy()]
        halted = False
        while solver.status == 'running':
            check_stop(should_stop, solver.t)
            message = solver.step()
            if solver.status == 'failed':
                raise IntegrationError(message or f"{self.name} failed", {'t': solver.t})
            times.append(solver.t)
            states.append(solver.y.copy())
            check_finite(solver.y, solver.t)
            if output_halts(options, solver.t, solver.y):
                halted = True
                break

        return IntegrationOutput(
            t=np.asarray(times),
            y=np.column_stack(states),
            stats={'nsteps': len(times) - 1, 'nfev': counted.calls},
            halted=halted)


class FixedStepIntegrator(ODEIntegrator):
    """
    Base class for explicit fixed-step schemes.

    The step size is options.initial_step (default: 1/100 of the span),
    shrunk slightly if needed so the grid ends exactly at t_span[1].
    """

    @abstractmethod
    def step(self, fun: Callable, t: float, y: np.ndarray, dt: float) -> np.ndarray:
        """
        Advance one step.

        Args:
            fun: Right-hand side f(t, y)
            t: Current time
            y: Current state
            dt: Step size

        Returns:
            y_next: State at t + dt
        """
        pass

    def integrate(self, fun, t_span, y0, options, should_stop=None):
        counted = CallCounter(fun)
        times = self.time_grid(t_span, options)
        states = np.empty((len(y0), len(times)))
        states[:, 0] = y0

        last = len(times) - 1
        halted = False
        for k in range(len(times) - 1):
            t = times[k]
            check_stop(should_stop, t)
            dt = times[k + 1] - t
            states[:, k + 1] = self.step(counted, t, states[:, k], dt)
            check_finite(states[:, k + 1], times[k + 1])
            if output_halts(options, times[k + 1], states[:, k + 1]):
                last = k + 1
                halted = True
                break

        return IntegrationOutput(
            t=times[:last + 1],
            y=states[:, :last + 1],
            stats={'nsteps': last, 'nfev': counted.calls},
            halted=halted)


class ForwardEuler(FixedStepIntegrator):
    """First-order explicit Euler: y(t+dt) = y + dt * f(t, y)."""

    def __init__(self, name: str = "Euler"):
        super().__init__(name)

    def step(self, fun, t, y, dt):
        return y + dt * fun(t, y)


class ClassicalRK4(FixedStepIntegrator):
    """
    Classical fourth-order Runge-Kutta.

        Δy = (dt/6)(k1 + 2k2 + 2k3 + k4)
    """

    def __init__(self, name: str = "RK4"):
        super().__init__(name)

    def step(self, fun, t, y, dt):
        half_dt = dt * 0.5
        k1 = fun(t, y)
        k2 = fun(t + half_dt, y + half_dt * k1)
        k3 = fun(t + half_dt, y + half_dt * k2)
        k4 = fun(t + dt, y + dt * k3)
        return y + (dt / 6.0) * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
