"""
Base integrator interface.

Integrators are pluggable black boxes registered in a descriptor's
candidate solver lists. Each belongs to exactly one equation family and
returns an IntegrationOutput: sample times, a state matrix with one
column per sample, step statistics and family-specific extras.

Cancellation and the output hook are honored at step boundaries only.
"""

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple

from core.descriptor import EquationFamily, SolverOptions
from core.exceptions import IntegrationError, SolveCancelled


StopCheck = Optional[Callable[[], bool]]


@dataclass
class IntegrationOutput:
    """
    Raw output of one integration run.

    Attributes:
        t: Sample times (strictly increasing)
        y: State values (n_states x len(t))
        stats: Step statistics ('nsteps', 'nfev')
        extras: Family-specific data (noise increments, delay history)
        halted: True if the output hook stopped the run early
    """
    t: np.ndarray
    y: np.ndarray
    stats: Dict[str, int] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)
    halted: bool = False


class CallCounter:
    """Wraps a function and counts its invocations."""

    def __init__(self, fun: Callable):
        self.fun = fun
        self.calls = 0

    def __call__(self, *args):
        self.calls += 1
        return self.fun(*args)


class Integrator(ABC):
    """
    Abstract base class for all integrators.

    Attributes:
        name: Human-readable solver name shown in solver catalogs
        family: Equation family this integrator solves
    """

    family: EquationFamily = None

    def __init__(self, name: str):
        """
        Initialize integrator.

        Args:
            name: Solver identifier for catalogs and logging
        """
        self.name = name

    def time_grid(self, t_span: Tuple[float, float],
                  options: SolverOptions) -> np.ndarray:
        """Sample times of a fixed-step run over t_span."""
        return fixed_step_grid(t_span, options.initial_step)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"


def fixed_step_grid(t_span: Tuple[float, float],
                    step: Optional[float] = None) -> np.ndarray:
    """
    Uniform grid covering t_span with spacing no larger than step.

    Args:
        t_span: (start, end), end > start
        step: Requested step size (default: 1/100 of the span)

    Returns:
        Sample times including both end points
    """
    t0, t1 = float(t_span[0]), float(t_span[1])
    if step is None:
        step = (t1 - t0) / 100.0
    if not step > 0:
        raise IntegrationError("Step size must be positive", {'step': step})
    n_steps = max(int(np.ceil((t1 - t0) / step - 1e-9)), 1)
    return np.linspace(t0, t1, n_steps + 1)


def check_stop(should_stop: StopCheck, t: float) -> None:
    """Raise SolveCancelled if a cancellation has been requested."""
    if should_stop is not None and should_stop():
        raise SolveCancelled("Solve cancelled", {'t': t})


def output_halts(options: SolverOptions, t: float, y: np.ndarray) -> bool:
    """Call the output hook; True means stop integrating."""
    if options.output_fcn is None:
        return False
    return bool(options.output_fcn(t, y.copy()))


def check_finite(y: np.ndarray, t: float) -> None:
    if not np.all(np.isfinite(y)):
        raise IntegrationError("Non-finite state encountered", {'t': t})
