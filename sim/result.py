"""
Canonical solution container.

Every solve returns the same shape regardless of the equation family:
sample times, a state matrix with one column per sample, and
family-specific extras that are only needed for re-evaluation.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from core.descriptor import EquationFamily
from core.exceptions import IntegrationError


@dataclass(eq=False)
class Solution:
    """
    Container for solver results.

    Attributes:
        times: Sample times, strictly increasing
        values: State values (n_rows x len(times))
        family: Equation family that produced the solution
        solver: Name of the integrator
        stats: Step statistics ('nsteps', 'nfev')
        extras: Family-specific pass-through data:
            'dW'       Wiener increments, SDE only (noise_sources x len(times))
            'history'  Interpolated delay history, DDE only
            'lags'     Delays, DDE only
        metadata: Additional solve information
    """
    times: np.ndarray
    values: np.ndarray
    family: EquationFamily
    solver: str
    stats: Dict[str, int] = field(default_factory=dict)
    extras: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.times = np.asarray(self.times, dtype=float)
        self.values = np.asarray(self.values, dtype=float)
        if self.values.ndim == 1:
            self.values = self.values[None, :]
        if self.times.ndim != 1 or self.times.size == 0:
            raise IntegrationError("Solution times must be a non-empty vector",
                                   {'shape': self.times.shape})
        if np.any(np.diff(self.times) <= 0):
            raise IntegrationError("Solution times must be strictly increasing")
        if self.values.ndim != 2 or self.values.shape[1] != self.times.size:
            raise IntegrationError("Solution values need one column per sample time",
                                   {'values_shape': self.values.shape,
                                    'n_times': self.times.size})

    @property
    def n_rows(self) -> int:
        return self.values.shape[0]

    @property
    def time_span(self):
        return (float(self.times[0]), float(self.times[-1]))

    @property
    def final_values(self) -> np.ndarray:
        """State at the last sample."""
        return self.values[:, -1].copy()

    @property
    def noise_increments(self) -> Optional[np.ndarray]:
        """Realized Wiener increments (SDE only)."""
        return self.extras.get('dW')

    @property
    def history(self):
        """Delay history callable (DDE only)."""
        return self.extras.get('history')

    def evaluate(self, query_times, indices: Optional[Sequence[int]] = None) -> np.ndarray:
        """Interpolate rows at query times. See sim.evaluate.evaluate."""
        from .evaluate import evaluate
        return evaluate(self, query_times, indices)

    def __repr__(self) -> str:
        return (f"Solution(family={self.family.value}, solver='{self.solver}', "
                f"n_rows={self.n_rows}, n_times={self.times.size})")
