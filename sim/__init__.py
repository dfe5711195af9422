"""
Solve dispatch, trajectory evaluation and the simulation controller.

Provides family-agnostic solving with reproducible noise injection,
interpolated evaluation and push-based recompute/redraw coordination.
"""

from .result import Solution
from .dispatch import solve, resolve_family
from .evaluate import evaluate
from .controller import SimulationController, Phase

__all__ = [
    'Solution',
    'solve',
    'resolve_family',
    'evaluate',
    'SimulationController',
    'Phase',
]
