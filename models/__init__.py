"""
System descriptor validation and ready-made dynamical systems.
"""

from .validation import validate
from .base import SystemModel
from .linear import LinearDecay
from .brownian import BrownianMotion
from .delay import DelayedDecay
from .kuramoto import KuramotoNet

__all__ = ['validate', 'SystemModel', 'LinearDecay', 'BrownianMotion',
           'DelayedDecay', 'KuramotoNet']
