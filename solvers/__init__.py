"""
Integrators for ODE, DDE and SDE systems and the solver registry.

All integrators implement a standard interface via the Integrator base class.
"""

from .base import Integrator, IntegrationOutput, fixed_step_grid
from .ode import ODEIntegrator, AdaptiveRungeKutta, FixedStepIntegrator, ForwardEuler, ClassicalRK4
from .dde import DDEIntegrator, DelayRK4, DelayHistory
from .sde import SDEIntegrator, EulerMaruyama, StratonovichHeun, diffusion_increment
from .registry import (
    CatalogEntry,
    register_integrator,
    stock_solvers,
    default_solvers,
    solver_catalog,
    RK45,
    RK23,
    DOP853,
    EULER,
    RK4,
    DDE_RK4,
    EULER_MARUYAMA,
    STRATONOVICH_HEUN,
)

__all__ = [
    'Integrator',
    'IntegrationOutput',
    'fixed_step_grid',
    'ODEIntegrator',
    'AdaptiveRungeKutta',
    'FixedStepIntegrator',
    'ForwardEuler',
    'ClassicalRK4',
    'DDEIntegrator',
    'DelayRK4',
    'DelayHistory',
    'SDEIntegrator',
    'EulerMaruyama',
    'StratonovichHeun',
    'diffusion_increment',
    'CatalogEntry',
    'register_integrator',
    'stock_solvers',
    'default_solvers',
    'solver_catalog',
    'RK45',
    'RK23',
    'DOP853',
    'EULER',
    'RK4',
    'DDE_RK4',
    'EULER_MARUYAMA',
    'STRATONOVICH_HEUN',
]
