"""
Solver registry.

Stock integrators are registered once per family at import time; the
first registered integrator of a family is the default used when a
descriptor does not name any candidate solvers.

solver_catalog() flattens a descriptor's candidate solvers into one
ordered list that consumers index positionally (entry 0 is the default
selection).
"""

import logging
from typing import Dict, List, NamedTuple

from core.descriptor import EquationFamily, SystemDescriptor
from core.exceptions import NoSolverError
from .base import Integrator
from .ode import AdaptiveRungeKutta, ForwardEuler, ClassicalRK4
from .dde import DelayRK4
from .sde import EulerMaruyama, StratonovichHeun

logger = logging.getLogger(__name__)


class CatalogEntry(NamedTuple):
    """One selectable solver."""
    name: str
    solver: Integrator
    family: EquationFamily


_REGISTRY: Dict[EquationFamily, List[Integrator]] = {
    family: [] for family in EquationFamily
}


def register_integrator(integrator: Integrator) -> Integrator:
    """
    Add an integrator to the stock list of its family.

    Args:
        integrator: Integrator instance with a family set

    Returns:
        The same integrator, for use at module level
    """
    if not isinstance(integrator, Integrator) or integrator.family is None:
        raise TypeError(f"Not an integrator: {integrator!r}")
    _REGISTRY[integrator.family].append(integrator)
    return integrator


def stock_solvers(family: EquationFamily) -> List[Integrator]:
    """All registered integrators of a family, default first."""
    return list(_REGISTRY[family])


def default_solvers(family: EquationFamily) -> List[Integrator]:
    """Candidate list used when a descriptor names no solver."""
    return _REGISTRY[family][:1]


def solver_catalog(descriptor: SystemDescriptor) -> List[CatalogEntry]:
    """
    Ordered catalog of a descriptor's candidate solvers.

    Families contribute in declaration order (ODE, DDE, SDE) and only if
    declared. Calling this twice on the same descriptor yields the same
    catalog.

    Args:
        descriptor: System descriptor

    Returns:
        List of CatalogEntry

    Raises:
        NoSolverError: A declared family has no candidate solver
    """
    catalog = []
    for spec in descriptor.families():
        if not spec.solvers:
            raise NoSolverError("No candidate solver for declared family",
                                {'family': spec.family.value})
        for solver in spec.solvers:
            catalog.append(CatalogEntry(solver.name, solver, spec.family))
    logger.debug("Solver catalog: %s", [entry.name for entry in catalog])
    return catalog


RK45 = register_integrator(AdaptiveRungeKutta('RK45'))
RK23 = register_integrator(AdaptiveRungeKutta('RK23'))
DOP853 = register_integrator(AdaptiveRungeKutta('DOP853'))
EULER = register_integrator(ForwardEuler())
RK4 = register_integrator(ClassicalRK4())
DDE_RK4 = register_integrator(DelayRK4())
EULER_MARUYAMA = register_integrator(EulerMaruyama())
STRATONOVICH_HEUN = register_integrator(StratonovichHeun())
