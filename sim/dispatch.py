"""
Solve dispatcher.

Runs one integration of a validated descriptor with a chosen
integrator and returns the canonical solution plus the optional
auxiliary solution. The call sequence depends on the equation family:

    ODE:  fun(t, y)            = rhs(t, y, *params)
    DDE:  fun(t, y, Z)         = rhs(t, y, Z, *params)
    SDE:  drift(t, y)          = drift(t, y, *params)
          diffusion(t, y)      = diffusion(t, y, *params)
          noise                = options.noise_samples or fresh N(0, 1) draws

The dispatcher never mutates the descriptor. Given a fixed noise
sequence it is a pure function of its inputs.
"""

import logging
import time
from typing import Any, Callable, List, Optional, Tuple, Union

import numpy as np

from core.descriptor import EquationFamily, SolverOptions, SystemDescriptor
from core.exceptions import (AmbiguousSolverError, DynamicsError,
                             IntegrationError, UnknownSolverError)
from core.variable_map import VariableMap
from solvers.base import IntegrationOutput
from solvers.registry import solver_catalog
from .result import Solution

logger = logging.getLogger(__name__)


def resolve_family(descriptor: SystemDescriptor, solver) -> EquationFamily:
    """
    Find the family whose candidate list contains the solver.

    Args:
        descriptor: System descriptor
        solver: Integrator instance

    Returns:
        EquationFamily

    Raises:
        AmbiguousSolverError: The solver is a candidate of several families
        UnknownSolverError: The solver is a candidate of no family
    """
    matches = [spec.family for spec in descriptor.families()
               if spec.solvers and any(s is solver for s in spec.solvers)]
    if len(matches) > 1:
        raise AmbiguousSolverError("Solver appears in several families; pass the family explicitly",
                                   {'solver': _name(solver),
                                    'families': [f.value for f in matches]})
    if not matches:
        raise UnknownSolverError("Solver is not a candidate of any declared family",
                                 {'solver': _name(solver)})
    return matches[0]


def solve(descriptor: SystemDescriptor,
          time_span: Optional[Tuple[float, float]] = None,
          solver=None,
          family: Optional[Union[EquationFamily, str]] = None,
          should_stop: Optional[Callable[[], bool]] = None,
          rng: Optional[np.random.Generator] = None) -> Tuple[Solution, Optional[Solution]]:
    """
    Integrate a validated descriptor.

    Args:
        descriptor: Validated SystemDescriptor
        time_span: (start, end), defaults to descriptor.time_span
        solver: Integrator, defaults to the first catalog entry
        family: Equation family (EquationFamily or 'odesolver' etc.);
            resolved from the candidate lists when omitted
        should_stop: Cancellation check, polled at step boundaries
        rng: Random generator for fresh SDE noise (default: new generator)

    Returns:
        (solution, auxiliary solution or None)

    Raises:
        AmbiguousSolverError, UnknownSolverError: Solver cannot be placed
        IntegrationError: Malformed time span or solver failure
        SolveCancelled: should_stop() returned True
    """
    t_span = _check_time_span(descriptor.time_span if time_span is None else time_span)

    if family is not None:
        family = _as_family(family)
    if solver is None:
        catalog = solver_catalog(descriptor)
        if family is not None:
            catalog = [entry for entry in catalog if entry.family is family]
            if not catalog:
                raise UnknownSolverError("Family is not declared by the descriptor",
                                         {'family': family.value})
        solver, family = catalog[0].solver, catalog[0].family
    elif family is None:
        family = resolve_family(descriptor, solver)

    spec = descriptor.spec_for(family)
    if spec is None:
        raise UnknownSolverError("Family is not declared by the descriptor",
                                 {'family': family.value})
    solver_family = getattr(solver, 'family', None)
    if solver_family is not None and solver_family is not family:
        raise UnknownSolverError("Solver belongs to a different family",
                                 {'solver': _name(solver), 'family': family.value,
                                  'solver_family': solver_family.value})

    vmap = VariableMap.build(descriptor.variables)
    y0 = vmap.flatten(descriptor.variables)
    params = descriptor.parameter_values
    options = spec.options if spec.options is not None else SolverOptions()

    start = time.perf_counter()
    try:
        if family is EquationFamily.ODE:
            output = _solve_ode(spec, solver, t_span, y0, params, options, should_stop)
        elif family is EquationFamily.DDE:
            output = _solve_dde(spec, solver, t_span, y0, params, options, should_stop)
        else:
            output = _solve_sde(spec, solver, t_span, y0, params, options, should_stop, rng)
    except DynamicsError:
        raise
    except Exception as exc:
        raise IntegrationError(f"{_name(solver)} failed: {type(exc).__name__}: {exc}",
                               {'family': family.value}) from exc
    elapsed = time.perf_counter() - start

    if not isinstance(output, IntegrationOutput):
        raise IntegrationError(f"{_name(solver)} did not return an IntegrationOutput",
                               {'returned': type(output).__name__})
    solution = Solution(
        times=output.t,
        values=output.y,
        family=family,
        solver=_name(solver),
        stats=dict(output.stats or {}),
        extras=dict(output.extras or {}),
        metadata={'time_span': t_span,
                  'n_states': vmap.total,
                  'halted': bool(output.halted),
                  'elapsed': elapsed})
    if solution.n_rows != vmap.total:
        raise IntegrationError(f"{_name(solver)} returned the wrong number of state rows",
                               {'expected': vmap.total, 'rows': solution.n_rows})
    logger.info("Solved %s with %s: %d samples over [%g, %g] in %.3fs",
                family.value, solution.solver, solution.times.size,
                t_span[0], t_span[1], elapsed)

    aux = None
    if descriptor.auxfun is not None:
        aux = _auxiliary(descriptor, solution, params)
    return solution, aux


def _name(solver) -> str:
    return getattr(solver, 'name', None) or getattr(solver, '__name__', repr(solver))


def _as_family(family: Union[EquationFamily, str]) -> EquationFamily:
    try:
        return EquationFamily(family)
    except ValueError:
        raise UnknownSolverError("Unknown equation family", {'family': family}) from None


def _check_time_span(time_span) -> Tuple[float, float]:
    try:
        t0, t1 = (float(t) for t in time_span)
    except (TypeError, ValueError) as exc:
        raise IntegrationError(f"Malformed time span: {exc}") from exc
    if not t1 > t0:
        raise IntegrationError("Malformed time span: end must be greater than start",
                               {'time_span': (t0, t1)})
    return (t0, t1)


def _flat(values: Any) -> np.ndarray:
    return np.ravel(np.asarray(values, dtype=float))


def _solve_ode(spec, solver, t_span, y0, params, options, should_stop) -> IntegrationOutput:
    rhs = spec.rhs

    def fun(t, y):
        return _flat(rhs(t, y, *params))

    return solver.integrate(fun, t_span, y0, options, should_stop)


def _solve_dde(spec, solver, t_span, y0, params, options, should_stop) -> IntegrationOutput:
    if not spec.lags:
        raise IntegrationError("DDE family requires at least one lag")
    rhs = spec.rhs

    def fun(t, y, Z):
        return _flat(rhs(t, y, Z, *params))

    return solver.integrate(fun, t_span, y0, spec.lags, options, should_stop)


def _solve_sde(spec, solver, t_span, y0, params, options, should_stop, rng) -> IntegrationOutput:
    drift_fn, diffusion_fn = spec.drift, spec.diffusion

    def drift(t, y):
        return _flat(drift_fn(t, y, *params))

    def diffusion(t, y):
        return np.asarray(diffusion_fn(t, y, *params), dtype=float)

    n_steps = len(solver.time_grid(t_span, options)) - 1
    noise = _noise(options, n_steps, y0.size, rng)
    return solver.integrate(drift, diffusion, t_span, y0, noise, options, should_stop)


def _noise(options: SolverOptions, n_steps: int, n_states: int,
           rng: Optional[np.random.Generator]) -> np.ndarray:
    """Standard normal samples, one row per noise source and one column per step."""
    m = options.noise_sources
    if options.noise_samples is not None:
        samples = np.atleast_2d(np.asarray(options.noise_samples, dtype=float))
        if m is not None and samples.shape[0] != m:
            raise IntegrationError("noise_samples rows do not match the noise sources",
                                   {'rows': samples.shape[0], 'noise_sources': m})
        if samples.shape[1] < n_steps:
            raise IntegrationError("Not enough pre-generated noise samples",
                                   {'required': n_steps, 'supplied': samples.shape[1]})
        return samples[:, :n_steps]
    if m is None:
        m = n_states
    if rng is None:
        rng = np.random.default_rng()
    return rng.standard_normal((m, n_steps))


def _auxiliary(descriptor: SystemDescriptor, solution: Solution,
               params: List[Any]) -> Solution:
    """Evaluate the auxiliary function once on the completed trajectory."""
    try:
        out = descriptor.auxfun(solution.times.copy(), solution.values.copy(), *params)
    except Exception as exc:
        raise IntegrationError(f"Auxiliary function failed: {type(exc).__name__}: {exc}") from exc

    if isinstance(out, tuple):
        if len(out) != 2:
            raise IntegrationError("Auxiliary function must return values or a (times, values) pair",
                                   {'tuple_length': len(out)})
        aux_times, aux_values = out
    else:
        aux_times, aux_values = solution.times, out
    try:
        aux_values = np.atleast_2d(np.asarray(aux_values, dtype=float))
    except (TypeError, ValueError) as exc:
        raise IntegrationError(f"Auxiliary function returned non-numeric values: {exc}") from exc

    n_aux = VariableMap.build(descriptor.auxdef).total
    if aux_values.shape[0] != n_aux:
        raise IntegrationError("Auxiliary function returned the wrong number of rows",
                               {'expected': n_aux, 'shape': aux_values.shape})
    return Solution(
        times=aux_times,
        values=aux_values,
        family=solution.family,
        solver=solution.solver,
        metadata={'auxiliary': True, 'time_span': solution.metadata.get('time_span')})
