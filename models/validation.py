"""
Descriptor validation.

validate() turns a raw descriptor (a SystemDescriptor or a plain
mapping) into canonical form:

    1. Check the required fields: at least one equation family with all
       of its functions, the state variables and the time span.
    2. Normalize entries (scalars to float, arrays to float ndarrays)
       and check declared lengths against the initial values.
    3. Fill defaults: empty panel set, default SolverOptions, the stock
       default solver of each family when none was named, and the
       number of SDE noise sources.
    4. Call every equation function once with the initial state and the
       current parameter values and check the shape of what it returns.

Validation is idempotent: validating a canonical descriptor returns an
equal descriptor.
"""

import dataclasses
import logging
from typing import Any, Callable, List, Mapping, Optional, Sequence, Union

import numpy as np

from core.descriptor import (DDESpec, Entry, SDESpec, SolverOptions,
                             SystemDescriptor)
from core.exceptions import MissingFieldError, SignatureError, ValidationError
from core.variable_map import VariableMap
from solvers.registry import default_solvers

logger = logging.getLogger(__name__)


def validate(raw: Union[SystemDescriptor, Mapping[str, Any]]) -> SystemDescriptor:
    """
    Validate a raw descriptor and return its canonical form.

    The input is never modified; the result is an independent copy.

    Args:
        raw: SystemDescriptor or mapping with the same field names

    Returns:
        Canonical SystemDescriptor

    Raises:
        MissingFieldError: A required field is absent
        SignatureError: An equation function fails its trial call
        ValidationError: Any other malformed content
    """
    if isinstance(raw, SystemDescriptor):
        desc = raw.coerce_entries().copy()
    elif isinstance(raw, Mapping):
        desc = SystemDescriptor.from_mapping(raw).copy()
    else:
        raise ValidationError(f"Cannot validate object of type {type(raw).__name__}")

    families = desc.families()
    if not families:
        raise MissingFieldError("No equation function declared for any family")
    for spec in families:
        for role, fun in spec.functions.items():
            if fun is None:
                raise MissingFieldError("Missing equation function",
                                        {'family': spec.family.value, 'function': role})
            if not callable(fun):
                raise SignatureError("Equation function is not callable",
                                     {'family': spec.family.value, 'function': role})
    if not desc.variables:
        raise MissingFieldError("Missing field 'variables'")
    if desc.time_span is None:
        raise MissingFieldError("Missing field 'time_span'")

    desc.time_span = _normalize_time_span(desc.time_span)
    desc.parameters = _normalize_entries(desc.parameters or [], 'parameters')
    desc.variables = _normalize_entries(desc.variables, 'variables')
    desc.auxdef = _normalize_entries(desc.auxdef or [], 'auxdef')
    if desc.auxdef and desc.auxfun is None:
        raise MissingFieldError("Missing field 'auxfun' for declared auxiliary outputs")
    if desc.auxfun is not None and not desc.auxdef:
        raise MissingFieldError("Missing field 'auxdef' for the auxiliary function")
    if desc.panels is None:
        desc.panels = {}

    for spec in families:
        if spec.solvers is None:
            spec.solvers = default_solvers(spec.family)
        if spec.options is None:
            spec.options = SolverOptions()
        if spec.options.noise_samples is not None:
            spec.options.noise_samples = np.atleast_2d(
                np.asarray(spec.options.noise_samples, dtype=float))
        if isinstance(spec, DDESpec):
            spec.lags = _normalize_lags(spec.lags)

    _trial_calls(desc)
    return desc


def _normalize_time_span(time_span: Sequence[float]) -> tuple:
    try:
        t0, t1 = time_span
        return (float(t0), float(t1))
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"time_span must be a (start, end) pair: {exc}") from exc


def _normalize_entries(entries: Sequence[Entry], field_name: str) -> List[Entry]:
    normalized = []
    seen = set()
    for entry in entries:
        if not isinstance(entry.name, str) or not entry.name:
            raise ValidationError(f"Entry in '{field_name}' has no name", {'entry': entry})
        if entry.name in seen:
            raise ValidationError(f"Duplicate name in '{field_name}'", {'name': entry.name})
        seen.add(entry.name)

        try:
            value = np.array(entry.value, dtype=float)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Non-numeric value for '{entry.name}'") from exc
        value = float(value) if value.ndim == 0 else value

        if entry.length is not None and int(entry.length) != np.size(value):
            raise ValidationError(
                f"Declared length of '{entry.name}' does not match its value",
                {'length': entry.length, 'size': int(np.size(value))})
        normalized.append(dataclasses.replace(entry, value=value))
    return normalized


def _normalize_lags(lags: Optional[Sequence[float]]) -> tuple:
    if lags is None or np.size(lags) == 0:
        raise MissingFieldError("Missing field 'lags' for the DDE family")
    lags = tuple(float(lag) for lag in np.ravel(lags))
    if any(lag <= 0 for lag in lags):
        raise ValidationError("Delays must be positive", {'lags': lags})
    return lags


def _call(fun: Callable, label: str, *args) -> np.ndarray:
    try:
        return np.asarray(fun(*args), dtype=float)
    except Exception as exc:
        raise SignatureError(f"{label} raised {type(exc).__name__}: {exc}") from exc


def _trial_calls(desc: SystemDescriptor) -> None:
    """Call every equation function once and check output shapes."""
    vmap = VariableMap.build(desc.variables)
    n = vmap.total
    y0 = vmap.flatten(desc.variables)
    t0 = desc.time_span[0]
    params = desc.parameter_values

    if desc.ode is not None:
        dy = _call(desc.ode.rhs, "ODE right-hand side", t0, y0.copy(), *params)
        _check_length(dy, n, "ODE right-hand side")

    if desc.dde is not None:
        Z = np.tile(y0[:, None], (1, len(desc.dde.lags)))
        dy = _call(desc.dde.rhs, "DDE right-hand side", t0, y0.copy(), Z, *params)
        _check_length(dy, n, "DDE right-hand side")

    if desc.sde is not None:
        F = _call(desc.sde.drift, "SDE drift", t0, y0.copy(), *params)
        _check_length(F, n, "SDE drift")
        G = _call(desc.sde.diffusion, "SDE diffusion", t0, y0.copy(), *params)
        _check_diffusion(desc.sde, G, n)

    if desc.auxfun is not None:
        n_aux = VariableMap.build(desc.auxdef).total
        out = _call_aux(desc.auxfun, np.array([t0]), y0[:, None].copy(), params)
        if out.ndim != 2 or out.shape[0] != n_aux:
            raise SignatureError("Auxiliary function returned the wrong number of rows",
                                 {'expected': n_aux, 'shape': out.shape})

    logger.debug("Trial-called %d equation families (n_states=%d)", len(desc.families()), n)


def _call_aux(auxfun: Callable, times: np.ndarray, values: np.ndarray,
              params: List[Any]) -> np.ndarray:
    try:
        out = auxfun(times, values, *params)
    except Exception as exc:
        raise SignatureError(f"Auxiliary function raised {type(exc).__name__}: {exc}") from exc
    if isinstance(out, tuple):
        if len(out) != 2:
            raise SignatureError("Auxiliary function must return values or a (times, values) pair",
                                 {'tuple_length': len(out)})
        out = out[1]
    try:
        return np.atleast_2d(np.asarray(out, dtype=float))
    except (TypeError, ValueError) as exc:
        raise SignatureError(f"Auxiliary function returned non-numeric values: {exc}") from exc


def _check_length(dy: np.ndarray, n: int, label: str) -> None:
    if dy.size != n:
        raise SignatureError(f"{label} returned {dy.size} values, expected {n}",
                             {'shape': dy.shape})


def _check_diffusion(spec: SDESpec, G: np.ndarray, n: int) -> None:
    options = spec.options
    m = options.noise_sources
    if m is None and options.noise_samples is not None:
        m = options.noise_samples.shape[0]
    if G.ndim == 2:
        if G.shape[0] != n or (m is not None and G.shape[1] != m):
            raise SignatureError("SDE diffusion matrix has the wrong shape",
                                 {'shape': G.shape, 'n_states': n, 'noise_sources': m})
        m = G.shape[1]
    elif G.size == n:
        if m is None:
            m = n
        if m not in (1, n):
            raise SignatureError("SDE diffusion vector needs 1 or n noise sources",
                                 {'n_states': n, 'noise_sources': m})
    else:
        raise SignatureError(f"SDE diffusion returned {G.size} values, expected {n}",
                             {'shape': G.shape})
    if options.noise_samples is not None and options.noise_samples.shape[0] != m:
        raise ValidationError("noise_samples rows do not match the noise sources",
                              {'rows': options.noise_samples.shape[0], 'noise_sources': m})
    options.noise_sources = int(m)
