"""
System descriptor data model.

A descriptor is the declarative record that fully specifies a dynamical
system: its equation functions (one payload per equation family), its
ordered parameters and state variables, the default time span, the
candidate solvers and their options.

The order of `variables` defines the flat state-vector layout and the
order of `parameters` defines the positional arguments passed to every
equation function:

    rhs(t, y, p1, p2, ...)          ODE right-hand side / SDE drift
    rhs(t, y, Z, p1, p2, ...)       DDE right-hand side, Z = delayed states
    diffusion(t, y, p1, p2, ...)    SDE noise coefficients
"""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .exceptions import ValidationError


class EquationFamily(Enum):
    """Equation families in declaration order."""
    ODE = 'odesolver'
    DDE = 'ddesolver'
    SDE = 'sdesolver'


def _same(a: Any, b: Any) -> bool:
    """Equality that tolerates numpy arrays."""
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        if a is None or b is None:
            return False
        a = np.asarray(a)
        b = np.asarray(b)
        return a.shape == b.shape and np.array_equal(a, b)
    return a == b


def _copy_value(value: Any) -> Any:
    if isinstance(value, np.ndarray):
        return value.copy()
    return value


@dataclass(eq=False)
class Entry:
    """
    Named parameter, state variable or auxiliary output.

    Attributes:
        name: Entry name (unique within its sequence)
        value: Scalar, vector or matrix value
        length: Declared flattened length (optional)
        lim: Display range hint, passed through untouched
    """
    name: str
    value: Any
    length: Optional[int] = None
    lim: Optional[Tuple[float, float]] = None

    @property
    def size(self) -> int:
        """Flattened length of the value."""
        return int(np.size(self.value))

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(np.shape(self.value))

    def copy(self) -> 'Entry':
        return dataclasses.replace(self, value=_copy_value(self.value))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Entry):
            return NotImplemented
        return (self.name == other.name
                and _same(self.value, other.value)
                and self.length == other.length
                and self.lim == other.lim)

    def __repr__(self) -> str:
        return f"Entry(name='{self.name}', value={self.value!r})"


@dataclass(eq=False)
class SolverOptions:
    """
    Per-family solver settings.

    Attributes:
        rtol: Relative tolerance (adaptive integrators)
        atol: Absolute tolerance (adaptive integrators)
        initial_step: First step for adaptive integrators, fixed step
            otherwise. None lets fixed-step integrators use 1/100 of the span.
        max_step: Upper bound on the adaptive step size
        noise_sources: Number of independent Wiener processes (SDE)
        noise_samples: Pre-generated standard normal samples, shape
            (noise_sources, n_steps). None draws fresh samples per solve.
        output_fcn: Hook called as output_fcn(t, y) after every step.
            Returning True halts the integration.
    """
    rtol: float = 1e-3
    atol: float = 1e-6
    initial_step: Optional[float] = None
    max_step: Optional[float] = None
    noise_sources: Optional[int] = None
    noise_samples: Optional[np.ndarray] = None
    output_fcn: Optional[Callable[[float, np.ndarray], Optional[bool]]] = None

    def copy(self) -> 'SolverOptions':
        return dataclasses.replace(self, noise_samples=_copy_value(self.noise_samples))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SolverOptions):
            return NotImplemented
        return all(_same(getattr(self, f.name), getattr(other, f.name))
                   for f in dataclasses.fields(self))


@dataclass
class ODESpec:
    """Ordinary differential equations: dy/dt = rhs(t, y, *params)."""
    rhs: Optional[Callable] = None
    solvers: Optional[List[Any]] = None
    options: Optional[SolverOptions] = None

    family = EquationFamily.ODE

    @property
    def functions(self) -> Dict[str, Optional[Callable]]:
        return {'rhs': self.rhs}

    def copy(self) -> 'ODESpec':
        return dataclasses.replace(
            self,
            solvers=None if self.solvers is None else list(self.solvers),
            options=None if self.options is None else self.options.copy())


@dataclass
class DDESpec:
    """Delay differential equations: dy/dt = rhs(t, y, Z, *params)."""
    rhs: Optional[Callable] = None
    lags: Optional[Sequence[float]] = None
    solvers: Optional[List[Any]] = None
    options: Optional[SolverOptions] = None

    family = EquationFamily.DDE

    @property
    def functions(self) -> Dict[str, Optional[Callable]]:
        return {'rhs': self.rhs}

    def copy(self) -> 'DDESpec':
        return dataclasses.replace(
            self,
            lags=None if self.lags is None else tuple(self.lags),
            solvers=None if self.solvers is None else list(self.solvers),
            options=None if self.options is None else self.options.copy())


@dataclass
class SDESpec:
    """Stochastic differential equations: dy = drift*dt + diffusion*dW."""
    drift: Optional[Callable] = None
    diffusion: Optional[Callable] = None
    solvers: Optional[List[Any]] = None
    options: Optional[SolverOptions] = None

    family = EquationFamily.SDE

    @property
    def functions(self) -> Dict[str, Optional[Callable]]:
        return {'drift': self.drift, 'diffusion': self.diffusion}

    def copy(self) -> 'SDESpec':
        return dataclasses.replace(
            self,
            solvers=None if self.solvers is None else list(self.solvers),
            options=None if self.options is None else self.options.copy())


FamilySpec = Union[ODESpec, DDESpec, SDESpec]

_SPEC_TYPES = {
    'ode': ODESpec,
    'dde': DDESpec,
    'sde': SDESpec,
}


@dataclass
class SystemDescriptor:
    """
    Declarative description of a dynamical system.

    Attributes:
        parameters: Ordered parameter entries
        variables: Ordered state-variable entries (initial values)
        time_span: Default integration interval (start, end)
        ode: ODE payload, if the system declares one
        dde: DDE payload, if the system declares one
        sde: SDE payload, if the system declares one
        auxdef: Ordered auxiliary-output entries
        auxfun: Auxiliary function auxfun(times, values, *params)
        panels: Display hints, opaque to the engine
        self_constructor: Zero-argument factory returning a fresh
            descriptor of the same kind, or None to cancel
    """
    parameters: Optional[List[Entry]] = None
    variables: Optional[List[Entry]] = None
    time_span: Optional[Tuple[float, float]] = None
    ode: Optional[ODESpec] = None
    dde: Optional[DDESpec] = None
    sde: Optional[SDESpec] = None
    auxdef: Optional[List[Entry]] = None
    auxfun: Optional[Callable] = None
    panels: Optional[Dict[str, Any]] = None
    self_constructor: Optional[Callable[[], Optional['SystemDescriptor']]] = None

    def families(self) -> List[FamilySpec]:
        """Declared family payloads in declaration order (ODE, DDE, SDE)."""
        return [spec for spec in (self.ode, self.dde, self.sde) if spec is not None]

    def spec_for(self, family: EquationFamily) -> Optional[FamilySpec]:
        for spec in self.families():
            if spec.family is family:
                return spec
        return None

    @property
    def parameter_values(self) -> List[Any]:
        """Parameter values in positional order."""
        return [p.value for p in (self.parameters or [])]

    def coerce_entries(self) -> 'SystemDescriptor':
        """
        Descriptor with every entry sequence made of Entry objects.

        (name, value) pairs and dicts are converted; anything else raises
        ValidationError.
        """
        changes = {}
        for key in ('parameters', 'variables', 'auxdef'):
            items = getattr(self, key)
            if items is None:
                continue
            if isinstance(items, (str, bytes, Mapping)) or not isinstance(items, Sequence):
                raise ValidationError(f"Field '{key}' must be a sequence of entries",
                                      {'type': type(items).__name__})
            changes[key] = [_as_entry(item, key) for item in items]
        return dataclasses.replace(self, **changes)

    def copy(self) -> 'SystemDescriptor':
        """Independent snapshot: values are copied, functions are shared."""
        def entries(seq):
            return None if seq is None else [e.copy() for e in seq]

        return dataclasses.replace(
            self,
            parameters=entries(self.parameters),
            variables=entries(self.variables),
            auxdef=entries(self.auxdef),
            time_span=None if self.time_span is None else tuple(self.time_span),
            ode=None if self.ode is None else self.ode.copy(),
            dde=None if self.dde is None else self.dde.copy(),
            sde=None if self.sde is None else self.sde.copy(),
            panels=None if self.panels is None else dict(self.panels))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> 'SystemDescriptor':
        """
        Build a descriptor from a plain mapping with the same field names.

        Entries may be given as Entry objects, (name, value) pairs or
        dicts with 'name' and 'value' keys. Family payloads may be spec
        objects or dicts of their fields. Missing fields are left as None
        for the validator to report.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValidationError("Unknown descriptor fields", {'fields': unknown})

        kwargs = dict(raw)
        for key, spec_type in _SPEC_TYPES.items():
            payload = kwargs.get(key)
            if isinstance(payload, Mapping):
                payload = dict(payload)
                if isinstance(payload.get('options'), Mapping):
                    payload['options'] = SolverOptions(**payload['options'])
                try:
                    kwargs[key] = spec_type(**payload)
                except TypeError as exc:
                    raise ValidationError(f"Malformed '{key}' payload: {exc}") from exc
        if kwargs.get('time_span') is not None:
            kwargs['time_span'] = tuple(kwargs['time_span'])
        return cls(**kwargs).coerce_entries()


def _as_entry(item: Any, field_name: str) -> Entry:
    if isinstance(item, Entry):
        return item
    if isinstance(item, Mapping):
        try:
            return Entry(**item)
        except TypeError as exc:
            raise ValidationError(f"Malformed entry in '{field_name}': {exc}") from exc
    if isinstance(item, (tuple, list)) and len(item) == 2:
        return Entry(name=item[0], value=item[1])
    raise ValidationError(f"Malformed entry in '{field_name}'", {'entry': item})


def get_value(entries: Sequence[Entry], name: str) -> Any:
    """Return the value of the named entry."""
    for entry in entries:
        if entry.name == name:
            return entry.value
    raise ValueError(f"No entry named '{name}'")


def set_value(entries: Sequence[Entry], name: str, value: Any) -> List[Entry]:
    """Return a new entry list with the named entry's value replaced."""
    updated = []
    found = False
    for entry in entries:
        if entry.name == name:
            length = entry.length if entry.length == np.size(value) else None
            entry = dataclasses.replace(entry, value=value, length=length)
            found = True
        updated.append(entry)
    if not found:
        raise ValueError(f"No entry named '{name}'")
    return updated
