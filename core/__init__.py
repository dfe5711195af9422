"""
Core data model: system descriptors, variable maps and the error taxonomy.
"""

from .exceptions import (
    DynamicsError,
    ValidationError,
    MissingFieldError,
    SignatureError,
    RegistryError,
    NoSolverError,
    DispatchError,
    AmbiguousSolverError,
    UnknownSolverError,
    IntegrationError,
    SolveCancelled,
    EvaluationError,
    OutOfRangeError,
)
from .descriptor import (
    EquationFamily,
    Entry,
    SolverOptions,
    ODESpec,
    DDESpec,
    SDESpec,
    SystemDescriptor,
    get_value,
    set_value,
)
from .variable_map import MapEntry, VariableMap

__all__ = [
    'DynamicsError',
    'ValidationError',
    'MissingFieldError',
    'SignatureError',
    'RegistryError',
    'NoSolverError',
    'DispatchError',
    'AmbiguousSolverError',
    'UnknownSolverError',
    'IntegrationError',
    'SolveCancelled',
    'EvaluationError',
    'OutOfRangeError',
    'EquationFamily',
    'Entry',
    'SolverOptions',
    'ODESpec',
    'DDESpec',
    'SDESpec',
    'SystemDescriptor',
    'get_value',
    'set_value',
    'MapEntry',
    'VariableMap',
]
