"""
Error taxonomy for descriptor validation, solver lookup, integration
and trajectory evaluation.

Every error carries a human readable message plus an optional dict of
details that is appended when the error is printed.
"""

from typing import Any, Dict, Optional


class DynamicsError(Exception):
    """Base class for all errors raised by the toolbox."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ValidationError(DynamicsError):
    """Raised when a system descriptor is malformed."""
    pass


class MissingFieldError(ValidationError):
    """Raised when a required descriptor field is absent."""
    pass


class SignatureError(ValidationError):
    """Raised when an equation function fails its trial call."""
    pass


class RegistryError(DynamicsError):
    """Raised when the solver catalog cannot be built."""
    pass


class NoSolverError(RegistryError):
    """Raised when a declared equation family has no candidate solver."""
    pass


class DispatchError(DynamicsError):
    """Raised when a solve request cannot be carried out."""
    pass


class AmbiguousSolverError(DispatchError):
    """Raised when a solver belongs to several families and none was given."""
    pass


class UnknownSolverError(DispatchError):
    """Raised when a solver is not a candidate of any declared family."""
    pass


class IntegrationError(DispatchError):
    """Raised when the integrator fails or the time span is malformed."""
    pass


class SolveCancelled(DispatchError):
    """Raised at a step boundary when a cancellation was requested."""
    pass


class EvaluationError(DynamicsError):
    """Raised when a trajectory cannot be evaluated."""
    pass


class OutOfRangeError(EvaluationError):
    """Raised when a query time lies outside the solved interval."""
    pass
