# exceptions.py
"""
BioReconcile - Error Hierarchy
==============================

Validation errors (bad input, fixable by the caller) derive from ``ValueError``;
numerical errors (ill-conditioned data, solver failure) derive from
``RuntimeError``.
"""

__all__ = [
    "BioReconcileError",
    "ValidationError",
    "DimensionMismatchError",
    "NumericalError",
    "SingularMatrixError",
    "NonFiniteResultError",
    "SolverDivergenceError",
]


class BioReconcileError(Exception):
    """Base class for all errors raised by bioreconcile."""


class ValidationError(BioReconcileError, ValueError):
    """Input failed validation."""


class DimensionMismatchError(ValidationError):
    """Index sets, vector lengths and matrix shapes disagree."""


class NumericalError(BioReconcileError, RuntimeError):
    """A computation could not be completed with the supplied data."""


class SingularMatrixError(NumericalError):
    """A matrix that must be inverted is singular."""


class NonFiniteResultError(NumericalError):
    """A computed rate or state is NaN or infinite."""


class SolverDivergenceError(NumericalError):
    """The ODE integrator failed to meet its error tolerance."""
