# reconciliation.py
"""
BioReconcile - Stoichiometric Rate Reconciliation
=================================================

Given a rate vector r partitioned into measured (``known``) and unmeasured
(``unknown``) entries and a stoichiometric matrix E with E·r = 0, compute the
unknown rates and, where the balances are redundant, adjust the known rates
by generalized least squares.

Exact closure (|unknown| == rows of E)
    r_u = -pinv(E_u) · E_k · r_k,   h = 0

Redundant (|unknown| < rows of E)
    Red   = E_k - E_u · pinv(E_u) · E_k         redundancy matrix
    Rred  = first singular direction of Red     one independent redundancy
    eps   = Rred · r_k                          residual
    P     = Rred · Σ · Rredᵀ                    residual covariance (Σ = I)
    delta = Σ · Rredᵀ · P⁻¹ · Rred · r_k
    r_k'  = r_k - delta
    r_u   = -pinv(E_u) · E_k · r_k'
    h     = epsᵀ · P⁻¹ · eps

The reconciled vector is returned ordered unknown-then-known.

Reference: van der Heijden, R.T.J.M. et al. (1994). Linear constraint relations
in biochemical reaction systems. Biotechnol. Bioeng., 43, 3-10.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .config import EPSILON_ZERO
from .exceptions import DimensionMismatchError, NonFiniteResultError, SingularMatrixError
from .validation import raise_for_report, validate_stoichiometry

logger = logging.getLogger(__name__)

__all__ = [
    "ReconciliationMode",
    "ReconciliationResult",
    "pseudo_inverse",
    "redundancy_matrix",
    "reduced_redundancy_matrix",
    "reconcile",
    "reconcile_single_balance",
    "reconcile_redundant",
]


class ReconciliationMode(Enum):
    """How the balances constrain the rates."""

    EXACT = "exact"  # as many balances as unknowns: no redundancy to test
    REDUNDANT = "redundant"  # more balances than unknowns

    @classmethod
    def for_problem(cls, n_rows: int, n_unknown: int) -> "ReconciliationMode":
        """Select the mode implied by the number of balances and unknowns."""
        if n_unknown > n_rows:
            raise DimensionMismatchError(
                f"{n_unknown} unknown rates cannot be solved from {n_rows} balance(s)"
            )
        return cls.EXACT if n_unknown == n_rows else cls.REDUNDANT


@dataclass(frozen=True, eq=False)
class ReconciliationResult:
    """
    Reconciled rates and consistency diagnostic.

    Attributes
    ----------
    rates : np.ndarray
        Reconciled rates ordered ``[unknown..., known...]``
    h : float
        Weighted sum of squared residuals (0 in exact mode)
    mode : ReconciliationMode
        Mode used to compute the result
    residual : np.ndarray
        Residual vector eps (empty in exact mode)
    correction : np.ndarray
        Adjustment delta applied to the known rates (zeros in exact mode)
    """

    rates: NDArray[np.floating[Any]]
    h: float
    mode: ReconciliationMode
    residual: NDArray[np.floating[Any]]
    correction: NDArray[np.floating[Any]]

    def __iter__(self):
        # Allows ``rates, h = reconcile(...)``
        return iter((self.rates, self.h))

    def to_species_order(
        self, known: Sequence[int], unknown: Sequence[int]
    ) -> NDArray[np.floating[Any]]:
        """Scatter the reconciled rates back to the caller's species order."""
        order = list(unknown) + list(known)
        out = np.empty(len(order))
        out[order] = self.rates
        return out


# =============================================================================
# LINEAR ALGEBRA BUILDING BLOCKS
# =============================================================================


def pseudo_inverse(matrix: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
    """
    Left pseudo-inverse (MᵀM)⁻¹Mᵀ of a full-column-rank matrix.

    Raises
    ------
    SingularMatrixError
        If MᵀM is singular, i.e. M does not have full column rank
    """
    m = np.atleast_2d(np.asarray(matrix, dtype=float))
    gram = m.T @ m
    if not np.all(np.isfinite(gram)) or np.linalg.matrix_rank(m) < m.shape[1]:
        raise SingularMatrixError(
            "Unknown-rate columns of the stoichiometric matrix are not linearly "
            "independent; choose a different known/unknown partition"
        )
    try:
        return np.linalg.inv(gram) @ m.T
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(f"Cannot invert EuᵀEu: {e}") from e


def redundancy_matrix(
    e_known: NDArray[np.floating[Any]],
    e_unknown: NDArray[np.floating[Any]],
    e_unknown_pinv: NDArray[np.floating[Any]] | None = None,
) -> NDArray[np.floating[Any]]:
    """Red = E_k - E_u·pinv(E_u)·E_k: the part of E_k not explained by the unknowns."""
    if e_unknown_pinv is None:
        e_unknown_pinv = pseudo_inverse(e_unknown)
    return e_known - e_unknown @ e_unknown_pinv @ e_known


def reduced_redundancy_matrix(red: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
    """
    Keep the single dominant singular direction of ``red``.

    Returns the one-row matrix u₁ᵀ·Red = s₁·v₁ᵀ. Only one independent
    redundancy is supported; further singular directions are discarded.
    """
    U, S, _ = np.linalg.svd(red)
    if S.size == 0 or S[0] <= EPSILON_ZERO:
        raise NonFiniteResultError(
            "Redundancy matrix is zero; the balances carry no redundant information"
        )
    if S.size > 1 and np.isclose(S[0], S[1], rtol=1e-9, atol=0.0):
        raise NonFiniteResultError(
            "Redundancy matrix has repeated leading singular values; "
            "the one-row reduction is not unique"
        )
    if S.size > 1 and S[1] > np.sqrt(EPSILON_ZERO) * S[0]:
        logger.warning(
            "Redundancy matrix has %d significant singular values; only the first is used",
            int(np.sum(S > np.sqrt(EPSILON_ZERO) * S[0])),
        )
    return U[:, :1].T @ red


def _partition(
    rates: Any, matrix: Any, known: Sequence[int], unknown: Sequence[int]
) -> tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]], NDArray[np.floating[Any]]]:
    r = np.asarray(rates, dtype=float)
    E = np.atleast_2d(np.asarray(matrix, dtype=float))
    raise_for_report(validate_stoichiometry(r, E, known, unknown))
    known, unknown = list(known), list(unknown)
    return r[known], E[:, known], E[:, unknown]


def _check_finite(*arrays: Any) -> None:
    for arr in arrays:
        if not np.all(np.isfinite(arr)):
            raise NonFiniteResultError("Reconciliation produced NaN or infinite rates")


# =============================================================================
# RECONCILIATION
# =============================================================================


def reconcile_single_balance(
    rates: NDArray[np.floating[Any]] | Sequence[float],
    matrix: NDArray[np.floating[Any]] | Sequence[Sequence[float]],
    known: Sequence[int],
    unknown: Sequence[int],
) -> ReconciliationResult:
    """
    Exact-closure reconciliation: solve for the unknowns, leave knowns untouched.

    Requires ``len(unknown) == matrix.shape[0]``.
    """
    r_known, e_known, e_unknown = _partition(rates, matrix, known, unknown)
    if len(unknown) != e_known.shape[0]:
        raise DimensionMismatchError(
            f"Exact closure needs as many unknowns as balances "
            f"({len(unknown)} unknowns, {e_known.shape[0]} balances)"
        )
    e_unknown_pinv = pseudo_inverse(e_unknown)
    r_unknown = -e_unknown_pinv @ e_known @ r_known
    _check_finite(r_unknown)
    return ReconciliationResult(
        rates=np.concatenate([r_unknown, r_known]),
        h=0.0,
        mode=ReconciliationMode.EXACT,
        residual=np.zeros(0),
        correction=np.zeros_like(r_known),
    )


def reconcile_redundant(
    rates: NDArray[np.floating[Any]] | Sequence[float],
    matrix: NDArray[np.floating[Any]] | Sequence[Sequence[float]],
    known: Sequence[int],
    unknown: Sequence[int],
) -> ReconciliationResult:
    """
    Generalized least-squares reconciliation for redundant balances.

    Known rates are weighted equally (Σ = I). Requires
    ``len(unknown) < matrix.shape[0]``.
    """
    r_known, e_known, e_unknown = _partition(rates, matrix, known, unknown)
    if len(unknown) >= e_known.shape[0]:
        raise DimensionMismatchError(
            f"Redundant reconciliation needs fewer unknowns than balances "
            f"({len(unknown)} unknowns, {e_known.shape[0]} balances)"
        )
    sigma = np.eye(len(r_known))

    e_unknown_pinv = pseudo_inverse(e_unknown)
    red = redundancy_matrix(e_known, e_unknown, e_unknown_pinv)
    r_red = reduced_redundancy_matrix(red)

    eps = r_red @ r_known
    P = r_red @ sigma @ r_red.T
    try:
        P_inv = np.linalg.inv(P)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(f"Residual covariance is singular: {e}") from e

    delta = sigma @ r_red.T @ P_inv @ r_red @ r_known
    r_known_best = r_known - delta
    r_unknown = -e_unknown_pinv @ e_known @ r_known_best
    h = float(eps @ P_inv @ eps)

    _check_finite(r_unknown, r_known_best, h)
    logger.debug("Redundant reconciliation: h=%.4g, |delta|=%.4g", h, np.linalg.norm(delta))
    return ReconciliationResult(
        rates=np.concatenate([r_unknown, r_known_best]),
        h=h,
        mode=ReconciliationMode.REDUNDANT,
        residual=eps,
        correction=delta,
    )


def reconcile(
    rates: NDArray[np.floating[Any]] | Sequence[float],
    matrix: NDArray[np.floating[Any]] | Sequence[Sequence[float]],
    known: Sequence[int],
    unknown: Sequence[int],
    mode: ReconciliationMode | None = None,
) -> ReconciliationResult:
    """
    Reconcile ``rates`` against the balances in ``matrix``.

    Parameters
    ----------
    rates : array-like
        Rate vector, one entry per species (entries at ``unknown`` are ignored)
    matrix : array-like
        Stoichiometric matrix, one row per balance, one column per species
    known, unknown : sequence of int
        Disjoint index sets covering every species
    mode : ReconciliationMode, optional
        Forced mode; inferred from the matrix row count when omitted

    Returns
    -------
    ReconciliationResult
        Reconciled rates ordered unknown-then-known and the diagnostic h

    Raises
    ------
    DimensionMismatchError
        Shapes and index sets disagree, or more unknowns than balances
    ValidationError
        Index sets overlap or rates are not finite
    SingularMatrixError
        Unknown columns of ``matrix`` are not linearly independent
    NonFiniteResultError
        The redundancy reduction is degenerate or the result is not finite
    """
    n_rows = np.atleast_2d(np.asarray(matrix, dtype=float)).shape[0]
    if mode is None:
        mode = ReconciliationMode.for_problem(n_rows, len(unknown))
    if mode is ReconciliationMode.EXACT:
        return reconcile_single_balance(rates, matrix, known, unknown)
    return reconcile_redundant(rates, matrix, known, unknown)
