# balance_model.py
"""
BioReconcile - Dynamic Balance Model
====================================

Instantaneous mass derivative of the reactor state

    x = [m_X, m_S, m_CO2, m_O2]   (g)

combining Monod substrate uptake with elemental-balance reconciliation:

    c_S = m_S / V(t)
    q_S = q_Smax(t) · c_S / (K_S(t) + c_S)
    r_S = -q_S · m_X

The supply rates Q_S, Q_CO2, Q_O2 (mol/h) and the kinetic substrate rate are
reconciled against one of three balance sets to obtain the biomass rate; the
derivative is the supply in g/h plus the reconciled conversion rates in g/h.

Balance variants
----------------
- FULL: carbon and degree-of-reduction balances (one redundancy)
- CARBON: carbon balance only (exact closure)
- DEGREE_OF_REDUCTION: degree-of-reduction balance only (exact closure)
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

import numpy as np
from numpy.typing import NDArray

from .config import (
    BIOMASS_INDEX,
    CARBON_BALANCE,
    CO2_INDEX,
    DEGREE_OF_REDUCTION_BALANCE,
    ELEMENTAL_BALANCE,
    INDUCTION_TIME,
    KS_DEFAULT,
    MOLAR_MASSES,
    O2_INDEX,
    QS_MAX_POST_INDUCTION,
    QS_MAX_PRE_INDUCTION,
    SPECIES,
    SUBSTRATE_INDEX,
    as_matrix,
)
from .exceptions import DimensionMismatchError, NonFiniteResultError
from .interpolation import build_interpolator
from .reconciliation import ReconciliationMode, reconcile

logger = logging.getLogger(__name__)

__all__ = [
    "KNOWN_INDICES",
    "UNKNOWN_INDICES",
    "BalanceVariant",
    "BalanceParameters",
    "BalanceEvaluation",
    "monod_uptake",
    "induction_schedule",
    "constant",
    "evaluate_balance",
    "balance_rhs",
    "balance_rates",
    "balance_diagnostic",
]

# Biomass is solved from the balances; substrate, CO2 and O2 rates are known
UNKNOWN_INDICES = (BIOMASS_INDEX,)
KNOWN_INDICES = (SUBSTRATE_INDEX, CO2_INDEX, O2_INDEX)

_VARIANT_MATRICES = {
    "full": ELEMENTAL_BALANCE,
    "carbon": CARBON_BALANCE,
    "dor": DEGREE_OF_REDUCTION_BALANCE,
}


class BalanceVariant(Enum):
    """Balance set used to close the biomass rate."""

    FULL = "full"
    CARBON = "carbon"
    DEGREE_OF_REDUCTION = "dor"

    @property
    def matrix(self) -> NDArray[np.floating[Any]]:
        """Fresh copy of the stoichiometric matrix (rows: balances, cols: X, S, CO2, O2)."""
        return as_matrix(_VARIANT_MATRICES[self.value])

    @property
    def mode(self) -> ReconciliationMode:
        """Closure mode implied by the number of balances."""
        return ReconciliationMode.for_problem(len(_VARIANT_MATRICES[self.value]), len(UNKNOWN_INDICES))


# =============================================================================
# PARAMETERS
# =============================================================================


def monod_uptake(c: float, qs_max: float, ks: float) -> float:
    """Monod specific uptake rate: q = q_max · c / (K_S + c)."""
    return qs_max * c / (ks + c)


def induction_schedule(
    t_ind: float = INDUCTION_TIME,
    before: float = QS_MAX_PRE_INDUCTION,
    after: float = QS_MAX_POST_INDUCTION,
) -> Callable[[float], float]:
    """Piecewise-constant function: ``before`` for t <= t_ind, ``after`` afterwards."""

    def schedule(t: float) -> float:
        return before if t <= t_ind else after

    return schedule


def constant(value: float) -> Callable[[float], float]:
    """Time function returning ``value`` everywhere."""

    def f(t: float) -> float:
        return value

    return f


@dataclass(frozen=True)
class BalanceParameters:
    """
    Read-only inputs of one simulation run.

    Attributes
    ----------
    known_rates : tuple of callables
        Supply rates Q_S(t), Q_CO2(t), Q_O2(t) in mol/h
    volume : callable
        Liquid volume V(t) in L
    qs_max : callable
        Maximum specific substrate uptake rate q_Smax(t) in g/(g h)
    ks : callable
        Half-saturation constant K_S(t) in g/L
    """

    known_rates: tuple[Callable[[float], float], ...]
    volume: Callable[[float], float]
    qs_max: Callable[[float], float]
    ks: Callable[[float], float]

    def __post_init__(self) -> None:
        if len(self.known_rates) != len(KNOWN_INDICES):
            raise DimensionMismatchError(
                f"Expected {len(KNOWN_INDICES)} known rate functions "
                f"(Q_S, Q_CO2, Q_O2), got {len(self.known_rates)}"
            )

    @classmethod
    def from_samples(
        cls,
        t: Sequence[float] | NDArray[np.floating[Any]],
        q_s: Sequence[float] | NDArray[np.floating[Any]],
        q_co2: Sequence[float] | NDArray[np.floating[Any]],
        q_o2: Sequence[float] | NDArray[np.floating[Any]],
        volume: Sequence[float] | NDArray[np.floating[Any]],
        t_ind: float = INDUCTION_TIME,
        qs_max_0: float = QS_MAX_PRE_INDUCTION,
        qs_max_1: float = QS_MAX_POST_INDUCTION,
        ks_0: float = KS_DEFAULT,
    ) -> "BalanceParameters":
        """Interpolate sampled supply rates and volume on the time grid ``t``."""
        return cls(
            known_rates=tuple(build_interpolator(t, q) for q in (q_s, q_co2, q_o2)),
            volume=build_interpolator(t, volume),
            qs_max=induction_schedule(t_ind, qs_max_0, qs_max_1),
            ks=constant(ks_0),
        )


@dataclass(frozen=True, eq=False)
class BalanceEvaluation:
    """Model output at one (state, time) point; all vectors in species order."""

    derivative: NDArray[np.floating[Any]]  # g/h
    rates: NDArray[np.floating[Any]]  # reconciled conversion rates, g/h
    h: float

    def __iter__(self):
        return iter((self.derivative, self.rates, self.h))


# =============================================================================
# MODEL
# =============================================================================


def evaluate_balance(
    x: Sequence[float] | NDArray[np.floating[Any]],
    params: BalanceParameters,
    t: float,
    variant: BalanceVariant = BalanceVariant.FULL,
) -> BalanceEvaluation:
    """
    Evaluate the reactor mass derivative at state ``x`` and time ``t``.

    Raises
    ------
    NonFiniteResultError
        If the substrate concentration is negative (the Monod kinetics are
        undefined there) or the kinetics or reconciled rates are not finite
    """
    x = np.asarray(x, dtype=float)
    if x.shape != (len(SPECIES),):
        raise DimensionMismatchError(f"State must have {len(SPECIES)} entries (got {x.shape})")
    molar_masses = np.array(MOLAR_MASSES)

    with np.errstate(divide="ignore", invalid="ignore"):
        c_s = x[SUBSTRATE_INDEX] / params.volume(t)
        q_s = monod_uptake(c_s, params.qs_max(t), params.ks(t))
        r_s = -q_s * x[BIOMASS_INDEX]
    if c_s < 0:
        logger.error("Substrate depleted at t=%g (c_S=%g, state=%s)", t, c_s, x)
        raise NonFiniteResultError(
            f"Substrate concentration is negative at t={t:g} (c_S={c_s:g} g/L); "
            "the uptake kinetics are undefined"
        )
    if not np.isfinite(r_s):
        logger.error("Non-finite uptake at t=%g (c_S=%g, state=%s)", t, c_s, x)
        raise NonFiniteResultError(
            f"Substrate uptake rate is not finite at t={t:g} (c_S={c_s:g} g/L)"
        )

    supply_mol = np.zeros(len(SPECIES))
    supply_mol[list(KNOWN_INDICES)] = [q(t) for q in params.known_rates]
    supply_g = supply_mol * molar_masses

    rates_g = np.zeros(len(SPECIES))
    rates_g[SUBSTRATE_INDEX] = r_s
    rates_g[[CO2_INDEX, O2_INDEX]] = supply_g[[CO2_INDEX, O2_INDEX]]

    result = reconcile(
        rates_g / molar_masses,
        variant.matrix,
        KNOWN_INDICES,
        UNKNOWN_INDICES,
        mode=variant.mode,
    )
    reconciled_g = result.to_species_order(KNOWN_INDICES, UNKNOWN_INDICES) * molar_masses
    derivative = supply_g + reconciled_g

    if not np.all(np.isfinite(derivative)):
        raise NonFiniteResultError(f"Mass derivative is not finite at t={t:g}")
    return BalanceEvaluation(derivative=derivative, rates=reconciled_g, h=result.h)


def balance_rhs(
    t: float,
    x: NDArray[np.floating[Any]],
    params: BalanceParameters,
    variant: BalanceVariant = BalanceVariant.FULL,
) -> NDArray[np.floating[Any]]:
    """Right-hand side in ``solve_ivp`` argument order."""
    return evaluate_balance(x, params, t, variant).derivative


def balance_rates(
    x: NDArray[np.floating[Any]],
    params: BalanceParameters,
    t: float,
    variant: BalanceVariant = BalanceVariant.FULL,
) -> NDArray[np.floating[Any]]:
    return evaluate_balance(x, params, t, variant).rates


def balance_diagnostic(
    x: NDArray[np.floating[Any]],
    params: BalanceParameters,
    t: float,
    variant: BalanceVariant = BalanceVariant.FULL,
) -> float:
    return evaluate_balance(x, params, t, variant).h
