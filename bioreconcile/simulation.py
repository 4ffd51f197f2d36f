# simulation.py
"""
BioReconcile - Balance Simulation Driver
========================================

Integrates the dynamic balance model over a measurement time grid and
returns aligned trajectories:

1. Interpolate the measured supply rates and volume over the grid
2. Build the induction-switched q_Smax schedule and constant K_S
3. Integrate with an adaptive solver that switches between non-stiff and
   stiff methods (LSODA)
4. Sample the solution on the grid and convert masses to concentrations
5. Replay the reconciliation at every sample for rates and diagnostic h

Output columns (``prefix`` defaults to ``K2S1``)::

    time, {prefix}_mX, _mS, _mCO2, _mO2, _cX, _cS, _rX, _rS, _rCO2, _rO2, _h
"""

import logging
from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from scipy.integrate import solve_ivp

from .balance_model import BalanceParameters, BalanceVariant, balance_rhs, evaluate_balance
from .config import (
    DEFAULT_COLUMN_PREFIX,
    INDUCTION_TIME,
    KS_DEFAULT,
    QS_MAX_POST_INDUCTION,
    QS_MAX_PRE_INDUCTION,
    SOLVER_ATOL,
    SOLVER_MAX_RHS_EVALS,
    SOLVER_METHOD,
    SOLVER_RTOL,
    SPECIES,
    output_columns,
)
from .exceptions import DimensionMismatchError, NonFiniteResultError, SolverDivergenceError
from .validation import ValidationReport, raise_for_report, validate_array, validate_time_series

logger = logging.getLogger(__name__)

__all__ = [
    "simulate_balance",
    "solution_to_frame",
    "calc_k2s1",
    "calc_k2s1_carbon",
    "calc_k2s1_dor",
]

ArrayLike = Sequence[float] | NDArray[np.floating[Any]]


def solution_to_frame(
    t: ArrayLike,
    masses: NDArray[np.floating[Any]],
    volume: ArrayLike,
    rates: NDArray[np.floating[Any]],
    h: ArrayLike,
    prefix: str = DEFAULT_COLUMN_PREFIX,
) -> pd.DataFrame:
    """Assemble sampled trajectories into the driver's output DataFrame."""
    columns = output_columns(prefix)
    masses = np.asarray(masses, dtype=float)
    volume = np.asarray(volume, dtype=float)

    df = pd.DataFrame({"time": np.asarray(t, dtype=float)})
    for i, name in enumerate(columns["mass"]):
        df[name] = masses[:, i]
    for i, name in enumerate(columns["concentration"]):
        df[name] = masses[:, i] / volume
    for i, name in enumerate(columns["rate"]):
        df[name] = np.asarray(rates)[:, i]
    df[columns["diagnostic"][0]] = np.asarray(h, dtype=float)
    return df


def _budgeted_rhs(max_evals: int, variant: BalanceVariant) -> Callable[..., NDArray[np.floating[Any]]]:
    """``balance_rhs`` that raises once it has been called ``max_evals`` times."""
    n_evals = 0

    def rhs(t: float, x: NDArray[np.floating[Any]], *args: Any) -> NDArray[np.floating[Any]]:
        nonlocal n_evals
        n_evals += 1
        if n_evals > max_evals:
            logger.error("Integration stalled at t=%g after %d RHS evaluations", t, max_evals)
            raise SolverDivergenceError(
                f"Integration of the {variant.value} balance stalled at t={t:g}: "
                f"more than {max_evals} right-hand-side evaluations"
            )
        return balance_rhs(t, x, *args)

    return rhs


def simulate_balance(
    t: ArrayLike,
    q_s: ArrayLike,
    q_co2: ArrayLike,
    q_o2: ArrayLike,
    volume: ArrayLike,
    x0: ArrayLike,
    variant: BalanceVariant = BalanceVariant.FULL,
    t_ind: float = INDUCTION_TIME,
    qs_max_0: float = QS_MAX_PRE_INDUCTION,
    qs_max_1: float = QS_MAX_POST_INDUCTION,
    ks_0: float = KS_DEFAULT,
    prefix: str = DEFAULT_COLUMN_PREFIX,
    method: str = SOLVER_METHOD,
    rtol: float = SOLVER_RTOL,
    atol: float = SOLVER_ATOL,
    max_rhs_evals: int = SOLVER_MAX_RHS_EVALS,
) -> pd.DataFrame:
    """
    Simulate the reactor balances over the measurement grid ``t``.

    Parameters
    ----------
    t : array-like
        Strictly increasing measurement times (h)
    q_s, q_co2, q_o2 : array-like
        Measured supply rates on ``t`` (mol/h)
    volume : array-like
        Liquid volume on ``t`` (L)
    x0 : array-like
        Initial masses [m_X, m_S, m_CO2, m_O2] (g)
    variant : BalanceVariant
        Balance set closing the biomass rate
    t_ind : float
        Induction time at which q_Smax switches from ``qs_max_0`` to ``qs_max_1``
    ks_0 : float
        Half-saturation constant (g/L)
    prefix : str
        Output column prefix
    method, rtol, atol
        Passed to ``scipy.integrate.solve_ivp``
    max_rhs_evals : int
        Right-hand-side evaluations allowed before the run is abandoned

    Returns
    -------
    pd.DataFrame
        One row per grid point; see module docstring for the columns

    Raises
    ------
    ValidationError, DimensionMismatchError
        Malformed grid, series or initial state
    NonFiniteResultError
        The model produced NaN/inf during integration or replay
    SolverDivergenceError
        The integrator could not meet its tolerance or exhausted
        ``max_rhs_evals``
    """
    t = np.asarray(t, dtype=float)
    raise_for_report(validate_time_series(t, field="t", min_length=2))
    x0 = np.asarray(x0, dtype=float)
    raise_for_report(ValidationReport.from_results([validate_array(x0, "x0")]))
    if x0.shape != (len(SPECIES),):
        raise DimensionMismatchError(f"x0 must have {len(SPECIES)} entries (got {x0.shape})")

    params = BalanceParameters.from_samples(
        t, q_s, q_co2, q_o2, volume, t_ind=t_ind, qs_max_0=qs_max_0, qs_max_1=qs_max_1, ks_0=ks_0
    )

    logger.debug(
        "Integrating %s balance over [%g, %g] with %s", variant.value, t[0], t[-1], method
    )
    rhs = _budgeted_rhs(max_rhs_evals, variant)
    sol = solve_ivp(
        rhs,
        t_span=(t[0], t[-1]),
        y0=x0,
        method=method,
        t_eval=t,
        args=(params, variant),
        rtol=rtol,
        atol=atol,
    )
    if not sol.success:
        logger.error("Integration failed: %s", sol.message)
        raise SolverDivergenceError(f"Integration of the {variant.value} balance failed: {sol.message}")
    logger.debug("Integration finished after %d RHS evaluations", sol.nfev)

    masses = sol.y.T
    if masses.shape[0] != t.size or not np.all(np.isfinite(masses)):
        raise NonFiniteResultError("Integrated state is not finite on the sample grid")

    evaluations = [evaluate_balance(x, params, ti, variant) for x, ti in zip(masses, t)]
    rates = np.array([e.rates for e in evaluations])
    h = np.array([e.h for e in evaluations])

    return solution_to_frame(t, masses, volume, rates, h, prefix=prefix)


def calc_k2s1(t: ArrayLike, q_s: ArrayLike, q_co2: ArrayLike, q_o2: ArrayLike,
              volume: ArrayLike, x0: ArrayLike, **kwargs: Any) -> pd.DataFrame:
    """Simulate with carbon and degree-of-reduction balances."""
    return simulate_balance(t, q_s, q_co2, q_o2, volume, x0, variant=BalanceVariant.FULL, **kwargs)


def calc_k2s1_carbon(t: ArrayLike, q_s: ArrayLike, q_co2: ArrayLike, q_o2: ArrayLike,
                     volume: ArrayLike, x0: ArrayLike, **kwargs: Any) -> pd.DataFrame:
    """Simulate with the carbon balance only."""
    return simulate_balance(t, q_s, q_co2, q_o2, volume, x0, variant=BalanceVariant.CARBON, **kwargs)


def calc_k2s1_dor(t: ArrayLike, q_s: ArrayLike, q_co2: ArrayLike, q_o2: ArrayLike,
                  volume: ArrayLike, x0: ArrayLike, **kwargs: Any) -> pd.DataFrame:
    """Simulate with the degree-of-reduction balance only."""
    return simulate_balance(
        t, q_s, q_co2, q_o2, volume, x0, variant=BalanceVariant.DEGREE_OF_REDUCTION, **kwargs
    )
