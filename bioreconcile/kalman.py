# kalman.py
"""
BioReconcile - Recursive State Estimation
=========================================

Two-state (position, velocity) linear Kalman filter for smoothing a noisy
scalar signal and estimating its rate of change.

Model
-----
    x_k = A x_{k-1} + w,   A = [[1, dt], [0, 1]],   w ~ N(0, Q)
    z_k = C x_k + v,       C = [1, 0],              v ~ N(0, R)

Applied to a balance (tank) weight signal, the position estimate divided by
the liquid density plus the initial volume gives the liquid volume, and the
negated velocity divided by the density gives the volumetric flow rate out of
the tank.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .config import (
    INITIAL_VOLUME,
    KALMAN_INITIAL_COVARIANCE,
    KALMAN_INITIAL_STATE,
    KALMAN_MEASUREMENT_NOISE,
    KALMAN_PROCESS_NOISE,
    LIQUID_DENSITY,
    as_matrix,
)
from .exceptions import DimensionMismatchError, SingularMatrixError
from .validation import (
    ValidationReport,
    raise_for_report,
    validate_array,
    validate_dataframe,
    validate_positive,
)

logger = logging.getLogger(__name__)

__all__ = [
    "KalmanConfig",
    "FlowRateEstimate",
    "transition_matrix",
    "kalman_update",
    "kalman_batch",
    "kalman_state_derivative",
    "kalman_flow_rate",
    "feed_rate",
    "liquid_volume",
]

MEASUREMENT_MATRIX = ((1.0, 0.0),)


@dataclass
class KalmanConfig:
    """
    Noise model and starting point for one estimation run.

    Every instance owns its own arrays, so mutating one configuration never
    leaks into another.

    Attributes
    ----------
    process_noise : np.ndarray
        2×2 process-noise covariance Q
    measurement_noise : float
        Measurement-noise variance R
    initial_state : np.ndarray
        Starting [position, velocity]
    initial_covariance : np.ndarray
        Starting 2×2 state covariance P
    """

    process_noise: NDArray[np.floating[Any]] = field(
        default_factory=lambda: as_matrix(KALMAN_PROCESS_NOISE)
    )
    measurement_noise: float = KALMAN_MEASUREMENT_NOISE
    initial_state: NDArray[np.floating[Any]] = field(
        default_factory=lambda: np.array(KALMAN_INITIAL_STATE, dtype=float)
    )
    initial_covariance: NDArray[np.floating[Any]] = field(
        default_factory=lambda: as_matrix(KALMAN_INITIAL_COVARIANCE)
    )

    def __post_init__(self) -> None:
        self.process_noise = _as_2x2(self.process_noise, "process_noise")
        self.initial_covariance = _as_2x2(self.initial_covariance, "initial_covariance")
        self.initial_state = _as_state(self.initial_state)
        raise_for_report(
            ValidationReport.from_results(
                [validate_positive(self.measurement_noise, "measurement_noise", allow_zero=True)]
            )
        )
        self.measurement_noise = float(self.measurement_noise)


@dataclass
class FlowRateEstimate:
    """Volume and flow rate derived from a filtered weight signal."""

    volume: NDArray[np.floating[Any]]
    flow_rate: NDArray[np.floating[Any]]
    states: NDArray[np.floating[Any]]
    covariances: NDArray[np.floating[Any]]


def _as_state(x: Any) -> NDArray[np.floating[Any]]:
    state = np.array(x, dtype=float).reshape(-1)
    if state.shape != (2,):
        raise DimensionMismatchError(f"state must have 2 entries (got shape {np.shape(x)})")
    return state


def _as_2x2(m: Any, name: str) -> NDArray[np.floating[Any]]:
    matrix = np.array(m, dtype=float)
    if matrix.shape != (2, 2):
        raise DimensionMismatchError(f"{name} must be 2x2 (got shape {matrix.shape})")
    return matrix


def transition_matrix(dt: float) -> NDArray[np.floating[Any]]:
    """Constant-velocity transition matrix for a step of length ``dt``."""
    return np.array([[1.0, dt], [0.0, 1.0]])


# =============================================================================
# SINGLE STEP
# =============================================================================


def kalman_update(
    z: float,
    state: Any = None,
    covariance: Any = None,
    dt: float = 1.0,
    process_noise: Any = None,
    measurement_noise: float | None = None,
) -> tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]]]:
    """
    One predict/correct cycle.

    Parameters
    ----------
    z : float
        Measurement of the position
    state : array-like, optional
        Prior [position, velocity]; defaults to ``KALMAN_INITIAL_STATE``
    covariance : array-like, optional
        Prior 2×2 covariance; defaults to ``KALMAN_INITIAL_COVARIANCE``
    dt : float
        Time since the prior estimate
    process_noise : array-like, optional
        2×2 Q; defaults to ``KALMAN_PROCESS_NOISE``
    measurement_noise : float, optional
        R; defaults to ``KALMAN_MEASUREMENT_NOISE``

    Returns
    -------
    tuple
        (posterior state, posterior covariance), both freshly allocated
    """
    x = _as_state(KALMAN_INITIAL_STATE if state is None else state)
    P = _as_2x2(KALMAN_INITIAL_COVARIANCE if covariance is None else covariance, "covariance")
    Q = _as_2x2(KALMAN_PROCESS_NOISE if process_noise is None else process_noise, "process_noise")
    R = KALMAN_MEASUREMENT_NOISE if measurement_noise is None else float(measurement_noise)
    A = transition_matrix(float(dt))
    C = as_matrix(MEASUREMENT_MATRIX)

    # Predict
    x = A @ x
    P = A @ P @ A.T + Q

    # Gain
    innovation_cov = C @ P @ C.T + R
    if not np.all(np.isfinite(innovation_cov)) or abs(innovation_cov[0, 0]) < np.finfo(float).tiny:
        raise SingularMatrixError(
            f"Innovation variance {innovation_cov[0, 0]!r} cannot be inverted; "
            "check the covariance and measurement noise"
        )
    K = P @ C.T @ np.linalg.inv(innovation_cov)

    # Correct
    x = x + (K * (float(z) - (C @ x)[0])).reshape(-1)
    P = P - K @ C @ P
    return x, P


# =============================================================================
# BATCH
# =============================================================================


def kalman_batch(
    t: NDArray[np.floating[Any]] | Sequence[float],
    z: NDArray[np.floating[Any]] | Sequence[float],
    config: KalmanConfig | None = None,
) -> tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]]]:
    """
    Filter a measurement sequence.

    The first entry of the returned history is the initial state at ``t[0]``;
    each later entry is the posterior after fusing ``z[k]`` with
    ``dt = t[k] - t[k-1]``. ``z[0]`` therefore only anchors the time axis.

    A single measurement is handled as one update whose ``dt`` is the lone
    timestamp ``t[0]`` itself, and returns that update's ``(state, covariance)``
    rather than a history.

    Returns
    -------
    tuple
        (states of shape (n, 2), covariances of shape (n, 2, 2)); or
        (state (2,), covariance (2, 2)) for a single measurement
    """
    config = config if config is not None else KalmanConfig()
    t_arr = np.atleast_1d(np.asarray(t, dtype=float))
    z_arr = np.atleast_1d(np.asarray(z, dtype=float))
    raise_for_report(
        ValidationReport.from_results(
            [validate_array(t_arr, "t"), validate_array(z_arr, "z")]
        )
    )
    if t_arr.size != z_arr.size:
        raise DimensionMismatchError(
            f"t has {t_arr.size} points but z has {z_arr.size} measurements"
        )

    if z_arr.size < 2:
        logger.warning("Single measurement: treating timestamp %g as the update step", t_arr[0])
        return kalman_update(
            z_arr[0],
            config.initial_state,
            config.initial_covariance,
            dt=t_arr[0],
            process_noise=config.process_noise,
            measurement_noise=config.measurement_noise,
        )

    states = np.empty((z_arr.size, 2))
    covariances = np.empty((z_arr.size, 2, 2))
    state = config.initial_state.copy()
    covariance = config.initial_covariance.copy()
    states[0], covariances[0] = state, covariance

    for k, (dt, zk) in enumerate(zip(np.diff(t_arr), z_arr[1:]), start=1):
        state, covariance = kalman_update(
            zk,
            state,
            covariance,
            dt=dt,
            process_noise=config.process_noise,
            measurement_noise=config.measurement_noise,
        )
        states[k], covariances[k] = state, covariance

    logger.debug("Filtered %d measurements over [%g, %g]", z_arr.size, t_arr[0], t_arr[-1])
    return states, covariances


def kalman_state_derivative(
    t: NDArray[np.floating[Any]] | Sequence[float],
    z: NDArray[np.floating[Any]] | Sequence[float],
    config: KalmanConfig | None = None,
) -> tuple[
    NDArray[np.floating[Any]],
    NDArray[np.floating[Any]],
    NDArray[np.floating[Any]],
    NDArray[np.floating[Any]],
]:
    """Filter ``z`` and split the result into (position, velocity, states, covariances)."""
    states, covariances = kalman_batch(t, z, config)
    states = np.atleast_2d(states)
    return states[:, 0], states[:, 1], states, covariances


def kalman_flow_rate(
    t: NDArray[np.floating[Any]] | Sequence[float],
    z: NDArray[np.floating[Any]] | Sequence[float],
    density: float = LIQUID_DENSITY,
    initial_volume: float = INITIAL_VOLUME,
    config: KalmanConfig | None = None,
) -> FlowRateEstimate:
    """
    Volume and flow-rate trajectories from a cumulative weight signal.

    volume = position / density + initial_volume
    flow_rate = -velocity / density
    """
    raise_for_report(
        ValidationReport.from_results([validate_positive(density, "density")])
    )
    position, velocity, states, covariances = kalman_state_derivative(t, z, config)
    return FlowRateEstimate(
        volume=position / density + initial_volume,
        flow_rate=-velocity / density,
        states=states,
        covariances=covariances,
    )


# =============================================================================
# DATAFRAME FRONT-ENDS
# =============================================================================


def _flow_rate_from_frame(
    df: pd.DataFrame,
    weight_column: str,
    time_column: str,
    density: float,
    initial_volume: float,
    config: KalmanConfig | None,
) -> FlowRateEstimate:
    raise_for_report(
        ValidationReport.from_results(
            [validate_dataframe(df, "data", required_columns=[time_column, weight_column])]
        )
    )
    return kalman_flow_rate(
        df[time_column].to_numpy(dtype=float),
        df[weight_column].to_numpy(dtype=float),
        density=density,
        initial_volume=initial_volume,
        config=config,
    )


def feed_rate(
    df: pd.DataFrame,
    weight_column: str = "m_R",
    time_column: str = "time",
    density: float = LIQUID_DENSITY,
    initial_volume: float = INITIAL_VOLUME,
    config: KalmanConfig | None = None,
) -> NDArray[np.floating[Any]]:
    """Feed rate (L/h) from the reservoir balance weight column of ``df``."""
    return _flow_rate_from_frame(
        df, weight_column, time_column, density, initial_volume, config
    ).flow_rate


def liquid_volume(
    df: pd.DataFrame,
    weight_column: str = "m_L",
    time_column: str = "time",
    density: float = LIQUID_DENSITY,
    initial_volume: float = INITIAL_VOLUME,
    config: KalmanConfig | None = None,
) -> NDArray[np.floating[Any]]:
    """Reactor liquid volume (L) from the reactor balance weight column of ``df``."""
    return _flow_rate_from_frame(
        df, weight_column, time_column, density, initial_volume, config
    ).volume
