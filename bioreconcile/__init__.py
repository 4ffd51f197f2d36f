# bioreconcile/__init__.py
"""
BioReconcile - Bioreactor Mass-Balance Reconstruction
=====================================================

Numerical core for reconstructing biomass/substrate/gas trajectories of a
bioreactor from partial, noisy process data:
- Kalman filtering of cumulative weight signals into volume and flow rate
- Elemental-balance reconciliation of measured and unmeasured rates
- Dynamic balance simulation with Monod uptake kinetics

Example:
    >>> from bioreconcile import calc_k2s1, kalman_flow_rate, reconcile
    >>> from bioreconcile.gas_balance import off_gas_rates
"""

try:
    from importlib.metadata import version

    __version__ = version("bioreconcile")
except Exception:
    __version__ = "dev"
__license__ = "MIT"

from .balance_model import (  # noqa: E402
    BalanceEvaluation,
    BalanceParameters,
    BalanceVariant,
    evaluate_balance,
)
from .exceptions import (  # noqa: E402
    BioReconcileError,
    DimensionMismatchError,
    NonFiniteResultError,
    NumericalError,
    SingularMatrixError,
    SolverDivergenceError,
    ValidationError,
)
from .interpolation import build_interpolator  # noqa: E402
from .kalman import (  # noqa: E402
    FlowRateEstimate,
    KalmanConfig,
    kalman_batch,
    kalman_flow_rate,
    kalman_state_derivative,
    kalman_update,
)
from .reconciliation import (  # noqa: E402
    ReconciliationMode,
    ReconciliationResult,
    reconcile,
    reconcile_single_balance,
)
from .simulation import (  # noqa: E402
    calc_k2s1,
    calc_k2s1_carbon,
    calc_k2s1_dor,
    simulate_balance,
)

__all__ = [
    "__version__",
    # Interpolation
    "build_interpolator",
    # State estimation
    "KalmanConfig",
    "FlowRateEstimate",
    "kalman_update",
    "kalman_batch",
    "kalman_state_derivative",
    "kalman_flow_rate",
    # Reconciliation
    "ReconciliationMode",
    "ReconciliationResult",
    "reconcile",
    "reconcile_single_balance",
    # Balance model
    "BalanceVariant",
    "BalanceParameters",
    "BalanceEvaluation",
    "evaluate_balance",
    # Simulation
    "simulate_balance",
    "calc_k2s1",
    "calc_k2s1_carbon",
    "calc_k2s1_dor",
    # Errors
    "BioReconcileError",
    "ValidationError",
    "DimensionMismatchError",
    "NumericalError",
    "SingularMatrixError",
    "NonFiniteResultError",
    "SolverDivergenceError",
]
