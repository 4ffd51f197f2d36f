# config.py
"""
BioReconcile - Configuration Module
===================================

Centralized constants and defaults for state estimation, stoichiometric
reconciliation and balance simulation.

Matrix-valued defaults are stored as nested tuples so they cannot be mutated
in place; callers build fresh arrays from them on every use.
"""

from typing import Any

import numpy as np

from . import __version__ as VERSION

__all__ = [
    # Version
    "VERSION",
    # Numerical constants
    "EPSILON_ZERO",
    # Filter defaults
    "KALMAN_PROCESS_NOISE",
    "KALMAN_MEASUREMENT_NOISE",
    "KALMAN_INITIAL_STATE",
    "KALMAN_INITIAL_COVARIANCE",
    "LIQUID_DENSITY",
    "INITIAL_VOLUME",
    # Species and stoichiometry
    "SPECIES",
    "MOLAR_MASSES",
    "BIOMASS_INDEX",
    "SUBSTRATE_INDEX",
    "CO2_INDEX",
    "O2_INDEX",
    "ELEMENTAL_BALANCE",
    "CARBON_BALANCE",
    "DEGREE_OF_REDUCTION_BALANCE",
    # Kinetics defaults
    "INDUCTION_TIME",
    "QS_MAX_PRE_INDUCTION",
    "QS_MAX_POST_INDUCTION",
    "KS_DEFAULT",
    # Solver
    "SOLVER_METHOD",
    "SOLVER_RTOL",
    "SOLVER_ATOL",
    "SOLVER_MAX_RHS_EVALS",
    # Gas analysis
    "X_O2_AIR",
    "X_CO2_AIR",
    "MOLAR_GAS_VOLUME",
    # Plot settings
    "PLOT_TEMPLATE",
    "FONT_FAMILY",
    # Output naming
    "DEFAULT_COLUMN_PREFIX",
    "MASS_SUFFIXES",
    "CONCENTRATION_SUFFIXES",
    "RATE_SUFFIXES",
    "DIAGNOSTIC_SUFFIX",
    # Functions
    "as_matrix",
    "output_columns",
]

# =============================================================================
# NUMERICAL CONSTANTS
# =============================================================================
EPSILON_ZERO = 1e-9  # Threshold for "effectively zero" checks

# =============================================================================
# RECURSIVE STATE ESTIMATOR DEFAULTS
# =============================================================================
# Constant-velocity model: state = [position, velocity]
KALMAN_PROCESS_NOISE = ((0.0, 0.0), (0.0, 0.01))
KALMAN_MEASUREMENT_NOISE = 0.04
KALMAN_INITIAL_STATE = (0.0, 0.0)
KALMAN_INITIAL_COVARIANCE = ((10.0, 0.0), (0.0, 10.0))
LIQUID_DENSITY = 1000.0  # g/L
INITIAL_VOLUME = 1.5  # L

# =============================================================================
# SPECIES AND STOICHIOMETRY
# =============================================================================
# Order of the reactor state vector and of every rate vector
SPECIES = ("X", "S", "CO2", "O2")
BIOMASS_INDEX = 0
SUBSTRATE_INDEX = 1
CO2_INDEX = 2
O2_INDEX = 3

# g/mol; the biomass entry is an empirical yield coefficient (g/C-mol)
MOLAR_MASSES = (26.5, 30.0, 44.0, 32.0)

# Rows: carbon balance, degree-of-reduction balance
ELEMENTAL_BALANCE = (
    (1.0, 1.0, 1.0, 0.0),
    (4.113, 4.0, 0.0, -4.0),
)
CARBON_BALANCE = ((1.0, 1.0, 1.0, 0.0),)
DEGREE_OF_REDUCTION_BALANCE = ((4.113, 4.0, 0.0, -4.0),)

# =============================================================================
# KINETICS DEFAULTS (Monod uptake with one induction switch)
# =============================================================================
INDUCTION_TIME = 24.0  # h
QS_MAX_PRE_INDUCTION = 1.25  # g/(g h)
QS_MAX_POST_INDUCTION = 0.24  # g/(g h)
KS_DEFAULT = 0.1  # g/L

# =============================================================================
# ODE SOLVER
# =============================================================================
# LSODA switches between a non-stiff Adams method and stiff BDF automatically
SOLVER_METHOD = "LSODA"
SOLVER_RTOL = 1e-6
SOLVER_ATOL = 1e-9
SOLVER_MAX_RHS_EVALS = 100_000  # right-hand-side evaluations per run

# =============================================================================
# GAS ANALYSIS
# =============================================================================
X_O2_AIR = 0.2094  # mol fraction O2 in dry air
X_CO2_AIR = 0.0004  # mol fraction CO2 in dry air
MOLAR_GAS_VOLUME = 22.414  # L/mol at normal conditions

# =============================================================================
# PLOT SETTINGS
# =============================================================================
PLOT_TEMPLATE = "simple_white"
FONT_FAMILY = "Times New Roman"

# =============================================================================
# OUTPUT NAMING
# =============================================================================
DEFAULT_COLUMN_PREFIX = "K2S1"
MASS_SUFFIXES = ("_mX", "_mS", "_mCO2", "_mO2")
CONCENTRATION_SUFFIXES = ("_cX", "_cS")
RATE_SUFFIXES = ("_rX", "_rS", "_rCO2", "_rO2")
DIAGNOSTIC_SUFFIX = "_h"


def as_matrix(value: Any) -> np.ndarray:
    """Build a fresh 2-D float array from a (possibly nested-tuple) default."""
    return np.atleast_2d(np.array(value, dtype=float))


def output_columns(prefix: str = DEFAULT_COLUMN_PREFIX) -> dict[str, list[str]]:
    """Column names produced by the simulation driver, grouped by kind."""
    return {
        "mass": [prefix + s for s in MASS_SUFFIXES],
        "concentration": [prefix + s for s in CONCENTRATION_SUFFIXES],
        "rate": [prefix + s for s in RATE_SUFFIXES],
        "diagnostic": [prefix + DIAGNOSTIC_SUFFIX],
    }
