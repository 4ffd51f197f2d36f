# tests/test_balance_model.py
"""
Unit Tests for the Dynamic Balance Model
========================================

Tests include:
- Monod kinetics and the induction schedule
- Balance variants and their closure modes
- Mass derivative at a single state for each variant
- Non-finite kinetics

Author: BioReconcile Team
"""

import os
import sys

import numpy as np
import pytest
from numpy.testing import assert_allclose

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bioreconcile.balance_model import (
    BalanceParameters,
    BalanceVariant,
    balance_diagnostic,
    balance_rates,
    balance_rhs,
    constant,
    evaluate_balance,
    induction_schedule,
    monod_uptake,
)
from bioreconcile.config import MOLAR_MASSES
from bioreconcile.exceptions import DimensionMismatchError, NonFiniteResultError
from bioreconcile.reconciliation import ReconciliationMode

M = np.array(MOLAR_MASSES)
Q_CO2 = 0.015  # mol/h
Q_O2 = -0.015  # mol/h

# =============================================================================
# FIXTURES
# =============================================================================


@pytest.fixture
def params():
    """Constant gas supply, no substrate feed, 1.5 L."""
    t = [0.0, 1.0, 2.0]
    return BalanceParameters.from_samples(
        t, [0.0] * 3, [Q_CO2] * 3, [Q_O2] * 3, [1.5] * 3
    )


@pytest.fixture
def state():
    """1 g biomass, 1.5 g substrate (c_S = 1 g/L in 1.5 L)."""
    return np.array([1.0, 1.5, 0.0, 0.0])


@pytest.fixture
def uptake():
    """Substrate rate (g/h) at the fixture state before induction."""
    return -monod_uptake(1.0, 1.25, 0.1) * 1.0


# =============================================================================
# KINETICS
# =============================================================================


class TestKinetics:
    """Tests for the kinetic building blocks."""

    def test_monod_half_saturation(self):
        """At c = K_S uptake is half-maximal."""
        assert monod_uptake(0.1, 1.25, 0.1) == pytest.approx(0.625)

    def test_monod_zero_substrate(self):
        """No substrate, no uptake."""
        assert monod_uptake(0.0, 1.25, 0.1) == 0.0

    def test_induction_switch(self):
        """Pre-induction value holds up to and including t_ind."""
        schedule = induction_schedule(24.0, 1.25, 0.24)
        assert schedule(0.0) == 1.25
        assert schedule(24.0) == 1.25
        assert schedule(24.01) == 0.24

    def test_constant(self):
        """Constant function ignores time."""
        f = constant(0.1)
        assert f(0.0) == f(100.0) == 0.1


class TestVariants:
    """Tests for BalanceVariant."""

    def test_modes(self):
        """Two balances are redundant, one balance closes exactly."""
        assert BalanceVariant.FULL.mode is ReconciliationMode.REDUNDANT
        assert BalanceVariant.CARBON.mode is ReconciliationMode.EXACT
        assert BalanceVariant.DEGREE_OF_REDUCTION.mode is ReconciliationMode.EXACT

    def test_matrix_is_fresh_copy(self):
        """Mutating a returned matrix does not change the variant."""
        m = BalanceVariant.FULL.matrix
        m[0, 0] = 99.0
        assert BalanceVariant.FULL.matrix[0, 0] == 1.0

    def test_matrix_shapes(self):
        """Every balance has one column per species."""
        assert BalanceVariant.FULL.matrix.shape == (2, 4)
        assert BalanceVariant.CARBON.matrix.shape == (1, 4)
        assert BalanceVariant.DEGREE_OF_REDUCTION.matrix.shape == (1, 4)


class TestBalanceParameters:
    """Tests for the parameter bundle."""

    def test_wrong_number_of_rates(self):
        """Exactly three supply-rate functions are required."""
        with pytest.raises(DimensionMismatchError):
            BalanceParameters(
                known_rates=(constant(0.0), constant(0.0)),
                volume=constant(1.0),
                qs_max=constant(1.0),
                ks=constant(0.1),
            )

    def test_from_samples_interpolates(self):
        """Sampled series become continuous functions."""
        p = BalanceParameters.from_samples([0.0, 2.0], [0.0, 2.0], [0.0, 0.0], [0.0, 0.0], [1.0, 3.0])
        assert p.known_rates[0](1.0) == pytest.approx(1.0)
        assert p.volume(1.0) == pytest.approx(2.0)
        assert p.ks(5.0) == pytest.approx(0.1)


# =============================================================================
# MASS DERIVATIVE
# =============================================================================


class TestEvaluateBalance:
    """Tests for the model right-hand side."""

    def test_carbon_variant(self, params, state, uptake):
        """Biomass closes the carbon balance; gas masses get supply plus conversion."""
        derivative, rates, h = evaluate_balance(state, params, 0.0, BalanceVariant.CARBON)
        r_x = -(uptake / M[1] + Q_CO2) * M[0]
        assert_allclose(rates, [r_x, uptake, Q_CO2 * M[2], Q_O2 * M[3]], rtol=1e-10)
        assert_allclose(
            derivative, [r_x, uptake, 2 * Q_CO2 * M[2], 2 * Q_O2 * M[3]], rtol=1e-10
        )
        assert h == 0.0

    def test_degree_of_reduction_variant(self, params, state, uptake):
        """Biomass closes the degree-of-reduction balance."""
        rates = balance_rates(state, params, 0.0, BalanceVariant.DEGREE_OF_REDUCTION)
        r_x = -(4.0 * uptake / M[1] - 4.0 * Q_O2) / 4.113 * M[0]
        assert rates[0] == pytest.approx(r_x, rel=1e-10)

    def test_full_variant_satisfies_both_balances(self, params, state):
        """Reconciled rates (mol/h) satisfy carbon and degree-of-reduction balances."""
        evaluation = evaluate_balance(state, params, 0.0, BalanceVariant.FULL)
        assert evaluation.h >= 0.0
        assert_allclose(BalanceVariant.FULL.matrix @ (evaluation.rates / M), [0.0, 0.0], atol=1e-10)

    def test_rhs_argument_order(self, params, state):
        """balance_rhs takes (t, x) like solve_ivp."""
        assert_allclose(
            balance_rhs(0.5, state, params, BalanceVariant.CARBON),
            evaluate_balance(state, params, 0.5, BalanceVariant.CARBON).derivative,
        )

    def test_diagnostic_zero_for_exact_variant(self, params, state):
        """Single-balance variants carry no redundancy."""
        assert balance_diagnostic(state, params, 0.0, BalanceVariant.DEGREE_OF_REDUCTION) == 0.0

    def test_state_not_mutated(self, params, state):
        """Evaluating the model leaves the state untouched."""
        snapshot = state.copy()
        evaluate_balance(state, params, 0.0)
        assert_allclose(state, snapshot)

    def test_post_induction_rate(self, params, state):
        """After induction the smaller q_Smax applies."""
        rates = balance_rates(state, params, 30.0, BalanceVariant.CARBON)
        assert rates[1] == pytest.approx(-monod_uptake(1.0, 0.24, 0.1))

    def test_wrong_state_length(self, params):
        """State must have four entries."""
        with pytest.raises(DimensionMismatchError):
            evaluate_balance([1.0, 1.0, 0.0], params, 0.0)


class TestNonFinite:
    """Tests for kinetics leaving their domain."""

    def test_monod_pole(self):
        """K_S + c_S = 0 gives an infinite uptake rate."""
        p = BalanceParameters.from_samples([0.0, 1.0], [0.0, 0.0], [0.0, 0.0], [0.0, 0.0], [1.0, 1.0])
        with pytest.raises(NonFiniteResultError):
            evaluate_balance([1.0, -0.1, 0.0, 0.0], p, 0.0)

    def test_zero_volume(self):
        """Zero volume gives an undefined concentration."""
        p = BalanceParameters.from_samples([0.0, 1.0], [0.0, 0.0], [0.0, 0.0], [0.0, 0.0], [0.0, 0.0])
        with pytest.raises(NonFiniteResultError):
            evaluate_balance([1.0, 1.0, 0.0, 0.0], p, 0.0)

    def test_negative_substrate(self):
        """A slightly negative substrate mass is outside the uptake kinetics."""
        p = BalanceParameters.from_samples([0.0, 1.0], [0.0, 0.0], [0.0, 0.0], [0.0, 0.0], [1.0, 1.0])
        with pytest.raises(NonFiniteResultError, match="negative"):
            evaluate_balance([1.0, -0.01, 0.0, 0.0], p, 0.0)
