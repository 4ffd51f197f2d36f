# tests/test_interpolation.py
"""
Unit Tests for Interpolation
============================

Tests for piecewise-linear interpolation with linear extrapolation.

Author: BioReconcile Team
"""

import os
import sys

import numpy as np
import pytest
from numpy.testing import assert_allclose

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from bioreconcile.exceptions import DimensionMismatchError, ValidationError
from bioreconcile.interpolation import build_interpolator, interpolate_at


@pytest.fixture
def samples():
    """Three samples with two different slopes (10 and 20)."""
    return np.array([0.0, 1.0, 2.0]), np.array([0.0, 10.0, 30.0])


class TestBuildInterpolator:
    """Tests for build_interpolator."""

    def test_reproduces_samples(self, samples):
        """Interpolant passes through every sample."""
        t, x = samples
        f = build_interpolator(t, x)
        assert_allclose(f(t), x)

    def test_single_slope_example(self):
        """Evenly spaced line: 15 at t=1.5, 30 at t=3."""
        f = build_interpolator([0.0, 1.0, 2.0], [0.0, 10.0, 20.0])
        assert f(1.5) == pytest.approx(15.0)
        assert f(3.0) == pytest.approx(30.0)

    def test_linear_between_samples(self, samples):
        """Midpoints lie on the connecting segment."""
        f = build_interpolator(*samples)
        assert f(0.5) == pytest.approx(5.0)
        assert f(1.5) == pytest.approx(20.0)

    def test_extrapolates_with_boundary_slope(self, samples):
        """Outside the range the first/last segment is continued."""
        f = build_interpolator(*samples)
        assert f(3.0) == pytest.approx(50.0)
        assert f(-1.0) == pytest.approx(-10.0)

    def test_scalar_returns_float(self, samples):
        """Scalar input gives a plain float."""
        f = build_interpolator(*samples)
        assert isinstance(f(0.25), float)

    def test_array_returns_array(self, samples):
        """Array input gives an array of the same shape."""
        f = build_interpolator(*samples)
        out = f(np.array([0.5, 1.5]))
        assert isinstance(out, np.ndarray)
        assert out.shape == (2,)

    def test_inputs_not_mutated(self, samples):
        """Building the interpolant leaves the samples untouched."""
        t, x = samples
        t_copy, x_copy = t.copy(), x.copy()
        build_interpolator(t, x)(1.2)
        assert_allclose(t, t_copy)
        assert_allclose(x, x_copy)

    def test_non_increasing_times_rejected(self):
        """Duplicate or decreasing times raise ValidationError."""
        with pytest.raises(ValidationError, match="strictly increasing"):
            build_interpolator([0.0, 1.0, 1.0], [1.0, 2.0, 3.0])
        with pytest.raises(ValidationError):
            build_interpolator([2.0, 1.0], [1.0, 2.0])

    def test_length_mismatch_rejected(self):
        """Times and values of different length raise DimensionMismatchError."""
        with pytest.raises(DimensionMismatchError):
            build_interpolator([0.0, 1.0, 2.0], [1.0, 2.0])

    def test_single_sample_rejected(self):
        """A single sample cannot define a line."""
        with pytest.raises(ValidationError, match="at least 2"):
            build_interpolator([0.0], [1.0])


class TestInterpolateAt:
    """Tests for the one-shot helper."""

    def test_matches_interpolator(self, samples):
        """interpolate_at agrees with build_interpolator."""
        t, x = samples
        assert interpolate_at(1.25, t, x) == pytest.approx(build_interpolator(t, x)(1.25))
