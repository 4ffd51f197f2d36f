# interpolation.py
"""
BioReconcile - Continuous Signals from Sampled Data
===================================================

Piecewise-linear interpolation through discrete samples with linear
extrapolation beyond the sampled range.
"""

from collections.abc import Callable, Sequence
from typing import Any

import numpy as np
from numpy.typing import NDArray
from scipy.interpolate import interp1d

from .validation import raise_for_report, validate_time_series

__all__ = ["build_interpolator", "interpolate_at"]


def build_interpolator(
    samples_t: NDArray[np.floating[Any]] | Sequence[float],
    samples_x: NDArray[np.floating[Any]] | Sequence[float],
) -> Callable[[Any], Any]:
    """
    Build f(t) passing linearly through ``(samples_t, samples_x)``.

    Outside ``[samples_t[0], samples_t[-1]]`` the boundary segment's slope is
    continued. Scalar input returns a float, array input returns an array.

    Raises
    ------
    ValidationError
        If ``samples_t`` is not strictly increasing or has fewer than two points
    DimensionMismatchError
        If ``samples_t`` and ``samples_x`` differ in length
    """
    raise_for_report(validate_time_series(samples_t, samples_x, field="samples_t", min_length=2))

    line = interp1d(
        np.asarray(samples_t, dtype=float),
        np.asarray(samples_x, dtype=float),
        kind="linear",
        fill_value="extrapolate",
        assume_sorted=True,
    )

    def f(t: Any) -> Any:
        value = line(t)
        return float(value) if np.ndim(value) == 0 else value

    return f


def interpolate_at(
    t: Any,
    samples_t: NDArray[np.floating[Any]] | Sequence[float],
    samples_x: NDArray[np.floating[Any]] | Sequence[float],
) -> Any:
    """One-shot evaluation of ``build_interpolator(samples_t, samples_x)(t)``."""
    return build_interpolator(samples_t, samples_x)(t)
