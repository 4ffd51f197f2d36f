# validation.py
"""
BioReconcile - Input Validation Module
======================================

Validators for the numeric inputs consumed by the estimation, reconciliation
and simulation routines:
- Numeric values and arrays
- Time grids (strictly increasing, matching lengths)
- Rate-vector partitions and stoichiometric matrix shapes
- DataFrame structure

Validators return ``ValidationResult``/``ValidationReport`` objects;
``raise_for_report`` converts a failed report into an exception.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field as dataclass_field
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd
from numpy.typing import NDArray

from .config import EPSILON_ZERO
from .exceptions import DimensionMismatchError, ValidationError

__all__ = [
    # Classes
    "ValidationLevel",
    "ValidationResult",
    "ValidationReport",
    # Basic validators
    "validate_positive",
    "validate_array",
    "validate_dataframe",
    # Scientific validators
    "validate_time_series",
    "validate_index_partition",
    "validate_stoichiometry",
    # Utilities
    "format_validation_errors",
    "raise_for_report",
]

# =============================================================================
# VALIDATION RESULT CLASSES
# =============================================================================


class ValidationLevel(Enum):
    """Validation severity levels."""

    ERROR = "error"  # Critical - blocks computation
    WARNING = "warning"  # Potential issue - allows continuation
    INFO = "info"  # Informational only


@dataclass
class ValidationResult:
    """
    Result of a validation check.

    Attributes
    ----------
    is_valid : bool
        Whether the validation passed
    level : ValidationLevel
        Severity level of any issues
    message : str
        Human-readable description
    field : str
        Name of the field/parameter being validated
    value : Any
        The actual value that was validated
    suggestion : str, optional
        Suggested fix for the issue
    dimension_mismatch : bool
        True when the failure is a disagreement between shapes or lengths
    """

    is_valid: bool
    level: ValidationLevel
    message: str
    field: str
    value: Any = None
    suggestion: str | None = None
    dimension_mismatch: bool = False

    def __bool__(self) -> bool:
        return self.is_valid


@dataclass
class ValidationReport:
    """
    Aggregated validation results.

    Attributes
    ----------
    is_valid : bool
        True if no errors (warnings allowed)
    errors : list[ValidationResult]
        Critical validation failures
    warnings : list[ValidationResult]
        Non-critical issues
    info : list[ValidationResult]
        Informational messages
    """

    is_valid: bool
    errors: list[ValidationResult] = dataclass_field(default_factory=list)
    warnings: list[ValidationResult] = dataclass_field(default_factory=list)
    info: list[ValidationResult] = dataclass_field(default_factory=list)

    def __bool__(self) -> bool:
        return self.is_valid

    @property
    def results(self) -> list[ValidationResult]:
        """All validation results (errors + warnings + info) combined."""
        return self.errors + self.warnings + self.info

    @classmethod
    def from_results(cls, results: Sequence[ValidationResult]) -> "ValidationReport":
        """Sort a flat list of results into a report by severity."""
        errors = [r for r in results if not r.is_valid and r.level == ValidationLevel.ERROR]
        warnings = [r for r in results if r.level == ValidationLevel.WARNING]
        info = [r for r in results if r.is_valid and r.level == ValidationLevel.INFO]
        return cls(is_valid=not errors, errors=errors, warnings=warnings, info=info)


def _error(message: str, field: str, value: Any = None, **kwargs: Any) -> ValidationResult:
    return ValidationResult(
        is_valid=False,
        level=ValidationLevel.ERROR,
        message=message,
        field=field,
        value=value,
        **kwargs,
    )


# =============================================================================
# BASIC VALIDATORS
# =============================================================================


def validate_positive(value: float | int, field: str, allow_zero: bool = False) -> ValidationResult:
    """
    Validate that a value is positive.

    Parameters
    ----------
    value : float or int
        Value to validate
    field : str
        Name of the field for error messages
    allow_zero : bool
        If True, zero is acceptable

    Returns
    -------
    ValidationResult
    """
    try:
        val = float(value)
    except (TypeError, ValueError):
        return _error(
            f"{field} must be a number",
            field,
            value,
            suggestion=f"Pass a numeric value for {field}",
        )

    if not np.isfinite(val):
        return _error(f"{field} cannot be NaN or infinite", field, value)

    threshold = 0 if allow_zero else EPSILON_ZERO
    if val < threshold:
        kind = "non-negative" if allow_zero else "positive"
        return _error(f"{field} must be {kind} (got {val})", field, val)

    return ValidationResult(
        is_valid=True,
        level=ValidationLevel.INFO,
        message=f"{field} is valid",
        field=field,
        value=val,
    )


def validate_array(
    arr: NDArray[np.floating[Any]] | Sequence[float] | None,
    field: str,
    min_length: int = 1,
    allow_nan: bool = False,
    allow_negative: bool = True,
) -> ValidationResult:
    """
    Validate a one-dimensional numeric array.

    Parameters
    ----------
    arr : array-like
        Array to validate
    field : str
        Name of the field
    min_length : int
        Minimum required length
    allow_nan : bool
        If True, NaN values are acceptable
    allow_negative : bool
        If True, negative values are acceptable

    Returns
    -------
    ValidationResult
    """
    if arr is None:
        return _error(f"{field} is required", field)

    try:
        arr = np.asarray(arr, dtype=float)
    except (TypeError, ValueError) as e:
        return _error(f"{field} must contain numeric values: {e}", field, arr)

    if arr.ndim != 1:
        return _error(
            f"{field} must be one-dimensional (got shape {arr.shape})",
            field,
            arr,
            dimension_mismatch=True,
        )

    if len(arr) < min_length:
        return _error(
            f"{field} requires at least {min_length} values (got {len(arr)})",
            field,
            arr,
            suggestion=f"Add more data points to {field}",
        )

    if not allow_nan and np.any(np.isnan(arr)):
        nan_count = int(np.sum(np.isnan(arr)))
        return _error(
            f"{field} contains {nan_count} NaN value(s)",
            field,
            arr,
            suggestion="Remove or replace NaN values",
        )

    if np.any(np.isinf(arr)):
        return _error(f"{field} contains infinite values", field, arr)

    if not allow_negative and np.any(arr < 0):
        neg_count = int(np.sum(arr < 0))
        return _error(f"{field} contains {neg_count} negative value(s)", field, arr)

    return ValidationResult(
        is_valid=True,
        level=ValidationLevel.INFO,
        message=f"{field} array is valid ({len(arr)} values)",
        field=field,
        value=arr,
    )


def validate_dataframe(
    df: pd.DataFrame | None,
    field: str,
    required_columns: list[str] | None = None,
    min_rows: int = 1,
) -> ValidationResult:
    """
    Validate a pandas DataFrame.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to validate
    field : str
        Name of the field
    required_columns : list[str], optional
        Columns that must be present
    min_rows : int
        Minimum number of rows required

    Returns
    -------
    ValidationResult
    """
    if df is None:
        return _error(f"{field} is required", field)

    if not isinstance(df, pd.DataFrame):
        return _error(f"{field} must be a DataFrame", field, type(df).__name__)

    if len(df) < min_rows:
        return _error(f"{field} requires at least {min_rows} rows (got {len(df)})", field, len(df))

    if required_columns:
        missing = [col for col in required_columns if col not in df.columns]
        if missing:
            return _error(
                f"{field} missing required columns: {missing}",
                field,
                list(df.columns),
                suggestion=f"Ensure columns {required_columns} are present",
            )

    return ValidationResult(
        is_valid=True,
        level=ValidationLevel.INFO,
        message=f"{field} is valid ({len(df)} rows, {len(df.columns)} columns)",
        field=field,
        value=df.shape,
    )


# =============================================================================
# SCIENTIFIC VALIDATORS
# =============================================================================


def validate_time_series(
    times: NDArray[np.floating[Any]] | Sequence[float],
    values: NDArray[np.floating[Any]] | Sequence[float] | None = None,
    field: str = "time",
    min_length: int = 1,
) -> ValidationReport:
    """
    Validate a time grid and, optionally, the samples taken on it.

    The grid must be finite and strictly increasing; when ``values`` is given
    it must have one entry per time point.
    """
    results = [validate_array(times, field, min_length=min_length)]
    if values is not None:
        results.append(validate_array(values, f"{field} samples", min_length=min_length))

    if all(results):
        t = np.asarray(times, dtype=float)
        if np.any(np.diff(t) <= 0):
            results.append(
                _error(
                    f"{field} must be strictly increasing",
                    field,
                    t,
                    suggestion="Sort the samples and drop duplicate timestamps",
                )
            )
        if values is not None and len(np.asarray(values)) != len(t):
            results.append(
                _error(
                    f"{field} has {len(t)} points but {len(np.asarray(values))} samples",
                    field,
                    dimension_mismatch=True,
                )
            )

    return ValidationReport.from_results(results)


def validate_index_partition(
    n_species: int, known: Sequence[int], unknown: Sequence[int]
) -> ValidationReport:
    """Check that ``known`` and ``unknown`` partition ``range(n_species)``."""
    results: list[ValidationResult] = []
    known_set, unknown_set = set(known), set(unknown)

    if len(known_set) != len(known) or len(unknown_set) != len(unknown):
        results.append(_error("index sets contain duplicates", "indices", (known, unknown)))
    if known_set & unknown_set:
        results.append(
            _error(
                f"indices {sorted(known_set & unknown_set)} are both known and unknown",
                "indices",
                (known, unknown),
            )
        )
    if len(known) + len(unknown) != n_species or (known_set | unknown_set) != set(range(n_species)):
        results.append(
            _error(
                f"known and unknown indices must cover all {n_species} species exactly once",
                "indices",
                (known, unknown),
                dimension_mismatch=True,
            )
        )
    if not unknown:
        results.append(_error("at least one unknown rate is required", "unknown", unknown))

    return ValidationReport.from_results(results)


def validate_stoichiometry(
    rates: NDArray[np.floating[Any]],
    matrix: NDArray[np.floating[Any]],
    known: Sequence[int],
    unknown: Sequence[int],
) -> ValidationReport:
    """
    Validate a rate vector, stoichiometric matrix and index partition together.

    Shape checks only; rank deficiency is a numerical error detected when the
    pseudo-inverse is formed.
    """
    rates = np.asarray(rates, dtype=float)
    matrix = np.asarray(matrix, dtype=float)
    results: list[ValidationResult] = []

    if rates.ndim != 1:
        results.append(
            _error("rate vector must be one-dimensional", "rates", rates.shape, dimension_mismatch=True)
        )
    if matrix.ndim != 2:
        results.append(
            _error(
                "stoichiometric matrix must be two-dimensional",
                "matrix",
                matrix.shape,
                dimension_mismatch=True,
            )
        )
    if results:
        return ValidationReport.from_results(results)

    n_rows, n_cols = matrix.shape
    if n_cols != rates.size:
        results.append(
            _error(
                f"matrix has {n_cols} columns but the rate vector has {rates.size} entries",
                "matrix",
                matrix.shape,
                dimension_mismatch=True,
            )
        )
    if len(unknown) > n_rows:
        results.append(
            _error(
                f"{len(unknown)} unknown rates cannot be solved from {n_rows} balance(s)",
                "unknown",
                list(unknown),
                suggestion="Measure more rates or add balance equations",
                dimension_mismatch=True,
            )
        )
    results.extend(validate_index_partition(rates.size, known, unknown).results)
    if not np.all(np.isfinite(rates)):
        results.append(_error("rate vector contains NaN or infinite values", "rates", rates))

    return ValidationReport.from_results(results)


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================


def format_validation_errors(report: ValidationReport) -> str:
    """
    Format validation errors for display.

    Parameters
    ----------
    report : ValidationReport
        Validation results

    Returns
    -------
    str
        Formatted error message
    """
    lines = []

    if report.errors:
        lines.append("Errors:")
        for e in report.errors:
            lines.append(f"- {e.field}: {e.message}")
            if e.suggestion:
                lines.append(f"  hint: {e.suggestion}")

    if report.warnings:
        lines.append("Warnings:")
        for w in report.warnings:
            lines.append(f"- {w.field}: {w.message}")

    return "\n".join(lines) if lines else "All validations passed"


def raise_for_report(report: ValidationReport) -> None:
    """
    Raise if ``report`` contains errors.

    Raises
    ------
    DimensionMismatchError
        If any failing check concerns shapes or lengths
    ValidationError
        For every other failure
    """
    if report.is_valid:
        return
    message = format_validation_errors(report)
    if any(e.dimension_mismatch for e in report.errors):
        raise DimensionMismatchError(message)
    raise ValidationError(message)
