"""
Validation utilities for MCReplicability.

This module provides validation functions for analysis settings and for
the observation table handed over by the extraction stage.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from ..errors import ConfigurationError

__all__ = []


@dataclass
class _ValidationResult:
    """Outcome of a validation check, carrying errors and warnings.

    Attributes:
        is_valid: ``True`` if no errors were found.
        errors: List of error messages (empty when valid).
        warnings: List of non-fatal warning messages.
    """

    is_valid: bool
    errors: List[str]
    warnings: List[str]

    def raise_if_invalid(self):
        """Raise ``ConfigurationError`` if the validation failed."""
        if not self.is_valid:
            error_msg = "Validation failed:\n" + "\n".join(f"• {err}" for err in self.errors)
            raise ConfigurationError(error_msg)


class _Validator:
    """Static helpers for type and range checks used by all validators."""

    @staticmethod
    def _check_type(value: Any, expected_types: tuple, name: str) -> Optional[str]:
        """Check if value has expected type."""
        if isinstance(value, bool) or not isinstance(value, expected_types):
            actual_type = type(value).__name__
            expected = expected_types[0].__name__ if len(expected_types) == 1 else f"one of {[t.__name__ for t in expected_types]}"
            return f"{name} must be {expected}, got {actual_type}"
        return None

    @staticmethod
    def _check_range(
        value: Union[int, float],
        min_val: Optional[float],
        max_val: Optional[float],
        name: str,
    ) -> Optional[str]:
        """Check if value is within range."""
        if min_val is not None and value < min_val:
            return f"{name} must be >= {min_val}, got {value}"
        if max_val is not None and value > max_val:
            return f"{name} must be <= {max_val}, got {value}"
        return None


_validator = _Validator()


def _validate_numeric_parameter(
    value: Any,
    name: str,
    expected_types: tuple = (int, float),
    min_val: Optional[float] = None,
    max_val: Optional[float] = None,
) -> _ValidationResult:
    """Generic validation for numeric parameters."""
    errors: List[str] = []

    type_error = _validator._check_type(value, expected_types, name)
    if type_error:
        errors.append(type_error)
        return _ValidationResult(False, errors, [])

    range_error = _validator._check_range(value, min_val, max_val, name)
    if range_error:
        errors.append(range_error)

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_repetitions(repetitions: Any, name: str = "repetitions") -> _ValidationResult:
    """Validate a Monte Carlo repetition count (positive integer)."""
    result = _validate_numeric_parameter(repetitions, name, expected_types=(int, np.integer), min_val=1)

    if result.is_valid and repetitions < 100:
        result.warnings.append(f"Low repetition count for {name} ({repetitions}). Consider using at least 500 for stable intervals.")

    return result


def _validate_seed(seed: Any) -> _ValidationResult:
    """Validate the base random seed.

    A seed is required: replicate ``i`` is drawn from ``(seed, i)``, so an
    absent seed would make results irreproducible.
    """
    if seed is None:
        return _ValidationResult(False, ["seed is required for reproducible resampling, got None"], [])
    return _validate_numeric_parameter(seed, "seed", expected_types=(int, np.integer), min_val=0)


def _validate_alpha(alpha: Any) -> _ValidationResult:
    """Validate the significance threshold (strictly between 0 and 1)."""
    result = _validate_numeric_parameter(alpha, "alpha")
    if result.is_valid and not 0 < alpha < 1:
        return _ValidationResult(False, [f"alpha must be between 0 and 1 (exclusive), got {alpha}"], [])
    return result


def _validate_ci_bounds(lower: Any, upper: Any) -> _ValidationResult:
    """Validate percentile bounds for the empirical interval."""
    errors: List[str] = []

    for value, name in [(lower, "lower bound"), (upper, "upper bound")]:
        res = _validate_numeric_parameter(value, name, min_val=0, max_val=1)
        errors.extend(res.errors)

    if not errors and lower >= upper:
        errors.append(f"lower bound ({lower}) must be less than upper bound ({upper})")

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_interval_level(level: Any, name: str = "interval level") -> _ValidationResult:
    """Validate a confidence level for a normal-approximation interval (strictly between 0 and 1)."""
    result = _validate_numeric_parameter(level, name)
    if result.is_valid and not 0 < level < 1:
        return _ValidationResult(False, [f"{name} must be between 0 and 1 (exclusive), got {level}"], [])
    return result


def _validate_parallel_settings(enable: Any, n_cores: Optional[int]) -> Tuple[Tuple[bool, int], _ValidationResult]:
    """Validate parallel processing settings.

    Args:
        enable: True or False
        n_cores: Number of CPU cores (positive int or None for auto)

    Returns:
        ((enable, n_cores), ValidationResult)
    """
    import multiprocessing as mp

    errors = []

    if enable not in (True, False):
        errors.append(f"enable must be True or False, got {enable!r}")
        return (False, 1), _ValidationResult(False, errors, [])

    max_cores = mp.cpu_count()
    validated_n_cores = max(1, max_cores // 2)

    if n_cores is not None:
        if not isinstance(n_cores, int) or isinstance(n_cores, bool) or n_cores <= 0:
            errors.append(f"n_cores must be a positive integer, got {n_cores}")
        else:
            validated_n_cores = min(n_cores, max_cores)

    return (bool(enable), validated_n_cores), _ValidationResult(len(errors) == 0, errors, [])


def _validate_columns(data: pd.DataFrame, columns: Sequence[str]) -> _ValidationResult:
    """Check that every requested column exists in the input table."""
    missing = [c for c in columns if c not in data.columns]
    if missing:
        return _ValidationResult(
            False,
            [f"Column(s) not found in data: {', '.join(map(str, missing))}. Available: {', '.join(map(str, data.columns))}"],
            [],
        )
    return _ValidationResult(True, [], [])


def _validate_p_values(p_values: pd.Series) -> _ValidationResult:
    """Validate that p-values are numeric, present and within [0, 1]."""
    errors: List[str] = []

    if not pd.api.types.is_numeric_dtype(p_values):
        errors.append(f"p-values must be numeric, got dtype {p_values.dtype}")
        return _ValidationResult(False, errors, [])

    n_missing = int(p_values.isna().sum())
    if n_missing:
        errors.append(f"{n_missing} p-value(s) are missing")

    values = p_values.dropna().to_numpy(dtype=float)
    out_of_range = int(np.sum((values < 0) | (values > 1)))
    if out_of_range:
        errors.append(f"{out_of_range} p-value(s) lie outside [0, 1]")

    return _ValidationResult(len(errors) == 0, errors, [])


def _validate_table_ready(table: pd.DataFrame) -> _ValidationResult:
    """Validate that an observation table can feed the resampling engine."""
    if len(table) == 0:
        return _ValidationResult(False, ["Observation table is empty"], [])
    return _ValidationResult(True, [], [])
