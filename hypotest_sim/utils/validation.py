"""
Validation utilities for hypotest-sim.

Common checks for numeric parameters and run arguments.
"""

import math
import numbers
from typing import Iterable, List

from ..core.exceptions import ConfigurationError


def validate_positive(value, name: str = "value") -> float:
    """
    Validate that a value is a finite, strictly positive real number.

    Args:
        value: Value to validate
        name: Name for error messages

    Returns:
        The value as float

    Raises:
        ConfigurationError: If validation fails
    """
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(name, f"expected a number, got {value!r}")

    value = float(value)
    if not math.isfinite(value):
        raise ConfigurationError(name, f"must be finite, got {value}")
    if value <= 0:
        raise ConfigurationError(
            name,
            f"must be strictly positive, got {value}",
            suggestions=[f"Use a value greater than zero for {name}"],
        )
    return value


def validate_finite(value, name: str = "value") -> float:
    """Validate that a value is a finite real number."""
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ConfigurationError(name, f"expected a number, got {value!r}")
    value = float(value)
    if not math.isfinite(value):
        raise ConfigurationError(name, f"must be finite, got {value}")
    return value


def validate_positive_int(value, name: str = "value") -> int:
    """Validate that a value is an integer >= 1."""
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise ConfigurationError(name, f"expected an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(name, f"must be at least 1, got {value}")
    return int(value)


def validate_sample_sizes(sample_sizes: Iterable[int], name: str = "sample_sizes") -> List[int]:
    """Validate an ordered collection of unique positive sample sizes."""
    sizes = [validate_positive_int(n, name) for n in sample_sizes]
    if not sizes:
        raise ConfigurationError(name, "at least one sample size is required")
    if len(set(sizes)) != len(sizes):
        raise ConfigurationError(name, f"sample sizes must be unique, got {sizes}")
    return sizes


def validate_alpha(alpha) -> float:
    """Validate a significance threshold in the open interval (0, 1)."""
    if isinstance(alpha, bool) or not isinstance(alpha, numbers.Real) or not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must lie strictly between 0 and 1, got {alpha!r}")
    return float(alpha)
