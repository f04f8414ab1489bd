"""Utility functions and classes for hypotest-sim."""

from .logging import get_logger, setup_logging, log_performance
from .validation import (
    validate_positive,
    validate_positive_int,
    validate_sample_sizes,
    validate_alpha,
)

__all__ = [
    "get_logger",
    "setup_logging",
    "log_performance",
    "validate_positive",
    "validate_positive_int",
    "validate_sample_sizes",
    "validate_alpha",
]
