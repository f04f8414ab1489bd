"""Core functionality for hypotest-sim."""

from .exceptions import (
    HypotestSimError,
    ConfigurationError,
    DegenerateSampleError,
    AggregationError,
    CacheMismatchError,
    RunCancelledError,
)

__all__ = [
    "HypotestSimError",
    "ConfigurationError",
    "DegenerateSampleError",
    "AggregationError",
    "CacheMismatchError",
    "RunCancelledError",
]
