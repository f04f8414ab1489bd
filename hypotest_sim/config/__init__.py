"""Configuration management for hypotest-sim."""

from .settings import (
    HypotestSimConfig,
    SimulationConfig,
    AnalysisConfig,
    ParallelConfig,
    CacheConfig,
    LoggingConfig,
    get_default_config,
)

__all__ = [
    "HypotestSimConfig",
    "SimulationConfig",
    "AnalysisConfig",
    "ParallelConfig",
    "CacheConfig",
    "LoggingConfig",
    "get_default_config",
]
