"""
hypotest-sim: Monte Carlo comparison of two-sample significance tests

Simulates grouped data from a catalog of distribution scenarios, applies a
t-test, a rank-sum test and a Kolmogorov-Smirnov test to every control
versus treatment comparison, and summarizes rejection and agreement rates
over many reproducible replications.
"""

__version__ = "1.0.0"
__author__ = "hypotest-sim developers"

# Parameter catalog and simulation
from .data.catalog import (
    Scenario,
    Group,
    ParameterCatalog,
    list_presets,
    preset_catalog,
)
from .data.simulator import SimulatedDataset, simulate, replication_rng

# Significance tests and aggregation
from .inference.pairwise import (
    StatisticalTest,
    Comparison,
    TestResult,
    PairwiseTestRunner,
    analyze,
)
from .inference.aggregation import (
    rejection_rates,
    rejection_rate,
    agreement_rates,
    agreement_table,
)

# Replication driver
from .simulation import ReplicationDriver, ReplicationResults, ResultCache, run_replications

# Configuration
from .config.settings import HypotestSimConfig

# High-level API and export
from .core.api import StudyResults, run_study
from .core.export import ResultsExporter, export_study, create_timestamped_export

# Import key exception classes
from .core.exceptions import (
    HypotestSimError,
    ConfigurationError,
    DegenerateSampleError,
    AggregationError,
    CacheMismatchError,
    RunCancelledError,
)

__all__ = [
    # Version info
    "__version__",
    "__author__",

    # Catalog and simulation
    "Scenario",
    "Group",
    "ParameterCatalog",
    "list_presets",
    "preset_catalog",
    "SimulatedDataset",
    "simulate",
    "replication_rng",

    # Tests and aggregation
    "StatisticalTest",
    "Comparison",
    "TestResult",
    "PairwiseTestRunner",
    "analyze",
    "rejection_rates",
    "rejection_rate",
    "agreement_rates",
    "agreement_table",

    # Replication driver
    "ReplicationDriver",
    "ReplicationResults",
    "ResultCache",
    "run_replications",

    # Configuration
    "HypotestSimConfig",
    "get_config",
    "configure",

    # High-level API and export
    "StudyResults",
    "run_study",
    "ResultsExporter",
    "export_study",
    "create_timestamped_export",

    # Exceptions
    "HypotestSimError",
    "ConfigurationError",
    "DegenerateSampleError",
    "AggregationError",
    "CacheMismatchError",
    "RunCancelledError",
]


def get_config() -> HypotestSimConfig:
    """Get the global configuration instance."""
    from .config.settings import get_default_config
    return get_default_config()


def configure(**kwargs) -> None:
    """
    Update global configuration; dotted keys address nested fields.

    Studies started without an explicit configuration use these values, and
    loggers pick up changed logging settings on their next call.
    """
    from .utils.logging import reset_loggers
    get_config().update(**kwargs)
    reset_loggers()
