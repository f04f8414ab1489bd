"""
Main API functions for hypotest-sim.

High-level entry point that wires configuration, parameter catalog,
replication driver and aggregation into a single call.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import pandas as pd
import yaml

from ..config.settings import HypotestSimConfig, get_default_config
from ..data.catalog import ParameterCatalog, preset_catalog
from ..inference.aggregation import agreement_rates, rejection_rates
from ..inference.pairwise import PairwiseTestRunner
from ..simulation.cache import ResultCache
from ..simulation.driver import ReplicationDriver, ReplicationResults
from ..utils.logging import apply_logging_config, get_logger, log_performance
from .exceptions import ConfigurationError

logger = get_logger(__name__)


@dataclass
class StudyResults:
    """Unified results of a study together with their summaries."""
    results: ReplicationResults
    rejection_rates: pd.DataFrame
    agreement_rates: pd.DataFrame
    config: HypotestSimConfig

    @property
    def table(self) -> pd.DataFrame:
        return self.results.table

    def summary(self) -> Dict[str, Any]:
        summary = self.results.summary()
        summary["alpha"] = self.config.simulation.alpha
        return summary


def build_catalog(config: HypotestSimConfig) -> ParameterCatalog:
    """Custom catalog from the configuration if given, else the named preset."""
    simulation = config.simulation
    if simulation.catalog:
        logger.debug("Using custom catalog", scenarios=list(simulation.catalog))
        return ParameterCatalog.from_dict(simulation.catalog, check_effect_order=simulation.check_effect_order)
    return preset_catalog(simulation.catalog_preset)


def build_driver(config: HypotestSimConfig, catalog: Optional[ParameterCatalog] = None) -> ReplicationDriver:
    """Replication driver configured from the analysis, parallel and cache sections."""
    runner = PairwiseTestRunner(
        equal_var=config.analysis.equal_var,
        rank_sum_method=config.analysis.rank_sum_method,
        ks_method=config.analysis.ks_method,
    )
    parallel = config.parallel
    max_workers = parallel.max_workers if parallel.parallel_processing else 1
    cache = ResultCache(config.cache.cache_directory) if config.cache.cache_enabled else None

    return ReplicationDriver(
        catalog if catalog is not None else build_catalog(config),
        runner=runner,
        max_workers=max_workers,
        chunk_size=parallel.chunk_size,
        cache=cache,
    )


def _resolve_config(
    config: Optional[HypotestSimConfig],
    config_file: Optional[Union[str, Path]],
    overrides: Dict[str, Any],
) -> HypotestSimConfig:
    if config is not None and config_file is not None:
        raise ConfigurationError(reason="pass either config or config_file, not both")

    try:
        if config is None:
            config = HypotestSimConfig(config_file=config_file) if config_file is not None else get_default_config()
        config = config.model_copy(deep=True)
        config.update(**overrides)
    except KeyError as e:
        raise ConfigurationError(
            reason=str(e),
            suggestions=["Use dotted keys such as 'simulation.seed' or 'parallel.max_workers'"],
        ) from e
    except FileNotFoundError as e:
        raise ConfigurationError(
            "config_file",
            str(e),
            suggestions=["Check the path of the YAML configuration file"],
        ) from e
    except (ValueError, yaml.YAMLError) as e:
        # pydantic ValidationError is a ValueError
        raise ConfigurationError(reason=str(e)) from e
    return config


@log_performance
def run_study(
    config: Optional[HypotestSimConfig] = None,
    config_file: Optional[Union[str, Path]] = None,
    catalog: Optional[ParameterCatalog] = None,
    **overrides,
) -> StudyResults:
    """
    Run a complete replication study.

    Args:
        config: Configuration object (the global configuration when omitted)
        config_file: YAML configuration file, alternative to ``config``
        catalog: Parameter catalog overriding the configured one
        **overrides: Dotted configuration keys, e.g. ``simulation.seed=7``

    The logging section of the resolved configuration becomes the global
    logging configuration for the run.

    Returns:
        StudyResults with the unified table, rejection rates and agreement
        rates

    Raises:
        ConfigurationError: If the configuration file is missing or any
            configuration value is invalid

    Examples:
        >>> study = run_study(**{"simulation.n_replications": 200,
        ...                      "simulation.sample_sizes": [20, 40]})
        >>> study.rejection_rates.head()
    """
    config = _resolve_config(config, config_file, overrides)
    apply_logging_config(config.logging)
    simulation = config.simulation

    driver = build_driver(config, catalog)
    results = driver.run(simulation.n_replications, simulation.sample_sizes, simulation.seed)

    rates = rejection_rates(results, alpha=simulation.alpha)
    agreement = agreement_rates(results, alpha=simulation.alpha)

    logger.info(
        "Study complete",
        records=results.n_records,
        degenerate=results.n_degenerate,
        from_cache=results.from_cache,
    )
    return StudyResults(
        results=results,
        rejection_rates=rates,
        agreement_rates=agreement,
        config=config,
    )
