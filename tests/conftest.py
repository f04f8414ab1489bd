"""
Shared pytest configuration and fixtures for hypotest-sim tests.

This module provides common test fixtures, utilities, and configuration
used across the test suite.
"""

import math

import numpy as np
import pandas as pd
import pytest

from hypotest_sim.config import settings
from hypotest_sim.config.settings import HypotestSimConfig
from hypotest_sim.data.catalog import ParameterCatalog, preset_catalog
from hypotest_sim.data.simulator import replication_rng, simulate
from hypotest_sim.inference.aggregation import RESULT_COLUMNS
from hypotest_sim.inference.pairwise import PairwiseTestRunner
from hypotest_sim.utils.logging import reset_loggers


NORMAL_ONLY = {
    "normal": {
        "control": {"mean": 20.0, "sd": 2.0},
        "none": {"mean": 20.0, "sd": 2.0},
        "small": {"mean": 21.0, "sd": 2.0},
        "medium": {"mean": 22.5, "sd": 2.0},
        "large": {"mean": 28.0, "sd": 2.0},
    },
}


@pytest.fixture(scope="session")
def default_catalog():
    """The catalog shipped as the 'default' preset (all four scenarios)."""
    return preset_catalog("default")


@pytest.fixture(scope="session")
def normal_catalog():
    """Single-scenario Normal catalog with control 20/2 and large 28/2."""
    return ParameterCatalog.from_dict(NORMAL_ONLY)


@pytest.fixture
def catalog_dict():
    """Plain nested dict of the default preset; safe to mutate."""
    return preset_catalog("default").to_dict()


@pytest.fixture
def rng():
    """Seeded random generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def small_dataset(default_catalog):
    """One replication at N=10 drawn from the default catalog."""
    return simulate(10, default_catalog, replication_rng(123, 10, 1))


@pytest.fixture
def runner():
    """Default (Welch) test runner."""
    return PairwiseTestRunner()


@pytest.fixture
def cache_dir(tmp_path):
    """Empty directory for result cache entries."""
    path = tmp_path / "cache"
    path.mkdir()
    return path


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Configuration unaffected by HYPOTEST_SIM_* variables of the host."""
    for name in [
        "HYPOTEST_SIM_LOG_LEVEL",
        "HYPOTEST_SIM_CACHE_DIR",
        "HYPOTEST_SIM_MAX_WORKERS",
        "HYPOTEST_SIM_SEED",
        "HYPOTEST_SIM_N_REPLICATIONS",
    ]:
        monkeypatch.delenv(name, raising=False)
    return HypotestSimConfig(cache={"cache_directory": str(tmp_path / "cache")})


@pytest.fixture
def default_config(isolated_config, monkeypatch):
    """
    Install ``isolated_config`` as the global configuration.

    Loggers are reset on both sides so that levels set during the test do
    not leak into later tests.
    """
    monkeypatch.setattr(settings, "_default_config", isolated_config)
    reset_loggers()
    yield isolated_config
    reset_loggers()


# Markers for different test types
def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test (fast)"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (medium speed)"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow (may take >10 seconds)"
    )
    config.addinivalue_line(
        "markers", "validation: mark test as a statistical validation test"
    )


# Test utilities
class TestUtils:
    """Utility functions for testing."""
    __test__ = False

    @staticmethod
    def result_table(rows):
        """
        Build a unified result table from (replication, sample_size, scenario,
        comparison, statistical_test, p_value) tuples.
        """
        records = [
            {
                "replication": rep,
                "sample_size": n,
                "scenario": scenario,
                "comparison": comparison,
                "statistical_test": test,
                "statistic": math.nan if p is None else 1.0,
                "p_value": math.nan if p is None else p,
                "method": "synthetic",
            }
            for rep, n, scenario, comparison, test, p in rows
        ]
        return pd.DataFrame(records, columns=RESULT_COLUMNS)

    @staticmethod
    def decisions_table(p_values, scenario="normal", comparison="control_vs_large", sample_size=25):
        """
        Unified table with one replication per entry of ``p_values``, each
        entry a (t_test, rank_sum, ks) triple of p-values.
        """
        rows = []
        for rep, triple in enumerate(p_values, start=1):
            for test, p in zip(("t_test", "rank_sum", "ks"), triple):
                rows.append((rep, sample_size, scenario, comparison, test, p))
        return TestUtils.result_table(rows)


@pytest.fixture
def test_utils():
    return TestUtils
