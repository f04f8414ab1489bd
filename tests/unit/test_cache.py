"""
Tests for the persistent result cache.
"""

import json

import pandas as pd
import pytest

from hypotest_sim.core.exceptions import CacheMismatchError
from hypotest_sim.simulation.cache import ResultCache


PARAMETERS = {
    "schema_version": 1,
    "n_replications": 2,
    "sample_sizes": [5],
    "seed": 11,
    "catalog": {"normal": {"control": {"mean": 20.0, "sd": 2.0}}},
    "runner": {"equal_var": False, "rank_sum_method": "auto", "ks_method": "auto"},
}


@pytest.fixture
def table(test_utils):
    frame = test_utils.result_table([
        (1, 5, "normal", "control_vs_none", "t_test", 0.1 + 0.2),
        (1, 5, "normal", "control_vs_none", "rank_sum", None),
        (2, 5, "normal", "control_vs_none", "t_test", 1.0 / 3.0),
        (2, 5, "normal", "control_vs_none", "rank_sum", 2.0 ** -40),
    ])
    frame["statistic"] = [-1.2345678901234567, float("nan"), 3.141592653589793, 1e-300]
    return frame


@pytest.mark.unit
class TestResultCache:

    def test_empty_cache(self, cache_dir):
        assert ResultCache(cache_dir).load(PARAMETERS) is None

    def test_lossless_round_trip(self, cache_dir, table):
        cache = ResultCache(cache_dir)
        failures = [{"replication": 1, "reason": "fewer than 2 observations"}]
        cache.store(PARAMETERS, table, failures)

        loaded, loaded_failures = cache.load(PARAMETERS)
        pd.testing.assert_frame_equal(loaded, table, check_exact=True)
        assert loaded_failures == failures

    def test_key_depends_on_every_parameter(self):
        base = ResultCache.cache_key(PARAMETERS)
        for key, value in [("seed", 12), ("n_replications", 3), ("sample_sizes", [5, 10])]:
            assert ResultCache.cache_key({**PARAMETERS, key: value}) != base
        assert ResultCache.cache_key(dict(reversed(list(PARAMETERS.items())))) == base

    def test_other_parameters_not_served(self, cache_dir, table):
        cache = ResultCache(cache_dir)
        cache.store(PARAMETERS, table)
        assert cache.load({**PARAMETERS, "seed": 12}) is None

    def test_tampered_manifest_raises(self, cache_dir, table):
        cache = ResultCache(cache_dir)
        cache.store(PARAMETERS, table)
        _, manifest_path = cache.paths_for(PARAMETERS)

        manifest = json.loads(manifest_path.read_text())
        manifest["parameters"]["seed"] = 999
        manifest_path.write_text(json.dumps(manifest))

        with pytest.raises(CacheMismatchError) as exc_info:
            cache.load(PARAMETERS)
        assert exc_info.value.mismatched_fields == ["seed"]

    def test_truncated_table_raises(self, cache_dir, table):
        cache = ResultCache(cache_dir)
        cache.store(PARAMETERS, table)
        table_path, _ = cache.paths_for(PARAMETERS)
        lines = table_path.read_text().splitlines()
        table_path.write_text("\n".join(lines[:-1]) + "\n")

        with pytest.raises(CacheMismatchError, match="n_rows"):
            cache.load(PARAMETERS)

    def test_missing_table_raises(self, cache_dir, table):
        cache = ResultCache(cache_dir)
        cache.store(PARAMETERS, table)
        table_path, _ = cache.paths_for(PARAMETERS)
        table_path.unlink()

        with pytest.raises(CacheMismatchError):
            cache.load(PARAMETERS)

    def test_manifest_contents(self, cache_dir, table):
        cache = ResultCache(cache_dir)
        cache.store(PARAMETERS, table)
        _, manifest_path = cache.paths_for(PARAMETERS)
        manifest = json.loads(manifest_path.read_text())

        assert manifest["cache_key"] == ResultCache.cache_key(PARAMETERS)
        assert manifest["n_rows"] == 4
        assert manifest["parameters"] == PARAMETERS
        assert "package_version" in manifest

    def test_invalidate_and_clear(self, cache_dir, table):
        cache = ResultCache(cache_dir)
        cache.store(PARAMETERS, table)
        cache.invalidate(PARAMETERS)
        assert cache.load(PARAMETERS) is None

        cache.store(PARAMETERS, table)
        cache.store({**PARAMETERS, "seed": 12}, table)
        assert cache.clear() == 4
        assert list(cache_dir.iterdir()) == []

    def test_clear_missing_directory(self, tmp_path):
        assert ResultCache(tmp_path / "never_created").clear() == 0
