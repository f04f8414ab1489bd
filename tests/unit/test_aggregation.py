"""
Tests for rejection-rate and agreement-rate aggregation.
"""

import math

import numpy as np
import pandas as pd
import pytest

from hypotest_sim.core.exceptions import AggregationError
from hypotest_sim.inference.aggregation import (
    TEST_SUBSETS,
    agreement_rates,
    agreement_table,
    rejection_rate,
    rejection_rates,
    sort_canonical,
)


@pytest.mark.unit
class TestRejectionRates:
    """Test rejection-rate computation."""

    def test_exact_fraction(self, test_utils):
        table = test_utils.result_table([
            (1, 25, "normal", "control_vs_none", "t_test", 0.01),
            (2, 25, "normal", "control_vs_none", "t_test", 0.05),
            (3, 25, "normal", "control_vs_none", "t_test", 0.051),
            (4, 25, "normal", "control_vs_none", "t_test", 0.80),
        ])
        rates = rejection_rates(table, alpha=0.05)

        assert len(rates) == 1
        row = rates.iloc[0]
        assert row["rejection_rate"] == 0.5
        assert row["n_replications"] == 4
        assert row["n_rejections"] == 2
        assert row["n_missing"] == 0
        assert row["mcse"] == pytest.approx(math.sqrt(0.25 / 4))

    def test_alpha_is_a_parameter(self, test_utils):
        table = test_utils.result_table([
            (r, 25, "normal", "control_vs_none", "t_test", p)
            for r, p in enumerate([0.005, 0.02, 0.07, 0.5], start=1)
        ])
        assert rejection_rates(table, alpha=0.01)["rejection_rate"].iloc[0] == 0.25
        assert rejection_rates(table, alpha=0.10)["rejection_rate"].iloc[0] == 0.75

    def test_columns_and_keys(self, test_utils):
        table = test_utils.decisions_table([(0.01, 0.02, 0.20)] * 3)
        rates = rejection_rates(table)

        assert list(rates.columns) == [
            "scenario", "statistical_test", "sample_size", "comparison",
            "rejection_rate", "n_replications", "n_rejections", "n_missing", "mcse",
        ]
        assert list(rates["statistical_test"]) == ["t_test", "rank_sum", "ks"]
        assert list(rates["rejection_rate"]) == [1.0, 1.0, 0.0]

    def test_missing_values_excluded_from_denominator(self, test_utils):
        table = test_utils.result_table([
            (1, 25, "gamma", "control_vs_small", "ks", 0.01),
            (2, 25, "gamma", "control_vs_small", "ks", None),
            (3, 25, "gamma", "control_vs_small", "ks", 0.30),
        ])
        row = rejection_rates(table).iloc[0]

        assert row["rejection_rate"] == 0.5
        assert row["n_replications"] == 2
        assert row["n_missing"] == 1

    def test_all_missing_reported_as_nan(self, test_utils):
        table = test_utils.result_table([
            (1, 1, "beta", "control_vs_large", "rank_sum", None),
            (2, 1, "beta", "control_vs_large", "rank_sum", None),
        ])
        row = rejection_rates(table).iloc[0]

        assert math.isnan(row["rejection_rate"])
        assert row["rejection_rate"] != 0
        assert row["n_replications"] == 0
        assert row["n_missing"] == 2

    def test_require_complete_raises(self, test_utils):
        table = test_utils.result_table([
            (1, 1, "beta", "control_vs_large", "rank_sum", None),
            (1, 1, "beta", "control_vs_large", "ks", 0.3),
        ])
        with pytest.raises(AggregationError) as exc_info:
            rejection_rates(table, require_complete=True)
        assert exc_info.value.missing_keys == [("beta", "rank_sum", 1, "control_vs_large")]
        assert exc_info.value.error_code == "AGGREGATION"

    def test_rates_in_unit_interval(self, test_utils):
        rng = np.random.default_rng(3)
        table = test_utils.decisions_table(rng.uniform(size=(200, 3)).tolist())
        rates = rejection_rates(table)
        assert rates["rejection_rate"].between(0, 1).all()

    def test_canonical_order(self, test_utils):
        rows = []
        for scenario in ("beta", "normal"):
            for n in (100, 25):
                for comparison in ("control_vs_large", "control_vs_none"):
                    rows.append((1, n, scenario, comparison, "ks", 0.5))
        rates = rejection_rates(test_utils.result_table(rows))

        assert list(rates["scenario"].unique()) == ["normal", "beta"]
        first = rates[rates["scenario"] == "normal"]
        assert list(first["sample_size"]) == [25, 25, 100, 100]
        assert list(first["comparison"])[:2] == ["control_vs_none", "control_vs_large"]

    @pytest.mark.parametrize("alpha", [0, 1, -0.1, 1.5, float("nan")])
    def test_invalid_alpha(self, test_utils, alpha):
        table = test_utils.decisions_table([(0.1, 0.2, 0.3)])
        with pytest.raises(ValueError, match="alpha"):
            rejection_rates(table, alpha=alpha)

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="missing columns"):
            rejection_rates(pd.DataFrame({"p_value": [0.1]}))

    def test_input_not_modified(self, test_utils):
        table = test_utils.decisions_table([(0.01, 0.2, None)])
        before = table.copy()
        rejection_rates(table)
        agreement_rates(table)
        pd.testing.assert_frame_equal(table, before)

    def test_single_key_lookup(self, test_utils):
        table = test_utils.decisions_table([(0.01, 0.2, 0.3), (0.2, 0.2, 0.3)])
        assert rejection_rate(table, "normal", "t_test", 25, "control_vs_large") == 0.5
        with pytest.raises(AggregationError):
            rejection_rate(table, "poisson", "t_test", 25, "control_vs_large")


@pytest.mark.unit
class TestAgreementRates:
    """Test agreement between test decisions."""

    def test_subsets(self, test_utils):
        # alpha = 0.05; decisions (t, r, k)
        table = test_utils.decisions_table([
            (0.01, 0.01, 0.01),  # R R R
            (0.50, 0.50, 0.50),  # A A A
            (0.01, 0.01, 0.50),  # R R A
            (0.01, 0.50, 0.50),  # R A A
        ])
        rates = agreement_rates(table).set_index("test_subset")["agreement_rate"]

        assert rates["all"] == 0.5
        assert rates["t_test+rank_sum"] == 0.75
        assert rates["t_test+ks"] == 0.5
        assert rates["rank_sum+ks"] == 0.75

    def test_long_layout(self, test_utils):
        rates = agreement_rates(test_utils.decisions_table([(0.01, 0.01, 0.01)]))

        assert list(rates.columns) == [
            "scenario", "sample_size", "comparison", "test_subset", "agreement_rate", "n_replications",
        ]
        assert list(rates["test_subset"]) == list(TEST_SUBSETS)
        assert (rates["agreement_rate"] == 1.0).all()

    def test_incomplete_replications_excluded(self, test_utils):
        table = test_utils.decisions_table([
            (0.01, 0.01, 0.01),
            (0.01, None, 0.50),
            (0.50, 0.01, 0.50),
        ])
        rates = agreement_rates(table).set_index("test_subset")

        assert (rates["n_replications"] == 2).all()
        assert rates.loc["all", "agreement_rate"] == 0.5
        assert rates.loc["t_test+ks", "agreement_rate"] == 1.0

    def test_all_incomplete_reported_as_nan(self, test_utils):
        table = test_utils.decisions_table([(None, 0.01, 0.01), (0.2, None, None)])
        rates = agreement_rates(table)

        assert rates["agreement_rate"].isna().all()
        with pytest.raises(AggregationError):
            agreement_rates(table, require_complete=True)

    def test_all_never_exceeds_any_pair(self, test_utils):
        rng = np.random.default_rng(11)
        p_values = rng.uniform(0, 0.1, size=(300, 3))
        p_values[rng.uniform(size=p_values.shape) < 0.05] = np.nan
        triples = [[None if np.isnan(p) else p for p in row] for row in p_values]
        table = test_utils.decisions_table(triples)

        wide = agreement_table(table)
        for pair in ("t_test+rank_sum", "t_test+ks", "rank_sum+ks"):
            assert (wide["all"] <= wide[pair]).all()

    def test_agreement_table_layout(self, test_utils):
        wide = agreement_table(test_utils.decisions_table([(0.01, 0.5, 0.01)]))

        assert list(wide.columns) == [
            "scenario", "sample_size", "comparison",
            "all", "t_test+rank_sum", "t_test+ks", "rank_sum+ks", "n_replications",
        ]
        row = wide.iloc[0]
        assert row["all"] == 0.0
        assert row["t_test+ks"] == 1.0

    def test_keys_are_separate(self, test_utils):
        table = pd.concat([
            test_utils.decisions_table([(0.01, 0.01, 0.01)], comparison="control_vs_none"),
            test_utils.decisions_table([(0.01, 0.50, 0.50)], comparison="control_vs_small"),
        ], ignore_index=True)
        wide = agreement_table(table)

        assert list(wide["comparison"]) == ["control_vs_none", "control_vs_small"]
        assert list(wide["all"]) == [1.0, 0.0]

    def test_missing_test_column(self, test_utils):
        table = test_utils.decisions_table([(0.01, 0.01, 0.01)])
        with pytest.raises(ValueError, match="all three tests"):
            agreement_rates(table[table["statistical_test"] != "ks"])


@pytest.mark.unit
def test_sort_canonical_uses_declared_order():
    frame = pd.DataFrame({
        "scenario": ["gamma", "normal", "beta", "poisson"],
        "statistical_test": ["ks", "t_test", "rank_sum", "ks"],
    })
    ordered = sort_canonical(frame, ["scenario"])
    assert list(ordered["scenario"]) == ["normal", "poisson", "gamma", "beta"]
