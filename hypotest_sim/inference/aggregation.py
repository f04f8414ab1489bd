"""
Aggregation of replicated test outcomes.

Turns the unified result table (one row per replication, sample size,
scenario, comparison and test) into

    - rejection rates per (scenario, test, sample size, comparison), and
    - agreement rates between the tests' reject / fail-to-reject decisions
      per (scenario, sample size, comparison).

Rows with a missing p-value (degenerate cells) never count as a rejection
or a non-rejection; keys without any valid row are reported as NaN.
"""

from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from ..core.exceptions import AggregationError
from ..data.catalog import SCENARIOS
from ..utils.logging import get_logger
from ..utils.validation import validate_alpha
from .pairwise import COMPARISONS, STATISTICAL_TESTS, StatisticalTest

logger = get_logger(__name__)

RESULT_COLUMNS = [
    "replication",
    "sample_size",
    "scenario",
    "comparison",
    "statistical_test",
    "statistic",
    "p_value",
    "method",
]

REJECTION_KEYS = ["scenario", "statistical_test", "sample_size", "comparison"]
AGREEMENT_KEYS = ["scenario", "sample_size", "comparison"]

TEST_SUBSETS: Dict[str, Tuple[StatisticalTest, ...]] = {
    "all": STATISTICAL_TESTS,
    "t_test+rank_sum": (StatisticalTest.T_TEST, StatisticalTest.RANK_SUM),
    "t_test+ks": (StatisticalTest.T_TEST, StatisticalTest.KS),
    "rank_sum+ks": (StatisticalTest.RANK_SUM, StatisticalTest.KS),
}

_CANONICAL_ORDER = {
    "scenario": [s.value for s in SCENARIOS],
    "statistical_test": [t.value for t in STATISTICAL_TESTS],
    "comparison": [c.value for c in COMPARISONS],
    "test_subset": list(TEST_SUBSETS),
}


def _result_table(results) -> pd.DataFrame:
    table = getattr(results, "table", results)
    if not isinstance(table, pd.DataFrame):
        raise TypeError(f"expected ReplicationResults or DataFrame, got {type(results).__name__}")
    missing = [c for c in RESULT_COLUMNS if c not in table.columns]
    if missing:
        raise ValueError(f"result table is missing columns {missing}")
    return table


def sort_canonical(frame: pd.DataFrame, by: List[str]) -> pd.DataFrame:
    """Sort by the given columns, ordering enum-like columns by their declared order."""

    def _key(column: pd.Series) -> pd.Series:
        order = _CANONICAL_ORDER.get(column.name)
        if order is None:
            return column
        return column.map({value: i for i, value in enumerate(order)})

    return frame.sort_values(by=by, key=_key, kind="mergesort").reset_index(drop=True)


def _report_missing(table_name: str, frame: pd.DataFrame, keys: List[str], require_complete: bool) -> None:
    if frame.empty:
        return
    missing_keys = [tuple(row) for row in frame[keys].itertuples(index=False)]
    if require_complete:
        raise AggregationError(table_name, missing_keys)
    logger.warning(
        f"{len(missing_keys)} {table_name} keys have no contributing records; reported as NaN",
        first=missing_keys[0],
    )


def rejection_rates(
    results,
    alpha: float = 0.05,
    require_complete: bool = False,
) -> pd.DataFrame:
    """
    Fraction of replications with ``p_value <= alpha`` per key.

    Args:
        results: ReplicationResults or unified result DataFrame
        alpha: Significance threshold in (0, 1)
        require_complete: Raise AggregationError instead of reporting NaN
            for keys without valid records

    Returns:
        DataFrame with columns scenario, statistical_test, sample_size,
        comparison, rejection_rate, n_replications, n_rejections,
        n_missing, mcse
    """
    alpha = validate_alpha(alpha)
    table = _result_table(results)

    frame = table[REJECTION_KEYS].copy()
    valid = table["p_value"].notna()
    frame["valid"] = valid
    frame["rejected"] = valid & (table["p_value"] <= alpha)

    summary = (
        frame.groupby(REJECTION_KEYS, sort=False)
        .agg(
            n_replications=("valid", "sum"),
            n_rejections=("rejected", "sum"),
            n_rows=("valid", "size"),
        )
        .reset_index()
    )
    summary["n_missing"] = summary["n_rows"] - summary["n_replications"]

    n = summary["n_replications"].where(summary["n_replications"] > 0)
    rate = summary["n_rejections"] / n
    summary["rejection_rate"] = rate
    summary["mcse"] = np.sqrt(rate * (1.0 - rate) / n)

    _report_missing("rejection-rate", summary[summary["n_replications"] == 0], REJECTION_KEYS, require_complete)

    columns = REJECTION_KEYS + ["rejection_rate", "n_replications", "n_rejections", "n_missing", "mcse"]
    return sort_canonical(summary[columns], REJECTION_KEYS)


def _decision_frame(table: pd.DataFrame, alpha: float) -> Tuple[pd.DataFrame, pd.Series]:
    """Wide reject decisions, one row per (replication, key), plus a completeness mask."""
    wide = table.pivot(
        index=["replication"] + AGREEMENT_KEYS,
        columns="statistical_test",
        values="p_value",
    )
    test_columns = [t.value for t in STATISTICAL_TESTS]
    absent = [c for c in test_columns if c not in wide.columns]
    if absent:
        raise ValueError(f"agreement rates need all three tests; missing {absent}")
    wide = wide[test_columns]
    complete = wide.notna().all(axis=1)
    return wide <= alpha, complete


def agreement_rates(
    results,
    alpha: float = 0.05,
    require_complete: bool = False,
) -> pd.DataFrame:
    """
    Fraction of replications in which a subset of tests reach the same decision.

    Every subset of a key is evaluated on the same replications, namely
    those where all three tests produced a p-value, so the agreement of all
    three tests never exceeds the agreement of any pair.

    Returns:
        Long DataFrame with columns scenario, sample_size, comparison,
        test_subset, agreement_rate, n_replications
    """
    alpha = validate_alpha(alpha)
    table = _result_table(results)
    decisions, complete = _decision_frame(table, alpha)

    frame = decisions.index.to_frame(index=False)[AGREEMENT_KEYS]
    frame["n_replications"] = complete.to_numpy()
    for label, tests in TEST_SUBSETS.items():
        cols = decisions[[t.value for t in tests]]
        unanimous = cols.all(axis=1) | (~cols).all(axis=1)
        frame[label] = (unanimous & complete).to_numpy()

    summary = frame.groupby(AGREEMENT_KEYS, sort=False).sum().reset_index()
    n = summary["n_replications"].where(summary["n_replications"] > 0)
    for label in TEST_SUBSETS:
        summary[label] = summary[label] / n

    _report_missing("agreement-rate", summary[summary["n_replications"] == 0], AGREEMENT_KEYS, require_complete)

    long = summary.melt(
        id_vars=AGREEMENT_KEYS + ["n_replications"],
        value_vars=list(TEST_SUBSETS),
        var_name="test_subset",
        value_name="agreement_rate",
    )
    long = long[AGREEMENT_KEYS + ["test_subset", "agreement_rate", "n_replications"]]
    return sort_canonical(long, AGREEMENT_KEYS + ["test_subset"])


def agreement_table(
    results,
    alpha: float = 0.05,
    require_complete: bool = False,
) -> pd.DataFrame:
    """Agreement rates with one column per test subset."""
    long = agreement_rates(results, alpha=alpha, require_complete=require_complete)
    wide = long.pivot(
        index=AGREEMENT_KEYS + ["n_replications"],
        columns="test_subset",
        values="agreement_rate",
    ).reset_index()
    wide.columns.name = None
    wide = wide[AGREEMENT_KEYS + list(TEST_SUBSETS) + ["n_replications"]]
    return sort_canonical(wide, AGREEMENT_KEYS)


def rejection_rate(results, scenario: str, statistical_test: str, sample_size: int, comparison: str,
                   alpha: float = 0.05) -> float:
    """Rejection rate of a single key; raises AggregationError if it has no valid records."""
    rates = rejection_rates(results, alpha=alpha)
    key = (
        (rates["scenario"] == str(getattr(scenario, "value", scenario)))
        & (rates["statistical_test"] == str(getattr(statistical_test, "value", statistical_test)))
        & (rates["sample_size"] == int(sample_size))
        & (rates["comparison"] == str(getattr(comparison, "value", comparison)))
    )
    row = rates[key]
    if row.empty or row["n_replications"].iloc[0] == 0:
        raise AggregationError("rejection-rate", [(scenario, statistical_test, sample_size, comparison)])
    return float(row["rejection_rate"].iloc[0])
