"""Significance testing and aggregation for hypotest-sim."""

from .pairwise import (
    StatisticalTest,
    Comparison,
    STATISTICAL_TESTS,
    COMPARISONS,
    TestResult,
    CellFailure,
    AnalysisOutcome,
    PairwiseTestRunner,
    analyze,
)
from .aggregation import (
    RESULT_COLUMNS,
    TEST_SUBSETS,
    rejection_rates,
    rejection_rate,
    agreement_rates,
    agreement_table,
)

__all__ = [
    "StatisticalTest",
    "Comparison",
    "STATISTICAL_TESTS",
    "COMPARISONS",
    "TestResult",
    "CellFailure",
    "AnalysisOutcome",
    "PairwiseTestRunner",
    "analyze",
    "RESULT_COLUMNS",
    "TEST_SUBSETS",
    "rejection_rates",
    "rejection_rate",
    "agreement_rates",
    "agreement_table",
]
