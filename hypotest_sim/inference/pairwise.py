"""
Pairwise significance testing for simulated datasets.

For each scenario in a dataset the control group is compared against every
other group with three two-sided, two-sample tests:

    - t-test (Welch's unequal-variance form unless ``equal_var=True``)
    - Wilcoxon-Mann-Whitney rank-sum test (midranks for ties; exact or
      normal approximation chosen by SciPy's ``method="auto"`` rule)
    - Kolmogorov-Smirnov test

The test statistics themselves come from ``scipy.stats``. This module only
selects the samples, guards against degenerate input and normalizes every
outcome into a ``TestResult``.
"""

import logging
import math
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple, Union

import numpy as np
from scipy import stats

from ..core.exceptions import DegenerateSampleError
from ..data.catalog import Group, Scenario, TREATMENT_GROUPS
from ..data.simulator import SimulatedDataset
from ..utils.logging import get_logger

logger = get_logger(__name__)


class StatisticalTest(str, Enum):
    """Significance tests applied to every comparison."""
    T_TEST = "t_test"
    RANK_SUM = "rank_sum"
    KS = "ks"


class Comparison(str, Enum):
    """Control group against one other group."""
    CONTROL_VS_NONE = "control_vs_none"
    CONTROL_VS_SMALL = "control_vs_small"
    CONTROL_VS_MEDIUM = "control_vs_medium"
    CONTROL_VS_LARGE = "control_vs_large"

    @classmethod
    def for_group(cls, group: Union[str, Group]) -> "Comparison":
        return cls(f"{Group.CONTROL.value}_vs_{Group(group).value}")

    @property
    def group(self) -> Group:
        return Group(self.value.split("_vs_", 1)[1])


STATISTICAL_TESTS: Tuple[StatisticalTest, ...] = tuple(StatisticalTest)
COMPARISONS: Tuple[Comparison, ...] = tuple(Comparison.for_group(g) for g in TREATMENT_GROUPS)


@dataclass(frozen=True)
class TestResult:
    """Outcome of one test on one (scenario, comparison) cell."""
    __test__ = False  # not a pytest test class

    scenario: Scenario
    comparison: Comparison
    statistical_test: StatisticalTest
    statistic: float
    p_value: float
    method: str

    def to_dict(self):
        return {
            "scenario": self.scenario.value,
            "comparison": self.comparison.value,
            "statistical_test": self.statistical_test.value,
            "statistic": self.statistic,
            "p_value": self.p_value,
            "method": self.method,
        }


@dataclass(frozen=True)
class CellFailure:
    """A (scenario, comparison, test) cell that produced no valid result."""
    scenario: Scenario
    comparison: Comparison
    statistical_test: StatisticalTest
    method: str
    reason: str

    def to_error(self) -> DegenerateSampleError:
        return DegenerateSampleError(
            statistical_test=self.statistical_test.value,
            reason=self.reason,
            scenario=self.scenario.value,
            comparison=self.comparison.value,
        )


@dataclass
class AnalysisOutcome:
    """Results of all cells of one dataset plus the cells that failed."""
    results: List[TestResult] = field(default_factory=list)
    failures: List[CellFailure] = field(default_factory=list)

    @property
    def n_cells(self) -> int:
        return len(self.results) + len(self.failures)


class PairwiseTestRunner:
    """
    Runs the three significance tests on control-vs-group subsets.

    Args:
        equal_var: Pool variances in the t-test (Student) instead of
            Welch's unequal-variance form
        rank_sum_method: ``method`` passed to ``scipy.stats.mannwhitneyu``
        ks_method: ``method`` passed to ``scipy.stats.ks_2samp``
    """

    def __init__(self, equal_var: bool = False, rank_sum_method: str = "auto", ks_method: str = "auto"):
        self.equal_var = equal_var
        self.rank_sum_method = rank_sum_method
        self.ks_method = ks_method

    def settings(self) -> dict:
        return {
            "equal_var": self.equal_var,
            "rank_sum_method": self.rank_sum_method,
            "ks_method": self.ks_method,
        }

    def method_label(self, test: StatisticalTest, control: np.ndarray, other: np.ndarray) -> str:
        """Human readable method name, mirroring R's htest labels."""
        test = StatisticalTest(test)
        if test is StatisticalTest.T_TEST:
            return "Two Sample t-test" if self.equal_var else "Welch Two Sample t-test"

        if test is StatisticalTest.RANK_SUM:
            exact = self.rank_sum_method == "exact" or (
                self.rank_sum_method == "auto"
                and (min(control.size, other.size) <= 8)
                and np.unique(np.concatenate([control, other])).size == control.size + other.size
            )
            if exact:
                return "Wilcoxon rank sum exact test"
            return "Wilcoxon rank sum test with continuity correction"

        exact = self.ks_method == "exact" or (
            self.ks_method == "auto" and max(control.size, other.size) <= 10000
        )
        prefix = "Exact" if exact else "Asymptotic"
        return f"{prefix} two-sample Kolmogorov-Smirnov test"

    def run_test(
        self,
        test: Union[str, StatisticalTest],
        control: np.ndarray,
        other: np.ndarray,
    ) -> Tuple[float, float, str]:
        """
        Run one test on two samples.

        Returns:
            (statistic, p_value, method)

        Raises:
            DegenerateSampleError: If the test is undefined for the samples
        """
        test = StatisticalTest(test)
        control = np.asarray(control, dtype=float)
        other = np.asarray(other, dtype=float)
        method = self.method_label(test, control, other)

        if control.size < 2 or other.size < 2:
            raise DegenerateSampleError(
                statistical_test=test.value,
                reason=f"fewer than 2 observations (n={control.size}, {other.size})",
            )

        if test is StatisticalTest.T_TEST:
            if np.ptp(control) == 0 and np.ptp(other) == 0:
                raise DegenerateSampleError(
                    statistical_test=test.value,
                    reason="zero variance in both groups",
                )
        elif np.ptp(np.concatenate([control, other])) == 0:
            raise DegenerateSampleError(
                statistical_test=test.value,
                reason="all observations are identical",
            )

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            if test is StatisticalTest.T_TEST:
                res = stats.ttest_ind(control, other, equal_var=self.equal_var, alternative="two-sided")
            elif test is StatisticalTest.RANK_SUM:
                res = stats.mannwhitneyu(
                    control, other, alternative="two-sided", method=self.rank_sum_method
                )
            else:
                res = stats.ks_2samp(control, other, alternative="two-sided", method=self.ks_method)

        statistic = float(res.statistic)
        p_value = float(res.pvalue)
        if not (math.isfinite(statistic) and math.isfinite(p_value)):
            raise DegenerateSampleError(
                statistical_test=test.value,
                reason=f"non-finite result (statistic={statistic}, p_value={p_value})",
            )
        return statistic, min(max(p_value, 0.0), 1.0), method

    def analyze(self, dataset: SimulatedDataset) -> AnalysisOutcome:
        """
        Run every test on every comparison of every scenario in a dataset.

        Degenerate cells are collected as failures instead of aborting the
        analysis; use ``analyze_strict`` to raise on the first one.
        """
        outcome = AnalysisOutcome()
        cells = {(scenario, group): values for scenario, group, values in dataset.iter_cells()}
        for scenario in dataset.scenario_ids:
            control = cells[scenario, Group.CONTROL]
            for comparison in COMPARISONS:
                other = cells[scenario, comparison.group]
                for test in STATISTICAL_TESTS:
                    try:
                        statistic, p_value, method = self.run_test(test, control, other)
                    except DegenerateSampleError as e:
                        outcome.failures.append(CellFailure(
                            scenario=scenario,
                            comparison=comparison,
                            statistical_test=test,
                            method=self.method_label(test, control, other),
                            reason=e.reason,
                        ))
                        if logger.isEnabledFor(logging.DEBUG):
                            logger.debug(
                                "Degenerate cell",
                                scenario=scenario.value,
                                comparison=comparison.value,
                                test=test.value,
                                reason=e.reason,
                            )
                        continue
                    outcome.results.append(TestResult(
                        scenario=scenario,
                        comparison=comparison,
                        statistical_test=test,
                        statistic=statistic,
                        p_value=p_value,
                        method=method,
                    ))
        return outcome

    def analyze_strict(self, dataset: SimulatedDataset) -> List[TestResult]:
        """Like ``analyze`` but raises DegenerateSampleError for the first failed cell."""
        outcome = self.analyze(dataset)
        if outcome.failures:
            raise outcome.failures[0].to_error()
        return outcome.results


def analyze(dataset: SimulatedDataset, runner: PairwiseTestRunner = None) -> AnalysisOutcome:
    """Analyze a dataset with a default (Welch) test runner."""
    return (runner or PairwiseTestRunner()).analyze(dataset)
