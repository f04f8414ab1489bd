"""
Replication driver for hypotest-sim.

Repeats {simulate, analyze} for many independent replications at several
sample sizes and collects every test outcome into one unified result table.

Work is split into chunks of consecutive replication ids for one sample
size. Each chunk owns its own accumulator and draws every replication from
the stream ``replication_rng(seed, sample_size, replication)``, so the
assembled table does not depend on the number of workers or the order in
which chunks finish.
"""

import math
import numbers
import threading
import time
from collections import Counter
from concurrent.futures import ProcessPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..core.exceptions import CacheMismatchError, ConfigurationError, RunCancelledError
from ..data.catalog import ParameterCatalog
from ..data.simulator import replication_rng, simulate
from ..inference.aggregation import RESULT_COLUMNS, sort_canonical
from ..inference.pairwise import COMPARISONS, STATISTICAL_TESTS, PairwiseTestRunner
from ..utils.logging import get_logger
from ..utils.validation import validate_positive_int, validate_sample_sizes
from .cache import SCHEMA_VERSION, ResultCache

logger = get_logger(__name__)

FAILURE_COLUMNS = [
    "replication",
    "sample_size",
    "scenario",
    "comparison",
    "statistical_test",
    "reason",
]


@dataclass(frozen=True)
class ReplicationChunk:
    """Replications ``start`` .. ``stop - 1`` of one sample size."""
    sample_size: int
    start: int
    stop: int

    @property
    def replications(self) -> range:
        return range(self.start, self.stop)

    def __len__(self) -> int:
        return self.stop - self.start


@dataclass
class ChunkResult:
    """Rows and failures accumulated by one chunk."""
    chunk: ReplicationChunk
    rows: List[Tuple] = field(default_factory=list)
    failures: List[Tuple] = field(default_factory=list)
    elapsed_seconds: float = 0.0


@dataclass
class ReplicationResults:
    """Unified result set of a replication run."""
    table: pd.DataFrame
    failures: pd.DataFrame
    parameters: Dict[str, Any]
    elapsed_seconds: float = 0.0
    from_cache: bool = False

    @property
    def n_degenerate(self) -> int:
        """Number of (replication, sample size, scenario, comparison, test) cells without a result."""
        return int(len(self.failures))

    @property
    def n_records(self) -> int:
        return int(len(self.table))

    def summary(self) -> Dict[str, Any]:
        return {
            "n_replications": self.parameters.get("n_replications"),
            "sample_sizes": self.parameters.get("sample_sizes"),
            "seed": self.parameters.get("seed"),
            "n_records": self.n_records,
            "n_degenerate": self.n_degenerate,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
            "from_cache": self.from_cache,
        }


def _run_replication_chunk(args) -> ChunkResult:
    """
    Worker function for one chunk of replications.
    Top-level so it can be pickled into worker processes.
    """
    catalog, runner_settings, seed, chunk = args
    runner = PairwiseTestRunner(**runner_settings)
    result = ChunkResult(chunk=chunk)
    start_time = time.time()

    for replication in chunk.replications:
        dataset = simulate(chunk.sample_size, catalog, replication_rng(seed, chunk.sample_size, replication))
        outcome = runner.analyze(dataset)
        for r in outcome.results:
            result.rows.append((
                replication, chunk.sample_size, r.scenario.value, r.comparison.value,
                r.statistical_test.value, r.statistic, r.p_value, r.method,
            ))
        for f in outcome.failures:
            result.rows.append((
                replication, chunk.sample_size, f.scenario.value, f.comparison.value,
                f.statistical_test.value, math.nan, math.nan, f.method,
            ))
            result.failures.append((
                replication, chunk.sample_size, f.scenario.value, f.comparison.value,
                f.statistical_test.value, f.reason,
            ))

    result.elapsed_seconds = time.time() - start_time
    return result


class ReplicationDriver:
    """
    Runs the replication study and assembles the unified result table.

    Args:
        catalog: Validated parameter catalog
        runner: Test runner (Welch t-test defaults when omitted)
        max_workers: Worker processes; 1 runs everything in-process
        chunk_size: Replications per work unit; derived from the worker
            count when omitted
        cache: Optional result cache consulted before and filled after a run
    """

    def __init__(
        self,
        catalog: ParameterCatalog,
        runner: Optional[PairwiseTestRunner] = None,
        max_workers: Optional[int] = 1,
        chunk_size: Optional[int] = None,
        cache: Optional[ResultCache] = None,
    ):
        if not isinstance(catalog, ParameterCatalog):
            raise ConfigurationError("catalog", f"expected ParameterCatalog, got {type(catalog).__name__}")
        self.catalog = catalog
        self.runner = runner or PairwiseTestRunner()
        self.max_workers = validate_positive_int(max_workers, "max_workers") if max_workers else 1
        self.chunk_size = validate_positive_int(chunk_size, "chunk_size") if chunk_size else None
        self.cache = cache
        self._cancel_event = threading.Event()

    def cancel(self) -> None:
        """Stop dispatching chunks; the running ``run`` call raises RunCancelledError."""
        self._cancel_event.set()

    def run_parameters(self, n_replications: int, sample_sizes: Sequence[int], seed: int) -> Dict[str, Any]:
        """Everything that determines the result table; used as the cache key."""
        return {
            "schema_version": SCHEMA_VERSION,
            "n_replications": int(n_replications),
            "sample_sizes": [int(n) for n in sample_sizes],
            "seed": int(seed),
            "catalog": self.catalog.to_dict(),
            "runner": self.runner.settings(),
        }

    def plan_chunks(self, n_replications: int, sample_sizes: Sequence[int]) -> List[ReplicationChunk]:
        chunk_size = self.chunk_size or max(1, math.ceil(n_replications / (self.max_workers * 4)))
        return [
            ReplicationChunk(sample_size=n, start=start, stop=min(start + chunk_size, n_replications + 1))
            for n in sample_sizes
            for start in range(1, n_replications + 1, chunk_size)
        ]

    def run(self, n_replications: int, sample_sizes: Sequence[int], seed: int) -> ReplicationResults:
        """
        Simulate and analyze ``n_replications`` datasets for every sample size.

        Args:
            n_replications: Replications per sample size (ids 1..n)
            sample_sizes: Ordered, unique, positive per-group sample sizes
            seed: Non-negative top-level seed

        Returns:
            ReplicationResults with the unified table and degenerate cells

        Raises:
            ConfigurationError: On invalid run arguments
            RunCancelledError: If ``cancel`` was called during the run
        """
        n_replications = validate_positive_int(n_replications, "n_replications")
        sample_sizes = validate_sample_sizes(sample_sizes)
        if isinstance(seed, bool) or not isinstance(seed, numbers.Integral) or seed < 0:
            raise ConfigurationError("seed", f"expected a non-negative integer, got {seed!r}")

        self._cancel_event.clear()
        parameters = self.run_parameters(n_replications, sample_sizes, seed)

        if self.cache is not None:
            try:
                cached = self.cache.load(parameters)
            except CacheMismatchError as e:
                logger.warning(f"Ignoring cache entry: {e}")
                cached = None
            if cached is not None:
                table, failure_records = cached
                return ReplicationResults(
                    table=table,
                    failures=pd.DataFrame(failure_records, columns=FAILURE_COLUMNS),
                    parameters=parameters,
                    from_cache=True,
                )

        n_invocations = (
            n_replications * len(sample_sizes) * len(self.catalog)
            * len(COMPARISONS) * len(STATISTICAL_TESTS)
        )
        logger.info(
            "Starting replication run",
            replications=n_replications,
            sample_sizes=sample_sizes,
            scenarios=len(self.catalog),
            test_invocations=n_invocations,
            workers=self.max_workers,
        )

        start_time = time.time()
        chunks = self.plan_chunks(n_replications, sample_sizes)
        chunk_results = self._execute(chunks, seed)
        table, failures = self._assemble(chunk_results, sample_sizes)
        elapsed = time.time() - start_time

        if len(failures):
            logger.warning(f"{len(failures)} degenerate cells recorded as missing")
        logger.info("Replication run finished", records=len(table), duration_seconds=round(elapsed, 2))

        if self.cache is not None:
            self.cache.store(parameters, table, failures.to_dict(orient="records"))

        return ReplicationResults(
            table=table,
            failures=failures,
            parameters=parameters,
            elapsed_seconds=elapsed,
        )

    def _execute(self, chunks: List[ReplicationChunk], seed: int) -> List[ChunkResult]:
        settings = self.runner.settings()
        tasks = [(self.catalog, settings, seed, chunk) for chunk in chunks]
        results: List[ChunkResult] = []
        remaining = Counter(chunk.sample_size for chunk in chunks)

        if self.max_workers == 1 or len(tasks) == 1:
            for i, task in enumerate(tasks):
                if self._cancel_event.is_set():
                    raise RunCancelledError(completed_chunks=i, total_chunks=len(tasks))
                results.append(self._log_chunk(_run_replication_chunk(task), len(results) + 1, len(tasks), remaining))
            return results

        with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(_run_replication_chunk, task) for task in tasks]
            for future in as_completed(futures):
                if self._cancel_event.is_set():
                    for pending in futures:
                        pending.cancel()
                    raise RunCancelledError(completed_chunks=len(results), total_chunks=len(tasks))
                results.append(self._log_chunk(future.result(), len(results) + 1, len(tasks), remaining))
        return results

    @staticmethod
    def _log_chunk(result: ChunkResult, done: int, total: int, remaining: Counter) -> ChunkResult:
        logger.debug(
            f"Chunk {done}/{total} finished",
            sample_size=result.chunk.sample_size,
            replications=f"{result.chunk.start}-{result.chunk.stop - 1}",
            degenerate=len(result.failures),
            duration_seconds=round(result.elapsed_seconds, 3),
        )
        remaining[result.chunk.sample_size] -= 1
        if remaining[result.chunk.sample_size] == 0:
            logger.info(f"Sample size {result.chunk.sample_size} complete", chunks_done=done, chunks_total=total)
        return result

    @staticmethod
    def _assemble(
        chunk_results: List[ChunkResult],
        sample_sizes: Sequence[int],
    ) -> Tuple[pd.DataFrame, pd.DataFrame]:
        """Concatenate per-chunk accumulators into canonically ordered tables."""
        rows = [row for result in chunk_results for row in result.rows]
        failure_rows = [row for result in chunk_results for row in result.failures]

        size_order = {n: i for i, n in enumerate(sample_sizes)}
        table = pd.DataFrame(rows, columns=RESULT_COLUMNS)
        table = table.astype({
            "replication": "int64",
            "sample_size": "int64",
            "statistic": "float64",
            "p_value": "float64",
        })
        table["_size_order"] = table["sample_size"].map(size_order)
        table = sort_canonical(
            table,
            ["_size_order", "replication", "scenario", "comparison", "statistical_test"],
        ).drop(columns="_size_order")

        failures = pd.DataFrame(failure_rows, columns=FAILURE_COLUMNS)
        if len(failures):
            failures["_size_order"] = failures["sample_size"].map(size_order)
            failures = sort_canonical(
                failures,
                ["_size_order", "replication", "scenario", "comparison", "statistical_test"],
            ).drop(columns="_size_order")
        return table, failures


def run_replications(
    catalog: ParameterCatalog,
    n_replications: int,
    sample_sizes: Sequence[int],
    seed: int,
    **driver_kwargs,
) -> ReplicationResults:
    """Convenience wrapper around ``ReplicationDriver(...).run(...)``."""
    return ReplicationDriver(catalog, **driver_kwargs).run(n_replications, sample_sizes, seed)
