"""
Synthetic grouped data generation for hypotest-sim.

Draws ``sample_size`` observations for every (scenario, group) pair of a
parameter catalog. Randomness comes exclusively from an explicitly supplied
``numpy.random.Generator``; ``replication_rng`` derives one independent
stream per (sample size, replication) from a top-level seed.
"""

import numbers
from dataclasses import dataclass
from typing import Iterator, Tuple, Union

import numpy as np
import pandas as pd
from numpy.random import Generator, PCG64, SeedSequence

from .catalog import GROUPS, Group, ParameterCatalog, Scenario


def replication_seed_sequence(seed: int, sample_size: int, replication: int) -> SeedSequence:
    """
    Seed sequence for one replication of one sample size.

    The spawn key is built from the replication coordinates only, so the
    stream feeding a replication does not depend on how replications are
    scheduled across workers.
    """
    if seed < 0:
        raise ValueError(f"seed must be non-negative, got {seed}")
    return SeedSequence(entropy=int(seed), spawn_key=(int(sample_size), int(replication)))


def replication_rng(seed: int, sample_size: int, replication: int) -> Generator:
    return Generator(PCG64(replication_seed_sequence(seed, sample_size, replication)))


@dataclass(frozen=True)
class SimulatedDataset:
    """
    Flat, read-only collection of tagged observations.

    Row ``i`` is the observation ``values[i]`` drawn for scenario
    ``scenarios[i]`` and group ``groups[i]``. Rows are stored in blocks of
    ``sample_size`` per (scenario, group), scenarios in catalog order and
    groups in canonical order.
    """

    sample_size: int
    scenarios: np.ndarray
    groups: np.ndarray
    values: np.ndarray

    def __post_init__(self):
        for array in (self.scenarios, self.groups, self.values):
            array.flags.writeable = False

    def __len__(self) -> int:
        return int(self.values.size)

    @property
    def scenario_ids(self) -> Tuple[Scenario, ...]:
        """Scenarios present, in order of appearance."""
        _, first = np.unique(self.scenarios, return_index=True)
        return tuple(Scenario(self.scenarios[i]) for i in sorted(first))

    def select(self, scenario: Union[str, Scenario], group: Union[str, Group]) -> np.ndarray:
        """Observations of one (scenario, group) cell."""
        mask = (self.scenarios == Scenario(scenario).value) & (self.groups == Group(group).value)
        return self.values[mask]

    def iter_cells(self) -> Iterator[Tuple[Scenario, Group, np.ndarray]]:
        for scenario in self.scenario_ids:
            for group in GROUPS:
                yield scenario, group, self.select(scenario, group)

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({
            "scenario": self.scenarios,
            "group": self.groups,
            "value": self.values,
        })


def simulate(sample_size: int, catalog: ParameterCatalog, rng: Generator) -> SimulatedDataset:
    """
    Draw one dataset from every (scenario, group) of a catalog.

    Args:
        sample_size: Observations per (scenario, group), at least 1
        catalog: Validated parameter catalog
        rng: Random generator; the only source of randomness

    Returns:
        SimulatedDataset with ``len(catalog) * 5 * sample_size`` rows
    """
    if isinstance(sample_size, bool) or not isinstance(sample_size, numbers.Integral) or sample_size < 1:
        raise ValueError(f"sample_size must be a positive integer, got {sample_size!r}")
    sample_size = int(sample_size)

    scenario_labels = []
    group_labels = []
    blocks = []
    for scenario in catalog.scenarios:
        for group in GROUPS:
            params = catalog.params(scenario, group)
            blocks.append(np.asarray(params.draw(rng, sample_size), dtype=float))
            scenario_labels.append(scenario.value)
            group_labels.append(group.value)

    return SimulatedDataset(
        sample_size=sample_size,
        scenarios=np.repeat(np.array(scenario_labels, dtype=object), sample_size),
        groups=np.repeat(np.array(group_labels, dtype=object), sample_size),
        values=np.concatenate(blocks),
    )
