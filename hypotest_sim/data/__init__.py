"""Parameter catalog and data simulation for hypotest-sim."""

from .catalog import (
    Scenario,
    Group,
    SCENARIOS,
    GROUPS,
    TREATMENT_GROUPS,
    NormalParams,
    PoissonParams,
    GammaParams,
    BetaParams,
    ParameterCatalog,
    list_presets,
    preset_catalog,
)
from .simulator import SimulatedDataset, simulate, replication_rng, replication_seed_sequence

__all__ = [
    "Scenario",
    "Group",
    "SCENARIOS",
    "GROUPS",
    "TREATMENT_GROUPS",
    "NormalParams",
    "PoissonParams",
    "GammaParams",
    "BetaParams",
    "ParameterCatalog",
    "list_presets",
    "preset_catalog",
    "SimulatedDataset",
    "simulate",
    "replication_rng",
    "replication_seed_sequence",
]
