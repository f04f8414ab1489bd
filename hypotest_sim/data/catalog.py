"""
Distribution parameter catalog for hypotest-sim.

Holds the per-scenario, per-group parameters of the data-generating
distributions. Each scenario is one distribution family and each family's
parameters form one variant of a small tagged union (NormalParams,
PoissonParams, GammaParams, BetaParams). The catalog is validated once at
construction; downstream code can rely on:

    - every scenario carrying all five groups,
    - 'none' parameters being identical to 'control' parameters,
    - 'small', 'medium' and 'large' moving the theoretical mean
      progressively further away from the control mean.
"""

from dataclasses import dataclass, fields
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Iterator, Mapping, Tuple, Union

import numpy as np
from numpy.random import Generator

from ..core.exceptions import ConfigurationError
from ..utils.validation import validate_finite, validate_positive


class Scenario(str, Enum):
    """Data-generating distribution families."""
    NORMAL = "normal"
    POISSON = "poisson"
    GAMMA = "gamma"
    BETA = "beta"


class Group(str, Enum):
    """Experimental conditions, in canonical order."""
    CONTROL = "control"
    NONE = "none"
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"


SCENARIOS: Tuple[Scenario, ...] = tuple(Scenario)
GROUPS: Tuple[Group, ...] = tuple(Group)
TREATMENT_GROUPS: Tuple[Group, ...] = GROUPS[1:]
EFFECT_GROUPS: Tuple[Group, ...] = (Group.SMALL, Group.MEDIUM, Group.LARGE)


@dataclass(frozen=True)
class NormalParams:
    """Normal(mean, sd)."""
    family: ClassVar[Scenario] = Scenario.NORMAL

    mean: float
    sd: float

    def __post_init__(self):
        object.__setattr__(self, "mean", validate_finite(self.mean, "normal.mean"))
        object.__setattr__(self, "sd", validate_positive(self.sd, "normal.sd"))

    @property
    def theoretical_mean(self) -> float:
        return float(self.mean)

    def draw(self, rng: Generator, size: int) -> np.ndarray:
        return rng.normal(loc=self.mean, scale=self.sd, size=size)


@dataclass(frozen=True)
class PoissonParams:
    """Poisson(rate)."""
    family: ClassVar[Scenario] = Scenario.POISSON

    rate: float

    def __post_init__(self):
        object.__setattr__(self, "rate", validate_positive(self.rate, "poisson.rate"))

    @property
    def theoretical_mean(self) -> float:
        return float(self.rate)

    def draw(self, rng: Generator, size: int) -> np.ndarray:
        return rng.poisson(lam=self.rate, size=size).astype(float)


@dataclass(frozen=True)
class GammaParams:
    """Gamma(shape, rate); numpy is parameterized by scale = 1 / rate."""
    family: ClassVar[Scenario] = Scenario.GAMMA

    shape: float
    rate: float

    def __post_init__(self):
        object.__setattr__(self, "shape", validate_positive(self.shape, "gamma.shape"))
        object.__setattr__(self, "rate", validate_positive(self.rate, "gamma.rate"))

    @property
    def theoretical_mean(self) -> float:
        return float(self.shape) / float(self.rate)

    def draw(self, rng: Generator, size: int) -> np.ndarray:
        return rng.gamma(shape=self.shape, scale=1.0 / self.rate, size=size)


@dataclass(frozen=True)
class BetaParams:
    """Beta(shape1, shape2)."""
    family: ClassVar[Scenario] = Scenario.BETA

    shape1: float
    shape2: float

    def __post_init__(self):
        object.__setattr__(self, "shape1", validate_positive(self.shape1, "beta.shape1"))
        object.__setattr__(self, "shape2", validate_positive(self.shape2, "beta.shape2"))

    @property
    def theoretical_mean(self) -> float:
        return float(self.shape1) / (float(self.shape1) + float(self.shape2))

    def draw(self, rng: Generator, size: int) -> np.ndarray:
        return rng.beta(a=self.shape1, b=self.shape2, size=size)


DistributionParams = Union[NormalParams, PoissonParams, GammaParams, BetaParams]

FAMILY_PARAMS: Dict[Scenario, type] = {
    Scenario.NORMAL: NormalParams,
    Scenario.POISSON: PoissonParams,
    Scenario.GAMMA: GammaParams,
    Scenario.BETA: BetaParams,
}


def params_from_dict(scenario: Union[str, Scenario], values: Mapping[str, Any]) -> DistributionParams:
    """Build the parameter variant for a scenario from a plain mapping."""
    scenario = _coerce(Scenario, scenario, "scenario")
    params_cls = FAMILY_PARAMS[scenario]
    expected = {f.name for f in fields(params_cls)}
    given = set(values)
    if given != expected:
        raise ConfigurationError(
            f"{scenario.value}",
            f"expected parameters {sorted(expected)}, got {sorted(given)}",
        )
    return params_cls(**{name: values[name] for name in expected})


def params_to_dict(params: DistributionParams) -> Dict[str, float]:
    return {f.name: float(getattr(params, f.name)) for f in fields(params)}


def _coerce(enum_cls, value, name: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise ConfigurationError(name, f"unknown {name} {value!r}, expected one of {allowed}") from None


class ParameterCatalog:
    """
    Immutable lookup ``scenario -> group -> parameters``.

    Args:
        entries: Mapping of scenario to a mapping of group to parameter
            variant (or plain parameter dicts)
        check_effect_order: Require the effect groups to move the mean
            progressively away from control

    Raises:
        ConfigurationError: If any catalog invariant is violated
    """

    def __init__(
        self,
        entries: Mapping[Any, Mapping[Any, Any]],
        check_effect_order: bool = True,
    ):
        if not isinstance(entries, Mapping):
            raise ConfigurationError(
                "catalog",
                f"expected a mapping of scenario name to groups, got {type(entries).__name__}",
            )
        if not entries:
            raise ConfigurationError("catalog", "at least one scenario is required")

        catalog: Dict[Scenario, Mapping[Group, DistributionParams]] = {}
        for raw_scenario, raw_groups in entries.items():
            scenario = _coerce(Scenario, raw_scenario, "scenario")
            if scenario in catalog:
                raise ConfigurationError("catalog", f"duplicate scenario {scenario.value}")
            catalog[scenario] = MappingProxyType(self._build_groups(scenario, raw_groups))

        self.check_effect_order = check_effect_order
        # Scenarios are kept in canonical order regardless of input order
        self._entries = MappingProxyType(
            {scenario: catalog[scenario] for scenario in SCENARIOS if scenario in catalog}
        )
        self.validate()

    @staticmethod
    def _build_groups(scenario: Scenario, raw_groups: Mapping[Any, Any]) -> Dict[Group, DistributionParams]:
        if not isinstance(raw_groups, Mapping):
            raise ConfigurationError(
                scenario.value,
                f"expected a mapping of group name to parameters, got {type(raw_groups).__name__}",
            )
        groups: Dict[Group, DistributionParams] = {}
        for raw_group, raw_params in raw_groups.items():
            group = _coerce(Group, raw_group, "group")
            if isinstance(raw_params, Mapping):
                params = params_from_dict(scenario, raw_params)
            else:
                params = raw_params
            if getattr(params, "family", None) != scenario:
                raise ConfigurationError(
                    f"{scenario.value}.{group.value}",
                    f"parameters {params!r} do not belong to the {scenario.value} family",
                )
            groups[group] = params

        missing = [g.value for g in GROUPS if g not in groups]
        if missing:
            raise ConfigurationError(scenario.value, f"missing groups {missing}")
        return {group: groups[group] for group in GROUPS}

    def validate(self) -> None:
        """Check the catalog invariants; raises ConfigurationError."""
        for scenario, groups in self._entries.items():
            control = groups[Group.CONTROL]
            if groups[Group.NONE] != control:
                raise ConfigurationError(
                    f"{scenario.value}.none",
                    f"'none' parameters {groups[Group.NONE]!r} must equal control {control!r}",
                    suggestions=["Copy the control parameters into the 'none' group"],
                )

            if self.check_effect_order:
                base = control.theoretical_mean
                distances = [abs(groups[g].theoretical_mean - base) for g in EFFECT_GROUPS]
                if not (0 < distances[0] < distances[1] < distances[2]):
                    raise ConfigurationError(
                        scenario.value,
                        "effect groups must move the mean progressively away from control "
                        f"(distances {[round(d, 6) for d in distances]})",
                        suggestions=[
                            "Order small < medium < large effect sizes",
                            "Pass check_effect_order=False for non-location effects",
                        ],
                    )

    @property
    def scenarios(self) -> Tuple[Scenario, ...]:
        return tuple(self._entries)

    def params(self, scenario: Union[str, Scenario], group: Union[str, Group]) -> DistributionParams:
        return self._entries[Scenario(scenario)][Group(group)]

    def __getitem__(self, scenario: Union[str, Scenario]) -> Mapping[Group, DistributionParams]:
        return self._entries[Scenario(scenario)]

    def __iter__(self) -> Iterator[Scenario]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __eq__(self, other) -> bool:
        if not isinstance(other, ParameterCatalog):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"ParameterCatalog(scenarios={[s.value for s in self.scenarios]})"

    def __reduce__(self):
        return (_catalog_from_state, (self.to_dict(), self.check_effect_order))

    def to_dict(self) -> Dict[str, Dict[str, Dict[str, float]]]:
        """Plain nested dict suitable for YAML, JSON and hashing."""
        return {
            scenario.value: {group.value: params_to_dict(params) for group, params in groups.items()}
            for scenario, groups in self._entries.items()
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Mapping[str, Mapping[str, float]]],
        check_effect_order: bool = True,
    ) -> "ParameterCatalog":
        return cls(data, check_effect_order=check_effect_order)

    def subset(self, *scenarios: Union[str, Scenario]) -> "ParameterCatalog":
        """Catalog restricted to the given scenarios."""
        wanted = {Scenario(s) for s in scenarios}
        return ParameterCatalog(
            {s: dict(g) for s, g in self._entries.items() if s in wanted},
            check_effect_order=self.check_effect_order,
        )


def _catalog_from_state(data, check_effect_order):
    return ParameterCatalog(data, check_effect_order=check_effect_order)


_PRESETS: Dict[str, Dict[str, Dict[str, Dict[str, float]]]] = {
    "default": {
        "normal": {
            "control": {"mean": 20.0, "sd": 2.0},
            "none": {"mean": 20.0, "sd": 2.0},
            "small": {"mean": 21.0, "sd": 2.0},
            "medium": {"mean": 22.5, "sd": 2.0},
            "large": {"mean": 28.0, "sd": 2.0},
        },
        "poisson": {
            "control": {"rate": 5.0},
            "none": {"rate": 5.0},
            "small": {"rate": 5.5},
            "medium": {"rate": 6.5},
            "large": {"rate": 9.0},
        },
        "gamma": {
            "control": {"shape": 2.0, "rate": 1.0},
            "none": {"shape": 2.0, "rate": 1.0},
            "small": {"shape": 2.4, "rate": 1.0},
            "medium": {"shape": 3.0, "rate": 1.0},
            "large": {"shape": 5.0, "rate": 1.0},
        },
        "beta": {
            "control": {"shape1": 2.0, "shape2": 5.0},
            "none": {"shape1": 2.0, "shape2": 5.0},
            "small": {"shape1": 2.5, "shape2": 5.0},
            "medium": {"shape1": 3.2, "shape2": 5.0},
            "large": {"shape1": 5.0, "shape2": 5.0},
        },
    },
    # Effects carried by the rate / second shape parameter instead
    "alternate": {
        "normal": {
            "control": {"mean": 20.0, "sd": 2.0},
            "none": {"mean": 20.0, "sd": 2.0},
            "small": {"mean": 20.5, "sd": 2.0},
            "medium": {"mean": 21.5, "sd": 2.0},
            "large": {"mean": 24.0, "sd": 2.0},
        },
        "poisson": {
            "control": {"rate": 2.0},
            "none": {"rate": 2.0},
            "small": {"rate": 2.3},
            "medium": {"rate": 2.8},
            "large": {"rate": 4.0},
        },
        "gamma": {
            "control": {"shape": 1.5, "rate": 0.5},
            "none": {"shape": 1.5, "rate": 0.5},
            "small": {"shape": 1.5, "rate": 0.45},
            "medium": {"shape": 1.5, "rate": 0.35},
            "large": {"shape": 1.5, "rate": 0.2},
        },
        "beta": {
            "control": {"shape1": 5.0, "shape2": 2.0},
            "none": {"shape1": 5.0, "shape2": 2.0},
            "small": {"shape1": 5.0, "shape2": 1.7},
            "medium": {"shape1": 5.0, "shape2": 1.3},
            "large": {"shape1": 5.0, "shape2": 0.8},
        },
    },
}


def list_presets() -> Tuple[str, ...]:
    return tuple(_PRESETS)


def preset_catalog(name: str = "default") -> ParameterCatalog:
    """Return one of the catalogs shipped with the package."""
    if name not in _PRESETS:
        raise ConfigurationError("catalog_preset", f"unknown preset {name!r}, expected one of {list_presets()}")
    return ParameterCatalog.from_dict(_PRESETS[name])
