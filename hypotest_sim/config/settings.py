"""
Configuration management system for hypotest-sim.

Provides a hierarchical configuration system with support for
file-based configuration, environment variables, and runtime updates.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Union, List
from pydantic import BaseModel, ConfigDict, Field, field_validator
from enum import Enum


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class CatalogPreset(str, Enum):
    """Parameter catalogs shipped with the package."""
    DEFAULT = "default"
    ALTERNATE = "alternate"


class SimulationConfig(BaseModel):
    """Replication study configuration."""
    model_config = ConfigDict(validate_assignment=True, use_enum_values=True, validate_default=True)

    n_replications: int = 1000
    sample_sizes: List[int] = Field(default_factory=lambda: [25, 50, 100])
    seed: int = 20240101
    alpha: float = 0.05
    catalog_preset: CatalogPreset = CatalogPreset.DEFAULT
    catalog: Optional[Dict[str, Dict[str, Dict[str, float]]]] = None
    check_effect_order: bool = True

    @field_validator('n_replications')
    @classmethod
    def validate_n_replications(cls, v):
        if v < 1:
            raise ValueError("n_replications must be at least 1")
        return v

    @field_validator('sample_sizes')
    @classmethod
    def validate_sample_sizes(cls, v):
        if not v:
            raise ValueError("at least one sample size is required")
        if any(n < 1 for n in v):
            raise ValueError("sample sizes must be positive")
        if len(set(v)) != len(v):
            raise ValueError("sample sizes must be unique")
        return v

    @field_validator('alpha')
    @classmethod
    def validate_alpha(cls, v):
        if not 0.0 < v < 1.0:
            raise ValueError("alpha must lie strictly between 0 and 1")
        return v


class AnalysisConfig(BaseModel):
    """Significance test settings."""
    model_config = ConfigDict(validate_assignment=True)

    equal_var: bool = False
    rank_sum_method: str = "auto"
    ks_method: str = "auto"

    @field_validator('rank_sum_method')
    @classmethod
    def validate_rank_sum_method(cls, v):
        if v not in ("auto", "exact", "asymptotic"):
            raise ValueError(f"unsupported rank-sum method: {v}")
        return v

    @field_validator('ks_method')
    @classmethod
    def validate_ks_method(cls, v):
        if v not in ("auto", "exact", "asymp"):
            raise ValueError(f"unsupported KS method: {v}")
        return v


class ParallelConfig(BaseModel):
    """Worker pool configuration."""
    model_config = ConfigDict(validate_assignment=True, validate_default=True)

    parallel_processing: bool = True
    max_workers: Optional[int] = None
    chunk_size: Optional[int] = None

    @field_validator('max_workers', mode='before')
    @classmethod
    def validate_max_workers(cls, v):
        if v is None:
            return min(8, os.cpu_count() or 1)
        return max(1, int(v))

    @field_validator('chunk_size')
    @classmethod
    def validate_chunk_size(cls, v):
        if v is not None and v < 1:
            raise ValueError("chunk_size must be positive")
        return v


class CacheConfig(BaseModel):
    """Result cache configuration."""
    model_config = ConfigDict(validate_assignment=True, validate_default=True)

    cache_enabled: bool = True
    cache_directory: Optional[Path] = None

    @field_validator('cache_directory', mode='before')
    @classmethod
    def validate_cache_directory(cls, v):
        if v is None:
            return Path.home() / ".hypotest_sim" / "cache"
        return Path(v)


class LoggingConfig(BaseModel):
    """Logging configuration."""
    model_config = ConfigDict(validate_assignment=True, use_enum_values=True, validate_default=True)

    level: LogLevel = LogLevel.INFO
    file_logging: bool = False
    log_file: Optional[Path] = None
    console_logging: bool = True
    format_string: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class HypotestSimConfig(BaseModel):
    """Main configuration class for hypotest-sim."""
    model_config = ConfigDict(validate_assignment=True, use_enum_values=True)

    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    parallel: ParallelConfig = Field(default_factory=ParallelConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def __init__(self, config_file: Optional[Union[str, Path]] = None, **kwargs):
        """
        Initialize configuration.

        Args:
            config_file: Path to YAML configuration file
            **kwargs: Override specific configuration sections
        """
        config_data: Dict[str, Any] = {}
        if config_file:
            config_data = self._load_config_file(config_file)

        _merge_sections(config_data, self._load_environment_variables())
        _merge_sections(config_data, kwargs)

        super().__init__(**config_data)

    @staticmethod
    def _load_config_file(config_file: Union[str, Path]) -> Dict[str, Any]:
        """Load configuration from YAML file."""
        config_path = Path(config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must hold a mapping of sections: {config_path}")
        return data

    @staticmethod
    def _load_environment_variables() -> Dict[str, Any]:
        """Load configuration from environment variables."""
        config: Dict[str, Any] = {}

        env_mappings = {
            'HYPOTEST_SIM_LOG_LEVEL': ('logging', 'level'),
            'HYPOTEST_SIM_CACHE_DIR': ('cache', 'cache_directory'),
            'HYPOTEST_SIM_MAX_WORKERS': ('parallel', 'max_workers'),
            'HYPOTEST_SIM_SEED': ('simulation', 'seed'),
            'HYPOTEST_SIM_N_REPLICATIONS': ('simulation', 'n_replications'),
        }

        for env_var, (section, key) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                if key in ['max_workers', 'seed', 'n_replications']:
                    try:
                        value = int(value)
                    except ValueError:
                        raise ValueError(f"{env_var} must be an integer, got {value!r}") from None
                elif key == 'level':
                    value = value.upper()
                config.setdefault(section, {})[key] = value

        return config

    def save_config(self, config_file: Union[str, Path]) -> None:
        """Save current configuration to YAML file."""
        config_path = Path(config_file)
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, 'w') as f:
            yaml.safe_dump(self.model_dump(mode="json"), f, default_flow_style=False, indent=2)

    def update(self, **kwargs) -> None:
        """Update configuration values; dotted keys address nested fields."""
        for key, value in kwargs.items():
            if '.' in key:
                section, subkey = key.split('.', 1)
                section_obj = getattr(self, section, None)
                if section_obj is None or subkey not in type(section_obj).model_fields:
                    raise KeyError(f"Unknown configuration key: {key}")
                setattr(section_obj, subkey, value)
            elif key in type(self).model_fields:
                setattr(self, key, value)
            else:
                raise KeyError(f"Unknown configuration key: {key}")


def _merge_sections(target: Dict[str, Any], overrides: Dict[str, Any]) -> None:
    """Merge section dictionaries one level deep."""
    for section, values in overrides.items():
        if isinstance(values, dict) and isinstance(target.get(section), dict):
            target[section].update(values)
        else:
            target[section] = values


# Default configuration instance
_default_config: Optional[HypotestSimConfig] = None


def get_default_config() -> HypotestSimConfig:
    """Get the default configuration instance."""
    global _default_config
    if _default_config is None:
        _default_config = HypotestSimConfig()
    return _default_config
