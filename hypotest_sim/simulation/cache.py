"""
Persistent cache of unified result tables.

Entries are keyed by a SHA-256 digest of the full run parameters. Each entry
is a CSV table written with 17 significant digits (read back with
round-trip float parsing, so values are bit-identical) and a JSON manifest
holding the parameters the table was produced with.
"""

import hashlib
import json
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

from ..core.exceptions import CacheMismatchError
from ..utils.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_TABLE_DTYPES = {
    "replication": "int64",
    "sample_size": "int64",
    "scenario": str,
    "comparison": str,
    "statistical_test": str,
    "statistic": "float64",
    "p_value": "float64",
    "method": str,
}


def _json_default(value):
    if isinstance(value, np.generic):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _canonical_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=_json_default)


class ResultCache:
    """Stores and retrieves unified result tables keyed by run parameters."""

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)

    @staticmethod
    def cache_key(parameters: Dict[str, Any]) -> str:
        return hashlib.sha256(_canonical_json(parameters).encode("utf-8")).hexdigest()

    def paths_for(self, parameters: Dict[str, Any]) -> Tuple[Path, Path]:
        key = self.cache_key(parameters)[:32]
        return self.directory / f"results_{key}.csv", self.directory / f"results_{key}.json"

    def load(self, parameters: Dict[str, Any]) -> Optional[Tuple[pd.DataFrame, List[Dict[str, Any]]]]:
        """
        Load a cached table for exactly these parameters.

        Returns:
            (table, failure records) or None if nothing is cached

        Raises:
            CacheMismatchError: If the entry was produced by other parameters
                or is incomplete
        """
        table_path, manifest_path = self.paths_for(parameters)
        if not manifest_path.exists():
            return None

        logger.info(f"Loading cached results from {table_path}")
        with open(manifest_path, "r", encoding="utf-8") as f:
            manifest = json.load(f)

        cached = manifest.get("parameters", {})
        expected = json.loads(_canonical_json(parameters))
        mismatched = sorted(k for k in set(cached) | set(expected) if cached.get(k) != expected.get(k))
        if mismatched:
            raise CacheMismatchError(str(table_path), mismatched)
        if not table_path.exists():
            raise CacheMismatchError(str(table_path), ["table"])

        table = pd.read_csv(
            table_path,
            dtype=_TABLE_DTYPES,
            float_precision="round_trip",
            keep_default_na=False,
            na_values={"statistic": [""], "p_value": [""]},
        )
        if len(table) != manifest.get("n_rows"):
            raise CacheMismatchError(str(table_path), ["n_rows"])

        return table, manifest.get("failures", [])

    def store(
        self,
        parameters: Dict[str, Any],
        table: pd.DataFrame,
        failures: Optional[List[Dict[str, Any]]] = None,
    ) -> Path:
        """Write a table and its manifest; returns the table path."""
        from .. import __version__

        self.directory.mkdir(parents=True, exist_ok=True)
        table_path, manifest_path = self.paths_for(parameters)

        tmp_path = table_path.with_suffix(".csv.tmp")
        table.to_csv(tmp_path, index=False, float_format="%.17g")
        os.replace(tmp_path, table_path)

        manifest = {
            "cache_key": self.cache_key(parameters),
            "parameters": parameters,
            "n_rows": int(len(table)),
            "failures": failures or [],
            "created": datetime.now().isoformat(),
            "package_version": __version__,
        }
        with open(manifest_path, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2, default=_json_default)

        logger.info(f"Cached {len(table)} result rows", path=str(table_path))
        return table_path

    def invalidate(self, parameters: Dict[str, Any]) -> None:
        for path in self.paths_for(parameters):
            if path.exists():
                path.unlink()

    def clear(self) -> int:
        """Delete every cache entry; returns the number of files removed."""
        removed = 0
        if not self.directory.exists():
            return removed
        for path in self.directory.glob("results_*"):
            path.unlink()
            removed += 1
        logger.info(f"Cleared {removed} cache files from {self.directory}")
        return removed
