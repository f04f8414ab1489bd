"""
Core export functionality for hypotest-sim.
Writes the result tables of a study and a run manifest to disk.
"""

import json
import platform
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import pandas as pd
import scipy

from ..utils.logging import get_logger
from .api import StudyResults

logger = get_logger(__name__)

UNIFIED_FILENAME = "unified_results.csv"
REJECTION_FILENAME = "rejection_rates.csv"
AGREEMENT_FILENAME = "agreement_rates.csv"
FAILURES_FILENAME = "degenerate_cells.csv"
MANIFEST_FILENAME = "run_manifest.json"


class ResultsExporter:
    """
    Results export for replication studies.

    The unified table is written with 17 significant digits so that it can
    be read back bit-identically; summary tables are rounded to
    ``decimal_precision`` places.
    """

    def __init__(self, output_dir: Union[str, Path], decimal_precision: int = 6):
        """
        Initialize results exporter.

        Args:
            output_dir: Directory receiving the exported files
            decimal_precision: Number of decimal places for summary tables
        """
        self.output_dir = Path(output_dir)
        self.decimal_precision = decimal_precision

    def export(self, study: StudyResults) -> Dict[str, Path]:
        """
        Export every table of a study plus its manifest.

        Returns:
            Mapping of table name to written file path
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        paths = {
            "unified": self.output_dir / UNIFIED_FILENAME,
            "rejection_rates": self.output_dir / REJECTION_FILENAME,
            "agreement_rates": self.output_dir / AGREEMENT_FILENAME,
            "manifest": self.output_dir / MANIFEST_FILENAME,
        }

        study.table.to_csv(paths["unified"], index=False, float_format="%.17g")
        self._round(study.rejection_rates).to_csv(paths["rejection_rates"], index=False)
        self._round(study.agreement_rates).to_csv(paths["agreement_rates"], index=False)

        if study.results.n_degenerate:
            paths["failures"] = self.output_dir / FAILURES_FILENAME
            study.results.failures.to_csv(paths["failures"], index=False)

        with open(paths["manifest"], "w", encoding="utf-8") as f:
            json.dump(self.build_manifest(study), f, indent=2, default=str)

        logger.info(f"Results exported to: {self.output_dir}", files=len(paths))
        return paths

    def build_manifest(self, study: StudyResults) -> Dict[str, Any]:
        from .. import __version__

        results = study.results
        return {
            "created": datetime.now().isoformat(),
            "parameters": results.parameters,
            "alpha": study.config.simulation.alpha,
            "n_records": results.n_records,
            "n_degenerate": results.n_degenerate,
            "elapsed_seconds": results.elapsed_seconds,
            "from_cache": results.from_cache,
            "versions": {
                "hypotest_sim": __version__,
                "python": platform.python_version(),
                "numpy": np.__version__,
                "scipy": scipy.__version__,
                "pandas": pd.__version__,
            },
        }

    def _round(self, frame: pd.DataFrame) -> pd.DataFrame:
        frame = frame.copy()
        numeric_columns = frame.select_dtypes(include=[np.floating]).columns
        frame[numeric_columns] = frame[numeric_columns].round(self.decimal_precision)
        return frame

    def print_summary(self, study: StudyResults) -> None:
        """Print rejection rates and agreement of all three tests to stdout."""
        summary = study.summary()
        print(f"Replications: {summary['n_replications']}  "
              f"Sample sizes: {summary['sample_sizes']}  Seed: {summary['seed']}")
        print(f"Records: {summary['n_records']}  Degenerate cells: {summary['n_degenerate']}")
        if summary["from_cache"]:
            print("Loaded from cache")

        rates = study.rejection_rates.pivot_table(
            index=["scenario", "comparison"],
            columns=["statistical_test", "sample_size"],
            values="rejection_rate",
            sort=False,
        )
        print(f"\nRejection rates (alpha = {summary['alpha']}):")
        print(rates.to_string(float_format=lambda v: f"{v:.3f}"))

        agreement = study.agreement_rates[study.agreement_rates["test_subset"] == "all"]
        agreement = agreement.pivot_table(
            index=["scenario", "comparison"],
            columns="sample_size",
            values="agreement_rate",
            sort=False,
        )
        print("\nAgreement of all three tests:")
        print(agreement.to_string(float_format=lambda v: f"{v:.3f}"))


def export_study(
    study: StudyResults,
    output_dir: Union[str, Path],
    decimal_precision: int = 6,
) -> Dict[str, Path]:
    """Convenience function to export a study."""
    return ResultsExporter(output_dir, decimal_precision=decimal_precision).export(study)


def create_timestamped_export(
    study: StudyResults,
    base_dir: Union[str, Path] = ".",
    prefix: str = "study",
    timestamp: Optional[str] = None,
) -> Path:
    """Export into ``<base_dir>/<prefix>_<YYYYmmdd_HHMMSS>`` and return the directory."""
    timestamp = timestamp or datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(base_dir) / f"{prefix}_{timestamp}"
    export_study(study, output_dir)
    return output_dir
