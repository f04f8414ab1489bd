"""
Exception classes for hypotest-sim.

Provides rich error information with actionable suggestions.
"""

from typing import List, Optional, Dict, Any, Sequence


class HypotestSimError(Exception):
    """
    Base exception class for hypotest-sim with rich error information.

    Carries structured suggestions for resolution, an error code and a
    context dictionary describing the failing input.
    """

    def __init__(
        self,
        message: str,
        suggestions: Optional[List[str]] = None,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.suggestions = suggestions or []
        self.error_code = error_code
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return formatted error message with suggestions."""
        message = super().__str__()

        if self.error_code:
            message = f"[{self.error_code}] {message}"

        if self.suggestions:
            message += "\n\nSuggestions:"
            for i, suggestion in enumerate(self.suggestions, 1):
                message += f"\n  {i}. {suggestion}"

        return message


class ConfigurationError(HypotestSimError):
    """Exception raised for an invalid parameter catalog or run configuration."""

    def __init__(
        self,
        config_key: Optional[str] = None,
        reason: Optional[str] = None,
        **kwargs
    ):
        if config_key and reason:
            message = f"Invalid configuration for '{config_key}': {reason}"
        elif config_key:
            message = f"Invalid configuration for '{config_key}'"
        elif reason:
            message = f"Configuration error: {reason}"
        else:
            message = "Configuration error"

        suggestions = kwargs.pop('suggestions', None) or [
            "Check the parameter catalog for missing groups or non-positive parameters",
            "Make sure the 'none' group repeats the 'control' parameters exactly",
            "Review configuration file syntax and environment variables",
        ]

        super().__init__(
            message=message,
            suggestions=suggestions,
            error_code="CONFIG",
            context={"config_key": config_key, "reason": reason},
            **kwargs
        )


class DegenerateSampleError(HypotestSimError):
    """Exception raised when one test cell cannot produce a finite statistic."""

    def __init__(
        self,
        statistical_test: Optional[str] = None,
        reason: Optional[str] = None,
        scenario: Optional[str] = None,
        comparison: Optional[str] = None,
        **kwargs
    ):
        cell = "/".join(str(part) for part in (scenario, comparison, statistical_test) if part)
        if cell and reason:
            message = f"Degenerate sample in cell {cell}: {reason}"
        elif reason:
            message = f"Degenerate sample: {reason}"
        else:
            message = "Degenerate sample"

        kwargs.pop('suggestions', None)

        super().__init__(
            message=message,
            suggestions=[
                "Use at least two observations per group",
                "Check that the catalog does not produce constant samples",
            ],
            error_code="DEGENERATE_SAMPLE",
            context={
                "scenario": scenario,
                "comparison": comparison,
                "statistical_test": statistical_test,
                "reason": reason,
            },
            **kwargs
        )
        self.statistical_test = statistical_test
        self.reason = reason
        self.scenario = scenario
        self.comparison = comparison


class AggregationError(HypotestSimError):
    """Exception raised when aggregate keys have no contributing records."""

    def __init__(self, table: str, missing_keys: Sequence[Any], **kwargs):
        shown = ", ".join(str(key) for key in list(missing_keys)[:5])
        if len(missing_keys) > 5:
            shown += f", ... ({len(missing_keys)} total)"
        message = f"No contributing records for {table} keys: {shown}"

        kwargs.pop('suggestions', None)

        super().__init__(
            message=message,
            suggestions=[
                "Inspect ReplicationResults.failures for degenerate cells",
                "Increase the sample size so every test is defined",
                "Pass require_complete=False to report these keys as missing",
            ],
            error_code="AGGREGATION",
            context={"table": table, "missing_keys": list(missing_keys)},
            **kwargs
        )
        self.missing_keys = list(missing_keys)


class CacheMismatchError(HypotestSimError):
    """Exception raised when a persisted result set was produced by other parameters."""

    def __init__(
        self,
        cache_path: Optional[str] = None,
        mismatched_fields: Optional[List[str]] = None,
        **kwargs
    ):
        message = f"Cached results at {cache_path} do not match the requested run"
        if mismatched_fields:
            message += f" (differs in: {', '.join(mismatched_fields)})"

        kwargs.pop('suggestions', None)

        super().__init__(
            message=message,
            suggestions=[
                "The run will be recomputed and the cache entry overwritten",
                "Clear the cache directory if entries were edited by hand",
            ],
            error_code="CACHE_MISMATCH",
            context={"cache_path": cache_path, "mismatched_fields": mismatched_fields},
            **kwargs
        )
        self.mismatched_fields = mismatched_fields or []


class RunCancelledError(HypotestSimError):
    """Exception raised when a replication run is cancelled between chunks."""

    def __init__(self, completed_chunks: int = 0, total_chunks: int = 0, **kwargs):
        kwargs.pop('suggestions', None)
        super().__init__(
            message=f"Replication run cancelled after {completed_chunks}/{total_chunks} chunks",
            suggestions=["Restart the run; finished results are not kept"],
            error_code="CANCELLED",
            context={"completed_chunks": completed_chunks, "total_chunks": total_chunks},
            **kwargs
        )
