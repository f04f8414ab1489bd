"""Replication driver and result cache for hypotest-sim."""

from .cache import ResultCache
from .driver import (
    ReplicationChunk,
    ReplicationDriver,
    ReplicationResults,
    run_replications,
)

__all__ = [
    "ResultCache",
    "ReplicationChunk",
    "ReplicationDriver",
    "ReplicationResults",
    "run_replications",
]
