"""Batch scheduling and discovery pipelines."""

from .discovery import DiscoveryAggregator
from .scheduler import BatchOutcome, BatchScheduler, summarize_outcomes

__all__ = [
    "BatchOutcome",
    "BatchScheduler",
    "DiscoveryAggregator",
    "summarize_outcomes",
]
