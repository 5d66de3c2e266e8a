"""Core functionality for the infrastructure catalog fetcher.

This module contains the foundational utilities used across all other modules:
- Configuration management
- Snapshot caching
- Logging utilities
- Error taxonomy and retry handling
"""

from .cache import CacheSnapshot, CacheStore
from .config import Config, DiscoveryOptions
from .error_handling import (
    CatalogError,
    RetryController,
    RetryExhaustedError,
    RetryPolicy,
)

__all__ = [
    "CacheSnapshot",
    "CacheStore",
    "CatalogError",
    "Config",
    "DiscoveryOptions",
    "RetryController",
    "RetryExhaustedError",
    "RetryPolicy",
]
