"""AWS Infrastructure Catalog

Discovers AWS regions, availability zones, services and per-region service
availability from the public Systems Manager Parameter Store hierarchy under
``/aws/service/global-infrastructure``, with batched concurrent fetching, retry
with backoff and a time-bounded local cache.
"""

__version__ = "1.0.0"

from .core.config import Config, DiscoveryOptions

__all__ = ["Config", "DiscoveryOptions"]
