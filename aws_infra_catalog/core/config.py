"""Configuration management for the infrastructure catalog fetcher."""

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional
import os


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


@dataclass
class Config:
    """Configuration settings for a discovery session."""

    # AWS Settings
    aws_region: str = "us-east-1"
    aws_profile: Optional[str] = None

    # Cache Settings
    output_dir: str = "output"
    cache_file_name: str = ".cache-services-by-region.json"
    cache_hours: float = 24
    cache_enabled: bool = True

    # Retry Settings
    max_retries: int = 5
    base_delay: float = 0.1
    backoff_factor: float = 2.0
    max_delay: float = 10.0

    # SSM Pagination Settings
    max_results: int = 10  # SSM maximum for GetParametersByPath
    pagination_delay: float = 0.04

    # Batch Settings (delays in seconds)
    az_batch_size: int = 20
    az_batch_delay: float = 0.1
    region_name_batch_size: int = 10
    region_name_batch_delay: float = 0.1
    service_name_batch_size: int = 20
    service_name_batch_delay: float = 0.1
    service_by_region_batch_size: int = 10
    service_by_region_batch_delay: float = 0.0

    # Launch data feed
    rss_url: str = (
        "https://docs.aws.amazon.com/global-infrastructure/latest/regions/regions.rss"
    )
    rss_timeout: int = 30
    launch_data_enabled: bool = True

    log_level: str = "INFO"

    @property
    def cache_path(self) -> Path:
        return Path(self.output_dir) / self.cache_file_name

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(hours=self.cache_hours)

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        return cls(
            aws_region=os.getenv("AWS_DEFAULT_REGION", "us-east-1"),
            aws_profile=os.getenv("AWS_PROFILE"),
            output_dir=os.getenv("OUTPUT_DIR", "output"),
            cache_hours=_env_float("CACHE_HOURS", 24),
            cache_enabled=os.getenv("CACHE_ENABLED", "true").lower() == "true",
            max_retries=_env_int("MAX_RETRIES", 5),
            service_by_region_batch_size=_env_int("BATCH_SIZE", 10),
            pagination_delay=_env_int("PAGINATION_DELAY", 40) / 1000,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )

    @classmethod
    def from_args(cls, args) -> "Config":
        """Create config from command line arguments."""
        config = cls.from_env()

        # Override with CLI arguments if provided
        if getattr(args, "region", None):
            config.aws_region = args.region
        if getattr(args, "profile", None):
            config.aws_profile = args.profile
        if getattr(args, "output_dir", None):
            config.output_dir = args.output_dir
        if getattr(args, "cache_hours", None) is not None:
            config.cache_hours = args.cache_hours
        if getattr(args, "no_cache", False):
            config.cache_enabled = False
        if getattr(args, "batch_size", None) is not None:
            config.service_by_region_batch_size = args.batch_size
        if getattr(args, "pagination_delay", None) is not None:
            config.pagination_delay = args.pagination_delay / 1000
        if getattr(args, "max_retries", None) is not None:
            config.max_retries = args.max_retries
        if getattr(args, "no_launch_data", False):
            config.launch_data_enabled = False
        if getattr(args, "log_level", None):
            config.log_level = args.log_level

        config.validate()
        return config

    def validate(self):
        """Reject settings the scheduler, retry policy or cache cannot use.

        Raises:
            ValueError: Naming the first invalid setting
        """
        if self.cache_hours < 0:
            raise ValueError(f"cache_hours must be >= 0, got {self.cache_hours}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be >= 1, got {self.max_retries}")
        if self.pagination_delay < 0:
            raise ValueError("pagination_delay must be >= 0")
        for name in (
            "az_batch_size",
            "region_name_batch_size",
            "service_name_batch_size",
            "service_by_region_batch_size",
        ):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1, got {getattr(self, name)}")


@dataclass
class DiscoveryOptions:
    """Which pipelines a discovery run executes."""

    regions_only: bool = False
    services_only: bool = False
    include_service_mapping: bool = False
    force_refresh: bool = False

    def __post_init__(self):
        if self.regions_only and self.services_only:
            raise ValueError("regions_only and services_only are mutually exclusive")

    @property
    def run_regions(self) -> bool:
        return not self.services_only

    @property
    def run_services(self) -> bool:
        return not self.regions_only

    @property
    def run_service_mapping(self) -> bool:
        return self.include_service_mapping and self.run_regions

    @classmethod
    def from_args(cls, args) -> "DiscoveryOptions":
        return cls(
            regions_only=getattr(args, "regions_only", False),
            services_only=getattr(args, "services_only", False),
            include_service_mapping=getattr(args, "include_service_mapping", False),
            force_refresh=getattr(args, "force_refresh", False),
        )
