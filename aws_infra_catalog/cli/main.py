#!/usr/bin/env python3
"""
AWS Infrastructure Catalog
Discovers AWS regions, services and per-region service availability from the
public SSM Parameter Store namespace and writes JSON catalogs.
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from ..core.cache import CacheStore
from ..core.config import Config, DiscoveryOptions
from ..core.error_handling import CatalogError
from ..core.logging import get_logger, setup_logging
from ..core.models import Catalog
from ..data_sources.launch_data import LaunchDataSource
from ..data_sources.parameter_client import ParameterSourceClient
from ..outputs.json_generator import CatalogJSONGenerator, OutputError
from ..processors.discovery import DiscoveryAggregator

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="AWS infrastructure catalog from SSM Parameter Store"
    )

    scope = parser.add_mutually_exclusive_group()
    scope.add_argument(
        "--regions-only", action="store_true", help="Only discover regions"
    )
    scope.add_argument(
        "--services-only", action="store_true", help="Only discover services"
    )
    parser.add_argument(
        "--include-service-mapping",
        action="store_true",
        help="Also map which services are available in each region",
    )
    parser.add_argument(
        "--force-refresh",
        action="store_true",
        help="Ignore the services-by-region cache and refetch every region",
    )

    parser.add_argument("--region", type=str, help="AWS region for API calls")
    parser.add_argument("--profile", type=str, help="AWS profile name")
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Regions fetched concurrently for the service mapping (default: 10)",
    )
    parser.add_argument(
        "--pagination-delay",
        type=int,
        help="Delay between SSM listing pages in ms (default: 40)",
    )
    parser.add_argument("--max-retries", type=int, help="Attempts per SSM call")
    parser.add_argument(
        "--no-launch-data",
        action="store_true",
        help="Skip region launch dates from the AWS regions RSS feed",
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        help="Output directory for generated files (default: output)",
    )
    parser.add_argument(
        "--cache-hours", type=float, help="Cache TTL in hours (default: 24)"
    )
    parser.add_argument(
        "--no-cache", action="store_true", help="Disable caching for this run"
    )
    parser.add_argument(
        "--cache-info", action="store_true", help="Show cache information and exit"
    )
    parser.add_argument(
        "--clear-cache",
        action="store_true",
        help="Clear the cache snapshot before running",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )
    return parser


def print_cache_info(cache_store: CacheStore, config: Config):
    info = cache_store.get_info(config.cache_ttl)
    print("\n" + "=" * 60)
    print("CACHE INFORMATION")
    print("=" * 60)
    print(f"Cache File: {info['path']}")
    print(f"TTL Hours: {info['ttl_hours']}")
    if not info["exists"]:
        print("Status: no cache snapshot")
    elif "error" in info:
        print(f"Status: unreadable ({info['error']})")
    else:
        status = "✅ Valid" if info["valid"] else "❌ Expired"
        print(f"Size: {info['size_kb']} KB")
        print(f"Saved: {info['saved_at']} ({info['age_hours']} hours ago)")
        print(f"Status: {status}")
    print("=" * 60)


def print_summary(catalog: Catalog, files: List[str]):
    print("\n" + "=" * 60)
    print("AWS Infrastructure Catalog Complete!")
    print("=" * 60)
    if catalog.regions is not None:
        print(f"Regions discovered: {catalog.regions.count}")
        print(f"Availability zones: {catalog.regions.total_availability_zones}")
    if catalog.services is not None:
        print(f"Services discovered: {catalog.services.count}")
    if catalog.services_by_region is not None:
        summary = catalog.services_by_region.summary()
        print(
            f"Service mapping: {summary['total_regions']} regions, "
            f"{summary['cached_regions']} from cache, "
            f"{summary['fetched_regions']} fetched"
        )
    if catalog.failures:
        print(f"Item failures: {len(catalog.failures)}")
    for pipeline, error in catalog.errors.items():
        print(f"❌ {pipeline}: {error}")
    for path in files:
        print(f"Output file: {path}")
    print("=" * 60)


def build_aggregator(
    config: Config,
    cache_store: Optional[CacheStore],
    cancel_event: asyncio.Event,
) -> DiscoveryAggregator:
    launch_data_provider = None
    if config.launch_data_enabled:
        launch_data_provider = LaunchDataSource(
            config.rss_url, config.rss_timeout
        ).fetch_launch_data

    return DiscoveryAggregator(
        ParameterSourceClient.from_config(config),
        config=config,
        cache_store=cache_store,
        launch_data_provider=launch_data_provider,
        cancel_event=cancel_event,
    )


async def run_discovery(
    config: Config,
    options: DiscoveryOptions,
    cache_store: Optional[CacheStore],
    cancel_event: asyncio.Event,
) -> Catalog:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except (NotImplementedError, RuntimeError):
        # Signal handlers are unavailable on this platform or thread
        pass

    try:
        aggregator = build_aggregator(config, cache_store, cancel_event)
        return await aggregator.run(options)
    finally:
        try:
            loop.remove_signal_handler(signal.SIGINT)
        except (NotImplementedError, RuntimeError):
            pass


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = Config.from_args(args)
    except ValueError as e:
        parser.error(str(e))
    setup_logging(config.log_level)
    logger = get_logger("cli")

    cache_store = CacheStore(config.cache_path) if config.cache_enabled else None

    if args.cache_info:
        print_cache_info(cache_store or CacheStore(config.cache_path), config)
        return EXIT_OK

    if args.clear_cache:
        cleared = CacheStore(config.cache_path).clear()
        print(f"✅ Cleared {cleared} cache files")
        print("Continuing with fresh data fetch...")

    options = DiscoveryOptions.from_args(args)
    cancel_event = asyncio.Event()

    try:
        logger.info(
            "Starting AWS infrastructure discovery",
            region=config.aws_region,
            regions=options.run_regions,
            services=options.run_services,
            service_mapping=options.run_service_mapping,
        )
        catalog = asyncio.run(
            run_discovery(config, options, cache_store, cancel_event)
        )
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return EXIT_INTERRUPTED
    except CatalogError as e:
        logger.error(f"Discovery failed: {e}")
        return EXIT_INTERRUPTED if cancel_event.is_set() else EXIT_FAILURE

    if cancel_event.is_set():
        logger.warning("Discovery cancelled, outputs not written")
        return EXIT_INTERRUPTED

    try:
        files = CatalogJSONGenerator(config.output_dir).generate(catalog)
    except OutputError as e:
        logger.error(str(e))
        return EXIT_FAILURE

    print_summary(catalog, files)
    return EXIT_OK if catalog.succeeded else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
