"""Discovery aggregator: builds the region, service and availability catalogs."""

import asyncio
from collections import Counter
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from ..core.cache import CacheStore
from ..core.config import Config, DiscoveryOptions
from ..core.error_handling import (
    DiscoveryError,
    PipelineError,
    RetryController,
    RetryPolicy,
    RetryState,
    ValidationError,
)
from ..core.logging import get_logger
from ..core.models import (
    REGION_CODE_PATTERN,
    AvailabilityZone,
    Catalog,
    FetchFailure,
    Region,
    RegionDiscoveryResult,
    RegionServiceAvailability,
    Service,
    ServiceDiscoveryResult,
    ServiceMappingResult,
    last_path_segment,
    utc_now,
)
from .scheduler import BatchOutcome, BatchScheduler, summarize_outcomes

GLOBAL_INFRASTRUCTURE = "/aws/service/global-infrastructure"
REGIONS_PATH = f"{GLOBAL_INFRASTRUCTURE}/regions"
SERVICES_PATH = f"{GLOBAL_INFRASTRUCTURE}/services"
AVAILABILITY_ZONES_PATH = f"{GLOBAL_INFRASTRUCTURE}/availability-zones"

REGIONS_PIPELINE = "regions"
SERVICES_PIPELINE = "services"
MAPPING_PIPELINE = "services_by_region"

LaunchDataProvider = Callable[[], Dict[str, Dict[str, Optional[str]]]]


def region_name_path(region_code: str) -> str:
    return f"{REGIONS_PATH}/{region_code}/longName"


def service_name_path(service_code: str) -> str:
    return f"{SERVICES_PATH}/{service_code}/longName"


def parent_region_path(az_id: str) -> str:
    return f"{AVAILABILITY_ZONES_PATH}/{az_id}/parent-region"


def region_services_path(region_code: str) -> str:
    return f"{REGIONS_PATH}/{region_code}/services"


def unique_codes(paths: Iterable[str]) -> List[str]:
    """Trailing path segments, de-duplicated and sorted."""
    return sorted({last_path_segment(path) for path in paths if path.strip("/")})


def fold_az_counts(zones: Iterable[AvailabilityZone]) -> Dict[str, int]:
    """Count AZs per parent region; zones without a parent region are skipped."""
    counts = Counter(
        zone.parent_region_code for zone in zones if zone.parent_region_code
    )
    return dict(counts)


class DiscoveryAggregator:
    """Orchestrates the discovery pipelines.

    Each pipeline lists codes, batch-fetches per-code metadata through the
    BatchScheduler and RetryController, then assembles entities once every batch
    has settled. Per-item failures degrade to fallback values and are recorded as
    FetchFailure warnings; a failed core listing fails only its own pipeline.
    """

    def __init__(
        self,
        client,
        config: Optional[Config] = None,
        cache_store: Optional[CacheStore] = None,
        launch_data_provider: Optional[LaunchDataProvider] = None,
        retry_controller: Optional[RetryController] = None,
        scheduler: Optional[BatchScheduler] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        """Initialize the discovery aggregator.

        Args:
            client: ParameterSourceClient (or any object with the same two
                coroutine methods)
            config: Batch tuning, TTL and retry settings
            cache_store: Snapshot cache for the services-by-region mapping
            launch_data_provider: Callable returning launch data by region code
            retry_controller: Retry controller (built from config if None)
            scheduler: Batch scheduler (default if None)
            cancel_event: Cancellation signal shared with the retry controller
        """
        self.client = client
        self.config = config or Config()
        self.cache_store = cache_store
        self.launch_data_provider = launch_data_provider
        self.cancel_event = cancel_event
        self.retry = retry_controller or RetryController(
            RetryPolicy.from_config(self.config), cancel_event=cancel_event
        )
        if self.retry.cancel_event is None:
            self.retry.cancel_event = cancel_event
        self.scheduler = scheduler or BatchScheduler()
        self.logger = get_logger("discovery")

    # ------------------------------------------------------------------
    # Retried remote calls
    # ------------------------------------------------------------------

    async def _get_value(self, path: str, state: Optional[RetryState] = None) -> str:
        entry = await self.retry.execute(
            lambda: self.client.get_parameter(path), context=path, state=state
        )
        return entry.value

    async def _list_names(
        self,
        prefix: str,
        recursive: bool = False,
        state: Optional[RetryState] = None,
    ) -> List[str]:
        entries = await self.retry.execute(
            lambda: self.client.list_parameters_by_prefix(prefix, recursive),
            context=prefix,
            state=state,
        )
        return [entry.path for entry in entries]

    async def _list_codes(self, pipeline: str, prefix: str) -> List[str]:
        """List child codes under a prefix; failure is fatal to the pipeline."""
        try:
            names = await self._list_names(prefix)
        except Exception as e:
            raise PipelineError(pipeline, f"could not list {prefix}: {e}") from e
        return unique_codes(names)

    async def _fetch_batched(
        self,
        pipeline: str,
        items: List[str],
        batch_size: int,
        batch_delay: float,
        worker: Callable[[str, RetryState], Awaitable[Any]],
        label: str,
    ) -> Tuple[List[BatchOutcome], List[FetchFailure]]:
        def report_progress(batch_number, total_batches, outcomes):
            self.logger.debug(
                f"{label}: batch {batch_number}/{total_batches}",
                **summarize_outcomes(outcomes),
            )

        outcomes = await self.scheduler.run_batched(
            items,
            batch_size,
            batch_delay,
            worker,
            cancel_event=self.cancel_event,
            on_batch_complete=report_progress,
        )

        failures = []
        for outcome in outcomes:
            if outcome.ok:
                continue
            failure = FetchFailure.from_exception(
                pipeline, outcome.item, outcome.error, attempts=outcome.attempts
            )
            self.logger.warning(
                f"{label} failed for {outcome.item}: {failure.message}",
                attempts=failure.attempts,
            )
            failures.append(failure)

        counts = summarize_outcomes(outcomes)
        self.logger.info(
            f"{label}: {counts['succeeded']}/{counts['total']} succeeded",
            failed=counts["failed"],
        )
        return outcomes, failures

    # ------------------------------------------------------------------
    # Regions
    # ------------------------------------------------------------------

    async def map_availability_zones(
        self,
    ) -> Tuple[Dict[str, int], List[FetchFailure]]:
        """Count availability zones per region.

        Returns:
            (region code -> AZ count, per-AZ failures). AZs whose parent region
            cannot be resolved are excluded from every count.
        """
        az_ids = await self._list_codes(REGIONS_PIPELINE, AVAILABILITY_ZONES_PATH)
        self.logger.info(f"Found {len(az_ids)} availability zones")

        outcomes, failures = await self._fetch_batched(
            REGIONS_PIPELINE,
            az_ids,
            self.config.az_batch_size,
            self.config.az_batch_delay,
            lambda az_id, state: self._get_value(parent_region_path(az_id), state),
            "AZ parent region lookup",
        )

        zones = [
            AvailabilityZone(
                id=outcome.item,
                parent_region_code=(outcome.result or None) if outcome.ok else None,
            )
            for outcome in outcomes
        ]
        counts = fold_az_counts(zones)
        self.logger.info(
            f"Mapped {sum(counts.values())}/{len(az_ids)} AZs to {len(counts)} regions"
        )
        return counts, failures

    def _load_launch_data(self) -> Dict[str, Dict[str, Optional[str]]]:
        if self.launch_data_provider is None:
            return {}
        try:
            launch_data = self.launch_data_provider()
        except Exception as e:
            self.logger.warning(f"Launch data unavailable, skipping enrichment: {e}")
            return {}
        return launch_data if isinstance(launch_data, dict) else {}

    async def discover_regions(self) -> RegionDiscoveryResult:
        """Discover regions with display names, AZ counts and launch data.

        Raises:
            PipelineError: If the region listing itself fails
        """
        region_codes = await self._list_codes(REGIONS_PIPELINE, REGIONS_PATH)
        failures: List[FetchFailure] = []

        valid_codes = []
        excluded = []
        for code in region_codes:
            if REGION_CODE_PATTERN.match(code):
                valid_codes.append(code)
            else:
                excluded.append(code)
                error = ValidationError(f"Unexpected region code format: {code}")
                self.logger.warning(str(error))
                failures.append(
                    FetchFailure.from_exception(REGIONS_PIPELINE, code, error)
                )
        self.logger.info(f"Discovered {len(valid_codes)} regions from SSM")

        try:
            az_counts, az_failures = await self.map_availability_zones()
            failures.extend(az_failures)
        except PipelineError as e:
            # Regions stay in the result with a zero count
            self.logger.warning(f"Availability zone mapping unavailable: {e}")
            az_counts = {}
            failures.append(
                FetchFailure.from_exception(
                    REGIONS_PIPELINE, AVAILABILITY_ZONES_PATH, e
                )
            )

        launch_data_task = asyncio.to_thread(self._load_launch_data)
        names_task = self._fetch_batched(
            REGIONS_PIPELINE,
            valid_codes,
            self.config.region_name_batch_size,
            self.config.region_name_batch_delay,
            lambda code, state: self._get_value(region_name_path(code), state),
            "Region name lookup",
        )
        launch_data, (name_outcomes, name_failures) = await asyncio.gather(
            launch_data_task, names_task
        )
        failures.extend(name_failures)

        regions = []
        for outcome in name_outcomes:
            code = outcome.item
            launch = launch_data.get(code) or {}
            regions.append(
                Region(
                    code=code,
                    name=(outcome.result if outcome.ok else None) or code,
                    availability_zone_count=az_counts.get(code, 0),
                    launch_date=launch.get("launch_date"),
                    announcement_url=launch.get("announcement_url"),
                )
            )

        return RegionDiscoveryResult(
            regions=regions, failures=failures, excluded=excluded
        )

    # ------------------------------------------------------------------
    # Services
    # ------------------------------------------------------------------

    async def discover_services(self) -> ServiceDiscoveryResult:
        """Discover services with display names (falling back to the code).

        Raises:
            PipelineError: If the service listing itself fails
        """
        service_codes = await self._list_codes(SERVICES_PIPELINE, SERVICES_PATH)
        self.logger.info(f"Discovered {len(service_codes)} services from SSM")

        outcomes, failures = await self._fetch_batched(
            SERVICES_PIPELINE,
            service_codes,
            self.config.service_name_batch_size,
            self.config.service_name_batch_delay,
            lambda code, state: self._get_value(service_name_path(code), state),
            "Service name lookup",
        )

        services = [
            Service(
                code=outcome.item,
                name=(outcome.result if outcome.ok else None) or outcome.item,
            )
            for outcome in outcomes
        ]
        if failures:
            self.logger.info(
                f"{len(failures)} services had no resolvable name, using code as name"
            )
        return ServiceDiscoveryResult(services=services, failures=failures)

    # ------------------------------------------------------------------
    # Services by region
    # ------------------------------------------------------------------

    def _load_cached_mapping(
        self, force_refresh: bool
    ) -> Dict[str, RegionServiceAvailability]:
        if self.cache_store is None:
            return {}
        if force_refresh:
            self.logger.info("Force refresh requested, bypassing cache")
            return {}

        snapshot = self.cache_store.load()
        if not self.cache_store.is_valid(snapshot, self.config.cache_ttl):
            if snapshot is not None:
                self.logger.info("Cache snapshot expired, fetching all regions")
            return {}

        payload = snapshot.payload if isinstance(snapshot.payload, dict) else {}
        cached = {}
        for code, data in (payload.get("by_region") or {}).items():
            try:
                cached[code] = RegionServiceAvailability.from_dict(data)
            except ValidationError as e:
                self.logger.warning(f"Ignoring cached entry for {code}: {e}")
        return cached

    def _should_save_mapping(self, outcomes: List[BatchOutcome]) -> bool:
        """A snapshot is only written after a completed fetch that got some data."""
        if self.cache_store is None:
            return False
        if self.cancel_event is not None and self.cancel_event.is_set():
            self.logger.warning("Run cancelled, keeping the existing cache snapshot")
            return False
        if outcomes and not any(outcome.ok for outcome in outcomes):
            self.logger.warning(
                "No region could be fetched, keeping the existing cache snapshot",
                failed=len(outcomes),
            )
            return False
        return True

    async def _fetch_region_services(
        self, region_code: str, state: Optional[RetryState] = None
    ) -> List[str]:
        names = await self._list_names(
            region_services_path(region_code), recursive=True, state=state
        )
        return unique_codes(names)

    async def map_services_by_region(
        self,
        region_codes: List[str],
        total_services: int = 0,
        force_refresh: bool = False,
    ) -> ServiceMappingResult:
        """Map each region to the services available in it.

        Fresh per-region entries from a valid cache snapshot are reused; the rest
        are fetched in region-sized batches. The merged mapping is saved back to
        the cache, including on forced refresh, unless the run was cancelled or
        every fetched region failed.

        Args:
            region_codes: Regions to map
            total_services: Number of known services, for the summary
            force_refresh: Ignore the cache snapshot

        Returns:
            ServiceMappingResult with one entry per region
        """
        region_codes = sorted(set(region_codes))
        ttl = self.config.cache_ttl
        now = utc_now()

        cached = self._load_cached_mapping(force_refresh)
        by_region: Dict[str, RegionServiceAvailability] = {}
        stale = []
        for code in region_codes:
            entry = cached.get(code)
            if entry is not None and entry.is_fresh(ttl, now):
                by_region[code] = entry
            else:
                stale.append(code)

        cached_count = len(by_region)
        if cached_count:
            self.logger.info(
                f"Cache hit: {cached_count}/{len(region_codes)} regions (fresh)"
            )
        if not stale:
            self.logger.info("All regions loaded from cache, no API calls needed")

        outcomes, failures = await self._fetch_batched(
            MAPPING_PIPELINE,
            stale,
            self.config.service_by_region_batch_size,
            self.config.service_by_region_batch_delay,
            self._fetch_region_services,
            "Services-by-region listing",
        )

        for outcome in outcomes:
            if outcome.ok:
                by_region[outcome.item] = RegionServiceAvailability(
                    region_code=outcome.item,
                    service_codes=outcome.result,
                    last_fetched=utc_now(),
                )
            else:
                by_region[outcome.item] = RegionServiceAvailability(
                    region_code=outcome.item, error=str(outcome.error)
                )

        result = ServiceMappingResult(
            by_region={code: by_region[code] for code in region_codes},
            total_services=total_services,
            cached_regions=cached_count,
            fetched_regions=len(stale),
            failures=failures,
        )

        if self._should_save_mapping(outcomes):
            self.cache_store.save(
                {
                    "by_region": {
                        code: entry.to_dict()
                        for code, entry in result.by_region.items()
                    },
                    "summary": result.summary(),
                }
            )

        return result

    # ------------------------------------------------------------------
    # Orchestration
    # ------------------------------------------------------------------

    async def _run_pipeline(self, catalog: Catalog, pipeline: str, coro):
        try:
            with self.logger.timer(f"{pipeline} discovery"):
                return await coro
        except Exception as e:
            catalog.errors[pipeline] = str(e)
            return None

    async def run(self, options: Optional[DiscoveryOptions] = None) -> Catalog:
        """Run the requested pipelines and assemble the catalog.

        Regions and services discovery run concurrently. The services-by-region
        mapping runs afterwards because it needs the region codes.

        Raises:
            DiscoveryError: If every requested pipeline failed
        """
        options = options or DiscoveryOptions()
        catalog = Catalog()
        requested = []

        pending = {}
        if options.run_regions:
            pending[REGIONS_PIPELINE] = self.discover_regions()
        if options.run_services:
            pending[SERVICES_PIPELINE] = self.discover_services()
        requested.extend(pending)

        results = await asyncio.gather(
            *(
                self._run_pipeline(catalog, pipeline, coro)
                for pipeline, coro in pending.items()
            )
        )
        found = dict(zip(pending, results))
        catalog.regions = found.get(REGIONS_PIPELINE)
        catalog.services = found.get(SERVICES_PIPELINE)

        if options.run_service_mapping:
            requested.append(MAPPING_PIPELINE)
            if catalog.regions is None:
                catalog.errors[MAPPING_PIPELINE] = "region discovery did not succeed"
                self.logger.error("Skipping services-by-region mapping: no regions")
            else:
                catalog.services_by_region = await self._run_pipeline(
                    catalog,
                    MAPPING_PIPELINE,
                    self.map_services_by_region(
                        [region.code for region in catalog.regions.regions],
                        total_services=(
                            catalog.services.count if catalog.services else 0
                        ),
                        force_refresh=options.force_refresh,
                    ),
                )

        if requested and all(pipeline in catalog.errors for pipeline in requested):
            raise DiscoveryError(
                "All discovery pipelines failed: "
                + "; ".join(f"{k}: {v}" for k, v in catalog.errors.items())
            )

        for failure in catalog.failures:
            self.logger.debug("Recorded fetch failure", **failure.to_dict())
        return catalog
