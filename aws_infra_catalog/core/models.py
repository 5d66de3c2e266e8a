"""Data model for the infrastructure catalog."""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .error_handling import ValidationError

REGION_CODE_PATTERN = re.compile(r"^[a-z]{2}-[a-z]+-\d+$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_parameter_path(path: str) -> str:
    """Ensure a parameter path is absolute and non-empty.

    Raises:
        ValidationError: If the path is empty or relative
    """
    if not isinstance(path, str) or not path.strip():
        raise ValidationError("Parameter path must be a non-empty string")
    if not path.startswith("/"):
        raise ValidationError(f"Parameter path must be absolute: {path!r}")
    return path


def last_path_segment(path: str) -> str:
    return path.rstrip("/").rsplit("/", 1)[-1]


@dataclass(frozen=True)
class ParameterEntry:
    """A single parameter fetched from the store."""

    path: str
    value: str

    def __post_init__(self):
        validate_parameter_path(self.path)


@dataclass(frozen=True)
class Region:
    """An AWS region with display metadata."""

    code: str
    name: str
    availability_zone_count: int = 0
    launch_date: Optional[str] = None
    announcement_url: Optional[str] = None

    def __post_init__(self):
        if not REGION_CODE_PATTERN.match(self.code):
            raise ValidationError(f"Invalid region code: {self.code!r}")
        if self.availability_zone_count < 0:
            raise ValidationError(
                f"Negative availability zone count for {self.code}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "name": self.name,
            "availability_zone_count": self.availability_zone_count,
            "launch_date": self.launch_date,
            "announcement_url": self.announcement_url,
        }


@dataclass(frozen=True)
class Service:
    """An AWS service with its display name."""

    code: str
    name: str

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "name": self.name}


@dataclass
class AvailabilityZone:
    """AZ id and its parent region, only used while counting AZs."""

    id: str
    parent_region_code: Optional[str] = None


@dataclass
class RegionServiceAvailability:
    """Services available in one region."""

    region_code: str
    service_codes: List[str] = field(default_factory=list)
    last_fetched: Optional[datetime] = None
    error: Optional[str] = None

    def __post_init__(self):
        # Keep the set semantics while staying JSON friendly
        self.service_codes = sorted(set(self.service_codes))

    @property
    def service_count(self) -> int:
        return len(self.service_codes)

    def is_fresh(self, ttl, now: Optional[datetime] = None) -> bool:
        """True if this entry was fetched successfully within the TTL."""
        if self.error or self.last_fetched is None:
            return False
        now = now or utc_now()
        return now - self.last_fetched <= ttl

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "region_code": self.region_code,
            "service_count": self.service_count,
            "services": list(self.service_codes),
            "last_fetched": self.last_fetched.isoformat()
            if self.last_fetched
            else None,
        }
        if self.error:
            data["error"] = self.error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RegionServiceAvailability":
        """Rebuild an entry from its cached form.

        Raises:
            ValidationError: If the cached entry is malformed
        """
        try:
            last_fetched = data.get("last_fetched")
            return cls(
                region_code=data["region_code"],
                service_codes=list(data.get("services", [])),
                last_fetched=parse_timestamp(last_fetched) if last_fetched else None,
                error=data.get("error"),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise ValidationError(f"Malformed region service entry: {e}") from e


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class FetchFailure:
    """A per-item failure recorded instead of aborting the pipeline."""

    pipeline: str
    item: str
    error_type: str
    message: str
    attempts: int = 1

    @classmethod
    def from_exception(
        cls,
        pipeline: str,
        item: str,
        error: BaseException,
        attempts: Optional[int] = None,
    ) -> "FetchFailure":
        """Record a failure, taking ``attempts`` from the task when known."""
        cause = getattr(error, "cause", None)
        if attempts is None:
            attempts = getattr(error, "attempts", 1)
        return cls(
            pipeline=pipeline,
            item=item,
            error_type=type(cause or error).__name__,
            message=str(error),
            attempts=attempts,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pipeline": self.pipeline,
            "item": self.item,
            "error_type": self.error_type,
            "message": self.message,
            "attempts": self.attempts,
        }


@dataclass
class RegionDiscoveryResult:
    regions: List[Region]
    failures: List[FetchFailure] = field(default_factory=list)
    # Listed codes outside the aa-name-N format, e.g. us-gov-west-1
    excluded: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)
    source: str = "ssm"

    @property
    def count(self) -> int:
        return len(self.regions)

    @property
    def total_availability_zones(self) -> int:
        return sum(region.availability_zone_count for region in self.regions)


@dataclass
class ServiceDiscoveryResult:
    services: List[Service]
    failures: List[FetchFailure] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)
    source: str = "ssm"

    @property
    def count(self) -> int:
        return len(self.services)


@dataclass
class ServiceMappingResult:
    by_region: Dict[str, RegionServiceAvailability]
    total_services: int = 0
    cached_regions: int = 0
    fetched_regions: int = 0
    failures: List[FetchFailure] = field(default_factory=list)
    timestamp: datetime = field(default_factory=utc_now)

    @property
    def average_services_per_region(self) -> int:
        if not self.by_region:
            return 0
        counts = [entry.service_count for entry in self.by_region.values()]
        return round(sum(counts) / len(counts))

    @property
    def total_service_instances(self) -> int:
        return sum(entry.service_count for entry in self.by_region.values())

    def summary(self) -> Dict[str, Any]:
        return {
            "total_regions": len(self.by_region),
            "total_services": self.total_services,
            "average_services_per_region": self.average_services_per_region,
            "cached_regions": self.cached_regions,
            "fetched_regions": self.fetched_regions,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Catalog:
    """Assembled output of one discovery run."""

    regions: Optional[RegionDiscoveryResult] = None
    services: Optional[ServiceDiscoveryResult] = None
    services_by_region: Optional[ServiceMappingResult] = None
    errors: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=utc_now)
    source: str = "ssm"

    @property
    def failures(self) -> List[FetchFailure]:
        collected: List[FetchFailure] = []
        for result in (self.regions, self.services, self.services_by_region):
            if result is not None:
                collected.extend(result.failures)
        return collected

    @property
    def succeeded(self) -> bool:
        return not self.errors
