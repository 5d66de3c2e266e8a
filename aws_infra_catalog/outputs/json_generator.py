"""JSON output generator for discovered catalogs."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pytz

from ..core.logging import get_logger
from ..core.models import Catalog

FORMAT_VERSION = "1.0"


class OutputError(Exception):
    """Exception raised when an output document cannot be written."""

    pass


class CatalogJSONGenerator:
    """Write one JSON document per entity family plus a combined document."""

    def __init__(self, output_dir: str = "output"):
        self.output_dir = Path(output_dir)
        self.logger = get_logger("json_generator")

    def _summary(
        self, count: int, timestamp: datetime, source: str, **extra
    ) -> Dict[str, Any]:
        """Build the summary block shared by every output document."""
        eastern = pytz.timezone("US/Eastern")
        utc_time = timestamp.astimezone(pytz.UTC)
        summary = {
            "count": count,
            "generated_at": utc_time.isoformat(),
            "generated_at_readable": utc_time.astimezone(eastern).strftime(
                "%Y-%m-%d %H:%M:%S %Z"
            ),
            "source": source,
            "format_version": FORMAT_VERSION,
        }
        summary.update(extra)
        return summary

    def build_documents(self, catalog: Catalog) -> Dict[str, Dict[str, Any]]:
        """Build output documents keyed by file name.

        Args:
            catalog: Assembled discovery catalog

        Returns:
            Mapping of file name to JSON document
        """
        documents: Dict[str, Dict[str, Any]] = {}

        if catalog.regions is not None:
            regions = catalog.regions
            documents["regions.json"] = {
                "summary": self._summary(
                    regions.count,
                    regions.timestamp,
                    regions.source,
                    total_availability_zones=regions.total_availability_zones,
                    excluded_regions=list(regions.excluded),
                    failures=len(regions.failures),
                ),
                "regions": [region.to_dict() for region in regions.regions],
            }

        if catalog.services is not None:
            services = catalog.services
            documents["services.json"] = {
                "summary": self._summary(
                    services.count,
                    services.timestamp,
                    services.source,
                    failures=len(services.failures),
                ),
                "services": [service.to_dict() for service in services.services],
            }

        if catalog.services_by_region is not None:
            mapping = catalog.services_by_region
            documents["services-by-region.json"] = {
                "summary": self._summary(
                    len(mapping.by_region),
                    mapping.timestamp,
                    catalog.source,
                    total_services=mapping.total_services,
                    cached_regions=mapping.cached_regions,
                    fetched_regions=mapping.fetched_regions,
                    average_services_per_region=mapping.average_services_per_region,
                    total_service_instances=mapping.total_service_instances,
                    failures=len(mapping.failures),
                ),
                "regions": [entry.to_dict() for entry in mapping.by_region.values()],
            }

        complete: Dict[str, Any] = {
            "summary": self._summary(
                len(documents),
                catalog.timestamp,
                catalog.source,
                errors=dict(catalog.errors),
                failures=[failure.to_dict() for failure in catalog.failures],
            )
        }
        for name, document in documents.items():
            complete[name[: -len(".json")].replace("-", "_")] = document
        documents["complete-data.json"] = complete

        return documents

    def generate(self, catalog: Catalog) -> List[str]:
        """Write every output document for the catalog.

        Args:
            catalog: Assembled discovery catalog

        Returns:
            Paths of the written files

        Raises:
            OutputError: If a file cannot be written
        """
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputError(
                f"Cannot create output directory {self.output_dir}: {e}"
            ) from e

        paths = []
        for name, document in self.build_documents(catalog).items():
            paths.append(self._write(name, document))
        return paths

    def _write(self, name: str, document: Dict[str, Any]) -> str:
        filepath = self.output_dir / name
        try:
            with open(filepath, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, ensure_ascii=False)
        except (OSError, TypeError, ValueError) as e:
            raise OutputError(f"JSON generation failed for {filepath}: {e}") from e

        self.logger.info(f"Saved data to: {filepath}")
        return str(filepath)
