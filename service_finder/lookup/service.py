"""Entry points used by the query surface: location text or coordinate -> services."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from service_finder.common.config_loader import ConfigBundle
from service_finder.common.models import Coordinate, ResolvedLocation, Service
from service_finder.geocoding.location import Geocoder, resolve_location
from service_finder.lookup.index import INDEX_CACHE, IndexCache, PointContainmentIndex
from service_finder.pipeline.export import artifact_path


@dataclass(frozen=True)
class LookupResult:
    location: ResolvedLocation | None
    services: list[Service]

    def to_dict(self) -> dict:
        location = None
        if self.location is not None:
            location = {
                "kind": self.location.query.kind,
                "query": self.location.query.text,
                "label": self.location.label,
                "latitude": self.location.coordinate.latitude,
                "longitude": self.location.coordinate.longitude,
            }
        return {
            "location": location,
            "services": [{"id": service.service_id, "serviceName": service.name} for service in self.services],
        }


def lookup_artifact_paths(bundle: ConfigBundle, data_dir: Path) -> list[Path]:
    return [
        artifact_path(data_dir, bundle.categories, bundle.category(category_id))
        for category_id in bundle.categories["lookup"]["categories"]
    ]


class ServiceFinder:
    def __init__(
        self,
        services: list[Service],
        artifact_paths: list[Path],
        geocoder: Geocoder,
        *,
        cache: IndexCache = INDEX_CACHE,
    ) -> None:
        self.services = services
        self.artifact_paths = list(artifact_paths)
        self.geocoder = geocoder
        self.cache = cache

    def index(self) -> PointContainmentIndex:
        return self.cache.get(self.artifact_paths, lambda: PointContainmentIndex.from_artifacts(self.artifact_paths))

    def _hydrate(self, service_ids: set[str]) -> list[Service]:
        # Registry order; ids with no registry record are dropped.
        return [service for service in self.services if service.service_id in service_ids]

    def find_for_coordinate(self, coordinate: Coordinate) -> LookupResult:
        return LookupResult(location=None, services=self._hydrate(self.index().services_containing(coordinate)))

    def find_for_location(self, text: str) -> LookupResult:
        location = resolve_location(text, self.geocoder)
        matched = self.index().services_containing(location.coordinate)
        return LookupResult(location=location, services=self._hydrate(matched))
