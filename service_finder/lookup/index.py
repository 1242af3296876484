"""Point-in-polygon index over the per-category service artifacts.

A point lying exactly on a polygon edge counts as inside (``covers``), so a
postcode centroid snapped to a shared boundary returns the services on both
sides rather than neither.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

from shapely.geometry import Point, shape
from shapely.prepared import prep

from service_finder.common.constants import SERVICE_ID_PROPERTY
from service_finder.common.errors import ContractError
from service_finder.common.fs import read_json
from service_finder.common.logging import log_event
from service_finder.common.models import Coordinate

logger = logging.getLogger(__name__)


@dataclass
class IndexedPolygon:
    service_id: str
    minx: float
    miny: float
    maxx: float
    maxy: float
    prepared_geometry: Any

    def covers(self, point: Point) -> bool:
        if point.x < self.minx or point.x > self.maxx:
            return False
        if point.y < self.miny or point.y > self.maxy:
            return False
        return self.prepared_geometry.covers(point)


class PointContainmentIndex:
    def __init__(self, features: Iterable[dict[str, Any]]):
        self._polygons: list[IndexedPolygon] = []
        for feature in features:
            service_id = (feature.get("properties") or {}).get(SERVICE_ID_PROPERTY)
            geometry_mapping = feature.get("geometry")
            if not service_id or not geometry_mapping:
                continue

            geometry = shape(geometry_mapping)
            if geometry.is_empty:
                continue
            minx, miny, maxx, maxy = geometry.bounds
            self._polygons.append(
                IndexedPolygon(
                    service_id=service_id,
                    minx=minx,
                    miny=miny,
                    maxx=maxx,
                    maxy=maxy,
                    prepared_geometry=prep(geometry),
                )
            )

    def __len__(self) -> int:
        return len(self._polygons)

    @classmethod
    def from_artifacts(cls, paths: Iterable[Path]) -> "PointContainmentIndex":
        features: list[dict[str, Any]] = []
        for path in paths:
            if not path.exists():
                log_event(
                    logger,
                    f"service artifact {path} not found; category skipped",
                    level=logging.WARNING,
                    event="ARTIFACT_MISSING",
                    status="warning",
                )
                continue
            try:
                payload = read_json(path)
            except json.JSONDecodeError as exc:
                raise ContractError(f"Service artifact is not valid JSON: {path}") from exc
            loaded = payload.get("features", []) if isinstance(payload, dict) else []
            features.extend(loaded)
            log_event(
                logger,
                f"loaded {len(loaded)} polygons from {path.name}",
                event="ARTIFACT_LOADED",
                status="ok",
                count=len(loaded),
            )
        return cls(features)

    def services_containing(self, coordinate: Coordinate) -> set[str]:
        point = Point(coordinate.longitude, coordinate.latitude)
        return {polygon.service_id for polygon in self._polygons if polygon.covers(point)}


class IndexCache:
    """Process-wide holder that builds each index exactly once.

    Indexes are keyed by the artifact paths they were loaded from, so finders
    over different artifacts never share polygons. Concurrent first callers
    for one key block on the lock; the loser of the race finds the index
    already built and returns it without loading again.
    """

    def __init__(self) -> None:
        self._indexes: dict[tuple[Path, ...], PointContainmentIndex] = {}
        self._lock = threading.Lock()

    def get(self, artifact_paths: Iterable[Path], loader: Callable[[], PointContainmentIndex]) -> PointContainmentIndex:
        key = tuple(Path(path).resolve() for path in artifact_paths)
        index = self._indexes.get(key)
        if index is not None:
            return index
        with self._lock:
            if key not in self._indexes:
                self._indexes[key] = loader()
            return self._indexes[key]

    def reset(self) -> None:
        with self._lock:
            self._indexes.clear()


INDEX_CACHE = IndexCache()
