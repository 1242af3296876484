"""GeoJSON boundary geometry to shapely polygons, reprojected to WGS84."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Iterable

from pyproj import CRS, Transformer
from shapely.geometry import MultiPolygon, Polygon
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform

from service_finder.common.constants import COORDINATE_PRECISION, WGS84_EPSG
from service_finder.common.errors import UnexpectedGeometryShape
from service_finder.common.models import BoundaryFeature

POLYGON_TYPES = {"Polygon", "MultiPolygon"}


@lru_cache(maxsize=None)
def _transformer_to_wgs84(source_epsg: int) -> Transformer:
    return Transformer.from_crs(CRS.from_epsg(source_epsg), CRS.from_epsg(WGS84_EPSG), always_xy=True)


def to_wgs84(geometry: BaseGeometry, source_epsg: int) -> BaseGeometry:
    if source_epsg == WGS84_EPSG:
        return geometry
    return transform(_transformer_to_wgs84(source_epsg).transform, geometry)


def _polygon_from_rings(rings: list) -> Polygon:
    shell, *holes = rings
    return Polygon(shell, holes)


def ring_groups(geometry: dict[str, Any] | None, *, dataset: str, code: str) -> list[list]:
    """One ring group (shell followed by holes) per polygon in ``geometry``."""
    geometry_type = geometry.get("type") if isinstance(geometry, dict) else None
    if geometry_type not in POLYGON_TYPES:
        raise UnexpectedGeometryShape(dataset, code, geometry_type)

    coordinates = geometry.get("coordinates") or []
    if geometry_type == "Polygon":
        return [coordinates] if coordinates else []
    return [group for group in coordinates if group]


def feature_polygons(feature: BoundaryFeature) -> list[Polygon]:
    polygons = []
    for rings in ring_groups(feature.geometry, dataset=feature.dataset, code=feature.code):
        polygon = to_wgs84(_polygon_from_rings(rings), feature.epsg)
        if not polygon.is_empty:
            polygons.append(polygon)
    return polygons


def explode_polygons(geometry: BaseGeometry) -> list[Polygon]:
    if isinstance(geometry, Polygon):
        return [] if geometry.is_empty else [geometry]
    if isinstance(geometry, MultiPolygon):
        return [part for part in geometry.geoms if not part.is_empty]
    # unary_union of touching polygons can yield a GeometryCollection with slivers.
    return [part for part in getattr(geometry, "geoms", []) if isinstance(part, Polygon) and not part.is_empty]


def _round_ring(ring: Iterable) -> list[list[float]]:
    return [[round(x, COORDINATE_PRECISION), round(y, COORDINATE_PRECISION)] for x, y, *_ in ring]


def polygon_to_geojson(polygon: Polygon) -> dict[str, Any]:
    rings = [_round_ring(polygon.exterior.coords)]
    rings.extend(_round_ring(interior.coords) for interior in polygon.interiors)
    return {"type": "Polygon", "coordinates": rings}
