"""Service-area artifact export."""

from __future__ import annotations

from pathlib import Path

from service_finder.boundaries.geometry import polygon_to_geojson
from service_finder.common.constants import SERVICE_ID_PROPERTY
from service_finder.common.fs import write_json
from service_finder.common.models import ServiceAreaPolygon


def _feature(entry: ServiceAreaPolygon) -> dict:
    return {
        "type": "Feature",
        "properties": {SERVICE_ID_PROPERTY: entry.service_id},
        "geometry": polygon_to_geojson(entry.polygon),
    }


def artifact_path(data_dir: Path, categories_cfg: dict, category_cfg: dict) -> Path:
    return data_dir / categories_cfg["artifacts_dir"] / category_cfg["output"]


def write_service_area_artifact(path: Path, polygons: list[ServiceAreaPolygon]) -> Path:
    # sorted() is stable, so parts of one service keep their dissolve order.
    ordered = sorted(polygons, key=lambda entry: entry.service_id)
    write_json(path, {"type": "FeatureCollection", "features": [_feature(entry) for entry in ordered]})
    return path
