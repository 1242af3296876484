"""Boundary dataset adapters.

Every configured source is presented as a flat list of ``BoundaryFeature``
objects keyed by the area code found under the dataset's ``code_key``. Which
adapter handles a source is chosen by its ``kind`` in
``config/boundary_sources.yml``; a source that is missing or unreadable is
logged and treated as an empty dataset so that priority resolution falls
through to the next source.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

from service_finder.common.constants import WGS84_EPSG
from service_finder.common.errors import DataSourceMissing
from service_finder.common.fs import read_json
from service_finder.common.logging import log_event
from service_finder.common.models import BoundaryFeature

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatasetSpec:
    name: str
    kind: str
    path: str
    code_key: str
    label: str | None = None
    name_key: str | None = None
    epsg: int = WGS84_EPSG

    @classmethod
    def from_config(cls, cfg: dict) -> "DatasetSpec":
        return cls(
            name=cfg["name"],
            kind=cfg["kind"],
            path=cfg["path"],
            code_key=cfg["code_key"],
            label=cfg.get("label"),
            name_key=cfg.get("name_key"),
            epsg=int(cfg.get("epsg") or WGS84_EPSG),
        )

    @property
    def display_name(self) -> str:
        return self.label or self.name


@dataclass(frozen=True)
class BoundaryDataset:
    spec: DatasetSpec
    features: list[BoundaryFeature] = field(default_factory=list)
    available: bool = True

    @property
    def name(self) -> str:
        return self.spec.name


def _read_feature_collection(path: Path) -> list[dict[str, Any]]:
    if not path.is_file():
        raise DataSourceMissing(f"Boundary file not found: {path}")
    try:
        payload = read_json(path)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise DataSourceMissing(f"Unreadable boundary file {path}: {exc}") from exc
    if not isinstance(payload, dict) or payload.get("type") != "FeatureCollection":
        raise DataSourceMissing(f"Not a GeoJSON FeatureCollection: {path}")
    features = payload.get("features")
    if not isinstance(features, list):
        raise DataSourceMissing(f"FeatureCollection without a features list: {path}")
    return features


def _to_boundary_features(raw_features: list[dict[str, Any]], spec: DatasetSpec) -> list[BoundaryFeature]:
    out: list[BoundaryFeature] = []
    for raw in raw_features:
        if not isinstance(raw, dict):
            continue
        properties = raw.get("properties") or {}
        code = properties.get(spec.code_key)
        if code in (None, ""):
            continue
        out.append(
            BoundaryFeature(
                code=str(code).strip(),
                geometry=raw.get("geometry"),
                dataset=spec.name,
                name=properties.get(spec.name_key) if spec.name_key else None,
                epsg=spec.epsg,
            )
        )
    return out


def _load_feature_collection(spec: DatasetSpec, boundaries_dir: Path) -> list[BoundaryFeature]:
    return _to_boundary_features(_read_feature_collection(boundaries_dir / spec.path), spec)


def _load_feature_collection_dir(spec: DatasetSpec, boundaries_dir: Path) -> list[BoundaryFeature]:
    directory = boundaries_dir / spec.path
    if not directory.is_dir():
        raise DataSourceMissing(f"Boundary directory not found: {directory}")

    features: list[BoundaryFeature] = []
    for path in sorted(directory.iterdir()):
        if path.suffix.lower() not in {".json", ".geojson"}:
            continue
        try:
            features.extend(_to_boundary_features(_read_feature_collection(path), spec))
        except DataSourceMissing as exc:
            # One bad area file must not hide the remaining areas.
            log_event(
                logger,
                str(exc),
                level=logging.WARNING,
                dataset=spec.name,
                event="DATASET_PART_SKIPPED",
                status="warning",
                error_code=exc.error_code,
            )
    return features


DATASET_LOADERS: dict[str, Callable[[DatasetSpec, Path], list[BoundaryFeature]]] = {
    "feature_collection": _load_feature_collection,
    "feature_collection_dir": _load_feature_collection_dir,
}


def load_dataset(spec: DatasetSpec, boundaries_dir: Path) -> BoundaryDataset:
    loader = DATASET_LOADERS[spec.kind]
    try:
        features = loader(spec, boundaries_dir)
    except DataSourceMissing as exc:
        log_event(
            logger,
            str(exc),
            level=logging.WARNING,
            dataset=spec.name,
            event="DATASET_MISSING",
            status="warning",
            error_code=exc.error_code,
        )
        return BoundaryDataset(spec=spec, features=[], available=False)

    log_event(
        logger,
        f"loaded {len(features)} features from {spec.display_name}",
        level=logging.DEBUG,
        dataset=spec.name,
        event="DATASET_LOADED",
        status="ok",
        count=len(features),
    )
    return BoundaryDataset(spec=spec, features=features)


def specs_from_config(boundaries_cfg: dict) -> list[DatasetSpec]:
    return [DatasetSpec.from_config(item) for item in boundaries_cfg["datasets"]]


def load_datasets(specs: list[DatasetSpec], boundaries_dir: Path) -> dict[str, BoundaryDataset]:
    return {spec.name: load_dataset(spec, boundaries_dir) for spec in specs}
