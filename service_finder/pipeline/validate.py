"""Artifact contract checks: one serviceId property and one Polygon per feature."""

from __future__ import annotations

import json
from pathlib import Path

from service_finder.common.constants import SERVICE_ID_PROPERTY
from service_finder.common.errors import ContractError, StageError
from service_finder.common.fs import read_json


def _check_ring(ring: object, ctx: str) -> None:
    if not isinstance(ring, list) or len(ring) < 4:
        raise ContractError(f"{ctx}: ring needs at least four positions")
    for position in ring:
        if not isinstance(position, list) or len(position) < 2:
            raise ContractError(f"{ctx}: malformed position {position!r}")
    if ring[0] != ring[-1]:
        raise ContractError(f"{ctx}: ring is not closed")


def validate_artifact(path: Path) -> dict:
    if not path.exists():
        raise StageError(f"Missing artifact: {path}")
    try:
        payload = read_json(path)
    except json.JSONDecodeError as exc:
        raise ContractError(f"Artifact is not valid JSON: {path}") from exc

    if not isinstance(payload, dict) or payload.get("type") != "FeatureCollection":
        raise ContractError(f"Artifact is not a FeatureCollection: {path}")
    features = payload.get("features")
    if not isinstance(features, list):
        raise ContractError(f"Artifact has no features list: {path}")

    service_ids: set[str] = set()
    for idx, feature in enumerate(features):
        ctx = f"{path.name} features[{idx}]"
        properties = feature.get("properties") if isinstance(feature, dict) else None
        if not isinstance(properties, dict) or set(properties) != {SERVICE_ID_PROPERTY}:
            raise ContractError(f"{ctx}: properties must be exactly {{{SERVICE_ID_PROPERTY!r}}}")
        service_id = properties[SERVICE_ID_PROPERTY]
        if not isinstance(service_id, str) or not service_id:
            raise ContractError(f"{ctx}: {SERVICE_ID_PROPERTY} must be a non-empty string")

        geometry = feature.get("geometry")
        if not isinstance(geometry, dict) or geometry.get("type") != "Polygon":
            raise ContractError(f"{ctx}: geometry must be a single Polygon")
        rings = geometry.get("coordinates")
        if not isinstance(rings, list) or not rings:
            raise ContractError(f"{ctx}: polygon has no rings")
        for ring in rings:
            _check_ring(ring, ctx)

        service_ids.add(service_id)

    return {
        "path": str(path),
        "features": len(features),
        "services": len(service_ids),
    }
