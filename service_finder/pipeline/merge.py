"""Resolve, flatten, simplify and dissolve service coverage polygons per category."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from shapely.errors import GEOSException
from shapely.geometry import Polygon
from shapely.ops import unary_union

from service_finder.boundaries.geometry import explode_polygons, feature_polygons
from service_finder.boundaries.resolver import MATCHED, WALES_FALLBACK, CodeResolver
from service_finder.common.errors import CodeNotResolved
from service_finder.common.logging import log_event
from service_finder.common.models import BoundaryFeature, Service, ServiceAreaPolygon
from service_finder.common.postcode import normalise_code

logger = logging.getLogger(__name__)

DUPLICATE_AREA_CODE = "DUPLICATE_AREA_CODE"
SERVICE_WITHOUT_GEOMETRY = "SERVICE_WITHOUT_GEOMETRY"
DISSOLVE_SKIPPED = "DISSOLVE_SKIPPED"
WALES_FALLBACK_APPLIED = "WALES_FALLBACK_APPLIED"


@dataclass(frozen=True)
class SimplifySettings:
    tolerance: float
    preserve_topology: bool = True

    @classmethod
    def from_config(cls, simplify_cfg: dict) -> "SimplifySettings":
        return cls(
            tolerance=float(simplify_cfg["tolerance"]),
            preserve_topology=bool(simplify_cfg.get("preserve_topology", True)),
        )


@dataclass
class MergeOutcome:
    category: str
    services_in: int = 0
    services_with_geometry: int = 0
    polygons: list[ServiceAreaPolygon] = field(default_factory=list)
    issues: list[dict] = field(default_factory=list)

    def record(self, kind: str, service_id: str, *, code: str | None = None, detail: str | None = None) -> None:
        issue = {"kind": kind, "category": self.category, "service_id": service_id}
        if code is not None:
            issue["code"] = code
        if detail is not None:
            issue["detail"] = detail
        self.issues.append(issue)
        log_event(
            logger,
            detail or kind.lower().replace("_", " "),
            level=logging.WARNING,
            category=self.category,
            service_id=service_id,
            code=code,
            event=kind,
            status="warning",
        )

    def summary(self) -> dict:
        by_kind: dict[str, int] = {}
        for issue in self.issues:
            by_kind[issue["kind"]] = by_kind.get(issue["kind"], 0) + 1
        return {
            "services_in": self.services_in,
            "services_with_geometry": self.services_with_geometry,
            "polygons_out": len(self.polygons),
            "issues_by_kind": dict(sorted(by_kind.items())),
        }


def services_in_category(services: list[Service], category_cfg: dict) -> list[Service]:
    if category_cfg.get("match_all"):
        return list(services)
    return [service for service in services if service.offers(category_cfg["id"])]


def distinct_codes(codes: tuple[str, ...]) -> tuple[list[str], list[str]]:
    """Split ``codes`` into first occurrences and the repeats that were collapsed."""
    seen: set[str] = set()
    distinct: list[str] = []
    duplicates: list[str] = []
    for code in codes:
        key = normalise_code(code)
        if not key:
            continue
        if key in seen:
            duplicates.append(code)
            continue
        seen.add(key)
        distinct.append(code)
    return distinct, duplicates


class _PolygonCache:
    """Converted polygons per boundary feature; Wales fallback reuses the same features many times.

    Keyed by feature identity: one area can be split across several features
    sharing a code, and each keeps its own geometry.
    """

    def __init__(self) -> None:
        self._cache: dict[int, tuple[BoundaryFeature, list[Polygon]]] = {}

    def polygons(self, feature: BoundaryFeature) -> list[Polygon]:
        key = id(feature)
        if key not in self._cache:
            self._cache[key] = (feature, feature_polygons(feature))
        return self._cache[key][1]


def simplify_polygons(polygons: list[Polygon], settings: SimplifySettings) -> list[Polygon]:
    if settings.tolerance <= 0:
        return list(polygons)
    out = []
    for polygon in polygons:
        simplified = polygon.simplify(settings.tolerance, preserve_topology=settings.preserve_topology)
        out.extend(explode_polygons(simplified))
    return out


def dissolve(polygons: list[Polygon]) -> tuple[list[Polygon], bool]:
    """Union polygons into as few parts as possible.

    Overlapping input is allowed. If GEOS cannot union the set (typically a
    self-intersecting source ring) the parts are kept as they are and the
    second element of the result is ``False``.
    """
    if len(polygons) <= 1:
        return list(polygons), True
    try:
        merged = unary_union(polygons)
    except GEOSException:
        return list(polygons), False
    return explode_polygons(merged), True


def _resolve_service(
    service: Service,
    resolver: CodeResolver,
    cache: _PolygonCache,
    outcome: MergeOutcome,
) -> list[Polygon]:
    codes, duplicates = distinct_codes(service.area_codes)
    for code in duplicates:
        outcome.record(DUPLICATE_AREA_CODE, service.service_id, code=code, detail=f"duplicate area code {code} collapsed")

    polygons: list[Polygon] = []
    for code in codes:
        resolution = resolver.resolve(code)
        if resolution.status == MATCHED:
            polygons.extend(cache.polygons(resolution.feature))
        elif resolution.status == WALES_FALLBACK:
            outcome.record(
                WALES_FALLBACK_APPLIED,
                service.service_id,
                code=code,
                detail=f"{code} has no Welsh sub-region entry; covering all of Wales",
            )
            for feature in resolver.wales_features():
                polygons.extend(cache.polygons(feature))
        else:
            outcome.record(
                CodeNotResolved.error_code,
                service.service_id,
                code=code,
                detail=f"could not find a boundary for {code}",
            )
    return polygons


def merge_category(
    category_cfg: dict,
    services: list[Service],
    resolver: CodeResolver,
    settings: SimplifySettings,
) -> MergeOutcome:
    """Build the flattened ``(serviceId, Polygon)`` list for one category.

    Raises ``UnexpectedGeometryShape`` when a resolved boundary is neither a
    Polygon nor a MultiPolygon; every other data-quality problem is recorded
    on the returned outcome and the build carries on.
    """
    outcome = MergeOutcome(category=category_cfg["id"])
    cache = _PolygonCache()
    members = sorted(services_in_category(services, category_cfg), key=lambda service: service.service_id)
    outcome.services_in = len(members)

    for service in members:
        polygons = simplify_polygons(_resolve_service(service, resolver, cache, outcome), settings)
        if not polygons:
            outcome.record(SERVICE_WITHOUT_GEOMETRY, service.service_id, detail="service has no resolvable area")
            continue

        dissolved, unioned = dissolve(polygons)
        if not unioned:
            outcome.record(DISSOLVE_SKIPPED, service.service_id, detail="union failed; parts kept separately")

        outcome.services_with_geometry += 1
        outcome.polygons.extend(ServiceAreaPolygon(service.service_id, polygon) for polygon in dissolved)

    return outcome
