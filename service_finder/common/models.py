"""Data models shared across the build and lookup paths."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from shapely.geometry import Polygon


@dataclass(frozen=True)
class Service:
    service_id: str
    name: str
    postcode: str | None
    area_codes: tuple[str, ...]
    categories: tuple[str, ...]
    country: str | None
    record: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def offers(self, category: str) -> bool:
        return category in self.categories


@dataclass(frozen=True)
class BoundaryFeature:
    code: str
    geometry: dict[str, Any] | None
    dataset: str
    name: str | None = None
    epsg: int = 4326


@dataclass(frozen=True)
class ServiceAreaPolygon:
    service_id: str
    polygon: Polygon


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -90 <= self.latitude <= 90 or not -180 <= self.longitude <= 180:
            raise ValueError(f"Coordinate out of range: ({self.latitude}, {self.longitude})")


@dataclass(frozen=True)
class PostcodeQuery:
    text: str
    kind = "postcode"


@dataclass(frozen=True)
class OutcodeQuery:
    text: str
    kind = "outcode"


@dataclass(frozen=True)
class PlaceQuery:
    text: str
    kind = "place"


LocationQuery = Union[PostcodeQuery, OutcodeQuery, PlaceQuery]


@dataclass(frozen=True)
class ResolvedLocation:
    query: LocationQuery
    coordinate: Coordinate
    label: str


@dataclass(frozen=True)
class PostcodeDetails:
    """Everything the geocoder reports for one unit postcode."""

    postcode: str
    coordinate: Coordinate | None
    country: str | None
    admin_district: str | None
    ccg: str | None
    ccg_id: str | None
    icb: str | None
    icb_id: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "postcode": self.postcode,
            "latitude": self.coordinate.latitude if self.coordinate else None,
            "longitude": self.coordinate.longitude if self.coordinate else None,
            "country": self.country,
            "admin_district": self.admin_district,
            "ccg": self.ccg,
            "ccg_id": self.ccg_id,
            "icb": self.icb,
            "icb_id": self.icb_id,
        }
