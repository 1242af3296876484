"""Free-text location input to a coordinate.

Input is classified purely by shape: a full unit postcode, otherwise an
outcode, otherwise a place name. Each class goes to its own geocoder call.
"""

from __future__ import annotations

from typing import Protocol

from service_finder.common.errors import GeocodingNotFound, InvalidLocationError
from service_finder.common.models import (
    Coordinate,
    LocationQuery,
    OutcodeQuery,
    PlaceQuery,
    PostcodeDetails,
    PostcodeQuery,
    ResolvedLocation,
)
from service_finder.common.postcode import (
    PLACE_FORMAT_HINT,
    POSTCODE_FORMAT_HINT,
    normalise_outcode,
    normalise_place,
    normalise_postcode,
)


class Geocoder(Protocol):
    def lookup_postcode(self, postcode: str) -> PostcodeDetails: ...

    def lookup_outcode(self, outcode: str) -> tuple[Coordinate, str]: ...

    def lookup_place(self, name: str) -> tuple[Coordinate, str]: ...


def classify_location(raw: str | None) -> LocationQuery:
    postcode = normalise_postcode(raw)
    if postcode is not None:
        return PostcodeQuery(postcode)

    outcode = normalise_outcode(raw)
    if outcode is not None:
        return OutcodeQuery(outcode)

    place = normalise_place(raw)
    if place is None:
        raise InvalidLocationError(
            f"Empty location; expected {POSTCODE_FORMAT_HINT} or {PLACE_FORMAT_HINT}",
            query=raw or "",
            expected_format=POSTCODE_FORMAT_HINT,
        )
    return PlaceQuery(place)


def resolve_query(query: LocationQuery, geocoder: Geocoder) -> ResolvedLocation:
    if isinstance(query, PostcodeQuery):
        details = geocoder.lookup_postcode(query.text)
        if details.coordinate is None:
            raise GeocodingNotFound(
                f"Postcode {query.text!r} has no coordinates; expected {POSTCODE_FORMAT_HINT}",
                query=query.text,
                expected_format=POSTCODE_FORMAT_HINT,
            )
        return ResolvedLocation(query=query, coordinate=details.coordinate, label=details.postcode or query.text)

    if isinstance(query, OutcodeQuery):
        coordinate, label = geocoder.lookup_outcode(query.text)
    else:
        coordinate, label = geocoder.lookup_place(query.text)
    return ResolvedLocation(query=query, coordinate=coordinate, label=label)


def resolve_location(raw: str | None, geocoder: Geocoder) -> ResolvedLocation:
    return resolve_query(classify_location(raw), geocoder)
