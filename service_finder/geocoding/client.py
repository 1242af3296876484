"""postcodes.io geocoding collaborator."""

from __future__ import annotations

from typing import Any
from urllib.parse import quote

from service_finder.common.errors import GeocodingError, GeocodingNotFound, GeocodingTimeout
from service_finder.common.http import HttpClient, HttpRequestError, HttpTimeoutError, NotFoundHttpError
from service_finder.common.models import Coordinate, PostcodeDetails
from service_finder.common.postcode import (
    OUTCODE_FORMAT_HINT,
    PLACE_FORMAT_HINT,
    POSTCODE_FORMAT_HINT,
)

BULK_LOOKUP_LIMIT = 100


def _coordinate(result: dict[str, Any]) -> Coordinate | None:
    latitude = result.get("latitude")
    longitude = result.get("longitude")
    if latitude is None or longitude is None:
        return None
    return Coordinate(latitude=float(latitude), longitude=float(longitude))


def _postcode_details(result: dict[str, Any]) -> PostcodeDetails:
    codes = result.get("codes") or {}
    return PostcodeDetails(
        postcode=result.get("postcode") or "",
        coordinate=_coordinate(result),
        country=result.get("country"),
        admin_district=result.get("admin_district"),
        ccg=codes.get("ccg") or None,
        ccg_id=codes.get("ccg_id") or None,
        icb=codes.get("icb") or None,
        icb_id=codes.get("icb_code") or codes.get("icb_id") or None,
    )


def _first(value: Any) -> Any:
    if isinstance(value, list):
        return value[0] if value else None
    return value


class PostcodesIoClient:
    def __init__(self, http: HttpClient, base_url: str = "https://api.postcodes.io") -> None:
        self.http = http
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_config(cls, geocoding_cfg: dict) -> "PostcodesIoClient":
        return cls(HttpClient.from_config(geocoding_cfg), geocoding_cfg["base_url"])

    def close(self) -> None:
        self.http.close()

    def _get_result(
        self,
        path: str,
        *,
        query: str,
        kind: str,
        expected_format: str,
        params: dict[str, Any] | None = None,
    ) -> Any:
        url = f"{self.base_url}/{path}"
        try:
            payload = self.http.get_json(url, params=params)
        except NotFoundHttpError as exc:
            reason = (exc.payload or {}).get("error") if isinstance(exc.payload, dict) else None
            raise GeocodingNotFound(
                f"No {kind} found for {query!r} ({reason or 'not found'}); expected {expected_format}",
                query=query,
                expected_format=expected_format,
            ) from exc
        except HttpTimeoutError as exc:
            raise GeocodingTimeout(
                f"Timed out looking up {kind} {query!r}; expected {expected_format}; try again shortly",
                query=query,
                expected_format=expected_format,
            ) from exc
        except HttpRequestError as exc:
            raise GeocodingError(
                f"Geocoding service failed for {kind} {query!r}: {exc}; expected {expected_format}",
                query=query,
                expected_format=expected_format,
            ) from exc

        if not isinstance(payload, dict) or payload.get("status", 200) != 200 or not payload.get("result"):
            raise GeocodingNotFound(
                f"No {kind} found for {query!r}; expected {expected_format}",
                query=query,
                expected_format=expected_format,
            )
        return payload["result"]

    def lookup_postcode(self, postcode: str) -> PostcodeDetails:
        result = self._get_result(
            f"postcodes/{quote(postcode)}",
            query=postcode,
            kind="postcode",
            expected_format=POSTCODE_FORMAT_HINT,
        )
        return _postcode_details(result)

    def lookup_outcode(self, outcode: str) -> tuple[Coordinate, str]:
        result = self._get_result(
            f"outcodes/{quote(outcode)}",
            query=outcode,
            kind="outcode",
            expected_format=OUTCODE_FORMAT_HINT,
        )
        coordinate = _coordinate(result)
        if coordinate is None:
            raise GeocodingNotFound(
                f"Outcode {outcode!r} has no centroid; expected {OUTCODE_FORMAT_HINT}",
                query=outcode,
                expected_format=OUTCODE_FORMAT_HINT,
            )
        district = _first(result.get("admin_district"))
        label = result.get("outcode") or outcode
        return coordinate, f"{label}, {district}" if district else label

    def lookup_place(self, name: str) -> tuple[Coordinate, str]:
        results = self._get_result(
            "places",
            query=name,
            kind="place",
            expected_format=PLACE_FORMAT_HINT,
            params={"q": name, "limit": 1},
        )
        place = _first(results)
        coordinate = _coordinate(place or {})
        if coordinate is None:
            raise GeocodingNotFound(
                f"Place {name!r} has no coordinates; expected {PLACE_FORMAT_HINT}",
                query=name,
                expected_format=PLACE_FORMAT_HINT,
            )
        parts = [place.get("name_1") or name, place.get("county_unitary") or place.get("region")]
        return coordinate, ", ".join(part for part in parts if part)

    def bulk_lookup_postcodes(self, postcodes: list[str]) -> dict[str, PostcodeDetails | None]:
        """Detail per requested postcode; ``None`` for ones the service does not know."""
        out: dict[str, PostcodeDetails | None] = {}
        for start in range(0, len(postcodes), BULK_LOOKUP_LIMIT):
            chunk = postcodes[start : start + BULK_LOOKUP_LIMIT]
            try:
                payload = self.http.post_json(f"{self.base_url}/postcodes", json_body={"postcodes": chunk})
            except HttpTimeoutError as exc:
                raise GeocodingTimeout(
                    f"Timed out looking up {len(chunk)} postcodes; expected {POSTCODE_FORMAT_HINT} each",
                    query=", ".join(chunk),
                    expected_format=POSTCODE_FORMAT_HINT,
                ) from exc
            except HttpRequestError as exc:
                raise GeocodingError(
                    f"Bulk postcode lookup failed: {exc}; expected {POSTCODE_FORMAT_HINT} each",
                    query=", ".join(chunk),
                    expected_format=POSTCODE_FORMAT_HINT,
                ) from exc
            for item in (payload.get("result") if isinstance(payload, dict) else None) or []:
                result = item.get("result")
                out[item.get("query")] = _postcode_details(result) if result else None
        return out
