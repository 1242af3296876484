"""Compare stored service area codes with the live codes for each service's postcode.

The audit only reports. Rewriting the registry is a separate, confirmed step
(see ``service_finder.audit.apply``).
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Iterable

from service_finder.common.errors import GeocodingError
from service_finder.common.fs import write_json
from service_finder.common.logging import log_event
from service_finder.common.models import PostcodeDetails, Service
from service_finder.common.postcode import normalise_code
from service_finder.common.time_utils import utc_timestamp_iso
from service_finder.geocoding.location import Geocoder

logger = logging.getLogger(__name__)

MATCH = "match"
MISMATCH = "mismatch"
ERROR = "error"

SCOTLAND = "Scotland"


def compare_codes(service_codes: Iterable[str], details: PostcodeDetails) -> dict:
    stored = {normalise_code(code) for code in service_codes} - {""}
    live_icb = normalise_code(details.icb)
    live_ccg = normalise_code(details.ccg)

    if live_icb and live_icb in stored:
        return {"match": True, "matched_type": "ICB", "matched_code": details.icb}
    if live_ccg and live_ccg in stored:
        return {"match": True, "matched_type": "CCG", "matched_code": details.ccg}
    return {"match": False, "matched_type": None, "matched_code": None}


def recommended_code(details: PostcodeDetails) -> str | None:
    return details.icb or details.ccg


def analyse_service(service: Service, geocoder: Geocoder) -> dict:
    entry = {
        "id": service.service_id,
        "serviceName": service.name,
        "postcode": service.postcode,
        "currentCodes": list(service.area_codes),
    }
    if not service.postcode:
        return {**entry, "status": ERROR, "error_code": "NO_POSTCODE", "error": "service has no postcode"}
    if not service.area_codes:
        entry["issue"] = "NO_AREA_CODES"

    try:
        details = geocoder.lookup_postcode(service.postcode)
    except GeocodingError as exc:
        return {**entry, "status": ERROR, "error_code": exc.error_code, "error": str(exc)}

    comparison = compare_codes(service.area_codes, details)
    entry.update(
        {
            "country": details.country,
            "location": details.admin_district,
            "liveCodes": {"ccg": details.ccg, "icb": details.icb},
        }
    )
    if comparison["match"]:
        return {**entry, "status": MATCH, "matchedType": comparison["matched_type"]}

    if details.country == SCOTLAND:
        # Scottish services are keyed by Health Board (S08...), which postcodes.io
        # does not return alongside CCG/ICB; no automatic recommendation.
        return {**entry, "status": MISMATCH, "scotland": True, "recommended": None}
    return {**entry, "status": MISMATCH, "scotland": False, "recommended": recommended_code(details)}


def run_mismatch_audit(
    services: list[Service],
    geocoder: Geocoder,
    *,
    throttle_seconds: float = 0.0,
    sleep: Callable[[float], None] = time.sleep,
) -> dict:
    results: list[dict] = []
    for position, service in enumerate(services):
        if position and throttle_seconds > 0 and service.postcode:
            sleep(throttle_seconds)
        result = analyse_service(service, geocoder)
        results.append(result)
        if result["status"] != MATCH:
            log_event(
                logger,
                f"{service.service_id}: {result['status']}",
                level=logging.WARNING if result["status"] == ERROR else logging.INFO,
                service_id=service.service_id,
                event="CODE_AUDIT",
                status=result["status"],
                error_code=result.get("error_code"),
            )

    mismatches = [result for result in results if result["status"] == MISMATCH]
    by_country: dict[str, int] = {}
    for result in mismatches:
        country = result.get("country") or "Unknown"
        by_country[country] = by_country.get(country, 0) + 1

    return {
        "generated": utc_timestamp_iso(),
        "totalServices": len(services),
        "matches": sum(1 for result in results if result["status"] == MATCH),
        "mismatches": len(mismatches),
        "errors": sum(1 for result in results if result["status"] == ERROR),
        "mismatchesByCountry": dict(sorted(by_country.items())),
        "services": [result for result in results if result["status"] != MATCH],
    }


def write_mismatch_report(path: Path, report: dict) -> Path:
    write_json(path, report)
    return path
