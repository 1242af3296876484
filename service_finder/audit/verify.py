"""Read-only code checks against local boundaries and the live geocoder."""

from __future__ import annotations

from service_finder.audit.mismatch import recommended_code
from service_finder.boundaries.resolver import CodeResolver
from service_finder.common.models import Service

POSTCODE_CODES_HEADERS = ["postcode", "recommended", "ccg", "icb", "country", "admin_district", "error"]


def verify_service_codes(service: Service, resolver: CodeResolver) -> dict:
    codes = []
    for code in service.area_codes:
        hits = resolver.locate(code)
        codes.append(
            {
                "code": code,
                "datasets": [feature.dataset for feature in hits],
                "names": sorted({feature.name for feature in hits if feature.name}),
                "resolved": resolver.resolve(code).status,
            }
        )
    return {
        "id": service.service_id,
        "serviceName": service.name,
        "codes": codes,
        "unknownCodes": [entry["code"] for entry in codes if not entry["datasets"]],
    }


def codes_for_postcodes(postcodes: list[str], geocoder) -> list[dict]:
    """Live CCG/ICB and the recommended code for each postcode, in input order."""
    found = geocoder.bulk_lookup_postcodes(postcodes)
    rows = []
    for postcode in postcodes:
        details = found.get(postcode)
        if details is None:
            rows.append({"postcode": postcode, "error": "Postcode not found"})
            continue
        rows.append(
            {
                "postcode": details.postcode or postcode,
                "recommended": recommended_code(details),
                "ccg": details.ccg,
                "icb": details.icb,
                "country": details.country,
                "admin_district": details.admin_district,
            }
        )
    return rows
