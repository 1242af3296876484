"""UK postcode, outcode and area-code normalisation."""

from __future__ import annotations

import re

UK_UNIT_POSTCODE_RE = re.compile(r"^([A-Z]{1,2}\d[A-Z\d]?)\s(\d[A-Z]{2})$")
UK_OUTCODE_RE = re.compile(r"^[A-Z]{1,2}\d[A-Z\d]?$")

_PUNCTUATION_RE = re.compile(r"[\.,;:'\"`_\-/\\()\[\]{}|~!?@#$%^&*+=]")
_WHITESPACE_RE = re.compile(r"\s+")

POSTCODE_FORMAT_HINT = "a full UK postcode such as 'SW1A 1AA'"
OUTCODE_FORMAT_HINT = "a postcode district such as 'SW1A' or 'M1'"
PLACE_FORMAT_HINT = "a town or city name such as 'Manchester'"


def is_valid_uk_unit_postcode(value: str) -> bool:
    return bool(UK_UNIT_POSTCODE_RE.match(value))


def normalise_postcode(raw: str | None) -> str | None:
    """Return ``"AA9A 9AA"`` form or ``None`` when ``raw`` is not a unit postcode."""
    if raw is None:
        return None

    cleaned = _WHITESPACE_RE.sub("", _PUNCTUATION_RE.sub("", raw.upper()))
    if len(cleaned) < 5 or len(cleaned) > 7:
        return None

    cleaned = f"{cleaned[:-3]} {cleaned[-3:]}"
    if not is_valid_uk_unit_postcode(cleaned):
        return None
    return cleaned


def normalise_outcode(raw: str | None) -> str | None:
    if raw is None:
        return None
    cleaned = _WHITESPACE_RE.sub("", raw.upper())
    if not UK_OUTCODE_RE.match(cleaned):
        return None
    return cleaned


def normalise_place(raw: str | None) -> str | None:
    if raw is None:
        return None
    cleaned = _WHITESPACE_RE.sub(" ", raw).strip()
    return cleaned or None


def normalise_code(raw: object) -> str:
    """Comparison key for administrative codes: case and whitespace are ignored."""
    if raw is None:
        return ""
    return _WHITESPACE_RE.sub("", str(raw)).lower()
