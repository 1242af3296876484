"""Read-only access to the authored service registry, plus the gated code rewrite."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable

from service_finder.common.errors import RegistryError
from service_finder.common.fs import copy_file, read_json, write_json
from service_finder.common.models import Service
from service_finder.common.postcode import normalise_code
from service_finder.common.time_utils import generate_run_id


def _read_registry_payload(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise RegistryError(f"Service registry not found: {path}")
    try:
        payload = read_json(path)
    except json.JSONDecodeError as exc:
        raise RegistryError(f"Service registry is not valid JSON: {path}: {exc}") from exc
    if not isinstance(payload, dict) or not isinstance(payload.get("services"), list):
        raise RegistryError(f"Service registry must hold a 'services' list: {path}")
    return payload


def _as_str_tuple(values: Any) -> tuple[str, ...]:
    if not values:
        return ()
    if not isinstance(values, list):
        raise RegistryError(f"Expected a list, got {type(values).__name__}")
    return tuple(str(value) for value in values if value not in (None, ""))


def service_from_record(record: dict[str, Any]) -> Service:
    service_id = str(record.get("id") or "").strip()
    if not service_id:
        raise RegistryError(f"Service record without an id: {record.get('serviceName')!r}")
    return Service(
        service_id=service_id,
        name=record.get("serviceName") or service_id,
        postcode=record.get("postcode") or None,
        area_codes=_as_str_tuple(record.get("ccgCodes")),
        categories=_as_str_tuple(record.get("servicesOffered")),
        country=record.get("country") or None,
        record=record,
    )


def load_registry(path: Path) -> list[Service]:
    services = [service_from_record(record) for record in _read_registry_payload(path)["services"]]
    seen: set[str] = set()
    for service in services:
        if service.service_id in seen:
            raise RegistryError(f"Duplicate service id in registry: {service.service_id}")
        seen.add(service.service_id)
    return services


def services_by_id(services: Iterable[Service]) -> dict[str, Service]:
    return {service.service_id: service for service in services}


def services_for_codes(services: Iterable[Service], codes: Iterable[str]) -> list[Service]:
    wanted = {normalise_code(code) for code in codes} - {""}
    return [
        service
        for service in services
        if wanted.intersection(normalise_code(code) for code in service.area_codes)
    ]


def backup_registry(path: Path, *, suffix: str | None = None) -> Path:
    if not path.is_file():
        raise RegistryError(f"Cannot back up missing registry: {path}")
    target = path.with_name(f"{path.name}.{suffix or generate_run_id()}.backup")
    return copy_file(path, target)


def replace_area_codes(path: Path, replacements: dict[str, list[str]]) -> list[str]:
    """Rewrite ``ccgCodes`` for the given service ids; returns the ids actually changed.

    Callers are expected to take a backup first; this writes in place.
    """
    payload = _read_registry_payload(path)
    changed: list[str] = []
    for record in payload["services"]:
        service_id = str(record.get("id") or "")
        if service_id in replacements and list(record.get("ccgCodes") or []) != replacements[service_id]:
            record["ccgCodes"] = list(replacements[service_id])
            changed.append(service_id)
    if changed:
        write_json(path, payload, sort_keys=False)
    return changed
