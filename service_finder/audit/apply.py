"""Gated rewrite of registry area codes from a mismatch report."""

from __future__ import annotations

import logging
from pathlib import Path

from service_finder.common.errors import StageError
from service_finder.common.logging import log_event
from service_finder.registry.services import (
    backup_registry,
    load_registry,
    replace_area_codes,
    services_by_id,
)

logger = logging.getLogger(__name__)


def plan_updates(services_path: Path, report: dict) -> dict:
    """Which services would change. A service already led by its recommended code is unchanged."""
    by_id = services_by_id(load_registry(services_path))
    updates: list[dict] = []
    not_found: list[str] = []
    unchanged: list[str] = []

    for entry in report.get("services", []):
        recommended = entry.get("recommended")
        if not recommended:
            continue
        service = by_id.get(entry.get("id"))
        if service is None:
            not_found.append(entry.get("id"))
            continue
        current = list(service.area_codes)
        if current == [recommended]:
            unchanged.append(service.service_id)
            continue
        updates.append(
            {
                "id": service.service_id,
                "serviceName": service.name,
                "postcode": service.postcode,
                "oldCodes": current,
                "newCode": recommended,
            }
        )
    return {"updates": updates, "not_found": not_found, "unchanged": unchanged}


def apply_recommendations(
    services_path: Path,
    report: dict,
    *,
    confirmed: bool,
    dry_run: bool = False,
) -> dict:
    plan = plan_updates(services_path, report)
    plan["dry_run"] = dry_run
    plan["backup"] = None
    plan["changed"] = []

    if dry_run or not plan["updates"]:
        return plan
    if not confirmed:
        raise StageError("Refusing to rewrite the service registry without confirmation")

    backup = backup_registry(services_path)
    plan["backup"] = str(backup)
    log_event(logger, f"backed up registry to {backup.name}", event="REGISTRY_BACKUP", status="ok")

    plan["changed"] = replace_area_codes(
        services_path,
        {update["id"]: [update["newCode"]] for update in plan["updates"]},
    )
    log_event(
        logger,
        f"updated area codes for {len(plan['changed'])} services",
        event="REGISTRY_UPDATED",
        status="ok",
        count=len(plan["changed"]),
    )
    return plan
