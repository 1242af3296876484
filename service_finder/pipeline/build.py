"""Build stage: registry + boundary datasets -> one polygon artifact per category."""

from __future__ import annotations

import logging
from pathlib import Path

from service_finder.boundaries.datasets import load_datasets, specs_from_config
from service_finder.boundaries.resolver import CodeResolver
from service_finder.common.config_loader import ConfigBundle
from service_finder.common.logging import log_event
from service_finder.pipeline.export import artifact_path, write_service_area_artifact
from service_finder.pipeline.merge import MergeOutcome, SimplifySettings, merge_category
from service_finder.pipeline.reports import write_build_summary
from service_finder.pipeline.validate import validate_artifact
from service_finder.registry.services import load_registry

logger = logging.getLogger(__name__)


def registry_path(bundle: ConfigBundle, data_dir: Path) -> Path:
    return data_dir / bundle.categories["registry"]


def build_resolver(bundle: ConfigBundle, data_dir: Path) -> CodeResolver:
    boundaries_cfg = bundle.boundaries
    datasets = load_datasets(specs_from_config(boundaries_cfg), data_dir / boundaries_cfg["boundaries_dir"])
    return CodeResolver.from_config(datasets, boundaries_cfg)


def run_build(
    bundle: ConfigBundle,
    data_dir: Path,
    run_id: str,
    categories: list[str],
    *,
    services_path: Path | None = None,
) -> dict:
    services = load_registry(services_path or registry_path(bundle, data_dir))
    resolver = build_resolver(bundle, data_dir)
    settings = SimplifySettings.from_config(bundle.boundaries["simplify"])

    outcomes: list[MergeOutcome] = []
    artifacts: dict[str, dict] = {}
    for category_id in categories:
        category_cfg = bundle.category(category_id)
        outcome = merge_category(category_cfg, services, resolver, settings)
        path = write_service_area_artifact(
            artifact_path(data_dir, bundle.categories, category_cfg),
            outcome.polygons,
        )
        artifacts[category_id] = validate_artifact(path)
        outcomes.append(outcome)
        log_event(
            logger,
            f"wrote {path.name}",
            category=category_id,
            event="ARTIFACT_WRITTEN",
            status="ok",
            count=len(outcome.polygons),
        )

    summary_path = write_build_summary(
        data_dir,
        run_id,
        outcomes,
        resolver.unavailable_datasets(),
        artifacts,
    )
    return {
        "summary_path": summary_path,
        "outcomes": outcomes,
        "artifacts": artifacts,
        "has_issues": any(outcome.issues for outcome in outcomes) or bool(resolver.unavailable_datasets()),
    }
