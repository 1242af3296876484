"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from service_finder.common.errors import ConfigError
from service_finder.common.fs import read_yaml
from service_finder.common.schema import (
    validate_boundary_sources_config,
    validate_categories_config,
    validate_geocoding_config,
)

CONFIG_FILES = {
    "boundaries": "boundary_sources.yml",
    "categories": "categories.yml",
    "geocoding": "geocoding.yml",
}


@dataclass(frozen=True)
class ConfigBundle:
    boundaries: dict
    categories: dict
    geocoding: dict

    def category_ids(self) -> list[str]:
        return [category["id"] for category in self.categories["categories"]]

    def category(self, category_id: str) -> dict:
        for category in self.categories["categories"]:
            if category["id"] == category_id:
                return category
        raise ConfigError(f"Unknown category: {category_id}")


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> Any:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def load_all_configs(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> ConfigBundle:
    loaded = {}
    for key, filename in CONFIG_FILES.items():
        overlay_path = overlay_config_dir / filename if overlay_config_dir is not None else None
        loaded[key] = _load_yaml_with_overlay(config_dir / filename, overlay_path)

    return ConfigBundle(
        boundaries=validate_boundary_sources_config(loaded["boundaries"], allow_unknown=allow_unknown),
        categories=validate_categories_config(loaded["categories"], allow_unknown=allow_unknown),
        geocoding=validate_geocoding_config(loaded["geocoding"], allow_unknown=allow_unknown),
    )


def resolve_categories(bundle: ConfigBundle, target: str) -> list[str]:
    if target == "all":
        return bundle.category_ids()
    bundle.category(target)
    return [target]
