from pathlib import Path

import pytest

from service_finder.common.config_loader import load_all_configs, resolve_categories
from service_finder.common.errors import ConfigError
from service_finder.common.schema import validate_boundary_sources_config, validate_categories_config


def test_load_all_configs_from_repo_config_dir():
    bundle = load_all_configs(Path("config"))
    assert bundle.category_ids() == ["aac", "ec", "wcs", "services"]
    assert bundle.boundaries["priority"][0] == "icb_2023"
    assert bundle.boundaries["wales"]["aggregate_dataset"] == "wales_health_boards"
    assert bundle.geocoding["base_url"] == "https://api.postcodes.io"


def test_resolve_categories(config_dir: Path):
    bundle = load_all_configs(config_dir)
    assert resolve_categories(bundle, "all") == ["aac", "wcs", "services"]
    assert resolve_categories(bundle, "wcs") == ["wcs"]
    with pytest.raises(ConfigError):
        resolve_categories(bundle, "ec")


def test_load_all_configs_applies_overlay_values(config_dir: Path, tmp_path: Path):
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "geocoding.yml").write_text(
        """base_url: https://postcodes.internal.test
audit:
  throttle_seconds: 0
""",
        encoding="utf-8",
    )

    bundle = load_all_configs(config_dir, overlay_config_dir=overlay)

    assert bundle.geocoding["base_url"] == "https://postcodes.internal.test"
    assert bundle.geocoding["audit"]["throttle_seconds"] == 0
    assert bundle.geocoding["retry"]["max_attempts"] == 3


def test_load_all_configs_ignores_empty_overlay_file(config_dir: Path, tmp_path: Path):
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "categories.yml").write_text("", encoding="utf-8")

    bundle = load_all_configs(config_dir, overlay_config_dir=overlay)
    assert bundle.category_ids() == ["aac", "wcs", "services"]


def test_load_all_configs_rejects_non_mapping_overlay(config_dir: Path, tmp_path: Path):
    overlay = tmp_path / "overlay"
    overlay.mkdir()
    (overlay / "categories.yml").write_text("- not\n- a mapping\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        load_all_configs(config_dir, overlay_config_dir=overlay)


def test_missing_config_file_is_config_error(tmp_path: Path):
    with pytest.raises(ConfigError):
        load_all_configs(tmp_path)


def _boundaries(**overrides) -> dict:
    cfg = {
        "version": "1",
        "boundaries_dir": "boundaries",
        "datasets": [
            {"name": "icb", "kind": "feature_collection", "path": "icb.json", "code_key": "ICB23CD"},
            {"name": "lhb", "kind": "feature_collection", "path": "lhb.json", "code_key": "LHB22CD"},
            {"name": "areas", "kind": "feature_collection_dir", "path": "areas", "code_key": "name"},
        ],
        "priority": ["icb", "lhb"],
        "wales": {
            "aggregate_dataset": "lhb",
            "sub_region_dataset": "areas",
            "postcode_areas": ["CF"],
            "whole_country_codes": [],
        },
        "simplify": {"tolerance": 0.001},
    }
    cfg.update(overrides)
    return cfg


def test_boundary_schema_accepts_minimal_config():
    assert validate_boundary_sources_config(_boundaries())["priority"] == ["icb", "lhb"]


@pytest.mark.parametrize(
    "overrides",
    [
        {"priority": ["icb", "missing"]},
        {"priority": ["icb", "icb"]},
        {"simplify": {"tolerance": -1}},
        {"unexpected": True},
        {"datasets": [{"name": "icb", "kind": "shapefile", "path": "x", "code_key": "c"}]},
    ],
)
def test_boundary_schema_rejects_bad_config(overrides):
    with pytest.raises(ConfigError):
        validate_boundary_sources_config(_boundaries(**overrides))


def test_boundary_schema_allows_unknown_keys_when_asked():
    cfg = validate_boundary_sources_config(_boundaries(unexpected=True), allow_unknown=True)
    assert cfg["unexpected"] is True


def test_categories_schema_rejects_unknown_lookup_category():
    with pytest.raises(ConfigError):
        validate_categories_config(
            {
                "registry": "services.json",
                "artifacts_dir": "out/geo",
                "categories": [{"id": "aac", "output": "aac.geojson"}],
                "lookup": {"categories": ["wcs"]},
            }
        )
