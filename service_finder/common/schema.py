"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from service_finder.common.errors import ConfigError

DATASET_KINDS = {"feature_collection", "feature_collection_dir"}


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def validate_boundary_sources_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "boundary_sources")
    top = {"version", "boundaries_dir", "datasets", "priority", "wales", "simplify"}
    _assert_required_keys(cfg, top, "boundary_sources")
    _assert_no_unknown_keys(cfg, top, "boundary_sources", allow_unknown)

    if not isinstance(cfg["datasets"], list) or not cfg["datasets"]:
        raise ConfigError("boundary_sources.datasets must be a non-empty list")

    names: list[str] = []
    for idx, dataset in enumerate(cfg["datasets"]):
        ctx = f"datasets[{idx}]"
        dataset = _assert_mapping(dataset, ctx)
        _assert_required_keys(dataset, {"name", "kind", "path", "code_key"}, ctx)
        _assert_no_unknown_keys(
            dataset,
            {"name", "label", "kind", "path", "code_key", "name_key", "epsg"},
            ctx,
            allow_unknown,
        )
        if dataset["kind"] not in DATASET_KINDS:
            raise ConfigError(f"{ctx}.kind must be one of {', '.join(sorted(DATASET_KINDS))}")
        names.append(dataset["name"])

    dupes = {name for name in names if names.count(name) > 1}
    if dupes:
        raise ConfigError(f"Duplicate boundary datasets: {', '.join(sorted(dupes))}")

    priority = cfg["priority"]
    if not isinstance(priority, list) or not priority:
        raise ConfigError("boundary_sources.priority must be a non-empty list")
    unknown_priority = [name for name in priority if name not in names]
    if unknown_priority:
        raise ConfigError(f"Priority references unknown datasets: {', '.join(unknown_priority)}")
    if len(set(priority)) != len(priority):
        raise ConfigError("boundary_sources.priority lists a dataset more than once")

    wales = _assert_mapping(cfg["wales"], "wales")
    _assert_required_keys(
        wales,
        {"aggregate_dataset", "sub_region_dataset", "postcode_areas", "whole_country_codes"},
        "wales",
    )
    for key in ("aggregate_dataset", "sub_region_dataset"):
        if wales[key] not in names:
            raise ConfigError(f"wales.{key} references unknown dataset: {wales[key]}")

    simplify = _assert_mapping(cfg["simplify"], "simplify")
    _assert_required_keys(simplify, {"tolerance"}, "simplify")
    if float(simplify["tolerance"]) < 0:
        raise ConfigError("simplify.tolerance must not be negative")

    return cfg


def validate_categories_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "categories")
    top = {"registry", "artifacts_dir", "categories", "lookup"}
    _assert_required_keys(cfg, top, "categories")
    _assert_no_unknown_keys(cfg, top, "categories", allow_unknown)

    if not isinstance(cfg["categories"], list) or not cfg["categories"]:
        raise ConfigError("categories.categories must be a non-empty list")

    ids: list[str] = []
    for idx, category in enumerate(cfg["categories"]):
        ctx = f"categories[{idx}]"
        category = _assert_mapping(category, ctx)
        _assert_required_keys(category, {"id", "output"}, ctx)
        _assert_no_unknown_keys(category, {"id", "output", "match_all", "title"}, ctx, allow_unknown)
        ids.append(category["id"])

    dupes = {cid for cid in ids if ids.count(cid) > 1}
    if dupes:
        raise ConfigError(f"Duplicate categories: {', '.join(sorted(dupes))}")

    lookup = _assert_mapping(cfg["lookup"], "lookup")
    _assert_required_keys(lookup, {"categories"}, "lookup")
    unknown = [cid for cid in lookup["categories"] if cid not in ids]
    if unknown:
        raise ConfigError(f"lookup.categories references unknown categories: {', '.join(unknown)}")

    return cfg


def validate_geocoding_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "geocoding")
    top = {"base_url", "timeout", "retry", "rate_per_sec", "audit"}
    _assert_required_keys(cfg, top, "geocoding")
    _assert_no_unknown_keys(cfg, top, "geocoding", allow_unknown)
    _assert_required_keys(_assert_mapping(cfg["timeout"], "timeout"), {"connect", "read"}, "timeout")
    _assert_required_keys(
        _assert_mapping(cfg["retry"], "retry"),
        {"max_attempts", "multiplier", "max_wait"},
        "retry",
    )
    _assert_required_keys(_assert_mapping(cfg["audit"], "audit"), {"throttle_seconds"}, "audit")
    if float(cfg["rate_per_sec"]) <= 0:
        raise ConfigError("geocoding.rate_per_sec must be positive")
    if float(cfg["audit"]["throttle_seconds"]) < 0:
        raise ConfigError("geocoding.audit.throttle_seconds must not be negative")
    return cfg
