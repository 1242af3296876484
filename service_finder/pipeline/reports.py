"""Build summary aggregation."""

from __future__ import annotations

from pathlib import Path

from service_finder.common.errors import DataSourceMissing
from service_finder.common.fs import write_json
from service_finder.pipeline.merge import MergeOutcome


def write_build_summary(
    data_dir: Path,
    run_id: str,
    outcomes: list[MergeOutcome],
    unavailable_datasets: list[str],
    artifacts: dict[str, dict],
) -> Path:
    totals = {
        "services_in": 0,
        "services_with_geometry": 0,
        "polygons_out": 0,
        "issues": 0,
    }
    category_reports = {}
    issues: list[dict] = [
        {"kind": DataSourceMissing.error_code, "dataset": name} for name in sorted(unavailable_datasets)
    ]

    for outcome in outcomes:
        summary = outcome.summary()
        category_reports[outcome.category] = {**summary, "artifact": artifacts.get(outcome.category)}
        totals["services_in"] += summary["services_in"]
        totals["services_with_geometry"] += summary["services_with_geometry"]
        totals["polygons_out"] += summary["polygons_out"]
        issues.extend(outcome.issues)

    totals["issues"] = len(issues)
    status = "partial" if issues else "success"

    summary_path = data_dir / "out" / "reports" / "build_summary.json"
    write_json(
        summary_path,
        {
            "run_id": run_id,
            "status": status,
            "unavailable_datasets": sorted(unavailable_datasets),
            "totals": totals,
            "categories": category_reports,
            "issues": issues,
        },
    )
    return summary_path
