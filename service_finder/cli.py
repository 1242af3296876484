"""CLI entrypoint for the NHS service coverage finder."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from service_finder.audit.apply import apply_recommendations
from service_finder.audit.mismatch import run_mismatch_audit, write_mismatch_report
from service_finder.audit.verify import POSTCODE_CODES_HEADERS, codes_for_postcodes, verify_service_codes
from service_finder.common.config_loader import ConfigBundle, load_all_configs, resolve_categories
from service_finder.common.constants import COMMANDS, EXIT_HARD_FAIL, EXIT_PARTIAL, EXIT_SUCCESS
from service_finder.common.errors import GeocodingError, PipelineError, StageError
from service_finder.common.fs import read_json, write_csv, write_json
from service_finder.common.logging import build_logger, log_event
from service_finder.common.time_utils import generate_run_id
from service_finder.geocoding.client import PostcodesIoClient
from service_finder.lookup.service import ServiceFinder, lookup_artifact_paths
from service_finder.pipeline.build import build_resolver, registry_path, run_build
from service_finder.pipeline.export import artifact_path
from service_finder.pipeline.validate import validate_artifact
from service_finder.registry.services import load_registry, services_for_codes

DEFAULT_MISMATCH_REPORT = Path("out") / "reports" / "ccg-mismatch-report.json"


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("command", choices=COMMANDS)
    parser.add_argument("targets", nargs="*", help="locations, service ids or postcodes, depending on command")
    parser.add_argument("--category", default="all")
    parser.add_argument("--run-id", default=None)
    parser.add_argument("--config-dir", default="./config")
    parser.add_argument("--overlay-config-dir", default=None)
    parser.add_argument("--data-dir", default="./data")
    parser.add_argument("--report", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    parser.add_argument("--strict", action="store_true")
    parser.add_argument("--dry-run", action="store_true")
    parser.add_argument("--yes", action="store_true", help="apply registry changes without prompting")
    return parser.parse_args(argv)


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def _report_path(args: argparse.Namespace, data_dir: Path) -> Path:
    return Path(args.report) if args.report else data_dir / DEFAULT_MISMATCH_REPORT


def _confirm(args: argparse.Namespace, count: int) -> bool:
    if args.yes:
        return True
    answer = input(f"Rewrite area codes for {count} services? [y/N] ")
    return answer.strip().lower() in ("y", "yes")


def cmd_build(args, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    result = run_build(bundle, data_dir, run_id, resolve_categories(bundle, args.category))
    log_event(logger, f"build summary at {result['summary_path']}", event="BUILD_SUMMARY", status="ok")
    if result["has_issues"]:
        return EXIT_HARD_FAIL if args.strict else EXIT_PARTIAL
    return EXIT_SUCCESS


def cmd_validate(args, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    had_partial_failure = False
    for category_id in resolve_categories(bundle, args.category):
        path = artifact_path(data_dir, bundle.categories, bundle.category(category_id))
        try:
            result = validate_artifact(path)
        except StageError as exc:
            had_partial_failure = True
            log_event(logger, str(exc), category=category_id, event="VALIDATE", status="error", error_code=exc.error_code)
            if args.strict:
                return EXIT_HARD_FAIL
            continue
        log_event(logger, f"{path.name} ok", category=category_id, event="VALIDATE", status="ok", count=result["features"])
    return EXIT_PARTIAL if had_partial_failure else EXIT_SUCCESS


def cmd_lookup(args, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    if not args.targets:
        raise StageError("lookup needs at least one location")
    geocoder = PostcodesIoClient.from_config(bundle.geocoding)
    finder = ServiceFinder(
        load_registry(registry_path(bundle, data_dir)),
        lookup_artifact_paths(bundle, data_dir),
        geocoder,
    )
    had_partial_failure = False
    results = []
    try:
        for target in args.targets:
            try:
                results.append({"input": target, **finder.find_for_location(target).to_dict()})
            except GeocodingError as exc:
                had_partial_failure = True
                results.append({"input": target, "error": str(exc), "error_code": exc.error_code})
                log_event(logger, str(exc), event="LOOKUP", status="error", error_code=exc.error_code)
    finally:
        geocoder.close()
    _emit(results)
    return EXIT_PARTIAL if had_partial_failure else EXIT_SUCCESS


def cmd_audit_codes(args, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    services = load_registry(registry_path(bundle, data_dir))
    geocoder = PostcodesIoClient.from_config(bundle.geocoding)
    try:
        report = run_mismatch_audit(
            services,
            geocoder,
            throttle_seconds=bundle.geocoding["audit"]["throttle_seconds"],
        )
    finally:
        geocoder.close()
    path = write_mismatch_report(_report_path(args, data_dir), report)
    log_event(
        logger,
        f"{report['mismatches']} mismatches, {report['errors']} errors; report at {path}",
        event="AUDIT_SUMMARY",
        status="ok",
        count=report["mismatches"],
    )
    if report["errors"] and args.strict:
        return EXIT_HARD_FAIL
    return EXIT_PARTIAL if report["errors"] else EXIT_SUCCESS


def cmd_apply_codes(args, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    path = _report_path(args, data_dir)
    if not path.exists():
        raise StageError(f"Mismatch report not found: {path}; run audit-codes first")
    report = read_json(path)
    services_path = registry_path(bundle, data_dir)

    preview = apply_recommendations(services_path, report, confirmed=False, dry_run=True)
    if args.dry_run or not preview["updates"]:
        _emit(preview)
        return EXIT_SUCCESS

    if not _confirm(args, len(preview["updates"])):
        log_event(logger, "registry update declined", event="REGISTRY_UPDATED", status="skipped")
        return EXIT_SUCCESS
    result = apply_recommendations(services_path, report, confirmed=True)
    _emit(result)
    return EXIT_PARTIAL if result["not_found"] else EXIT_SUCCESS


def cmd_verify_codes(args, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    services = load_registry(registry_path(bundle, data_dir))
    if args.targets:
        # Targets are service ids or area codes.
        wanted = set(args.targets) | {service.service_id for service in services_for_codes(services, args.targets)}
        services = [service for service in services if service.service_id in wanted]
    resolver = build_resolver(bundle, data_dir)
    results = [verify_service_codes(service, resolver) for service in services]
    if args.report:
        write_json(Path(args.report), results)
    else:
        _emit(results)
    return EXIT_PARTIAL if any(result["unknownCodes"] for result in results) else EXIT_SUCCESS


def cmd_postcode_codes(args, bundle: ConfigBundle, data_dir: Path, run_id: str, logger) -> int:
    if not args.targets:
        raise StageError("postcode-codes needs at least one postcode")
    geocoder = PostcodesIoClient.from_config(bundle.geocoding)
    try:
        rows = codes_for_postcodes(args.targets, geocoder)
    finally:
        geocoder.close()
    if args.report:
        write_csv(Path(args.report), POSTCODE_CODES_HEADERS, rows)
    else:
        _emit(rows)
    return EXIT_PARTIAL if any(row.get("error") for row in rows) else EXIT_SUCCESS


HANDLERS = {
    "build": cmd_build,
    "validate": cmd_validate,
    "lookup": cmd_lookup,
    "audit-codes": cmd_audit_codes,
    "apply-codes": cmd_apply_codes,
    "verify-codes": cmd_verify_codes,
    "postcode-codes": cmd_postcode_codes,
}


def run_command(args: argparse.Namespace) -> int:
    run_id = args.run_id or generate_run_id()
    config_dir = Path(args.config_dir)
    overlay_config_dir = Path(args.overlay_config_dir) if args.overlay_config_dir else None
    data_dir = Path(args.data_dir)

    logger = build_logger(run_id, data_dir=data_dir, level=args.log_level)
    bundle = load_all_configs(config_dir, overlay_config_dir=overlay_config_dir)

    log_event(logger, "command start", command=args.command, event="COMMAND_START", status="ok")
    try:
        code = HANDLERS[args.command](args, bundle, data_dir, run_id, logger)
    except PipelineError as exc:
        log_event(logger, str(exc), command=args.command, event="COMMAND_FAIL", status="error", error_code=exc.error_code)
        return EXIT_HARD_FAIL
    log_event(logger, "command end", command=args.command, event="COMMAND_END", status="ok")
    return code


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    try:
        return run_command(args)
    except PipelineError:
        return EXIT_HARD_FAIL
    except Exception:
        return EXIT_HARD_FAIL


if __name__ == "__main__":
    raise SystemExit(main())
