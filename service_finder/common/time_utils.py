"""UTC-focused helpers for run ids and report metadata."""

from __future__ import annotations

from datetime import datetime, timezone


def _utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_timestamp_iso() -> str:
    return _utc_now().isoformat(timespec="milliseconds")


def generate_run_id() -> str:
    # Sortable: lexical order matches creation order.
    return _utc_now().strftime("run-%Y%m%dT%H%M%S%fZ")
