"""Helpers for the UTC ISO-8601 strings stored in timestamp columns."""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(value: datetime) -> str:
    """
    Render a datetime as a UTC ISO string.

    Naive datetimes are taken to be UTC. Microseconds are always rendered so
    stored values compare correctly as strings.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def utc_now_iso() -> str:
    return to_iso(utc_now())


def parse_iso(value: str) -> Optional[datetime]:
    """Parse an ISO-8601 string, returning None when it is not one."""
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_js_iso(value: str) -> str:
    """
    Normalize an ISO string to the `2025-02-20T00:00:00.000Z` form.

    Values that do not parse are returned unchanged.
    """
    parsed = parse_iso(value)
    if parsed is None:
        return value
    return format_js_iso(parsed)


def format_js_iso(value: datetime) -> str:
    """Render a datetime as UTC with milliseconds and a `Z` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    rendered = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return rendered.replace("+00:00", "Z")
