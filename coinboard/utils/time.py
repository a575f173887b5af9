from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def utcnow_iso() -> str:
    """ISO8601 UTC timestamp with millisecond precision and a trailing Z."""
    return utcnow().isoformat(timespec="milliseconds").replace("+00:00", "Z")
