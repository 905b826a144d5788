"""Provide helpers for ids and timestamps."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional


def format_iso(dt: datetime) -> str:
    """Render *dt* as a fixed-width UTC timestamp with millisecond precision."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def now_iso() -> str:
    return format_iso(datetime.now(timezone.utc))


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
        # Naive timestamps from hand-edited files are taken as UTC.
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


def elapsed_ms(start: Optional[str], end: Optional[str]) -> Optional[int]:
    """Milliseconds between two ISO timestamps, or None if either is unusable."""
    started = parse_iso(start)
    finished = parse_iso(end)
    if started is None or finished is None:
        return None
    return int(round((finished - started).total_seconds() * 1000))


def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"
