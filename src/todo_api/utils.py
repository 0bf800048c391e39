"""Provide utility helpers for timestamps."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        if not isinstance(value, str):
            value = str(value)
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
        # If a naive timestamp slips in, assume UTC to avoid crashes.
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    except ValueError:
        return None


def _next_iso(previous: Optional[str]) -> str:
    """Return the current time, nudged past *previous* when the clock has not moved."""
    now = datetime.now(timezone.utc)
    last = _parse_iso(previous)
    if last is not None and now <= last:
        now = last + timedelta(microseconds=1)
    return now.isoformat()
