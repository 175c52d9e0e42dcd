"""Timestamps are stored as epoch milliseconds and surfaced as UTC datetimes."""

from __future__ import annotations

import time
from datetime import datetime, timezone


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def ms_to_datetime(value: int | None) -> datetime:
    """Convert a stored millisecond timestamp back into a UTC datetime."""
    if value is None:
        return utc_now()
    return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)


def format_duration(seconds: float | None) -> str:
    """Render a recording length as ``m:ss`` (``h:mm:ss`` past an hour)."""
    total = max(int(round(seconds or 0)), 0)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"
