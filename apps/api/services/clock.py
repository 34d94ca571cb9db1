"""Injectable wall clock for period buckets, expiries and schedule checks."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def fixed_clock(moment: datetime) -> Clock:
    """Return a clock pinned to ``moment`` (normalized to UTC)."""
    pinned = as_utc(moment)
    return lambda: pinned


def get_clock() -> Clock:
    """FastAPI dependency; tests override it to pin time."""
    return utc_now
