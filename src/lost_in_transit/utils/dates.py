from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Aware UTC datetime; naive values (e.g. read back from SQLite) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(now: datetime, then: datetime) -> int:
    """Whole days elapsed from `then` to `now` (floored, never negative)."""
    delta = as_utc(now) - as_utc(then)
    return max(0, delta.days)


def days_until(target: date, today: date) -> int:
    return (target - today).days
