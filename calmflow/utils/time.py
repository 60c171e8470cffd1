from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from typing import Optional


UTC = timezone.utc


def utcnow() -> datetime:
    """
    Returns timezone-aware current UTC time.
    """
    return datetime.now(UTC)


def ensure_aware(dt: datetime, assume_utc: bool = True) -> datetime:
    """
    Ensure a datetime is timezone-aware. If naive and assume_utc is True,
    interpret as UTC; otherwise raise ValueError.
    """
    if dt.tzinfo is not None:
        return dt.astimezone(UTC)
    if assume_utc:
        return dt.replace(tzinfo=UTC)
    raise ValueError("Naive datetime provided and assume_utc=False")


def seconds_between(earlier: datetime, later: datetime) -> float:
    """
    Seconds elapsed from `earlier` to `later` (negative if reversed).
    """
    return (ensure_aware(later) - ensure_aware(earlier)).total_seconds()


def clamp(value: float, *, lower: float, upper: float) -> float:
    """
    Clamp a value to allowed bounds.
    """
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def scale_seconds(seconds: int, multiplier: float, *, minimum: int = 1) -> int:
    """
    Scale a countdown length by a pacing multiplier, rounding half up and
    never going below `minimum`.
    """
    return max(minimum, round_half_up(seconds * multiplier))


def is_past(when: Optional[datetime], *, now: Optional[datetime] = None, grace_seconds: int = 0) -> bool:
    """
    True if `when` has passed (optionally with a grace window).
    """
    if when is None:
        return False
    now_ = ensure_aware(now or utcnow())
    target = ensure_aware(when)
    return now_ >= (target + timedelta(seconds=grace_seconds))
