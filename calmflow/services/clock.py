from __future__ import annotations

from datetime import datetime
from typing import Optional

from calmflow.utils.time import clamp, seconds_between, utcnow

# Business defaults for check-in timing
DEFAULT_MIN_TIME_BEFORE_CHECK_IN = 180
CHECK_IN_WINDOW = (0.4, 0.7)

MIN_PACING = 0.5
MAX_PACING = 1.5

PHASE_BEGINNING = "beginning"
PHASE_MIDDLE = "middle"
PHASE_ENDING = "ending"
PHASE_COMPLETE = "complete"


def clamp_pacing(value: float) -> float:
    """
    Enforce min/max policy for the adaptive pacing multiplier.
    """
    return clamp(value, lower=MIN_PACING, upper=MAX_PACING)


def progress_fraction(elapsed_seconds: float, estimated_total_seconds: float) -> float:
    """
    Elapsed share of the estimated session length. Unknown length -> 0.
    """
    if estimated_total_seconds <= 0:
        return 0.0
    return elapsed_seconds / estimated_total_seconds


def session_phase(progress: float) -> str:
    """
    Coarse position in the session:
    - beginning  up to 20%
    - middle     strictly between 20% and 80%
    - ending     from 80% until done
    - complete   100% or more
    """
    if progress <= 0.2:
        return PHASE_BEGINNING
    if progress < 0.8:
        return PHASE_MIDDLE
    if progress < 1:
        return PHASE_ENDING
    return PHASE_COMPLETE


def in_check_in_window(progress: float) -> bool:
    low, high = CHECK_IN_WINDOW
    return low <= progress <= high


def seconds_since_check_in(
    last_check_in_at: Optional[datetime],
    elapsed_seconds: float,
    *,
    now: Optional[datetime] = None,
) -> float:
    """
    Time since the last check-in, or since session start when there was none.
    """
    if last_check_in_at is None:
        return elapsed_seconds
    return seconds_between(last_check_in_at, now or utcnow())
