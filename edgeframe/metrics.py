# edgeframe/metrics.py
from __future__ import annotations

from typing import List, Optional, Sequence
import datetime as dt

from .models import SleepRecord


TARGET_SLEEP_MINUTES = 450   # 7h30m
RECENT_NIGHTS = 5


DAY_MINUTES = 24 * 60


def _clock_minutes(ts: dt.datetime) -> float:
    # wall clock in the stamp's own zone; see models.localize_records
    return ts.hour * 60 + ts.minute + ts.second / 60.0


def _range_hours(stamps: List[dt.datetime]) -> float:
    """
    Spread of clock times across nights, wrap-aware:
    the shortest arc of the 24h clock that covers every stamp.
    """
    if len(stamps) < 2:
        return 0.0
    mins = sorted(_clock_minutes(s) for s in stamps)
    gaps = [b - a for a, b in zip(mins, mins[1:])]
    gaps.append(mins[0] + DAY_MINUTES - mins[-1])
    return (DAY_MINUTES - max(gaps)) / 60.0


def sleep_midpoint(r: SleepRecord) -> Optional[dt.datetime]:
    if r.bedtime is None or r.wake_time is None:
        return None
    return r.bedtime + (r.wake_time - r.bedtime) / 2


def compute_sleep_debt_minutes(
    records: Sequence[SleepRecord],
    target_minutes: int = TARGET_SLEEP_MINUTES,
    nights: int = RECENT_NIGHTS,
) -> int:
    """Shortfall vs target over the most recent `nights` (newest-first input)."""
    debt = 0
    for r in list(records)[:nights]:
        if r.duration_minutes is not None and r.duration_minutes < target_minutes:
            debt += target_minutes - r.duration_minutes
    return debt


def midpoint_range_hours(records: Sequence[SleepRecord], nights: int = RECENT_NIGHTS) -> Optional[float]:
    """Spread of sleep midpoints over the last `nights`; None unless every night has both times."""
    recent = list(records)[:nights]
    if len(recent) < nights:
        return None
    mids = [m for m in (sleep_midpoint(r) for r in recent) if m is not None]
    if len(mids) < nights:
        return None
    return _range_hours(mids)


def bedtime_range_hours(records: Sequence[SleepRecord], nights: int = RECENT_NIGHTS) -> Optional[float]:
    recent = list(records)[:nights]
    if len(recent) < nights:
        return None
    beds = [r.bedtime for r in recent if r.bedtime is not None]
    if len(beds) < nights:
        return None
    return _range_hours(beds)


def wake_time_range_hours(records: Sequence[SleepRecord], nights: int = RECENT_NIGHTS) -> float:
    recent = list(records)[:nights]
    if len(recent) < nights:
        return 0.0
    wakes = [r.wake_time for r in recent if r.wake_time is not None]
    if len(wakes) < nights:
        return 0.0
    return _range_hours(wakes)


def consistency_from_range(range_hours: Optional[float], default: int) -> int:
    if range_hours is None:
        return default
    if range_hours <= 1:
        return 100
    if range_hours <= 2:
        return 80
    if range_hours <= 3:
        return 60
    return 40


def midpoint_consistency(records: Sequence[SleepRecord], default: int = 70) -> int:
    """Schedule regularity 40..100 from the sleep-midpoint spread of the last five nights."""
    return consistency_from_range(midpoint_range_hours(records), default)


def bedtime_consistency(records: Sequence[SleepRecord], default: int = 80) -> int:
    return consistency_from_range(bedtime_range_hours(records), default)
