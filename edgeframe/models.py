# edgeframe/models.py
from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, TypeVar
import datetime as dt
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


CHRONOTYPES = ("early", "intermediate", "late")
DEFAULT_TIMEZONE = "UTC"
DEFAULT_CHRONOTYPE = "intermediate"

WINDOW_LIMIT = 14           # max records considered per evaluation
MIN_SLEEP_RECORDS = 3       # below this the orchestrator reports insufficient data


# ----------------------------
# Data models
# ----------------------------

@dataclass
class SleepRecord:
    """
    One night of sleep, keyed by the calendar date the sleep ends on.
    bedtime / wake_time may be naive (already local) or tz-aware.
    """
    date: dt.date
    duration_minutes: Optional[int] = None
    quality_rating: Optional[int] = None        # 1..5
    bedtime: Optional[dt.datetime] = None
    wake_time: Optional[dt.datetime] = None
    caffeine_after_2pm: Optional[bool] = None
    alcohol_tonight: Optional[bool] = None
    exercise_today: Optional[bool] = None
    screen_time_minutes: Optional[int] = None
    nap_duration_minutes: Optional[int] = None


@dataclass
class CheckIn:
    date: dt.date
    sleep_quality: Optional[int] = None
    mental_clarity: Optional[int] = None        # 1..10
    energy_rating: Optional[int] = None         # 1..5
    stress_level: Optional[int] = None          # 1..10


@dataclass
class UserProfile:
    timezone: str = DEFAULT_TIMEZONE
    chronotype: str = DEFAULT_CHRONOTYPE        # early | intermediate | late
    age: Optional[int] = None

    def tzinfo(self) -> dt.tzinfo:
        try:
            return ZoneInfo(self.timezone or DEFAULT_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            return dt.timezone.utc

    def normalized_chronotype(self) -> str:
        raw = str(self.chronotype or DEFAULT_CHRONOTYPE).strip().lower()
        return raw if raw in CHRONOTYPES else DEFAULT_CHRONOTYPE


@dataclass
class TimeWindow:
    start: str   # "HH:MM"
    end: str     # "HH:MM"


@dataclass
class DailyScore:
    date: dt.date
    edge_score: int


# ----------------------------
# Window helpers
# ----------------------------

_Dated = TypeVar("_Dated", SleepRecord, CheckIn)


def newest_first(items: Sequence[_Dated]) -> List[_Dated]:
    return sorted(items, key=lambda r: r.date, reverse=True)


def window_on_or_before(items: Sequence[_Dated], as_of: dt.date, limit: int = WINDOW_LIMIT) -> List[_Dated]:
    """At most `limit` most recent items dated on or before `as_of`, newest first."""
    kept = [r for r in items if r.date <= as_of]
    return newest_first(kept)[: max(0, int(limit))]


def _in_zone(ts: Optional[dt.datetime], tz: dt.tzinfo) -> Optional[dt.datetime]:
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts.astimezone(tz)


def localize_records(records: Sequence[SleepRecord], tz: dt.tzinfo) -> List[SleepRecord]:
    """
    Copies with bedtime / wake_time expressed in `tz`.
    Naive stamps are read as local wall-clock time in `tz`; aware ones are converted.
    """
    return [
        replace(r, bedtime=_in_zone(r.bedtime, tz), wake_time=_in_zone(r.wake_time, tz))
        for r in records
    ]
