# edgeframe/travel.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List
import datetime as dt
import logging
import math
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


CITY_TZ: Dict[str, str] = {
    "San Francisco": "America/Los_Angeles",
    "SF": "America/Los_Angeles",
    "Los Angeles": "America/Los_Angeles",
    "New York": "America/New_York",
    "NYC": "America/New_York",
    "London": "Europe/London",
    "Paris": "Europe/Paris",
    "Berlin": "Europe/Berlin",
    "Tokyo": "Asia/Tokyo",
    "Hong Kong": "Asia/Hong_Kong",
    "Singapore": "Asia/Singapore",
    "Sydney": "Australia/Sydney",
    "Dubai": "Asia/Dubai",
    "Mumbai": "Asia/Kolkata",
    "Shanghai": "Asia/Shanghai",
}
_CITY_TZ_LOWER = {k.lower(): v for k, v in CITY_TZ.items()}

HIGH_RISK_SHIFT_HOURS = 6
MODERATE_RISK_SHIFT_HOURS = 3
SHIFT_HOURS_PER_RECOVERY_DAY = 2


@dataclass
class DayImpact:
    day_offset: int
    strategic_clarity_delta_pct: int
    notes: str


@dataclass
class TravelRecommendations:
    light_exposure: str = "Get morning light at destination within 1h of local sunrise"
    caffeine_timing: str = "Avoid caffeine after 2pm local; use strategically in first 2 days"
    nap_timing: str = "20-min nap before 3pm local if needed"
    bedtime_shift: str = "Gradually shift bedtime 30-60 min per night 2-3 nights before flight"


@dataclass
class TravelImpact:
    timezone_shift_hours: int                # positive = eastward
    circadian_risk: str                      # low | moderate | high
    recovery_days: int
    day_impacts: List[DayImpact]
    recommendations: TravelRecommendations = field(default_factory=TravelRecommendations)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def utc_offset_minutes(tz_name: str, when: dt.datetime) -> int:
    """
    UTC offset of `tz_name` at `when`, in minutes.
    Naive datetimes are read as local time in that zone. Unknown zones count as UTC.
    """
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown timezone %r, using UTC", tz_name)
        return 0
    local = when.replace(tzinfo=tz) if when.tzinfo is None else when.astimezone(tz)
    offset = local.utcoffset() or dt.timedelta(0)
    return int(offset.total_seconds() // 60)


def _day_note(day: int, recovery_days: int) -> str:
    if day == 0:
        return "Arrival day: expect compression"
    if day == 1:
        return "Compression window likely mid-afternoon"
    if day == recovery_days:
        return "Full recovery expected"
    return "Gradual recovery"


def compute_travel_impact(
    departure_tz: str,
    arrival_tz: str,
    departure_dt: dt.datetime,
    arrival_dt: dt.datetime,
) -> TravelImpact:
    """
    Jet-lag estimate for one flight.
    The shift is the difference of the two local UTC offsets, rounded to whole hours.
    Risk is high from 6h and moderate from 3h; recovery takes a day per 2h of shift
    (at least one). Clarity dips on arrival by 15% plus 0.5% per hour shifted, then
    recovers 5 points a day from -10% on day one.
    """
    shift_minutes = utc_offset_minutes(arrival_tz, arrival_dt) - utc_offset_minutes(departure_tz, departure_dt)
    shift_hours = _round_half_up(shift_minutes / 60.0)
    abs_shift = abs(shift_hours)

    if abs_shift >= HIGH_RISK_SHIFT_HOURS:
        risk = "high"
    elif abs_shift >= MODERATE_RISK_SHIFT_HOURS:
        risk = "moderate"
    else:
        risk = "low"

    recovery_days = max(1, math.ceil(abs_shift / SHIFT_HOURS_PER_RECOVERY_DAY))

    impacts: List[DayImpact] = []
    for day in range(recovery_days + 1):
        pct = -15 - abs_shift * 0.5 if day == 0 else -10 + day * 5
        impacts.append(DayImpact(day, _round_half_up(pct), _day_note(day, recovery_days)))

    return TravelImpact(
        timezone_shift_hours=shift_hours,
        circadian_risk=risk,
        recovery_days=recovery_days,
        day_impacts=impacts,
    )


def resolve_city_to_tz(city: str) -> str:
    """IANA zone for a known city name or abbreviation (case and spacing ignored), else "UTC"."""
    normalized = " ".join(str(city or "").split())
    return CITY_TZ.get(normalized) or _CITY_TZ_LOWER.get(normalized.lower()) or "UTC"
