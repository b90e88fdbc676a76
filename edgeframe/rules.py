# edgeframe/rules.py
from __future__ import annotations

from typing import Callable, Dict, List, Sequence

from .metrics import midpoint_range_hours
from .models import CheckIn, SleepRecord, newest_first


SHORT_SLEEP_3_NIGHTS = "short_sleep_3_nights"
CHRONIC_SHORT_SLEEP = "chronic_short_sleep"
SLEEP_MIDPOINT_SHIFT = "sleep_midpoint_shift"
LOW_QUALITY_3_NIGHTS = "low_quality_3_nights"
CLARITY_DROP = "clarity_drop"


def short_sleep_3_nights(records: Sequence[SleepRecord]) -> bool:
    short = [r for r in records[:5] if r.duration_minutes is not None and r.duration_minutes < 360]
    return len(short) >= 3


def chronic_short_sleep(records: Sequence[SleepRecord]) -> bool:
    short = [r for r in records[:7] if r.duration_minutes is not None and r.duration_minutes < 420]
    return len(short) >= 5


def sleep_midpoint_shift(records: Sequence[SleepRecord]) -> bool:
    spread = midpoint_range_hours(records)
    return spread is not None and spread > 2


def low_quality_3_nights(records: Sequence[SleepRecord]) -> bool:
    low = [r for r in records[:5] if r.quality_rating is not None and r.quality_rating <= 3]
    return len(low) >= 3


def clarity_drop(checkins: Sequence[CheckIn]) -> bool:
    """Latest clarity at least 2 points under the mean of the 7 check-ins before it (needs 5 valid)."""
    if not checkins:
        return False
    today = checkins[0]
    if today.mental_clarity is None:
        return False
    prior = [c.mental_clarity for c in checkins[1:8] if c.mental_clarity is not None]
    if len(prior) < 5:
        return False
    return today.mental_clarity <= sum(prior) / len(prior) - 2


SLEEP_RULES: Dict[str, Callable[[Sequence[SleepRecord]], bool]] = {
    SHORT_SLEEP_3_NIGHTS: short_sleep_3_nights,
    CHRONIC_SHORT_SLEEP: chronic_short_sleep,
    SLEEP_MIDPOINT_SHIFT: sleep_midpoint_shift,
    LOW_QUALITY_3_NIGHTS: low_quality_3_nights,
}


def evaluate_rules(sleep_records: Sequence[SleepRecord], checkins: Sequence[CheckIn]) -> List[str]:
    """Names of triggered rules, in a fixed order. Sparse data never triggers a rule."""
    sleep = newest_first(sleep_records)
    triggered = [name for name, rule in SLEEP_RULES.items() if rule(sleep)]
    if clarity_drop(newest_first(checkins)):
        triggered.append(CLARITY_DROP)
    return triggered
