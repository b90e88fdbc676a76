# edgeframe/drift.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence
import datetime as dt

from .models import CheckIn, DailyScore, SleepRecord, WINDOW_LIMIT, newest_first


STABLE = "stable"
SLIGHT_COMPRESSION = "slight_compression"
ACCUMULATING_FATIGUE = "accumulating_fatigue"
EDGE_EROSION = "edge_erosion"

# (decline threshold %, status), most severe first; a decline must exceed the threshold.
DRIFT_THRESHOLDS = (
    (20.0, EDGE_EROSION),
    (10.0, ACCUMULATING_FATIGUE),
    (5.0, SLIGHT_COMPRESSION),
)

# None leaves the day out of the series.
DayScorer = Callable[[List[SleepRecord], Optional[CheckIn]], Optional[int]]


@dataclass
class DriftResult:
    status: str
    drift_pct_14d: float
    drift_pct_5d: Optional[float]


def compute_daily_scores(
    sleep_records: Sequence[SleepRecord],
    checkins: Sequence[CheckIn],
    score_day: DayScorer,
) -> List[DailyScore]:
    """
    Re-score every sleep date on its own narrowed lookback (records on or before that date).
    Days the scorer declines are skipped. Returned oldest first.
    """
    ordered = newest_first(sleep_records)
    checkin_by_date: Dict[dt.date, CheckIn] = {c.date: c for c in checkins}

    scores: List[DailyScore] = []
    for i, sleep in enumerate(ordered):
        lookback = ordered[i:i + WINDOW_LIMIT]
        score = score_day(lookback, checkin_by_date.get(sleep.date))
        if score is not None:
            scores.append(DailyScore(date=sleep.date, edge_score=score))
    scores.sort(key=lambda s: s.date)
    return scores


def _pct_change(oldest: float, newest: float) -> float:
    return (newest - oldest) * 100.0 / oldest if oldest > 0 else 0.0


def drift_status(decline_pct: float) -> str:
    for threshold, status in DRIFT_THRESHOLDS:
        if decline_pct > threshold:
            return status
    return STABLE


def compute_drift(scores: Sequence[DailyScore]) -> Optional[DriftResult]:
    if len(scores) < 3:
        return None

    ordered = sorted(scores, key=lambda s: s.date)
    pct14 = _pct_change(ordered[0].edge_score, ordered[-1].edge_score)

    pct5: Optional[float] = None
    if len(ordered) >= 5:
        last5 = ordered[-5:]
        pct5 = round(_pct_change(last5[0].edge_score, last5[-1].edge_score), 1)

    return DriftResult(
        status=drift_status(-pct14),
        drift_pct_14d=round(pct14, 1),
        drift_pct_5d=pct5,
    )
