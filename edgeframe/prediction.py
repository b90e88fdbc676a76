# edgeframe/prediction.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union
import datetime as dt
import logging

from .coach import ProtocolAction, Recommendations, get_predictive_insights, get_protocol_actions, get_recommendations
from .drift import DriftResult, compute_daily_scores, compute_drift
from .engine import (
    CircadianAlignmentResult,
    Projection72hResult,
    SleepAgeResult,
    SleepArchitectureResult,
    SleepPressureResult,
    compute_circadian_alignment,
    compute_projection_72h,
    compute_sleep_age,
    compute_sleep_architecture,
    compute_sleep_pressure,
)
from .metrics import midpoint_consistency
from .models import (
    MIN_SLEEP_RECORDS,
    WINDOW_LIMIT,
    CheckIn,
    SleepRecord,
    UserProfile,
    localize_records,
    window_on_or_before,
)
from .rules import CHRONIC_SHORT_SLEEP, evaluate_rules
from .score import EdgeScoreResult, LegacyInputs, PhysiologicalInputs, ScoreBreakdown, compute_edge_score
from .windows import CognitiveWindowsResult, PeakWindowsResult, compute_cognitive_windows, compute_peak_windows

logger = logging.getLogger(__name__)


STATE_INSUFFICIENT_DATA = "insufficient_data"
STATE_COMPLETE = "complete"

RISK_HORIZON_HOURS = 72


class HistorySource(Protocol):
    """
    External persistence layer the engine reads from (see storage.repo.EdgeRepo).
    Read failures raise; an empty list means no history.
    """

    def fetch_sleep_history(self, user: str, as_of_date: dt.date, limit: int = WINDOW_LIMIT) -> List[SleepRecord]: ...

    def fetch_checkins(self, user: str, as_of_date: dt.date, limit: int = WINDOW_LIMIT) -> List[CheckIn]: ...

    def fetch_profile(self, user: str) -> Optional[UserProfile]: ...


# ----------------------------
# Result models
# ----------------------------

@dataclass
class InsufficientData:
    user: str
    date: dt.date
    sleep_records_found: int
    required: int = MIN_SLEEP_RECORDS
    state: str = STATE_INSUFFICIENT_DATA


@dataclass
class PredictionResult:
    user: str
    date: dt.date
    risk_level: str                          # low | elevated | high
    risk_horizon_hours: Optional[int]
    triggered_rules: List[str]
    protocol_actions: List[ProtocolAction]
    edge_score: int
    strategic_clarity: str
    emotional_regulation: str
    cognitive_stamina: str
    scoring_mode: str                        # physiological | legacy
    degraded_inputs: List[str]
    score_breakdown: Optional[ScoreBreakdown]
    sleep_pressure: Optional[SleepPressureResult]
    circadian: Optional[CircadianAlignmentResult]
    architecture: SleepArchitectureResult
    cognitive_windows: CognitiveWindowsResult
    peak_windows: PeakWindowsResult
    drift: Optional[DriftResult]
    projection: Optional[Projection72hResult]
    sleep_age: Optional[SleepAgeResult]
    insights: List[str] = field(default_factory=list)
    recommendations: Optional[Recommendations] = None
    state: str = STATE_COMPLETE

    def to_dict(self) -> Dict[str, Any]:
        return _json_ready(asdict(self))


PredictionOutcome = Union[PredictionResult, InsufficientData]


def _json_ready(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_ready(v) for v in value]
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value


# ----------------------------
# Scoring for one day
# ----------------------------

@dataclass
class DayAssessment:
    pressure: Optional[SleepPressureResult]
    circadian: Optional[CircadianAlignmentResult]
    architecture: SleepArchitectureResult
    consistency: int
    edge: EdgeScoreResult
    degraded_inputs: List[str]


def assess_day(
    window: Sequence[SleepRecord],
    checkin: Optional[CheckIn],
    profile: UserProfile,
    planned_bedtime: Optional[dt.datetime] = None,
) -> DayAssessment:
    """
    Physiological estimates for one newest-first window, then the edge score.
    Physiological scoring needs both the pressure and circadian estimates; when either
    is missing the legacy scorer is used and the missing estimators are reported.
    """
    latest = window[0] if window else None
    pressure = compute_sleep_pressure(window)
    circadian = compute_circadian_alignment(
        window,
        tonight_bedtime=planned_bedtime,
        chronotype=profile.normalized_chronotype(),
        tz=profile.tzinfo(),
    )
    architecture = compute_sleep_architecture(
        latest,
        window,
        circadian.circadian_alignment_pct if circadian is not None else None,
        profile.age,
    )
    consistency = midpoint_consistency(window)

    degraded: List[str] = []
    if pressure is None:
        degraded.append("sleep_pressure")
    if circadian is None:
        degraded.append("circadian_alignment")

    if pressure is not None and circadian is not None:
        edge = compute_edge_score(
            PhysiologicalInputs.from_estimates(pressure, circadian, architecture, consistency, checkin)
        )
    else:
        edge = compute_edge_score(LegacyInputs(latest_sleep=latest, recent_sleep=list(window), checkin=checkin))

    return DayAssessment(
        pressure=pressure,
        circadian=circadian,
        architecture=architecture,
        consistency=consistency,
        edge=edge,
        degraded_inputs=degraded,
    )


def classify_risk(triggered_rules: Sequence[str]) -> str:
    if CHRONIC_SHORT_SLEEP in triggered_rules or len(triggered_rules) >= 2:
        return "high"
    if len(triggered_rules) == 1:
        return "elevated"
    return "low"


# ----------------------------
# Public API
# ----------------------------

def run_prediction(
    user: str,
    date: dt.date,
    sleep_records: Sequence[SleepRecord],
    checkins: Sequence[CheckIn],
    profile: Optional[UserProfile] = None,
    planned_bedtime: Optional[dt.datetime] = None,
) -> PredictionOutcome:
    """
    Full pipeline over already-fetched history.
    Only records on or before `date` are used, at most 14 of each.
    Sleep timestamps are read in the profile timezone (naive ones as local time).
    """
    profile = profile or UserProfile()
    tz = profile.tzinfo()
    sleep = localize_records(window_on_or_before(sleep_records, date), tz)
    recent_checkins = window_on_or_before(checkins, date)

    if len(sleep) < MIN_SLEEP_RECORDS:
        logger.info("insufficient sleep data for %s on %s (%d records)", user, date.isoformat(), len(sleep))
        return InsufficientData(user=user, date=date, sleep_records_found=len(sleep))

    chronotype = profile.normalized_chronotype()
    today_checkin = next((c for c in recent_checkins if c.date == date), None)

    triggered = evaluate_rules(sleep, recent_checkins)
    risk_level = classify_risk(triggered)

    today = assess_day(sleep, today_checkin, profile, planned_bedtime)
    if today.degraded_inputs:
        logger.debug("legacy scoring for %s on %s: missing %s", user, date.isoformat(), ", ".join(today.degraded_inputs))

    windows = compute_cognitive_windows(
        sleep[0],
        sleep,
        today.pressure.sleep_pressure_pct if today.pressure is not None else None,
        chronotype,
    )
    peak = compute_peak_windows(sleep[0], sleep, recent_checkins, chronotype)

    projection = None
    if today.circadian is not None:
        projection = compute_projection_72h(sleep, today.circadian.circadian_alignment_pct, today.edge.edge_score)

    sleep_age = compute_sleep_age(today.architecture, profile.age, today.consistency)

    # One scoring mode across the series: days scored in the other mode are left out.
    def score_day(lookback: List[SleepRecord], checkin: Optional[CheckIn]) -> Optional[int]:
        day = assess_day(lookback, checkin, profile)
        if day.edge.scoring_mode != today.edge.scoring_mode:
            return None
        return day.edge.edge_score

    drift = compute_drift(compute_daily_scores(sleep, recent_checkins, score_day))

    return PredictionResult(
        user=user,
        date=date,
        risk_level=risk_level,
        risk_horizon_hours=RISK_HORIZON_HOURS if risk_level != "low" else None,
        triggered_rules=triggered,
        protocol_actions=get_protocol_actions(triggered, risk_level),
        edge_score=today.edge.edge_score,
        strategic_clarity=today.edge.strategic_clarity,
        emotional_regulation=today.edge.emotional_regulation,
        cognitive_stamina=today.edge.cognitive_stamina,
        scoring_mode=today.edge.scoring_mode,
        degraded_inputs=today.degraded_inputs,
        score_breakdown=today.edge.breakdown,
        sleep_pressure=today.pressure,
        circadian=today.circadian,
        architecture=today.architecture,
        cognitive_windows=windows,
        peak_windows=peak,
        drift=drift,
        projection=projection,
        sleep_age=sleep_age,
        insights=get_predictive_insights(triggered, sleep),
        recommendations=get_recommendations(sleep, date, tz),
    )


class PredictionEngine:
    """
    Reads one window of history per call and computes deterministically.
    No caching: callers that want idempotent re-reads persist the result themselves.
    Source errors propagate unchanged.
    """
    def __init__(self, source: HistorySource):
        self.source = source

    def evaluate(
        self,
        user: str,
        date: dt.date,
        planned_bedtime: Optional[dt.datetime] = None,
    ) -> PredictionOutcome:
        sleep = self.source.fetch_sleep_history(user, date, limit=WINDOW_LIMIT)
        checkins = self.source.fetch_checkins(user, date, limit=WINDOW_LIMIT)
        profile = self.source.fetch_profile(user) or UserProfile()
        return run_prediction(user, date, sleep, checkins, profile, planned_bedtime)
