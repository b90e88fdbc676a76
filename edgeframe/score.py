# edgeframe/score.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from .engine import CircadianAlignmentResult, SleepArchitectureResult, SleepPressureResult
from .metrics import TARGET_SLEEP_MINUTES, compute_sleep_debt_minutes, midpoint_consistency
from .models import CheckIn, SleepRecord, newest_first


SCORING_PHYSIOLOGICAL = "physiological"
SCORING_LEGACY = "legacy"

LEGACY_WEIGHTS: Dict[str, float] = {
    "duration": 0.30,
    "quality": 0.25,
    "consistency": 0.20,
    "behavioral": 0.15,
    "energy": 0.10,
}

PHYSIOLOGICAL_WEIGHTS: Dict[str, float] = {
    "sleep_pressure": 0.25,
    "circadian": 0.25,
    "architecture": 0.25,
    "fragmentation_consistency": 0.25,
}

STAGE_REFERENCE_PCT = 25.0


# ----------------------------
# Inputs (tagged variant)
# ----------------------------

@dataclass
class LegacyInputs:
    """Self-reported duration / quality / behaviour scoring (no physiological model)."""
    latest_sleep: Optional[SleepRecord]
    recent_sleep: List[SleepRecord] = field(default_factory=list)
    checkin: Optional[CheckIn] = None


@dataclass
class PhysiologicalInputs:
    sleep_pressure_pct: float
    circadian_alignment_pct: float
    predicted_n3_pct: float
    predicted_rem_pct: float
    predicted_efficiency: float
    fragmentation_risk: float
    consistency_score: float
    checkin: Optional[CheckIn] = None

    @classmethod
    def from_estimates(
        cls,
        pressure: SleepPressureResult,
        circadian: CircadianAlignmentResult,
        architecture: SleepArchitectureResult,
        consistency_score: float,
        checkin: Optional[CheckIn] = None,
    ) -> "PhysiologicalInputs":
        return cls(
            sleep_pressure_pct=pressure.sleep_pressure_pct,
            circadian_alignment_pct=circadian.circadian_alignment_pct,
            predicted_n3_pct=architecture.predicted_n3_pct,
            predicted_rem_pct=architecture.predicted_rem_pct,
            predicted_efficiency=architecture.predicted_efficiency,
            fragmentation_risk=architecture.fragmentation_risk,
            consistency_score=consistency_score,
            checkin=checkin,
        )


EdgeInputs = Union[LegacyInputs, PhysiologicalInputs]


@dataclass
class ScoreBreakdown:
    sleep_pressure_score: float
    circadian_score: float
    architecture_score: float
    fragmentation_consistency_score: float
    energy_score: float
    weights: Dict[str, float]


@dataclass
class EdgeScoreResult:
    edge_score: int
    strategic_clarity: str
    emotional_regulation: str
    cognitive_stamina: str
    scoring_mode: str
    breakdown: Optional[ScoreBreakdown] = None


# ----------------------------
# Component scores
# ----------------------------

def _clip(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x


def score_to_label(score: float) -> str:
    if score >= 80:
        return "Strong"
    if score >= 50:
        return "Moderate"
    if score >= 30:
        return "Slightly Reduced"
    return "Reduced"


def score_duration(minutes: Optional[int]) -> float:
    if minutes is None:
        return 50.0
    hours = minutes / 60.0
    if 7 <= hours <= 9:
        return 100.0
    if 6 <= hours < 7:
        return 75.0
    if 5 <= hours < 6:
        return 50.0
    if 4 <= hours < 5:
        return 30.0
    if hours < 4:
        return 15.0
    if 9 < hours <= 10:
        return 85.0
    return 60.0


def score_quality(rating: Optional[int]) -> float:
    if rating is None:
        return 60.0
    return (rating - 1) / 4.0 * 100.0


def score_behavioral(sleep: Optional[SleepRecord]) -> float:
    if sleep is None:
        return 70.0
    score = 100.0
    if sleep.caffeine_after_2pm:
        score -= 15
    if sleep.alcohol_tonight:
        score -= 20
    if sleep.screen_time_minutes is not None:
        if sleep.screen_time_minutes >= 90:
            score -= 25
        elif sleep.screen_time_minutes >= 60:
            score -= 15
        elif sleep.screen_time_minutes >= 30:
            score -= 5
    if sleep.exercise_today:
        score += 5
    return _clip(score, 0, 100)


def score_energy(checkin: Optional[CheckIn]) -> float:
    if checkin is None or not checkin.energy_rating:
        return 60.0
    return (checkin.energy_rating - 1) / 4.0 * 100.0


def score_mental_clarity(checkin: Optional[CheckIn]) -> float:
    if checkin is None or not checkin.mental_clarity:
        return 60.0
    return (checkin.mental_clarity - 1) / 9.0 * 100.0


def score_stress_inverted(checkin: Optional[CheckIn]) -> float:
    if checkin is None or not checkin.stress_level:
        return 70.0
    return (10 - checkin.stress_level) / 9.0 * 100.0


def score_sleep_debt_inverted(records: List[SleepRecord]) -> float:
    debt = compute_sleep_debt_minutes(records, TARGET_SLEEP_MINUTES)
    if debt == 0:
        return 100.0
    max_debt = 5 * (TARGET_SLEEP_MINUTES - 240)
    return max(0.0, 100.0 - debt / max_debt * 100.0)


# ----------------------------
# Strategies
# ----------------------------

def score_legacy(inputs: LegacyInputs) -> EdgeScoreResult:
    recent = newest_first(inputs.recent_sleep)
    latest = inputs.latest_sleep

    duration = score_duration(latest.duration_minutes if latest else None)
    quality = score_quality(latest.quality_rating if latest else None)
    consistency = midpoint_consistency(recent)
    behavioral = score_behavioral(latest)
    energy = score_energy(inputs.checkin)

    w = LEGACY_WEIGHTS
    total = (
        duration * w["duration"]
        + quality * w["quality"]
        + consistency * w["consistency"]
        + behavioral * w["behavioral"]
        + energy * w["energy"]
    )

    strategic = score_mental_clarity(inputs.checkin) * 0.40 + quality * 0.35 + consistency * 0.25
    emotional = score_stress_inverted(inputs.checkin) * 0.35 + quality * 0.35 + energy * 0.30
    stamina = duration * 0.40 + energy * 0.30 + score_sleep_debt_inverted(recent) * 0.30

    return EdgeScoreResult(
        edge_score=round(_clip(total, 0, 100)),
        strategic_clarity=score_to_label(strategic),
        emotional_regulation=score_to_label(emotional),
        cognitive_stamina=score_to_label(stamina),
        scoring_mode=SCORING_LEGACY,
    )


def _architecture_score(n3_pct: float, rem_pct: float, efficiency: float) -> float:
    n3_ratio = min(100.0, n3_pct / STAGE_REFERENCE_PCT * 100.0)
    rem_ratio = min(100.0, rem_pct / STAGE_REFERENCE_PCT * 100.0)
    return _clip(n3_ratio * 0.30 + rem_ratio * 0.30 + efficiency * 0.40, 0, 100)


def score_physiological(inputs: PhysiologicalInputs) -> EdgeScoreResult:
    pressure = max(0.0, 100.0 - 1.5 * inputs.sleep_pressure_pct)
    circadian = _clip(inputs.circadian_alignment_pct, 0, 100)
    architecture = _architecture_score(inputs.predicted_n3_pct, inputs.predicted_rem_pct, inputs.predicted_efficiency)
    frag_consistency = _clip(((100.0 - inputs.fragmentation_risk) + inputs.consistency_score) / 2.0, 0, 100)
    energy = score_energy(inputs.checkin)

    w = PHYSIOLOGICAL_WEIGHTS
    total = (
        pressure * w["sleep_pressure"]
        + circadian * w["circadian"]
        + architecture * w["architecture"]
        + frag_consistency * w["fragmentation_consistency"]
    )

    # Clarity leans on homeostatic load, emotional regulation on REM-bearing
    # architecture, stamina on pressure and sleep continuity.
    strategic = pressure * 0.30 + architecture * 0.25 + circadian * 0.30 + energy * 0.15
    emotional = architecture * 0.35 + frag_consistency * 0.25 + circadian * 0.20 + energy * 0.20
    stamina = pressure * 0.40 + frag_consistency * 0.20 + architecture * 0.20 + energy * 0.20

    return EdgeScoreResult(
        edge_score=round(_clip(total, 0, 100)),
        strategic_clarity=score_to_label(strategic),
        emotional_regulation=score_to_label(emotional),
        cognitive_stamina=score_to_label(stamina),
        scoring_mode=SCORING_PHYSIOLOGICAL,
        breakdown=ScoreBreakdown(
            sleep_pressure_score=round(pressure, 1),
            circadian_score=round(circadian, 1),
            architecture_score=round(architecture, 1),
            fragmentation_consistency_score=round(frag_consistency, 1),
            energy_score=round(energy, 1),
            weights=dict(w),
        ),
    )


def compute_edge_score(inputs: EdgeInputs) -> EdgeScoreResult:
    if isinstance(inputs, PhysiologicalInputs):
        return score_physiological(inputs)
    if isinstance(inputs, LegacyInputs):
        return score_legacy(inputs)
    raise TypeError(f"Unsupported edge score inputs: {type(inputs).__name__}")
