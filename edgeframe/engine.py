# edgeframe/engine.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import datetime as dt
import math

from .metrics import (
    TARGET_SLEEP_MINUTES,
    bedtime_consistency,
    compute_sleep_debt_minutes,
    wake_time_range_hours,
)
from .models import SleepRecord, TimeWindow, newest_first


# ----------------------------
# Result models
# ----------------------------

@dataclass
class SleepPressureResult:
    sleep_pressure_pct: int
    cognitive_dip_window: TimeWindow
    recovery_time_estimate: int      # hours


@dataclass
class CircadianAlignmentResult:
    biological_readiness_time: str   # HH:MM
    circadian_alignment_pct: int
    bedtime_vs_brt_minutes: int      # signed: negative = earlier than BRT
    interpretation: str              # high | moderate | misaligned
    avg_bedtime_7d: str
    bedtime_reference: str           # planned | average_7d


@dataclass
class SleepArchitectureResult:
    predicted_n3_pct: float
    predicted_rem_pct: float
    fragmentation_risk: int
    predicted_efficiency: int
    rem_shift_note: Optional[str]
    consistency_penalty: int         # fragmentation added by irregular bedtimes


@dataclass
class ProjectionPoint:
    hour_offset: int
    score: float


@dataclass
class Projection72hResult:
    baseline: List[ProjectionPoint]
    recovery: List[ProjectionPoint]
    partial: List[ProjectionPoint]
    bedtime_advance_minutes: int
    sleep_debt_minutes: int
    wake_variance_hours: float
    decline_per_day: float


@dataclass
class SleepAgeResult:
    cognitive_sleep_age: int
    sleep_age_driver: str
    chronological_age: int


SLEEP_AGE_DISCLAIMER = (
    "This estimate reflects modeled sleep architecture patterns and is not a clinical assessment."
)


# ----------------------------
# Helpers
# ----------------------------

DAY_MINUTES = 24 * 60

def _clip(x: float, lo: float, hi: float) -> float:
    return lo if x < lo else hi if x > hi else x

def _hours_between(start: dt.datetime, end: dt.datetime) -> float:
    return (end - start).total_seconds() / 3600.0

def _minute_of_day(ts: dt.datetime, tz: Optional[dt.tzinfo] = None) -> int:
    if tz is not None and ts.tzinfo is not None:
        ts = ts.astimezone(tz)
    return ts.hour * 60 + ts.minute

def format_hhmm(minutes: float) -> str:
    m = int(round(minutes)) % DAY_MINUTES
    return f"{m // 60:02d}:{m % 60:02d}"

def parse_hhmm(s: str) -> int:
    hh, mm = str(s).strip().split(":")
    return int(hh) * 60 + int(mm)

def _signed_clock_diff(a: float, b: float) -> float:
    """a - b on a 24h clock, normalized into (-12h, +12h]."""
    d = (a - b) % DAY_MINUTES
    if d > DAY_MINUTES / 2:
        d -= DAY_MINUTES
    return d


# ----------------------------
# Sleep pressure (homeostatic)
# ----------------------------

PRESSURE_RATE_WAKE = 1.0        # units per hour awake
PRESSURE_DECAY_TAU = 4.5        # hours, exponential decay during sleep
CAFFEINE_PRESSURE_FACTOR = 1.15
NAP_PRESSURE_PER_HOUR = 0.3
BASELINE_WAKE_HOURS = 16.0
TARGET_SLEEP_HOURS = 7.5
DIP_START = 14 * 60 + 30
DIP_END = 16 * 60


def _baseline_residual_pressure() -> float:
    # Residual left by a 16h day followed by the 7.5h target sleep.
    return BASELINE_WAKE_HOURS * PRESSURE_RATE_WAKE * math.exp(-TARGET_SLEEP_HOURS / PRESSURE_DECAY_TAU)


def compute_sleep_pressure(recent_sleep: Sequence[SleepRecord]) -> Optional[SleepPressureResult]:
    """
    Two-night wake/sleep cycle:
    - pressure builds linearly from the previous wake to last night's bedtime
    - decays exponentially over last night's sleep
    Returns None when the estimate is not possible (it is never reported as 0 instead).
    """
    if len(recent_sleep) < 2:
        return None

    ordered = newest_first(recent_sleep)
    last_night, prev_night = ordered[0], ordered[1]
    if last_night.bedtime is None:
        return None

    duration_h = (last_night.duration_minutes if last_night.duration_minutes is not None else 420) / 60.0
    nap_h = (last_night.nap_duration_minutes or 0) / 60.0
    prev_wake = prev_night.wake_time
    if prev_wake is None:
        prev_wake = last_night.bedtime - dt.timedelta(hours=BASELINE_WAKE_HOURS)
    wake_h = max(0.0, _hours_between(prev_wake, last_night.bedtime))

    pressure_at_bed = wake_h * PRESSURE_RATE_WAKE
    if last_night.caffeine_after_2pm:
        pressure_at_bed *= CAFFEINE_PRESSURE_FACTOR

    residual = pressure_at_bed * math.exp(-duration_h / PRESSURE_DECAY_TAU) + nap_h * NAP_PRESSURE_PER_HOUR
    baseline = _baseline_residual_pressure()
    pct = max(0.0, (residual - baseline) / baseline * 100.0) if baseline > 0 else 0.0

    if pct > 15:
        extend = min(60, round(pct / 3))
        return SleepPressureResult(
            sleep_pressure_pct=round(min(50.0, pct)),
            cognitive_dip_window=TimeWindow(format_hhmm(DIP_START), format_hhmm(DIP_END + extend)),
            recovery_time_estimate=min(24, round(4 + pct / 10)),
        )
    return SleepPressureResult(
        sleep_pressure_pct=round(pct),
        cognitive_dip_window=TimeWindow(format_hhmm(DIP_START), format_hhmm(DIP_END)),
        recovery_time_estimate=max(0, round(2 + pct / 15)),
    )


# ----------------------------
# Circadian alignment
# ----------------------------

DLMO_OFFSET_MINUTES = 150        # DLMO ~2.5h before habitual sleep
BRT_OFFSET_MINUTES = 75          # midpoint of 60-90 min after DLMO
CHRONOTYPE_DLMO_SHIFT: Dict[str, int] = {"early": -30, "intermediate": 0, "late": 30}

BEDTIME_PLANNED = "planned"
BEDTIME_AVERAGE_7D = "average_7d"


def _unwrap_bedtime(minutes: int) -> int:
    # Bedtimes before noon belong to the previous evening's night.
    return minutes + DAY_MINUTES if minutes < DAY_MINUTES // 2 else minutes


def compute_circadian_alignment(
    recent_sleep: Sequence[SleepRecord],
    tonight_bedtime: Optional[dt.datetime] = None,
    chronotype: str = "intermediate",
    tz: Optional[dt.tzinfo] = None,
) -> Optional[CircadianAlignmentResult]:
    """
    Biological readiness time (BRT) = estimated DLMO + 75 min,
    DLMO = wrap-aware mean bedtime of the last 7 nights - 2.5h, shifted by chronotype.
    Tonight's planned bedtime (or the mean bedtime) is compared with BRT.
    """
    with_bed = [r for r in newest_first(recent_sleep) if r.bedtime is not None][:7]
    if len(with_bed) < 3:
        return None

    unwrapped = [_unwrap_bedtime(_minute_of_day(r.bedtime, tz)) for r in with_bed]
    avg_bed = (sum(unwrapped) / len(unwrapped)) % DAY_MINUTES

    dlmo = avg_bed - DLMO_OFFSET_MINUTES + CHRONOTYPE_DLMO_SHIFT.get(chronotype, 0)
    brt = round(dlmo + BRT_OFFSET_MINUTES) % DAY_MINUTES

    target = _minute_of_day(tonight_bedtime, tz) if tonight_bedtime is not None else avg_bed
    diff = _signed_clock_diff(target, brt)
    abs_diff = abs(diff)

    if abs_diff <= 15:
        interpretation = "high"
    elif abs_diff <= 45:
        interpretation = "moderate"
    else:
        interpretation = "misaligned"

    return CircadianAlignmentResult(
        biological_readiness_time=format_hhmm(brt),
        circadian_alignment_pct=round(_clip(100 - 2 * abs_diff, 0, 100)),
        bedtime_vs_brt_minutes=round(diff),
        interpretation=interpretation,
        avg_bedtime_7d=format_hhmm(avg_bed),
        bedtime_reference=BEDTIME_PLANNED if tonight_bedtime is not None else BEDTIME_AVERAGE_7D,
    )


# ----------------------------
# Sleep architecture
# ----------------------------

REM_BASELINE = 22.0
REM_SHIFT_NOTE = "REM distribution may shift later due to delayed bedtime."


def n3_age_norm(age: Optional[int]) -> float:
    if age is None:
        return 18.0
    if age < 30:
        return 22.0
    if age < 40:
        return 18.0
    if age < 50:
        return 15.0
    return 12.0


def compute_sleep_architecture(
    latest_sleep: Optional[SleepRecord],
    recent_sleep: Sequence[SleepRecord],
    circadian_alignment_pct: Optional[float] = None,
    age: Optional[int] = None,
) -> SleepArchitectureResult:
    n3 = n3_age_norm(age)
    rem = REM_BASELINE
    fragmentation = 20.0
    efficiency = 85.0

    if latest_sleep is not None:
        duration_h = (latest_sleep.duration_minutes if latest_sleep.duration_minutes is not None else 420) / 60.0
        if duration_h < 6:
            n3 -= 4
            rem -= 3
            efficiency -= 8
        elif duration_h < 7:
            n3 -= 2
            rem -= 2
            efficiency -= 4

        if latest_sleep.alcohol_tonight:
            n3 -= 2
            rem -= 5
            fragmentation += 25
            efficiency -= 5

        screen = latest_sleep.screen_time_minutes
        if screen is not None:
            if screen >= 90:
                fragmentation += 15
                efficiency -= 5
            elif screen >= 60:
                fragmentation += 8

    rem_shift_note = None
    if circadian_alignment_pct is not None and circadian_alignment_pct < 60:
        rem_shift_note = REM_SHIFT_NOTE

    consistency = bedtime_consistency(newest_first(recent_sleep))
    penalty = 20 if consistency < 60 else 10 if consistency < 80 else 0
    fragmentation += penalty

    return SleepArchitectureResult(
        predicted_n3_pct=_clip(round(n3, 1), 8.0, 28.0),
        predicted_rem_pct=_clip(round(rem, 1), 12.0, 28.0),
        fragmentation_risk=min(95, round(fragmentation)),
        predicted_efficiency=int(_clip(round(efficiency), 65, 98)),
        rem_shift_note=rem_shift_note,
        consistency_penalty=penalty,
    )


# ----------------------------
# 72h projection
# ----------------------------

PROJECTION_HOURS = (0, 12, 24, 36, 48, 60, 72)


def _trajectory(start: float, slope_per_day: float, offset: float) -> List[ProjectionPoint]:
    return [
        ProjectionPoint(hour_offset=h, score=round(_clip(start - (h / 24.0) * slope_per_day + offset, 20, 100), 1))
        for h in PROJECTION_HOURS
    ]


def compute_projection_72h(
    recent_sleep: Sequence[SleepRecord],
    circadian_alignment_pct: float,
    current_edge_score: float,
) -> Projection72hResult:
    """
    Three trajectories from the current score:
    baseline (no change), recovery (full recovery sleep), partial (nap / partial recovery).
    """
    ordered = newest_first(recent_sleep)
    debt = compute_sleep_debt_minutes(ordered, TARGET_SLEEP_MINUTES)
    variance_h = wake_time_range_hours(ordered)
    misalignment = 100 - circadian_alignment_pct

    debt_impact = min(30.0, (debt / 120.0) * 15)
    variance_impact = min(15.0, variance_h * 5)
    align_impact = min(25.0, (misalignment / 100.0) * 25)
    decline = (debt_impact + variance_impact + align_impact) / 3.0

    return Projection72hResult(
        baseline=_trajectory(current_edge_score, decline, 0),
        recovery=_trajectory(current_edge_score, decline * 0.4, 5),
        partial=_trajectory(current_edge_score, decline * 0.7, 3),
        bedtime_advance_minutes=int(_clip(round(misalignment / 2), 40, 60)),
        sleep_debt_minutes=debt,
        wake_variance_hours=round(variance_h, 2),
        decline_per_day=round(decline, 2),
    )


# ----------------------------
# Cognitive sleep age
# ----------------------------

# Range over which each deficit can move, used to compare drivers on one scale.
_EFFICIENCY_SPAN = 90.0 - 65.0
_FRAGMENTATION_SPAN = 95.0 - 25.0
_VARIABILITY_SPAN = (100.0 - 40.0) / 5.0

MAX_SLEEP_AGE_ADDEND = 15


def compute_sleep_age(
    architecture: SleepArchitectureResult,
    age: Optional[int],
    consistency_score: float,
) -> Optional[SleepAgeResult]:
    """
    Age-equivalent of the modeled architecture.
    The added years come from the largest single addend (never a sum), capped at +15.
    The driver label is the deficit with the highest severity relative to its own range.
    """
    if age is None:
        return None

    n3_norm = n3_age_norm(age)
    n3_deficit = n3_norm - architecture.predicted_n3_pct
    efficiency_deficit = 90 - architecture.predicted_efficiency
    frag_excess = max(0, architecture.fragmentation_risk - 25)
    variability = max(0.0, (100 - consistency_score) / 5.0)

    # (label, years added, normalized severity)
    candidates = []
    if n3_deficit > 3:
        candidates.append(("reduced slow-wave sleep preservation", round(n3_deficit * 1.5), n3_deficit / n3_norm))
    if efficiency_deficit > 5:
        candidates.append(("lower sleep efficiency", round(efficiency_deficit * 0.4), efficiency_deficit / _EFFICIENCY_SPAN))
    if frag_excess > 15:
        candidates.append(("elevated fragmentation risk", round(frag_excess * 0.3), frag_excess / _FRAGMENTATION_SPAN))
    if variability > 2:
        candidates.append(("sleep schedule variability", round(variability), variability / _VARIABILITY_SPAN))

    added = 0
    driver = "baseline alignment"
    if candidates:
        added = max(c[1] for c in candidates)
        driver = max(candidates, key=lambda c: c[2])[0]

    added = int(_clip(added, 0, MAX_SLEEP_AGE_ADDEND))
    return SleepAgeResult(
        cognitive_sleep_age=age + added,
        sleep_age_driver=driver,
        chronological_age=age,
    )
