# edgeframe/windows.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .engine import DAY_MINUTES, format_hhmm, parse_hhmm
from .metrics import midpoint_consistency
from .models import CheckIn, SleepRecord, TimeWindow, newest_first


@dataclass
class CognitiveWindowsResult:
    deep_work: TimeWindow
    emotional_regulation: TimeWindow
    reaction_time_dip: TimeWindow
    creative_insight: TimeWindow
    shrink_pct: float
    shift_minutes: int


@dataclass
class PeakWindowsResult:
    strategic: TimeWindow
    execution: TimeWindow
    recovery: TimeWindow


# chronotype -> (start, end)
DEEP_WORK: Dict[str, Tuple[str, str]] = {
    "early": ("08:00", "11:00"),
    "intermediate": ("09:20", "11:40"),
    "late": ("10:00", "12:30"),
}
REACTION_DIP: Dict[str, Tuple[str, str]] = {
    "early": ("13:30", "14:30"),
    "intermediate": ("14:40", "15:30"),
    "late": ("15:30", "16:30"),
}
CREATIVE: Dict[str, Tuple[str, str]] = {
    "early": ("19:30", "21:00"),
    "intermediate": ("20:30", "22:00"),
    "late": ("21:30", "23:00"),
}
EMOTIONAL: Dict[str, Tuple[str, str]] = {
    "early": ("10:00", "12:00"),
    "intermediate": ("11:00", "13:00"),
    "late": ("12:00", "14:00"),
}

PEAK_BASE: Dict[str, Dict[str, Tuple[str, str]]] = {
    "early": {"strategic": ("08:00", "11:00"), "execution": ("11:00", "14:00"), "recovery": ("14:00", "18:00")},
    "intermediate": {"strategic": ("09:00", "12:00"), "execution": ("12:00", "15:00"), "recovery": ("15:00", "19:00")},
    "late": {"strategic": ("10:00", "13:00"), "execution": ("13:00", "16:00"), "recovery": ("16:00", "20:00")},
}


# ----------------------------
# Helpers
# ----------------------------

def _window(pair: Tuple[str, str]) -> TimeWindow:
    return TimeWindow(start=pair[0], end=pair[1])


def _shrink(w: TimeWindow, shrink_pct: float, floor_minutes: int) -> TimeWindow:
    """Shrink around the window centre, never below floor_minutes."""
    s = parse_hhmm(w.start)
    e = parse_hhmm(w.end)
    span = e - s
    new_span = max(floor_minutes, round(span * (1 - shrink_pct / 100.0)))
    offset = round((span - new_span) / 2)
    return TimeWindow(format_hhmm(s + offset), format_hhmm(s + offset + new_span))


def _shift(w: TimeWindow, minutes: int) -> TimeWindow:
    s = parse_hhmm(w.start)
    e = parse_hhmm(w.end)
    return TimeWindow(
        format_hhmm(max(0, s + minutes)),
        format_hhmm(max(0, min(DAY_MINUTES - 1, e + minutes))),
    )


def _duration_adjustments(latest_sleep: Optional[SleepRecord]) -> Tuple[float, int]:
    minutes = latest_sleep.duration_minutes if latest_sleep and latest_sleep.duration_minutes is not None else 480
    hours = minutes / 60.0
    if hours < 6:
        return 20.0, 30
    if hours < 7:
        return 10.0, 15
    return 0.0, 0


def _consistency_shrink(recent_sleep: Sequence[SleepRecord]) -> float:
    consistency = midpoint_consistency(newest_first(recent_sleep), default=80)
    if consistency < 60:
        return 15.0
    if consistency < 80:
        return 8.0
    return 0.0


# ----------------------------
# Cognitive windows
# ----------------------------

def compute_cognitive_windows(
    latest_sleep: Optional[SleepRecord],
    recent_sleep: Sequence[SleepRecord],
    sleep_pressure_pct: Optional[float],
    chronotype: str = "intermediate",
) -> CognitiveWindowsResult:
    """
    Four time-of-day windows for the chronotype, compressed by short sleep,
    elevated sleep pressure and irregular schedules, and shifted by short sleep.
    A missing pressure estimate adds no compression.
    """
    key = chronotype if chronotype in DEEP_WORK else "intermediate"
    deep_work = _window(DEEP_WORK[key])
    dip = _window(REACTION_DIP[key])
    creative = _window(CREATIVE[key])
    emotional = _window(EMOTIONAL[key])

    shrink_pct, shift_minutes = _duration_adjustments(latest_sleep)
    if sleep_pressure_pct is not None and sleep_pressure_pct > 15:
        shrink_pct += min(15.0, sleep_pressure_pct / 2.0)
    shrink_pct += _consistency_shrink(recent_sleep)

    if shrink_pct > 0:
        deep_work = _shrink(deep_work, shrink_pct, 45)
        emotional = _shrink(emotional, shrink_pct * 0.8, 45)
        creative = _shrink(creative, shrink_pct * 0.6, 45)
    if shift_minutes > 0:
        deep_work = _shift(deep_work, -shift_minutes)
        emotional = _shift(emotional, -shift_minutes)
        dip = _shift(dip, shift_minutes)
        creative = _shift(creative, -shift_minutes)

    return CognitiveWindowsResult(
        deep_work=deep_work,
        emotional_regulation=emotional,
        reaction_time_dip=dip,
        creative_insight=creative,
        shrink_pct=round(shrink_pct, 1),
        shift_minutes=shift_minutes,
    )


# ----------------------------
# Peak windows
# ----------------------------

def _trend(checkins: List[CheckIn], attr: str) -> float:
    """Mean of the 3 newest values minus mean of the 3 before them (0 when too sparse)."""
    if len(checkins) < 5:
        return 0.0
    recent = [getattr(c, attr) for c in checkins[:3] if getattr(c, attr) is not None]
    older = [getattr(c, attr) for c in checkins[3:6] if getattr(c, attr) is not None]
    if len(recent) < 2 or len(older) < 2:
        return 0.0
    return sum(recent) / len(recent) - sum(older) / len(older)


def compute_peak_windows(
    latest_sleep: Optional[SleepRecord],
    recent_sleep: Sequence[SleepRecord],
    recent_checkins: Sequence[CheckIn],
    chronotype: str = "intermediate",
) -> PeakWindowsResult:
    key = chronotype if chronotype in PEAK_BASE else "intermediate"
    base = PEAK_BASE[key]
    strategic = _window(base["strategic"])
    execution = _window(base["execution"])
    recovery = _window(base["recovery"])

    shrink_pct, shift_minutes = _duration_adjustments(latest_sleep)
    shrink_pct += _consistency_shrink(recent_sleep)

    checkins = newest_first(recent_checkins)
    if _trend(checkins, "mental_clarity") < 0 or _trend(checkins, "stress_level") > 0:
        shrink_pct += 5

    if shrink_pct > 0:
        strategic = _shrink(strategic, shrink_pct, 60)
        execution = _shrink(execution, shrink_pct * 0.8, 60)
    if shift_minutes > 0:
        strategic = _shift(strategic, -shift_minutes)
        execution = _shift(execution, -shift_minutes)
        recovery = _shift(recovery, -shift_minutes)

    return PeakWindowsResult(strategic=strategic, execution=execution, recovery=recovery)
