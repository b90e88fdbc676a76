# edgeframe/planning.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
import datetime as dt

from .metrics import TARGET_SLEEP_MINUTES
from .models import SleepRecord


EVENT_TYPES = (
    ("board_meeting", "Board meeting"),
    ("fundraise", "Fundraise"),
    ("earnings_call", "Earnings call"),
    ("product_launch", "Product launch"),
    ("court_case", "Court case"),
    ("conference", "Conference"),
    ("custom", "Custom"),
)

SIMULATION_SCENARIOS = ("late_dinner", "two_drinks", "red_eye_flight", "screen_90_before_bed", "custom")

EVENT_PREP_NIGHTS = 2


@dataclass
class EventPlan:
    sleep_target_minutes: int
    optimal_bedtime: str
    recovery_days: int
    nights_at_target: int


@dataclass
class SimulateInput:
    scenario: str
    alcohol_timing: Optional[str] = None          # HH:MM
    bedtime_shift_minutes: Optional[int] = None
    nap_duration_minutes: Optional[int] = None
    screen_minutes: Optional[int] = None


@dataclass
class SimulateResult:
    rem_suppression_estimate: str
    sleep_latency_change: str
    cognitive_window_shift: str
    summary: str


@dataclass
class SleepDebtPoint:
    date: dt.date
    debt_minutes: int


# ----------------------------
# Event plan
# ----------------------------

def compute_event_plan(target_edge_score: float, days_until_event: int, has_upcoming_travel: bool) -> EventPlan:
    """
    Performance target plan ahead of an event.
    A target of 85+ asks for 7h45m nights, otherwise 7h30m; travel adds a recovery day.
    Bedtime assumes a 07:00 wake with 7.5h of sleep.
    The target covers the nights left before the event, at most two.
    """
    return EventPlan(
        sleep_target_minutes=465 if target_edge_score >= 85 else 450,
        optimal_bedtime="23:30",
        recovery_days=1 if has_upcoming_travel else 0,
        nights_at_target=max(0, min(int(days_until_event), EVENT_PREP_NIGHTS)),
    )


# ----------------------------
# What-if simulation
# ----------------------------

SCENARIO_IMPACTS: Dict[str, SimulateResult] = {
    "late_dinner": SimulateResult(
        rem_suppression_estimate="Late dinner is associated with reduced REM consolidation in the second half of the night.",
        sleep_latency_change="Sleep latency may increase by approximately 15-25 minutes.",
        cognitive_window_shift="Your deep work window may shift later by 20-30 minutes tomorrow.",
        summary="Late dinner is associated with delayed digestion and may impact sleep architecture. "
                "Consider eating at least 2-3 hours before bed.",
    ),
    "two_drinks": SimulateResult(
        rem_suppression_estimate="Alcohol consumption is associated with reduced REM consolidation in the second half of the night.",
        sleep_latency_change="Initial sleep latency may decrease, but sleep fragmentation may increase in the second half of the night.",
        cognitive_window_shift="Cognitive recovery may extend into the following day.",
        summary="Alcohol consumption at night is associated with REM suppression and fragmented sleep. "
                "Cognitive recovery may extend into the following day.",
    ),
    "red_eye_flight": SimulateResult(
        rem_suppression_estimate="Circadian disruption from travel is associated with altered REM timing and reduced consolidation.",
        sleep_latency_change="Sleep latency may be variable; jet lag may extend recovery by 1-2 days per time zone crossed.",
        cognitive_window_shift="Cognitive windows may shift according to destination time zone over 2-4 days.",
        summary="Red-eye flights are associated with significant circadian misalignment. "
                "Recovery may take several days depending on time zones crossed.",
    ),
    "screen_90_before_bed": SimulateResult(
        rem_suppression_estimate="Blue light exposure before bed is associated with delayed melatonin onset and may shift REM later.",
        sleep_latency_change="Sleep latency may increase by approximately 20-40 minutes.",
        cognitive_window_shift="Your morning cognitive peak may shift later by 30-45 minutes.",
        summary="Screen use 90 minutes before bed is associated with delayed sleep onset and shifted circadian timing. "
                "Consider a wind-down routine without screens.",
    ),
}


def run_simulation(inp: SimulateInput) -> SimulateResult:
    if inp.scenario in SCENARIO_IMPACTS:
        return SCENARIO_IMPACTS[inp.scenario]
    if inp.scenario != "custom":
        raise ValueError(f"Unknown scenario: {inp.scenario}")

    rem: Optional[str] = None
    latency: Optional[str] = None
    window: Optional[str] = None
    parts: List[str] = []

    if inp.alcohol_timing:
        rem = (
            f"Alcohol consumption at {inp.alcohol_timing} is associated with reduced REM consolidation "
            "in the second half of the night."
        )
        parts.append(rem)
    if inp.bedtime_shift_minutes:
        direction = "later" if inp.bedtime_shift_minutes > 0 else "earlier"
        window = (
            f"A bedtime shift of {abs(inp.bedtime_shift_minutes)} minutes {direction} "
            "may shift your cognitive windows accordingly."
        )
        parts.append(window)
    if inp.nap_duration_minutes is not None and inp.nap_duration_minutes > 0:
        nap = (
            f"A {inp.nap_duration_minutes}-minute nap may partially offset sleep pressure; "
            "avoid napping after 3 PM to protect nighttime sleep."
        )
        latency = latency or nap
        parts.append(nap)
    if inp.screen_minutes is not None and inp.screen_minutes >= 60:
        screen = (
            f"{inp.screen_minutes} minutes of screen use before bed is associated with increased "
            "sleep latency and delayed melatonin onset."
        )
        latency = screen
        parts.append(screen)

    return SimulateResult(
        rem_suppression_estimate=rem or "Custom scenario impact depends on the combination of factors.",
        sleep_latency_change=latency or "Sleep architecture may be affected by the selected factors.",
        cognitive_window_shift=window or "Cognitive windows may shift based on the combined inputs.",
        summary=" ".join(parts) if parts else "Select factors to see projected impact.",
    )


# ----------------------------
# Sleep debt series
# ----------------------------

def sleep_debt_series(records: Sequence[SleepRecord], target_minutes: int = TARGET_SLEEP_MINUTES) -> List[SleepDebtPoint]:
    """Running shortfall vs target, oldest date first. Surplus nights do not pay debt back."""
    running = 0
    out: List[SleepDebtPoint] = []
    for r in sorted(records, key=lambda r: r.date):
        if r.duration_minutes is not None and r.duration_minutes < target_minutes:
            running += target_minutes - r.duration_minutes
        out.append(SleepDebtPoint(date=r.date, debt_minutes=running))
    return out
