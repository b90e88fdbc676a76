# edgeframe/coach.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import datetime as dt

from .engine import format_hhmm
from .metrics import compute_sleep_debt_minutes
from .models import SleepRecord, newest_first
from .rules import (
    CHRONIC_SHORT_SLEEP,
    CLARITY_DROP,
    LOW_QUALITY_3_NIGHTS,
    SHORT_SLEEP_3_NIGHTS,
    SLEEP_MIDPOINT_SHIFT,
)


@dataclass
class ProtocolAction:
    type: str     # rule name, or "<rule>_secondary"
    text: str


@dataclass
class Recommendations:
    optimal_bedtime: Optional[str]
    nap_suggestion: Optional[str]
    wind_down_tip: str


# rule -> (primary action, secondary action)
PROTOCOLS: Dict[str, Tuple[str, str]] = {
    SHORT_SLEEP_3_NIGHTS: ("Protect sleep tonight: aim for 7+ hours", "Block 9-11 AM for deep work"),
    CHRONIC_SHORT_SLEEP: ("Recovery: prioritize sleep for 2-3 nights", "Reduce meeting load; defer non-urgent decisions"),
    SLEEP_MIDPOINT_SHIFT: ("Stabilize bedtime and wake time", "Avoid caffeine after 2 PM"),
    LOW_QUALITY_3_NIGHTS: ("Wind-down: reduce screens 1h before bed", "Consider earlier bedtime"),
    CLARITY_DROP: ("Light cognitive load today", "Protect tonight's sleep"),
}

WIND_DOWN_TIPS = (
    "Reduce screens 1h before bed",
    "Try 4-7-8 breathing before sleep",
    "Dim lights 30min before bed",
    "Avoid caffeine after 2 PM",
    "Keep bedroom cool (18-20°C)",
)

MAX_ACTIONS = 3
MAX_INSIGHTS = 2


def get_protocol_actions(triggered_rules: Sequence[str], risk_level: str) -> List[ProtocolAction]:
    """
    Up to 3 actions, one per triggered rule.
    At high risk, remaining slots are filled with the rules' secondary actions.
    """
    seen = set()
    actions: List[ProtocolAction] = []

    for rule in triggered_rules:
        protocol = PROTOCOLS.get(rule)
        if protocol is None or protocol[0] in seen:
            continue
        seen.add(protocol[0])
        actions.append(ProtocolAction(type=rule, text=protocol[0]))
        if len(actions) >= MAX_ACTIONS:
            return actions

    if risk_level == "high":
        for rule in triggered_rules:
            protocol = PROTOCOLS.get(rule)
            if protocol is None or protocol[1] in seen:
                continue
            seen.add(protocol[1])
            actions.append(ProtocolAction(type=f"{rule}_secondary", text=protocol[1]))
            if len(actions) >= MAX_ACTIONS:
                break

    return actions


def get_predictive_insights(triggered_rules: Sequence[str], sleep_records: Sequence[SleepRecord]) -> List[str]:
    records = newest_first(sleep_records)
    insights: List[str] = []

    if SHORT_SLEEP_3_NIGHTS in triggered_rules:
        insights.append("Aim for 7+ hours tonight to recover.")
    if CHRONIC_SHORT_SLEEP in triggered_rules:
        insights.append("Prioritize sleep for 2-3 nights to restore cognitive capacity.")
    if SLEEP_MIDPOINT_SHIFT in triggered_rules:
        insights.append("Stabilize bedtime tonight for better focus tomorrow.")

    if compute_sleep_debt_minutes(records) > 120:
        insights.append("Sleep debt building: consider a wind-down routine tonight.")

    short_recent = [r for r in records[:3] if r.duration_minutes is not None and r.duration_minutes < 420]
    if len(short_recent) >= 2 and SHORT_SLEEP_3_NIGHTS not in triggered_rules:
        insights.append("Based on last 3 nights, your cognitive performance may dip tomorrow.")

    return insights[:MAX_INSIGHTS]


def get_recommendations(
    sleep_records: Sequence[SleepRecord],
    target_date: dt.date,
    tz: Optional[dt.tzinfo] = None,
) -> Recommendations:
    """
    optimal_bedtime: latest wake time minus 7h30m (local clock).
    wind_down_tip rotates with the target date so the same day always gets the same tip.
    """
    records = newest_first(sleep_records)
    latest = records[0] if records else None

    optimal_bedtime = None
    if latest is not None and latest.wake_time is not None:
        wake = latest.wake_time
        if tz is not None and wake.tzinfo is not None:
            wake = wake.astimezone(tz)
        optimal_bedtime = format_hhmm(wake.hour * 60 + wake.minute - (7 * 60 + 30))

    nap_suggestion = None
    if compute_sleep_debt_minutes(records) > 60:
        nap_suggestion = "20-min nap before 3pm"

    tip = WIND_DOWN_TIPS[target_date.toordinal() % len(WIND_DOWN_TIPS)]
    return Recommendations(optimal_bedtime=optimal_bedtime, nap_suggestion=nap_suggestion, wind_down_tip=tip)
