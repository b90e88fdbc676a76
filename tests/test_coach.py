from __future__ import annotations

import datetime as dt
import unittest

from edgeframe.coach import (
    MAX_ACTIONS,
    WIND_DOWN_TIPS,
    get_predictive_insights,
    get_protocol_actions,
    get_recommendations,
)
from edgeframe.models import SleepRecord
from edgeframe.rules import (
    CHRONIC_SHORT_SLEEP,
    CLARITY_DROP,
    LOW_QUALITY_3_NIGHTS,
    SHORT_SLEEP_3_NIGHTS,
    SLEEP_MIDPOINT_SHIFT,
)


TODAY = dt.date(2026, 3, 10)


def _sleep(days_ago: int, minutes: int, wake: dt.time = dt.time(7, 0)) -> SleepRecord:
    day = TODAY - dt.timedelta(days=days_ago)
    wake_dt = dt.datetime.combine(day, wake)
    return SleepRecord(
        date=day,
        duration_minutes=minutes,
        bedtime=wake_dt - dt.timedelta(minutes=minutes),
        wake_time=wake_dt,
    )


class ProtocolActionTests(unittest.TestCase):
    def test_one_action_per_rule(self):
        actions = get_protocol_actions([LOW_QUALITY_3_NIGHTS], "elevated")
        self.assertEqual([a.type for a in actions], [LOW_QUALITY_3_NIGHTS])

    def test_high_risk_fills_with_secondary_actions(self):
        actions = get_protocol_actions([SHORT_SLEEP_3_NIGHTS, CHRONIC_SHORT_SLEEP], "high")
        self.assertEqual(
            [a.type for a in actions],
            [SHORT_SLEEP_3_NIGHTS, CHRONIC_SHORT_SLEEP, f"{SHORT_SLEEP_3_NIGHTS}_secondary"],
        )

    def test_never_more_than_three(self):
        rules = [SHORT_SLEEP_3_NIGHTS, CHRONIC_SHORT_SLEEP, SLEEP_MIDPOINT_SHIFT, LOW_QUALITY_3_NIGHTS, CLARITY_DROP]
        self.assertEqual(len(get_protocol_actions(rules, "high")), MAX_ACTIONS)

    def test_no_rules_no_actions(self):
        self.assertEqual(get_protocol_actions([], "low"), [])


class InsightTests(unittest.TestCase):
    def test_at_most_two_insights(self):
        records = [_sleep(i, 300) for i in range(5)]
        out = get_predictive_insights([SHORT_SLEEP_3_NIGHTS, CHRONIC_SHORT_SLEEP, SLEEP_MIDPOINT_SHIFT], records)
        self.assertEqual(len(out), 2)
        self.assertTrue(out[0].startswith("Aim for 7+ hours"))

    def test_dip_warning_without_short_sleep_rule(self):
        records = [_sleep(0, 400), _sleep(1, 400), _sleep(2, 480)]
        out = get_predictive_insights([], records)
        self.assertIn("Based on last 3 nights, your cognitive performance may dip tomorrow.", out)

    def test_rested(self):
        self.assertEqual(get_predictive_insights([], [_sleep(i, 480) for i in range(5)]), [])


class RecommendationTests(unittest.TestCase):
    def test_optimal_bedtime_from_latest_wake(self):
        records = [_sleep(1, 480, dt.time(8, 0)), _sleep(0, 480, dt.time(6, 30))]
        out = get_recommendations(records, TODAY)
        self.assertEqual(out.optimal_bedtime, "23:00")
        self.assertIsNone(out.nap_suggestion)

    def test_optimal_bedtime_in_profile_timezone(self):
        wake = dt.datetime(2026, 3, 10, 12, 0, tzinfo=dt.timezone.utc)
        record = SleepRecord(date=TODAY, duration_minutes=480, wake_time=wake)
        tz = dt.timezone(dt.timedelta(hours=-5))
        self.assertEqual(get_recommendations([record], TODAY, tz).optimal_bedtime, "23:30")

    def test_nap_suggestion_on_debt(self):
        records = [_sleep(0, 400), _sleep(1, 400)]
        self.assertEqual(get_recommendations(records, TODAY).nap_suggestion, "20-min nap before 3pm")

    def test_tip_is_stable_per_date(self):
        a = get_recommendations([], TODAY)
        b = get_recommendations([], TODAY)
        self.assertEqual(a.wind_down_tip, b.wind_down_tip)
        self.assertIn(a.wind_down_tip, WIND_DOWN_TIPS)
        self.assertIsNone(a.optimal_bedtime)
        tips = {get_recommendations([], TODAY + dt.timedelta(days=i)).wind_down_tip for i in range(len(WIND_DOWN_TIPS))}
        self.assertEqual(len(tips), len(WIND_DOWN_TIPS))


if __name__ == "__main__":
    unittest.main()
