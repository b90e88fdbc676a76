from __future__ import annotations

import datetime as dt
import unittest

from edgeframe.models import CheckIn, SleepRecord
from edgeframe.rules import (
    CHRONIC_SHORT_SLEEP,
    CLARITY_DROP,
    LOW_QUALITY_3_NIGHTS,
    SHORT_SLEEP_3_NIGHTS,
    SLEEP_MIDPOINT_SHIFT,
    clarity_drop,
    evaluate_rules,
)


TODAY = dt.date(2026, 3, 10)


def _sleep(days_ago: int, minutes=None, quality=None, bed_hour: int = 23) -> SleepRecord:
    day = TODAY - dt.timedelta(days=days_ago)
    bed = dt.datetime.combine(day - dt.timedelta(days=1), dt.time(bed_hour, 0))
    if bed_hour < 12:
        bed += dt.timedelta(days=1)
    length = minutes if minutes is not None else 480
    return SleepRecord(
        date=day,
        duration_minutes=minutes,
        quality_rating=quality,
        bedtime=bed,
        wake_time=bed + dt.timedelta(minutes=length),
    )


def _checkin(days_ago: int, clarity) -> CheckIn:
    return CheckIn(date=TODAY - dt.timedelta(days=days_ago), mental_clarity=clarity)


class SleepRuleTests(unittest.TestCase):
    def test_five_short_nights_trigger_both_short_sleep_rules(self):
        records = [_sleep(i, minutes=300) for i in range(5)]
        triggered = evaluate_rules(records, [])
        self.assertIn(SHORT_SLEEP_3_NIGHTS, triggered)
        self.assertIn(CHRONIC_SHORT_SLEEP, triggered)

    def test_only_recent_nights_count(self):
        records = [_sleep(i, minutes=480) for i in range(5)] + [_sleep(i, minutes=300) for i in range(5, 10)]
        self.assertEqual(evaluate_rules(records, []), [])

    def test_short_sleep_needs_three_within_five(self):
        records = [_sleep(0, 340), _sleep(1, 340), _sleep(2, 480), _sleep(3, 480), _sleep(4, 480), _sleep(5, 340)]
        self.assertNotIn(SHORT_SLEEP_3_NIGHTS, evaluate_rules(records, []))

    def test_missing_durations_never_count(self):
        records = [_sleep(i) for i in range(7)]
        self.assertEqual(evaluate_rules(records, []), [])

    def test_low_quality(self):
        records = [_sleep(i, 480, quality=3 if i < 3 else 5) for i in range(5)]
        self.assertEqual(evaluate_rules(records, []), [LOW_QUALITY_3_NIGHTS])

    def test_midpoint_shift_over_two_hours(self):
        records = [_sleep(i, 480, bed_hour=h) for i, h in enumerate([23, 2, 23, 22, 23])]
        self.assertIn(SLEEP_MIDPOINT_SHIFT, evaluate_rules(records, []))

    def test_midpoint_shift_needs_five_nights(self):
        records = [_sleep(i, 480, bed_hour=h) for i, h in enumerate([23, 3, 22, 23])]
        self.assertNotIn(SLEEP_MIDPOINT_SHIFT, evaluate_rules(records, []))

    def test_input_order_is_irrelevant(self):
        records = [_sleep(i, minutes=300) for i in range(5)]
        self.assertEqual(evaluate_rules(records, []), evaluate_rules(list(reversed(records)), []))


class ClarityDropTests(unittest.TestCase):
    def test_drop_of_two_points_triggers(self):
        checkins = [_checkin(0, 5)] + [_checkin(i, 7) for i in range(1, 8)]
        self.assertIn(CLARITY_DROP, evaluate_rules([], checkins))

    def test_needs_five_prior_values(self):
        checkins = [_checkin(0, 2)] + [_checkin(i, 8) for i in range(1, 5)]
        self.assertFalse(clarity_drop(checkins))

    def test_missing_today_value(self):
        checkins = [_checkin(0, None)] + [_checkin(i, 8) for i in range(1, 8)]
        self.assertFalse(clarity_drop(checkins))

    def test_small_drop_does_not_trigger(self):
        checkins = [_checkin(0, 6)] + [_checkin(i, 7) for i in range(1, 8)]
        self.assertFalse(clarity_drop(checkins))


if __name__ == "__main__":
    unittest.main()
