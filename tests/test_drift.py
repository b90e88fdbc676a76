from __future__ import annotations

import datetime as dt
import unittest

from edgeframe.drift import (
    ACCUMULATING_FATIGUE,
    EDGE_EROSION,
    SLIGHT_COMPRESSION,
    STABLE,
    compute_daily_scores,
    compute_drift,
    drift_status,
)
from edgeframe.models import CheckIn, DailyScore, SleepRecord


START = dt.date(2026, 3, 1)


def _scores(values):
    return [DailyScore(date=START + dt.timedelta(days=i), edge_score=v) for i, v in enumerate(values)]


class DriftStatusTests(unittest.TestCase):
    def test_needs_three_points(self):
        self.assertIsNone(compute_drift(_scores([80, 70])))

    def test_within_five_percent_is_stable(self):
        for newest in (95, 98, 100, 103, 105):
            out = compute_drift(_scores([100, 90, newest]))
            self.assertEqual(out.status, STABLE, newest)

    def test_boundaries_belong_to_lower_severity(self):
        self.assertEqual(compute_drift(_scores([100, 100, 90])).status, SLIGHT_COMPRESSION)
        self.assertEqual(compute_drift(_scores([100, 100, 80])).status, ACCUMULATING_FATIGUE)
        self.assertEqual(compute_drift(_scores([100, 100, 79])).status, EDGE_EROSION)
        self.assertEqual(compute_drift(_scores([100, 100, 94])).status, SLIGHT_COMPRESSION)

    def test_thresholds_are_monotonic(self):
        order = [STABLE, SLIGHT_COMPRESSION, ACCUMULATING_FATIGUE, EDGE_EROSION]
        previous = 0
        for decline in range(0, 40):
            rank = order.index(drift_status(float(decline)))
            self.assertGreaterEqual(rank, previous)
            previous = rank

    def test_percentages(self):
        out = compute_drift(_scores([80, 78, 76, 74, 72, 70]))
        self.assertEqual(out.drift_pct_14d, -12.5)
        self.assertEqual(out.drift_pct_5d, round((70 - 78) * 100.0 / 78, 1))
        self.assertEqual(out.status, ACCUMULATING_FATIGUE)

    def test_five_day_drift_needs_five_points(self):
        self.assertIsNone(compute_drift(_scores([80, 78, 76, 74])).drift_pct_5d)

    def test_zero_oldest_score(self):
        out = compute_drift(_scores([0, 50, 60]))
        self.assertEqual(out.drift_pct_14d, 0.0)
        self.assertEqual(out.status, STABLE)

    def test_unsorted_input(self):
        scores = list(reversed(_scores([100, 90, 70])))
        self.assertEqual(compute_drift(scores).drift_pct_14d, -30.0)


class DailyScoresTests(unittest.TestCase):
    def test_each_day_scored_on_its_own_lookback(self):
        sleep = [SleepRecord(date=START + dt.timedelta(days=i), duration_minutes=420) for i in range(5)]
        checkins = [CheckIn(date=START + dt.timedelta(days=4), energy_rating=5)]
        seen = []

        def score_day(lookback, checkin):
            seen.append((lookback[0].date, checkin is not None))
            self.assertTrue(all(r.date <= lookback[0].date for r in lookback))
            return len(lookback)

        out = compute_daily_scores(list(reversed(sleep)), checkins, score_day)
        self.assertEqual([s.date for s in out], [r.date for r in sleep])
        self.assertEqual([s.edge_score for s in out], [1, 2, 3, 4, 5])
        self.assertIn((START + dt.timedelta(days=4), True), seen)
        self.assertIn((START, False), seen)

    def test_declined_days_are_skipped(self):
        sleep = [SleepRecord(date=START + dt.timedelta(days=i), duration_minutes=420) for i in range(5)]

        def score_day(lookback, checkin):
            return None if len(lookback) < 3 else 70

        out = compute_daily_scores(sleep, [], score_day)
        self.assertEqual([s.date for s in out], [r.date for r in sleep[2:]])
        self.assertEqual(compute_drift(out).status, STABLE)


if __name__ == "__main__":
    unittest.main()
