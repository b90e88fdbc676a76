from __future__ import annotations

import datetime as dt
import unittest

from edgeframe.models import SleepRecord
from edgeframe.planning import (
    SCENARIO_IMPACTS,
    SimulateInput,
    compute_event_plan,
    run_simulation,
    sleep_debt_series,
)


class EventPlanTests(unittest.TestCase):
    def test_high_target_needs_longer_nights(self):
        self.assertEqual(compute_event_plan(90, 5, False).sleep_target_minutes, 465)
        self.assertEqual(compute_event_plan(70, 5, False).sleep_target_minutes, 450)

    def test_travel_adds_recovery_day(self):
        plan = compute_event_plan(80, 3, True)
        self.assertEqual(plan.recovery_days, 1)
        self.assertEqual(plan.optimal_bedtime, "23:30")

    def test_target_nights_bounded_by_days_left(self):
        self.assertEqual(compute_event_plan(90, 5, False).nights_at_target, 2)
        self.assertEqual(compute_event_plan(90, 1, False).nights_at_target, 1)
        self.assertEqual(compute_event_plan(90, 0, False).nights_at_target, 0)


class SimulationTests(unittest.TestCase):
    def test_fixed_scenarios(self):
        for name, expected in SCENARIO_IMPACTS.items():
            self.assertEqual(run_simulation(SimulateInput(scenario=name)), expected)

    def test_unknown_scenario(self):
        with self.assertRaises(ValueError):
            run_simulation(SimulateInput(scenario="skydiving"))

    def test_custom_without_factors(self):
        out = run_simulation(SimulateInput(scenario="custom"))
        self.assertEqual(out.summary, "Select factors to see projected impact.")

    def test_custom_combines_factors(self):
        out = run_simulation(
            SimulateInput(scenario="custom", alcohol_timing="22:00", bedtime_shift_minutes=-30, screen_minutes=90)
        )
        self.assertIn("22:00", out.rem_suppression_estimate)
        self.assertIn("30 minutes earlier", out.cognitive_window_shift)
        self.assertIn("90 minutes of screen use", out.sleep_latency_change)
        self.assertIn("22:00", out.summary)


class SleepDebtSeriesTests(unittest.TestCase):
    def test_running_shortfall_oldest_first(self):
        start = dt.date(2026, 3, 1)
        records = [
            SleepRecord(date=start + dt.timedelta(days=2), duration_minutes=420),
            SleepRecord(date=start, duration_minutes=400),
            SleepRecord(date=start + dt.timedelta(days=1), duration_minutes=500),
            SleepRecord(date=start + dt.timedelta(days=3), duration_minutes=None),
        ]
        out = sleep_debt_series(records)
        self.assertEqual([p.date for p in out], [start + dt.timedelta(days=i) for i in range(4)])
        self.assertEqual([p.debt_minutes for p in out], [50, 50, 80, 80])


if __name__ == "__main__":
    unittest.main()
