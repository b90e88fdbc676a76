from __future__ import annotations

import datetime as dt
import unittest

from edgeframe.models import CheckIn, SleepRecord
from edgeframe.score import (
    SCORING_LEGACY,
    SCORING_PHYSIOLOGICAL,
    LegacyInputs,
    PhysiologicalInputs,
    compute_edge_score,
    score_duration,
    score_to_label,
)


START = dt.date(2026, 3, 1)


def _record(day: dt.date, minutes: int, quality: int, bed_hour: int = 23) -> SleepRecord:
    bed = dt.datetime.combine(day - dt.timedelta(days=1), dt.time(bed_hour, 0))
    if bed_hour < 12:
        bed += dt.timedelta(days=1)
    return SleepRecord(
        date=day,
        duration_minutes=minutes,
        quality_rating=quality,
        bedtime=bed,
        wake_time=bed + dt.timedelta(minutes=minutes),
    )


class LabelTests(unittest.TestCase):
    def test_label_boundaries(self):
        self.assertEqual(score_to_label(80), "Strong")
        self.assertEqual(score_to_label(79.9), "Moderate")
        self.assertEqual(score_to_label(50), "Moderate")
        self.assertEqual(score_to_label(30), "Slightly Reduced")
        self.assertEqual(score_to_label(29), "Reduced")

    def test_duration_bands(self):
        self.assertEqual(score_duration(480), 100.0)
        self.assertEqual(score_duration(390), 75.0)
        self.assertEqual(score_duration(570), 85.0)
        self.assertEqual(score_duration(None), 50.0)


class LegacyScoreTests(unittest.TestCase):
    def test_good_nights_score_at_least_70(self):
        for minutes in range(420, 541, 15):
            for quality in (4, 5):
                latest = _record(START, minutes, quality)
                out = compute_edge_score(LegacyInputs(latest_sleep=latest, recent_sleep=[latest]))
                self.assertGreaterEqual(out.edge_score, 70, (minutes, quality))
                self.assertEqual(out.scoring_mode, SCORING_LEGACY)
                self.assertIsNone(out.breakdown)

    def test_good_nights_with_irregular_schedule_still_score_70(self):
        bed_hours = [21, 1, 23, 3, 22]
        recent = [_record(START - dt.timedelta(days=i), 450, 4, h) for i, h in enumerate(bed_hours)]
        out = compute_edge_score(LegacyInputs(latest_sleep=recent[0], recent_sleep=recent))
        self.assertGreaterEqual(out.edge_score, 70)

    def test_behaviour_lowers_score(self):
        clean = _record(START, 450, 4)
        heavy = _record(START, 450, 4)
        heavy.alcohol_tonight = True
        heavy.screen_time_minutes = 120
        a = compute_edge_score(LegacyInputs(latest_sleep=clean, recent_sleep=[clean]))
        b = compute_edge_score(LegacyInputs(latest_sleep=heavy, recent_sleep=[heavy]))
        self.assertLess(b.edge_score, a.edge_score)

    def test_checkin_feeds_sub_ratings(self):
        latest = _record(START, 480, 5)
        good = CheckIn(date=START, mental_clarity=10, energy_rating=5, stress_level=1)
        bad = CheckIn(date=START, mental_clarity=1, energy_rating=1, stress_level=10)
        self.assertEqual(
            compute_edge_score(LegacyInputs(latest, [latest], good)).strategic_clarity, "Strong"
        )
        self.assertNotEqual(
            compute_edge_score(LegacyInputs(latest, [latest], bad)).emotional_regulation, "Strong"
        )

    def test_no_sleep_record(self):
        out = compute_edge_score(LegacyInputs(latest_sleep=None))
        self.assertTrue(0 <= out.edge_score <= 100)


class PhysiologicalScoreTests(unittest.TestCase):
    def _perfect(self) -> PhysiologicalInputs:
        return PhysiologicalInputs(
            sleep_pressure_pct=0,
            circadian_alignment_pct=100,
            predicted_n3_pct=22.0,
            predicted_rem_pct=22.0,
            predicted_efficiency=98,
            fragmentation_risk=0,
            consistency_score=100,
        )

    def test_perfect_night_scores_at_least_95(self):
        out = compute_edge_score(self._perfect())
        self.assertGreaterEqual(out.edge_score, 95)
        self.assertEqual(out.scoring_mode, SCORING_PHYSIOLOGICAL)
        self.assertEqual(out.breakdown.sleep_pressure_score, 100.0)
        self.assertEqual(out.breakdown.architecture_score, 92.0)
        self.assertEqual(out.breakdown.fragmentation_consistency_score, 100.0)
        self.assertAlmostEqual(sum(out.breakdown.weights.values()), 1.0)

    def test_pressure_and_misalignment_lower_score(self):
        inp = self._perfect()
        inp.sleep_pressure_pct = 40
        inp.circadian_alignment_pct = 20
        out = compute_edge_score(inp)
        self.assertEqual(out.breakdown.sleep_pressure_score, 40.0)
        self.assertLess(out.edge_score, 80)

    def test_score_is_clamped(self):
        inp = self._perfect()
        inp.sleep_pressure_pct = 500
        inp.circadian_alignment_pct = 0
        inp.fragmentation_risk = 95
        inp.consistency_score = 40
        out = compute_edge_score(inp)
        self.assertTrue(0 <= out.edge_score <= 100)

    def test_unknown_inputs_rejected(self):
        with self.assertRaises(TypeError):
            compute_edge_score({"edge": 1})


if __name__ == "__main__":
    unittest.main()
