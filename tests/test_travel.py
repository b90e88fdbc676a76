from __future__ import annotations

import datetime as dt
import unittest

from edgeframe.travel import (
    TravelRecommendations,
    compute_travel_impact,
    resolve_city_to_tz,
    utc_offset_minutes,
)


class OffsetTests(unittest.TestCase):
    def test_offset_follows_daylight_saving(self):
        self.assertEqual(utc_offset_minutes("America/New_York", dt.datetime(2026, 1, 15, 12, 0)), -300)
        self.assertEqual(utc_offset_minutes("America/New_York", dt.datetime(2026, 7, 15, 12, 0)), -240)
        self.assertEqual(utc_offset_minutes("Asia/Kolkata", dt.datetime(2026, 7, 15, 12, 0)), 330)

    def test_aware_datetime_is_converted(self):
        when = dt.datetime(2026, 7, 15, 2, 0, tzinfo=dt.timezone.utc)
        self.assertEqual(utc_offset_minutes("Europe/London", when), 60)

    def test_unknown_zone_counts_as_utc(self):
        self.assertEqual(utc_offset_minutes("Mars/Olympus_Mons", dt.datetime(2026, 7, 15)), 0)


class TravelImpactTests(unittest.TestCase):
    def test_eastward_long_haul(self):
        out = compute_travel_impact(
            "America/Los_Angeles",
            "Europe/London",
            dt.datetime(2026, 6, 1, 18, 0),
            dt.datetime(2026, 6, 2, 12, 0),
        )
        self.assertEqual(out.timezone_shift_hours, 8)
        self.assertEqual(out.circadian_risk, "high")
        self.assertEqual(out.recovery_days, 4)
        self.assertEqual([d.day_offset for d in out.day_impacts], [0, 1, 2, 3, 4])
        self.assertEqual([d.strategic_clarity_delta_pct for d in out.day_impacts], [-19, -5, 0, 5, 10])
        self.assertEqual(out.day_impacts[0].notes, "Arrival day: expect compression")
        self.assertEqual(out.day_impacts[1].notes, "Compression window likely mid-afternoon")
        self.assertEqual(out.day_impacts[2].notes, "Gradual recovery")
        self.assertEqual(out.day_impacts[-1].notes, "Full recovery expected")

    def test_westward_shift_is_negative(self):
        out = compute_travel_impact(
            "Europe/London",
            "America/New_York",
            dt.datetime(2026, 1, 10, 9, 0),
            dt.datetime(2026, 1, 10, 12, 0),
        )
        self.assertEqual(out.timezone_shift_hours, -5)
        self.assertEqual(out.circadian_risk, "moderate")
        self.assertEqual(out.recovery_days, 3)
        # -17.5 rounds half up
        self.assertEqual(out.day_impacts[0].strategic_clarity_delta_pct, -17)

    def test_half_hour_zone_rounds_up(self):
        out = compute_travel_impact(
            "Europe/London",
            "Asia/Kolkata",
            dt.datetime(2026, 1, 10, 21, 0),
            dt.datetime(2026, 1, 11, 11, 0),
        )
        self.assertEqual(out.timezone_shift_hours, 6)
        self.assertEqual(out.circadian_risk, "high")

    def test_same_zone_still_has_arrival_day(self):
        when = dt.datetime(2026, 3, 10, 8, 0)
        out = compute_travel_impact("Europe/Berlin", "Europe/Paris", when, when + dt.timedelta(hours=2))
        self.assertEqual(out.timezone_shift_hours, 0)
        self.assertEqual(out.circadian_risk, "low")
        self.assertEqual(out.recovery_days, 1)
        self.assertEqual([d.strategic_clarity_delta_pct for d in out.day_impacts], [-15, -5])
        self.assertEqual(out.day_impacts[1].notes, "Compression window likely mid-afternoon")
        self.assertEqual(out.recommendations, TravelRecommendations())


class CityResolverTests(unittest.TestCase):
    def test_known_cities(self):
        self.assertEqual(resolve_city_to_tz("Tokyo"), "Asia/Tokyo")
        self.assertEqual(resolve_city_to_tz("  New   York "), "America/New_York")
        self.assertEqual(resolve_city_to_tz("nyc"), "America/New_York")
        self.assertEqual(resolve_city_to_tz("Mumbai"), "Asia/Kolkata")

    def test_unknown_city_is_utc(self):
        self.assertEqual(resolve_city_to_tz("Atlantis"), "UTC")
        self.assertEqual(resolve_city_to_tz(""), "UTC")


if __name__ == "__main__":
    unittest.main()
