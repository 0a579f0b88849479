import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import MathTools, WeightConverter
from tools import LocalCalendar, format_weight, format_volume


class MathToolsTestCase(unittest.TestCase):
    def test_constants(self) -> None:
        self.assertEqual(MathTools.EPLEY_DIVISOR, 30.0)
        self.assertEqual(MathTools.EPLEY_MIN_REPS, 1)
        self.assertEqual(MathTools.EPLEY_MAX_REPS, 10)

    def test_epley_bounds(self) -> None:
        self.assertIsNone(MathTools.epley_1rm(100, 0))
        self.assertIsNone(MathTools.epley_1rm(100, 11))
        self.assertAlmostEqual(MathTools.epley_1rm(100, 10), 133.3333333, places=5)
        self.assertAlmostEqual(MathTools.epley_1rm(100, 1), 103.3333333, places=5)

    def test_volume(self) -> None:
        sets = [(10, 100.0), (5, 150.0)]
        self.assertEqual(MathTools.volume(sets), 10 * 100.0 + 5 * 150.0)
        self.assertEqual(MathTools.volume([]), 0.0)

    def test_mode_prefers_first_on_tie(self) -> None:
        self.assertEqual(MathTools.mode([8, 10, 10, 8]), 8)
        self.assertEqual(MathTools.mode([12, 10, 10]), 10)
        self.assertIsNone(MathTools.mode([]))

    def test_percent_change_guards_zero(self) -> None:
        self.assertIsNone(MathTools.percent_change(10, 0))
        self.assertAlmostEqual(MathTools.percent_change(110, 100), 10.0)
        self.assertAlmostEqual(MathTools.percent_change(80, 100), -20.0)

    def test_percentage(self) -> None:
        self.assertEqual(MathTools.percentage(5, 0), 0.0)
        self.assertAlmostEqual(MathTools.percentage(5, 160), 3.125)


class WeightConverterTestCase(unittest.TestCase):
    def test_round_trip_rounding(self) -> None:
        self.assertEqual(WeightConverter.kg_to_lb(100), 220.46)
        self.assertEqual(WeightConverter.lb_to_kg(220.462), 100.0)

    def test_volume_in_kg(self) -> None:
        self.assertEqual(WeightConverter.volume_in_kg(100, 5, "kg"), 500)
        self.assertAlmostEqual(
            WeightConverter.volume_in_kg(220.462, 5, "lbs"), 500.0, places=6
        )

    def test_unknown_unit_degrades_to_kg(self) -> None:
        self.assertEqual(WeightConverter.volume_in_kg(50, 2, "stone"), 100)
        self.assertEqual(WeightConverter.volume_in_kg(50, 2, None), 100)

    def test_pound_aliases(self) -> None:
        for unit in ("lb", "lbs", "LBS", "pounds"):
            self.assertTrue(WeightConverter.is_pounds(unit))
        self.assertFalse(WeightConverter.is_pounds("kg"))


class LocalCalendarTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.calendar = LocalCalendar("America/New_York")

    def test_day_of_uses_zone(self) -> None:
        # 03:00 UTC is still the previous evening in New York
        moment = datetime.datetime(2024, 3, 5, 3, 0, tzinfo=datetime.timezone.utc)
        self.assertEqual(self.calendar.day_of(moment), datetime.date(2024, 3, 4))

    def test_naive_is_wall_clock(self) -> None:
        moment = datetime.datetime(2024, 3, 5, 23, 30)
        self.assertEqual(self.calendar.day_of(moment), datetime.date(2024, 3, 5))

    def test_week_start_monday(self) -> None:
        self.assertEqual(
            self.calendar.week_start(datetime.date(2024, 3, 7)), datetime.date(2024, 3, 4)
        )
        self.assertEqual(
            self.calendar.week_start(datetime.date(2024, 3, 4)), datetime.date(2024, 3, 4)
        )

    def test_week_start_sunday(self) -> None:
        calendar = LocalCalendar("UTC", first_weekday=6)
        self.assertEqual(
            calendar.week_start(datetime.date(2024, 3, 7)), datetime.date(2024, 3, 3)
        )

    def test_invalid_first_weekday(self) -> None:
        with self.assertRaises(ValueError):
            LocalCalendar(first_weekday=7)

    def test_weeks_between(self) -> None:
        self.assertEqual(
            LocalCalendar.weeks_between(datetime.date(2024, 3, 4), datetime.date(2024, 3, 18)), 2
        )

    def test_storage_round_trip(self) -> None:
        moment = datetime.datetime(2024, 3, 5, 8, 15)
        text = self.calendar.to_storage(moment)
        self.assertTrue(text.endswith("+00:00"))
        restored = self.calendar.from_storage(text)
        self.assertEqual(restored, self.calendar.localize(moment))

    def test_day_range(self) -> None:
        start, end = self.calendar.day_range(datetime.date(2024, 3, 5), datetime.date(2024, 3, 6))
        self.assertEqual((end - start).total_seconds(), 24 * 3600)


class FormatTestCase(unittest.TestCase):
    def test_format_weight(self) -> None:
        self.assertEqual(format_weight(100.0, "kg"), "100 kg")
        self.assertEqual(format_weight(102.5, "lbs"), "102.5 lbs")

    def test_format_volume(self) -> None:
        self.assertEqual(format_volume(950), "950 kg")
        self.assertEqual(format_volume(12500), "12.5k kg")


if __name__ == "__main__":
    unittest.main()
