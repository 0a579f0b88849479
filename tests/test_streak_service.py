import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from streak_service import StreakTracker, CONSISTENCY_WEEKS
from tools import LocalCalendar

D = datetime.date

# Monday of "week N"
WEEK_N = D(2024, 3, 11)


def weeks_ago(n, weekday=0):
    return WEEK_N - datetime.timedelta(weeks=n) + datetime.timedelta(days=weekday)


class StreakTrackerTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.tracker = StreakTracker(LocalCalendar("UTC"))
        self.today = WEEK_N + datetime.timedelta(days=2)
        self.dates = {weeks_ago(0, 0), weeks_ago(0, 2), weeks_ago(1, 1)}

    def test_current_streak_scenario(self) -> None:
        data = self.tracker.compute(self.dates, self.today)
        self.assertEqual(data.current_streak, 2)
        self.assertEqual(data.best_streak, 2)
        self.assertFalse(data.is_at_risk)
        self.assertEqual(data.last_workout_date, weeks_ago(0, 2))

    def test_best_streak_from_older_history(self) -> None:
        older = {weeks_ago(n, 3) for n in (3, 4, 5, 6)}
        data = self.tracker.compute(self.dates | older, self.today)
        self.assertEqual(data.current_streak, 2)
        self.assertEqual(data.best_streak, 4)

    def test_empty_current_week_stops_streak(self) -> None:
        next_week = WEEK_N + datetime.timedelta(days=8)
        data = self.tracker.compute(self.dates, next_week)
        self.assertEqual(data.current_streak, 0)
        self.assertEqual(data.best_streak, 2)
        self.assertTrue(data.is_at_risk)

    def test_not_at_risk_without_recent_activity(self) -> None:
        data = self.tracker.compute({weeks_ago(20)}, self.today)
        self.assertEqual(data.current_streak, 0)
        self.assertFalse(data.is_at_risk)

    def test_no_workouts(self) -> None:
        data = self.tracker.compute([], self.today)
        self.assertEqual((data.current_streak, data.best_streak), (0, 0))
        self.assertIsNone(data.last_workout_date)
        self.assertEqual(len(data.weekly_consistency), CONSISTENCY_WEEKS)

    def test_weekly_consistency_counts_days(self) -> None:
        dates = [
            datetime.datetime(2024, 3, 11, 9, 0, tzinfo=datetime.timezone.utc),
            datetime.datetime(2024, 3, 11, 18, 0, tzinfo=datetime.timezone.utc),
            datetime.datetime(2024, 3, 13, 9, 0, tzinfo=datetime.timezone.utc),
            datetime.datetime(2024, 3, 5, 9, 0, tzinfo=datetime.timezone.utc),
        ]
        data = self.tracker.compute(dates, self.today)
        consistency = data.weekly_consistency
        self.assertEqual(len(consistency), 12)
        self.assertEqual(consistency[-1].week_start, WEEK_N)
        self.assertEqual(consistency[-1].workout_count, 2)
        self.assertEqual(consistency[-2].workout_count, 1)
        self.assertEqual(consistency[0].week_start, weeks_ago(11))
        self.assertLess(consistency[0].week_start, consistency[1].week_start)

    def test_sunday_first_weekday(self) -> None:
        tracker = StreakTracker(LocalCalendar("UTC", first_weekday=6))
        # Sunday 10th and Monday 11th share a Sunday-based week
        data = tracker.compute({D(2024, 3, 10), D(2024, 3, 11)}, D(2024, 3, 12))
        self.assertEqual(data.current_streak, 1)
        self.assertEqual(data.weekly_consistency[-1].workout_count, 2)

    def test_longest_daily_streak(self) -> None:
        dates = [D(2024, 1, 1), D(2024, 1, 2), D(2024, 1, 3), D(2024, 1, 5), D(2024, 1, 6)]
        self.assertEqual(self.tracker.longest_daily_streak(dates), 3)
        self.assertEqual(self.tracker.longest_daily_streak([D(2024, 1, 1)]), 1)
        self.assertEqual(self.tracker.longest_daily_streak([]), 0)

    def test_active_weeks(self) -> None:
        self.assertEqual(self.tracker.active_weeks(self.dates), 2)


if __name__ == "__main__":
    unittest.main()
