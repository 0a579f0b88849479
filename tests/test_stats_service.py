import os
import sys
import datetime
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from models import WorkoutSet, Exercise
from stats_service import PeriodAggregator, PeriodComparison, OTHER_CATEGORY
from tools import LocalCalendar

UTC = datetime.timezone.utc
D = datetime.date


def make_set(ex, day, weight, reps, order=1, unit="kg"):
    return WorkoutSet(
        exercise_id=ex,
        date=datetime.datetime.combine(day, datetime.time(9, order), tzinfo=UTC),
        order=order,
        weight=weight,
        reps=reps,
        unit=unit,
    )


class CategoryBreakdownTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.aggregator = PeriodAggregator(LocalCalendar("UTC"))

    def build(self, categories, volumes):
        exercises = [Exercise(id=c.lower(), name=c, primary_category=c) for c in categories]
        sets = [make_set(c.lower(), D(2024, 1, 1), v, 1) for c, v in zip(categories, volumes)]
        return sets, exercises

    def test_top_six_and_other(self) -> None:
        categories = ["Chest", "Back", "Legs", "Shoulders", "Biceps", "Triceps", "Core", "Cardio"]
        sets, exercises = self.build(categories, [50, 40, 30, 20, 10, 5, 3, 2])
        result = self.aggregator.category_breakdown(sets, exercises)
        self.assertEqual(len(result), 7)
        self.assertEqual([r.category for r in result[:6]], categories[:6])
        self.assertEqual([r.volume for r in result[:6]], [50, 40, 30, 20, 10, 5])
        other = result[-1]
        self.assertEqual(other.category, OTHER_CATEGORY)
        self.assertEqual(other.volume, 5)
        self.assertAlmostEqual(other.percentage, 3.125)
        self.assertAlmostEqual(sum(r.percentage for r in result), 100.0)

    def test_six_or_fewer_has_no_other(self) -> None:
        sets, exercises = self.build(["Chest", "Back"], [30, 10])
        result = self.aggregator.category_breakdown(sets, exercises)
        self.assertEqual([(r.category, r.percentage) for r in result], [("Chest", 75.0), ("Back", 25.0)])

    def test_real_other_absorbs_tail(self) -> None:
        categories = ["A", "B", "C", "D", "E", OTHER_CATEGORY, "G"]
        sets, exercises = self.build(categories, [60, 50, 40, 30, 20, 10, 5])
        result = self.aggregator.category_breakdown(sets, exercises)
        self.assertEqual(len(result), 6)
        self.assertEqual(result[-1].category, OTHER_CATEGORY)
        self.assertEqual(result[-1].volume, 15)

    def test_empty(self) -> None:
        self.assertEqual(self.aggregator.category_breakdown([], []), [])


class TrendTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.aggregator = PeriodAggregator(LocalCalendar("UTC"))
        self.today = D(2024, 3, 13)
        self.sets = [
            make_set("bench", D(2024, 3, 13), 100, 5),
            make_set("bench", D(2024, 3, 11), 100, 5),
            make_set("bench", D(2024, 3, 11), 100, 5, order=2),
            make_set("bench", D(2024, 3, 1), 50, 10),
            make_set("bench", D(2024, 3, 12), None, 5),
        ]

    def test_window(self) -> None:
        self.assertEqual(self.aggregator.window(7, self.today), (D(2024, 3, 6), D(2024, 3, 14)))
        self.assertEqual(
            self.aggregator.previous_window(7, self.today), (D(2024, 2, 28), D(2024, 3, 6))
        )
        with self.assertRaises(ValueError):
            self.aggregator.window(0, self.today)

    def test_session_on_window_start_is_current(self) -> None:
        boundary = [make_set("bench", D(2024, 3, 6), 100, 5)]
        current = self.aggregator.in_days(boundary, *self.aggregator.window(7, self.today))
        previous = self.aggregator.in_days(
            boundary, *self.aggregator.previous_window(7, self.today)
        )
        self.assertEqual(self.aggregator.workout_count(current), 1)
        self.assertEqual(self.aggregator.workout_count(previous), 0)

    def test_daily_trend_zero_fills(self) -> None:
        window = self.aggregator.in_days(self.sets, *self.aggregator.window(7, self.today))
        trend = self.aggregator.daily_volume_trend(window, 7, self.today)
        self.assertEqual(len(trend), 8)
        self.assertEqual(trend[0].date, D(2024, 3, 6))
        self.assertEqual(trend[-1].date, self.today)
        self.assertEqual(trend[-1].volume, 500)
        self.assertEqual(trend[-3].volume, 1000)
        self.assertEqual(trend[-2].volume, 0)

    def test_all_time_trend_skips_empty_days(self) -> None:
        trend = self.aggregator.daily_volume_trend(self.sets)
        self.assertEqual([p.date for p in trend], [D(2024, 3, 1), D(2024, 3, 11), D(2024, 3, 13)])

    def test_weekly_trend(self) -> None:
        trend = self.aggregator.weekly_volume_trend(self.sets, 3, self.today)
        self.assertEqual([p.date for p in trend], [D(2024, 2, 26), D(2024, 3, 4), D(2024, 3, 11)])
        self.assertEqual([p.volume for p in trend], [500, 0, 1500])
        all_time = self.aggregator.weekly_volume_trend(self.sets)
        self.assertEqual([p.volume for p in all_time], [500, 1500])

    def test_counts(self) -> None:
        self.assertEqual(self.aggregator.workout_count(self.sets), 4)
        self.assertEqual(self.aggregator.set_count(self.sets), 5)
        self.assertEqual(self.aggregator.total_volume(self.sets), 2000)

    def test_lbs_volume_is_normalised(self) -> None:
        sets = [make_set("bench", self.today, 220.462, 1, unit="lbs")]
        self.assertAlmostEqual(self.aggregator.total_volume(sets), 100.0)


class PeriodComparisonTestCase(unittest.TestCase):
    def test_percent_change(self) -> None:
        comparison = PeriodComparison(current=12, previous=10)
        self.assertAlmostEqual(comparison.percent_change, 20.0)
        self.assertTrue(comparison.has_data)

    def test_no_previous_data(self) -> None:
        comparison = PeriodComparison(current=12, previous=0)
        self.assertIsNone(comparison.percent_change)
        self.assertFalse(comparison.has_data)


class ExerciseStatsTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.aggregator = PeriodAggregator(LocalCalendar("UTC"))

    def test_exercise_stats(self) -> None:
        sets = [
            make_set("bench", D(2024, 1, 1), 100, 5),
            make_set("bench", D(2024, 1, 1), 80, 10, order=2),
            make_set("bench", D(2024, 1, 3), 102.5, 3),
            make_set("bench", D(2024, 1, 3), 60, 15, order=2),
            make_set("squat", D(2024, 1, 3), 200, 5),
        ]
        stats = self.aggregator.exercise_stats("bench", sets, "kg")
        self.assertEqual(stats.best_weight, 102.5)
        self.assertEqual(stats.best_volume_set, (60, 15))
        self.assertAlmostEqual(stats.current_e1rm, 102.5 * 1.1)
        self.assertEqual(stats.total_volume, 500 + 800 + 307.5 + 900)
        self.assertEqual(stats.times_performed, 2)
        self.assertEqual(stats.rep_records, {5: 100, 10: 80, 3: 102.5})
        self.assertEqual(
            stats.e1rm_progression,
            [
                {"date": D(2024, 1, 1), "est_1rm": round(100 * (1 + 5 / 30), 2)},
                {"date": D(2024, 1, 3), "est_1rm": round(102.5 * 1.1, 2)},
            ],
        )
        self.assertEqual(stats.recent_history[0].date, D(2024, 1, 3))
        self.assertEqual(stats.recent_history[0].sets, 2)
        self.assertEqual(stats.recent_history[0].best_set, "60 kg × 15")
        self.assertEqual(stats.recent_history[1].best_set, "80 kg × 10")

    def test_unknown_exercise(self) -> None:
        stats = self.aggregator.exercise_stats("none", [], "kg")
        self.assertIsNone(stats.best_weight)
        self.assertEqual(stats.times_performed, 0)

    def test_top_exercises(self) -> None:
        exercises = [
            Exercise(id="bench", name="Bench", primary_category="Chest"),
            Exercise(id="squat", name="Squat", primary_category="Legs"),
        ]
        sets = [
            make_set("bench", D(2024, 1, 1), 100, 5),
            make_set("squat", D(2024, 1, 1), 100, 5),
            make_set("squat", D(2024, 1, 2), 100, 5),
            make_set("ghost", D(2024, 1, 2), 100, 5),
        ]
        top = self.aggregator.top_exercises(sets, exercises, limit=5)
        self.assertEqual([(e.id, c) for e, c in top], [("squat", 2), ("bench", 1)])


class YearInReviewTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.aggregator = PeriodAggregator(LocalCalendar("UTC"))
        self.exercises = [
            Exercise(id="bench", name="Bench", primary_category="Chest"),
            Exercise(id="squat", name="Squat", primary_category="Legs"),
        ]

    def test_summary(self) -> None:
        sets = [
            make_set("bench", D(2024, 1, 1), 100, 5),
            make_set("bench", D(2024, 1, 2), 105, 5),
            make_set("bench", D(2024, 1, 3), 90, 5),
            make_set("squat", D(2024, 1, 3), 140, 5, order=2),
            make_set("squat", D(2024, 2, 10), 150, 5),
        ]
        review = self.aggregator.year_in_review(2024, sets, self.exercises, previous_year_volume=2000)
        self.assertEqual(review.total_workouts, 4)
        self.assertEqual(review.total_sets, 5)
        self.assertEqual(review.total_volume, 500 + 525 + 450 + 700 + 750)
        self.assertEqual(review.unique_exercises, 2)
        self.assertEqual(review.favorite_exercise, ("Bench", 3))
        self.assertEqual(review.top_three_exercises, [("Bench", 3), ("Squat", 2)])
        self.assertEqual(review.most_trained_muscle[0], "Chest")
        self.assertAlmostEqual(review.most_trained_muscle[1], 1475 / 2925 * 100)
        self.assertEqual(review.personal_records, 4)
        self.assertEqual(review.longest_streak, 3)
        self.assertEqual(review.active_weeks, 2)
        self.assertAlmostEqual(review.avg_workouts_per_week, 4 / 52)
        self.assertEqual(len(review.monthly_workouts), 12)
        self.assertEqual(review.monthly_workouts[0], (1, 3))
        self.assertEqual(review.best_month, (1, 3))
        self.assertAlmostEqual(review.volume_growth, (2925 - 2000) / 2000 * 100)

    def test_empty_year(self) -> None:
        review = self.aggregator.year_in_review(2023, [], self.exercises, previous_year_volume=100)
        self.assertEqual(review.total_workouts, 0)
        self.assertIsNone(review.volume_growth)
        self.assertIsNone(review.best_month)
        self.assertEqual(len(review.monthly_workouts), 12)

    def test_no_previous_year(self) -> None:
        sets = [make_set("bench", D(2024, 1, 1), 100, 5)]
        review = self.aggregator.year_in_review(2024, sets, self.exercises)
        self.assertIsNone(review.volume_growth)


if __name__ == "__main__":
    unittest.main()
