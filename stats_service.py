from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Dict

from algorithms import MathTools, WeightConverter
from db import SetRepository, ExerciseRepository
from models import WorkoutSet, Exercise, KG
from record_service import RecordTracker, PersonalRecord
from streak_service import StreakTracker
from tools import LocalCalendar, format_weight

logger = logging.getLogger(__name__)

OTHER_CATEGORY = "Other"
REP_RECORD_TARGETS = (1, 3, 5, 8, 10, 12)


@dataclass(frozen=True)
class TrendPoint:
    date: datetime.date
    volume: float


@dataclass(frozen=True)
class CategoryVolume:
    category: str
    volume: float
    percentage: float


@dataclass(frozen=True)
class PeriodComparison:
    current: float
    previous: float

    @property
    def percent_change(self) -> Optional[float]:
        """Relative change, or ``None`` when there is no previous value to compare."""
        return MathTools.percent_change(self.current, self.previous)

    @property
    def has_data(self) -> bool:
        return self.previous > 0


@dataclass(frozen=True)
class SessionDigest:
    date: datetime.date
    sets: int
    best_set: str


@dataclass(frozen=True)
class ExerciseStats:
    exercise_id: str
    best_weight: Optional[float] = None
    best_volume_set: Optional[tuple[float, int]] = None
    current_e1rm: Optional[float] = None
    total_volume: float = 0.0
    times_performed: int = 0
    e1rm_progression: list[dict] = field(default_factory=list)
    rep_records: dict[int, float] = field(default_factory=dict)
    recent_history: list[SessionDigest] = field(default_factory=list)


@dataclass(frozen=True)
class YearInReview:
    year: int
    total_workouts: int = 0
    total_sets: int = 0
    total_volume: float = 0.0
    unique_exercises: int = 0
    favorite_exercise: Optional[tuple[str, int]] = None
    most_trained_muscle: Optional[tuple[str, float]] = None
    personal_records: int = 0
    longest_streak: int = 0
    active_weeks: int = 0
    avg_workouts_per_week: float = 0.0
    monthly_workouts: list[tuple[int, int]] = field(default_factory=list)
    top_three_exercises: list[tuple[str, int]] = field(default_factory=list)
    volume_growth: Optional[float] = None
    best_month: Optional[tuple[int, int]] = None


def _set_volume(s: WorkoutSet) -> float:
    if not s.has_volume:
        return 0.0
    return WeightConverter.volume_in_kg(s.weight, s.reps, s.unit)


class PeriodAggregator:
    """Time-bucketed and category aggregates over completed sets."""

    TOP_CATEGORIES = 6
    WEEKS_PER_YEAR = 52.0

    def __init__(self, calendar: LocalCalendar | None = None) -> None:
        self.calendar = calendar or LocalCalendar()

    def window(
        self, days: int, today: Optional[datetime.date] = None
    ) -> tuple[datetime.date, datetime.date]:
        """Return ``[today - days, tomorrow)``: the last ``days`` days plus today."""
        if days <= 0:
            raise ValueError("days must be positive")
        today = today or self.calendar.today()
        return today - datetime.timedelta(days=days), today + datetime.timedelta(days=1)

    def previous_window(
        self, days: int, today: Optional[datetime.date] = None
    ) -> tuple[datetime.date, datetime.date]:
        """Return ``[today - 2 * days, today - days)``."""
        start, _ = self.window(days, today)
        return start - datetime.timedelta(days=days), start

    def in_days(
        self,
        sets: Iterable[WorkoutSet],
        start: Optional[datetime.date],
        end: Optional[datetime.date],
    ) -> list[WorkoutSet]:
        return [
            s
            for s in sets
            if (start is None or self.calendar.day_of(s.date) >= start)
            and (end is None or self.calendar.day_of(s.date) < end)
        ]

    def workout_count(self, sets: Iterable[WorkoutSet]) -> int:
        return len({self.calendar.day_of(s.date) for s in sets})

    @staticmethod
    def set_count(sets: Iterable[WorkoutSet]) -> int:
        return sum(1 for _ in sets)

    @staticmethod
    def total_volume(sets: Iterable[WorkoutSet]) -> float:
        return sum(_set_volume(s) for s in sets)

    def daily_volume_trend(
        self,
        sets: Iterable[WorkoutSet],
        days: Optional[int] = None,
        today: Optional[datetime.date] = None,
    ) -> list[TrendPoint]:
        """Volume per local day.

        A bounded trend has one bucket per day of the window, zero-filled;
        the all-time trend (``days=None``) has only days with volume.
        """
        totals: dict[datetime.date, float] = {}
        for s in sets:
            if s.has_volume:
                day = self.calendar.day_of(s.date)
                totals[day] = totals.get(day, 0.0) + _set_volume(s)
        if days is None:
            return [TrendPoint(d, totals[d]) for d in sorted(totals)]
        start, end = self.window(days, today)
        result = []
        day = start
        while day < end:
            result.append(TrendPoint(day, totals.get(day, 0.0)))
            day += datetime.timedelta(days=1)
        return result

    def weekly_volume_trend(
        self,
        sets: Iterable[WorkoutSet],
        weeks: Optional[int] = None,
        today: Optional[datetime.date] = None,
    ) -> list[TrendPoint]:
        """Volume per locale week, the last ``weeks`` weeks up to the current one."""
        totals: dict[datetime.date, float] = {}
        for s in sets:
            if s.has_volume:
                week = self.calendar.week_start(s.date)
                totals[week] = totals.get(week, 0.0) + _set_volume(s)
        if weeks is None:
            return [TrendPoint(w, totals[w]) for w in sorted(totals)]
        if weeks <= 0:
            raise ValueError("weeks must be positive")
        this_week = self.calendar.week_start(today or self.calendar.today())
        return [
            TrendPoint(week, totals.get(week, 0.0))
            for week in (
                this_week - datetime.timedelta(weeks=offset)
                for offset in range(weeks - 1, -1, -1)
            )
        ]

    @staticmethod
    def category_volumes(
        sets: Iterable[WorkoutSet], exercises: Iterable[Exercise]
    ) -> dict[str, float]:
        categories = {e.id: e.primary_category for e in exercises}
        volumes: dict[str, float] = {}
        for s in sets:
            category = categories.get(s.exercise_id)
            if category is None or not s.has_volume:
                continue
            volumes[category] = volumes.get(category, 0.0) + _set_volume(s)
        return volumes

    def category_breakdown(
        self, sets: Iterable[WorkoutSet], exercises: Iterable[Exercise]
    ) -> list[CategoryVolume]:
        """Volume share per category: the top six verbatim, the rest merged into Other."""
        volumes = self.category_volumes(sets, exercises)
        total = sum(volumes.values())
        if total <= 0:
            return []
        ranked = sorted(volumes.items(), key=lambda kv: (-kv[1], kv[0]))
        result = [
            CategoryVolume(cat, vol, MathTools.percentage(vol, total))
            for cat, vol in ranked[: self.TOP_CATEGORIES]
        ]
        rest = ranked[self.TOP_CATEGORIES :]
        if rest:
            extra = sum(vol for _, vol in rest)
            for index, item in enumerate(result):
                # a real "Other" category absorbs the merged tail
                if item.category == OTHER_CATEGORY:
                    merged = item.volume + extra
                    result[index] = CategoryVolume(
                        OTHER_CATEGORY, merged, MathTools.percentage(merged, total)
                    )
                    break
            else:
                result.append(
                    CategoryVolume(OTHER_CATEGORY, extra, MathTools.percentage(extra, total))
                )
        return result

    @staticmethod
    def top_exercises(
        sets: Iterable[WorkoutSet], exercises: Iterable[Exercise], limit: int = 5
    ) -> list[tuple[Exercise, int]]:
        """Exercises ranked by completed set count."""
        by_id = {e.id: e for e in exercises}
        counts: dict[str, int] = {}
        for s in sets:
            if s.exercise_id in by_id:
                counts[s.exercise_id] = counts.get(s.exercise_id, 0) + 1
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], by_id[kv[0]].name))
        return [(by_id[i], c) for i, c in ranked[:limit]]

    def exercise_stats(
        self, exercise_id: str, sets: Iterable[WorkoutSet], unit: str = KG
    ) -> ExerciseStats:
        ordered = sorted(
            (s for s in sets if s.exercise_id == exercise_id),
            key=lambda s: (s.date, s.order),
        )
        if not ordered:
            return ExerciseStats(exercise_id=exercise_id)

        weights = [s.weight for s in ordered if s.weight is not None]
        best_volume_set = None
        best_volume = 0.0
        for s in ordered:
            if s.has_volume and s.weight * s.reps > best_volume:
                best_volume = s.weight * s.reps
                best_volume_set = (s.weight, s.reps)

        current_e1rm = None
        for s in reversed(ordered):
            if s.has_volume:
                current_e1rm = MathTools.epley_1rm(s.weight, s.reps)
                if current_e1rm is not None:
                    break

        daily_best: Dict[datetime.date, float] = {}
        rep_records: dict[int, float] = {}
        sessions: Dict[datetime.date, list[WorkoutSet]] = {}
        for s in ordered:
            day = self.calendar.day_of(s.date)
            sessions.setdefault(day, []).append(s)
            if not s.has_volume:
                continue
            est = MathTools.epley_1rm(s.weight, s.reps)
            if est is not None and est > daily_best.get(day, 0.0):
                daily_best[day] = est
            if s.reps in REP_RECORD_TARGETS:
                rep_records[s.reps] = max(rep_records.get(s.reps, 0.0), s.weight)

        history = []
        for day in sorted(sessions, reverse=True)[:10]:
            day_sets = sessions[day]
            best = max(
                (s for s in day_sets if s.has_volume),
                key=lambda s: s.weight * s.reps,
                default=None,
            )
            if best is not None and best.weight * best.reps > 0:
                label = f"{format_weight(best.weight, unit)} × {best.reps}"
            else:
                label = "–"
            history.append(SessionDigest(day, len(day_sets), label))

        return ExerciseStats(
            exercise_id=exercise_id,
            best_weight=max(weights) if weights else None,
            best_volume_set=best_volume_set,
            current_e1rm=current_e1rm,
            total_volume=self.total_volume(ordered),
            times_performed=len(sessions),
            e1rm_progression=[
                {"date": d, "est_1rm": round(daily_best[d], 2)} for d in sorted(daily_best)
            ],
            rep_records=rep_records,
            recent_history=history,
        )

    def year_in_review(
        self,
        year: int,
        sets: Iterable[WorkoutSet],
        exercises: Iterable[Exercise],
        previous_year_volume: float = 0.0,
    ) -> YearInReview:
        """Summarise ``sets`` already restricted to ``year``."""
        sets = list(sets)
        exercises = list(exercises)
        if not sets:
            return YearInReview(year=year, monthly_workouts=[(m, 0) for m in range(1, 13)])

        names = {e.id: e.name for e in exercises}
        days = {self.calendar.day_of(s.date) for s in sets}
        total_volume = self.total_volume(sets)

        frequency: dict[str, int] = {}
        for s in sets:
            frequency[s.exercise_id] = frequency.get(s.exercise_id, 0) + 1
        ranked = [
            (names[i], c)
            for i, c in sorted(frequency.items(), key=lambda kv: (-kv[1], names.get(kv[0], "")))
            if i in names
        ]

        muscle = None
        volumes = self.category_volumes(sets, exercises)
        muscle_total = sum(volumes.values())
        if muscle_total > 0:
            top = max(sorted(volumes), key=lambda c: volumes[c])
            muscle = (top, MathTools.percentage(volumes[top], muscle_total))

        monthly: dict[int, int] = {}
        for day in days:
            monthly[day.month] = monthly.get(day.month, 0) + 1
        best_month = None
        if monthly:
            month = max(sorted(monthly), key=lambda m: monthly[m])
            best_month = (month, monthly[month])

        growth = None
        if total_volume > 0 and previous_year_volume > 0:
            growth = MathTools.percent_change(total_volume, previous_year_volume)

        streaks = StreakTracker(self.calendar)
        return YearInReview(
            year=year,
            total_workouts=len(days),
            total_sets=len(sets),
            total_volume=total_volume,
            unique_exercises=len(frequency),
            favorite_exercise=ranked[0] if ranked else None,
            most_trained_muscle=muscle,
            personal_records=RecordTracker(self.calendar).count_set_records(sets),
            longest_streak=streaks.longest_daily_streak(days),
            active_weeks=streaks.active_weeks(days),
            avg_workouts_per_week=len(days) / self.WEEKS_PER_YEAR,
            monthly_workouts=[(m, monthly.get(m, 0)) for m in range(1, 13)],
            top_three_exercises=ranked[:3],
            volume_growth=growth,
            best_month=best_month,
        )


class StatisticsService:
    """Compute workout statistics for analysis."""

    def __init__(
        self,
        set_repo: SetRepository,
        exercise_repo: ExerciseRepository,
        calendar: LocalCalendar | None = None,
    ) -> None:
        self.sets = set_repo
        self.exercises = exercise_repo
        self.calendar = calendar or set_repo.calendar
        self.aggregator = PeriodAggregator(self.calendar)
        self.records = RecordTracker(self.calendar)

    def _fetch_days(
        self,
        start: Optional[datetime.date],
        end: Optional[datetime.date],
        exercise_id: Optional[str] = None,
    ) -> List[WorkoutSet]:
        rows = self.sets.fetch_sets(
            exercise_id=exercise_id,
            start=self.calendar.start_of_day(start) if start else None,
            end=self.calendar.start_of_day(end) if end else None,
        )
        logger.debug("fetched %d sets", len(rows))
        return rows

    def _period_sets(
        self, days: Optional[int], today: Optional[datetime.date]
    ) -> List[WorkoutSet]:
        if days is None:
            today = today or self.calendar.today()
            return self._fetch_days(None, today + datetime.timedelta(days=1))
        return self._fetch_days(*self.aggregator.window(days, today))

    def volume_trend(
        self, days: Optional[int] = None, today: Optional[datetime.date] = None
    ) -> List[TrendPoint]:
        return self.aggregator.daily_volume_trend(
            self._period_sets(days, today), days, today
        )

    def weekly_volume_trend(
        self,
        weeks: int = 12,
        all_time: bool = False,
        today: Optional[datetime.date] = None,
    ) -> List[TrendPoint]:
        today = today or self.calendar.today()
        if all_time:
            rows = self._fetch_days(None, today + datetime.timedelta(days=1))
            return self.aggregator.weekly_volume_trend(rows, None, today)
        start = self.calendar.week_start(today) - datetime.timedelta(weeks=weeks - 1)
        rows = self._fetch_days(start, today + datetime.timedelta(days=1))
        return self.aggregator.weekly_volume_trend(rows, weeks, today)

    def workout_count(self, days: Optional[int] = None, today: Optional[datetime.date] = None) -> int:
        return self.aggregator.workout_count(self._period_sets(days, today))

    def set_count(self, days: Optional[int] = None, today: Optional[datetime.date] = None) -> int:
        return self.aggregator.set_count(self._period_sets(days, today))

    def total_volume(self, days: Optional[int] = None, today: Optional[datetime.date] = None) -> float:
        return self.aggregator.total_volume(self._period_sets(days, today))

    def pr_count(self, days: Optional[int] = None, today: Optional[datetime.date] = None) -> int:
        """Exercises with a new record in the last ``days`` days.

        For all time every trained exercise counts once; see
        ``RecordTracker.count_all_time_records``.
        """
        today = today or self.calendar.today()
        if days is None:
            return self.records.count_all_time_records(
                self.sets.fetch_sets(), until=today + datetime.timedelta(days=1)
            )
        start, end = self.aggregator.window(days, today)
        return self.records.count_period_records(self._fetch_days(None, end), start, end)

    def comparison_stats(
        self, days: Optional[int] = None, today: Optional[datetime.date] = None
    ) -> Dict[str, PeriodComparison]:
        """Return workouts, sets, volume and PRs against the previous equal window."""
        today = today or self.calendar.today()
        current = self._period_sets(days, today)
        if days is None:
            return {
                "workouts": PeriodComparison(self.aggregator.workout_count(current), 0),
                "sets": PeriodComparison(self.aggregator.set_count(current), 0),
                "volume": PeriodComparison(self.aggregator.total_volume(current), 0),
                "prs": PeriodComparison(self.pr_count(None, today), 0),
            }
        start, end = self.aggregator.window(days, today)
        prev_start, prev_end = self.aggregator.previous_window(days, today)
        history = self._fetch_days(None, end)
        previous = self.aggregator.in_days(history, prev_start, prev_end)
        return {
            "workouts": PeriodComparison(
                self.aggregator.workout_count(current), self.aggregator.workout_count(previous)
            ),
            "sets": PeriodComparison(
                self.aggregator.set_count(current), self.aggregator.set_count(previous)
            ),
            "volume": PeriodComparison(
                self.aggregator.total_volume(current), self.aggregator.total_volume(previous)
            ),
            "prs": PeriodComparison(
                self.records.count_period_records(history, start, end),
                self.records.count_period_records(history, prev_start, prev_end),
            ),
        }

    def muscle_group_breakdown(
        self, days: Optional[int] = None, today: Optional[datetime.date] = None
    ) -> List[CategoryVolume]:
        return self.aggregator.category_breakdown(
            self._period_sets(days, today), self.exercises.fetch_exercises()
        )

    def recent_prs(self, limit: int = 10) -> List[PersonalRecord]:
        return self.records.list_records(
            self.sets.fetch_sets(), self.exercises.fetch_exercises(), limit
        )

    def exercise_stats(self, exercise_id: str, unit: Optional[str] = None) -> ExerciseStats:
        exercise = self.exercises.fetch(exercise_id)
        rows = self.sets.fetch_sets(exercise_id=exercise_id)
        return self.aggregator.exercise_stats(exercise_id, rows, unit or exercise.unit)

    def top_exercises(self, limit: int = 5) -> List[tuple[Exercise, int]]:
        return self.aggregator.top_exercises(
            self.sets.fetch_sets(), self.exercises.fetch_exercises(), limit
        )

    def year_in_review(self, year: int) -> YearInReview:
        start = datetime.date(year, 1, 1)
        end = datetime.date(year + 1, 1, 1)
        previous = self._fetch_days(datetime.date(year - 1, 1, 1), start)
        return self.aggregator.year_in_review(
            year,
            self._fetch_days(start, end),
            self.exercises.fetch_exercises(),
            self.aggregator.total_volume(previous),
        )
