from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from typing import Iterable, Optional

from db import SetRepository
from tools import LocalCalendar

logger = logging.getLogger(__name__)

CONSISTENCY_WEEKS = 12


@dataclass(frozen=True)
class WeekActivity:
    week_start: datetime.date
    workout_count: int


@dataclass(frozen=True)
class StreakData:
    current_streak: int = 0
    best_streak: int = 0
    is_at_risk: bool = False
    last_workout_date: Optional[datetime.date] = None
    weekly_consistency: list[WeekActivity] = field(default_factory=list)
    streak_unit: str = "weeks"


class StreakTracker:
    """Weekly training streaks over the calendar's locale weeks."""

    def __init__(self, calendar: LocalCalendar | None = None) -> None:
        self.calendar = calendar or LocalCalendar()

    def _days(self, workout_dates: Iterable[datetime.date | datetime.datetime]) -> set[datetime.date]:
        return {self.calendar.day_of(d) for d in workout_dates}

    def compute(
        self,
        workout_dates: Iterable[datetime.date | datetime.datetime],
        today: Optional[datetime.date] = None,
    ) -> StreakData:
        days = self._days(workout_dates)
        today = today or self.calendar.today()
        this_week = self.calendar.week_start(today)
        active_weeks = {self.calendar.week_start(d) for d in days}

        # an empty current week ends the walk immediately
        current = 0
        week = this_week
        while week in active_weeks:
            current += 1
            week -= datetime.timedelta(days=7)

        best = 0
        run = 0
        previous: Optional[datetime.date] = None
        for week_start in sorted(active_weeks):
            if previous is not None and LocalCalendar.weeks_between(previous, week_start) == 1:
                run += 1
            else:
                run = 1
            best = max(best, run)
            previous = week_start

        week_end = this_week + datetime.timedelta(days=7)
        recent_floor = today - datetime.timedelta(weeks=CONSISTENCY_WEEKS)
        recent = any(recent_floor <= d < week_end for d in days)
        at_risk = this_week not in active_weeks and recent

        consistency = []
        for offset in range(CONSISTENCY_WEEKS - 1, -1, -1):
            start = this_week - datetime.timedelta(weeks=offset)
            end = start + datetime.timedelta(days=7)
            consistency.append(
                WeekActivity(start, sum(1 for d in days if start <= d < end))
            )

        return StreakData(
            current_streak=current,
            best_streak=best,
            is_at_risk=at_risk,
            last_workout_date=max(days) if days else None,
            weekly_consistency=consistency,
        )

    def longest_daily_streak(self, workout_dates: Iterable[datetime.date | datetime.datetime]) -> int:
        """Return the longest run of consecutive training days."""
        dates = sorted(self._days(workout_dates))
        if not dates:
            return 0
        record = current = 1
        for prev, nxt in zip(dates, dates[1:]):
            if (nxt - prev).days == 1:
                current += 1
                record = max(record, current)
            else:
                current = 1
        return record

    def active_weeks(self, workout_dates: Iterable[datetime.date | datetime.datetime]) -> int:
        return len({self.calendar.week_start(d) for d in self._days(workout_dates)})


class StreakService:
    """Streaks computed from the completed sets in the store."""

    def __init__(self, set_repo: SetRepository, calendar: LocalCalendar | None = None) -> None:
        self.sets = set_repo
        self.calendar = calendar or set_repo.calendar
        self.tracker = StreakTracker(self.calendar)

    def streak(self, today: Optional[datetime.date] = None) -> StreakData:
        rows = self.sets.fetch_sets()
        data = self.tracker.compute((s.date for s in rows), today)
        logger.debug(
            "weekly streak computed",
            extra={"workout_current_streak": data.current_streak, "workout_sets": len(rows)},
        )
        return data
