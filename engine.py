"""Composition root for the analytics engine.

``AnalyticsEngine`` wires settings, the calendar, the SQLite repositories and
the analytics services together. Every read recomputes from the stored sets.
"""

from __future__ import annotations

import datetime
import logging
import os
from typing import Iterable, Optional

from config import YamlConfig
from db import (
    SetRepository,
    AsyncSetRepository,
    ExerciseRepository,
    GoalRepository,
)
from goal_service import GoalService, GoalProgress
from logging_config import setup_logging
from models import Exercise, FitnessGoal, GoalType, WorkoutSet
from progression_service import ProgressionService, ProgressionStatus
from recovery_service import RecoveryService, MuscleRecoveryStatus
from session_service import SessionService
from settings_schema import load_settings
from stats_service import StatisticsService
from streak_service import StreakService, StreakData
from tools import LocalCalendar

logger = logging.getLogger(__name__)


class AnalyticsEngine:
    """Workout analytics over one SQLite store."""

    def __init__(
        self,
        db_path: str | None = None,
        yaml_path: str | None = None,
        *,
        configure_logging: bool = False,
    ) -> None:
        self.db_path = db_path or os.environ.get("WORKOUT_DB", "workout.db")
        self.config = YamlConfig(yaml_path)
        self.settings = load_settings(self.config)
        if configure_logging:
            setup_logging(self.settings.log_format, self.settings.log_level)
        self.calendar = LocalCalendar(
            self.settings.timezone, self.settings.first_weekday
        )
        self.sets = SetRepository(self.db_path, self.calendar)
        self.async_sets = AsyncSetRepository(self.db_path, self.calendar)
        self.exercises = ExerciseRepository(self.db_path, self.calendar)
        self.goal_repo = GoalRepository(self.db_path, self.calendar)
        self.sessions = SessionService(self.sets, self.exercises, self.calendar)
        self.progression = ProgressionService(self.sets, self.exercises, self.calendar)
        self.streaks = StreakService(self.sets, self.calendar)
        self.recovery = RecoveryService(
            self.sets,
            self.exercises,
            self.calendar,
            lookback_days=self.settings.recovery_lookback_days,
        )
        self.statistics = StatisticsService(self.sets, self.exercises, self.calendar)
        self.goals = GoalService(self.goal_repo, self.sets, self.calendar)
        logger.info(
            "analytics engine ready",
            extra={"workout_db": self.db_path, "workout_timezone": self.settings.timezone},
        )

    def save_exercise(self, exercise: Exercise) -> None:
        self.exercises.save(exercise)

    def log_sets(
        self,
        exercise_id: str,
        when: datetime.datetime,
        entries: Iterable[dict],
        unit: Optional[str] = None,
    ) -> list[int]:
        """Replace the day's sets for ``exercise_id`` with ``entries``."""
        if unit is None:
            unit = self.exercises.fetch(exercise_id).unit
        return self.sets.replace_day(exercise_id, when, entries, unit)

    async def log_sets_async(
        self,
        exercise_id: str,
        when: datetime.datetime,
        entries: Iterable[dict],
        unit: Optional[str] = None,
    ) -> list[int]:
        """Async variant of ``log_sets`` over aiosqlite."""
        if unit is None:
            unit = self.exercises.fetch(exercise_id).unit
        return await self.async_sets.replace_day(exercise_id, when, entries, unit)

    async def fetch_sets_async(
        self,
        exercise_id: Optional[str] = None,
        start: Optional[datetime.datetime] = None,
        end: Optional[datetime.datetime] = None,
    ) -> list[WorkoutSet]:
        return await self.async_sets.fetch_sets(exercise_id, start, end)

    def progression_status(self, exercise_id: str) -> ProgressionStatus:
        return self.progression.status(exercise_id)

    def live_progression(
        self,
        exercise_id: str,
        current_sets: Iterable[tuple[Optional[float], Optional[int]]],
        today: Optional[datetime.date] = None,
    ) -> ProgressionStatus:
        return self.progression.live_status(exercise_id, list(current_sets), today)

    def streak(self, today: Optional[datetime.date] = None) -> StreakData:
        return self.streaks.streak(today)

    def muscle_recovery(
        self, now: Optional[datetime.datetime] = None, consolidated: bool = False
    ) -> dict[str, MuscleRecoveryStatus]:
        if consolidated:
            return self.recovery.display_recovery(now)
        return self.recovery.muscle_recovery(now)

    def create_goal(
        self,
        goal_type: GoalType | str,
        target_value: float,
        exercise_id: Optional[str] = None,
        weight_unit: Optional[str] = None,
    ) -> FitnessGoal:
        name = None
        if exercise_id is not None:
            name = self.exercises.fetch(exercise_id).name
        return self.goals.create_goal(
            goal_type,
            target_value,
            exercise_id=exercise_id,
            exercise_name=name,
            weight_unit=weight_unit or self.settings.weight_unit,
        )

    def goal_progress(self, today: Optional[datetime.date] = None) -> list[GoalProgress]:
        return self.goals.goal_progress(today=today)
