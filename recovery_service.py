from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

import numpy as np

from db import SetRepository, ExerciseRepository
from models import WorkoutSet, Exercise
from tools import LocalCalendar

logger = logging.getLogger(__name__)

MUSCLE_GROUPS = (
    "Chest",
    "Back",
    "Shoulders",
    "Arms",
    "Biceps",
    "Triceps",
    "Legs",
    "Quads",
    "Hamstrings",
    "Glutes",
    "Core",
    "Abs",
    "Cardio",
)

DISPLAY_GROUPS = {
    "Chest": ("Chest",),
    "Back": ("Back",),
    "Shoulders": ("Shoulders",),
    "Arms": ("Arms", "Biceps", "Triceps"),
    "Legs": ("Legs", "Quads", "Hamstrings", "Glutes"),
    "Core": ("Core", "Abs"),
}


@dataclass(frozen=True)
class MuscleRecoveryStatus:
    muscle_group: str
    hours_since_last_trained: Optional[float]
    recovery_percentage: float
    sets_completed: int
    last_trained: Optional[datetime.datetime]

    @property
    def zone(self) -> str:
        """Return ``red`` up to 40%, ``yellow`` up to 80%, else ``green``."""
        if self.recovery_percentage <= 40:
            return "red"
        if self.recovery_percentage <= 80:
            return "yellow"
        return "green"


class RecoveryEstimator:
    """Piecewise-linear recovery curve over hours since last trained."""

    CURVE_HOURS = (0.0, 24.0, 48.0, 72.0)
    CURVE_PERCENT = (0.0, 40.0, 80.0, 100.0)

    @classmethod
    def recovery_percent(cls, hours_since: Optional[float]) -> float:
        if hours_since is None:
            return 100.0
        # np.interp clamps outside the curve: 0 before training, 100 after 72h
        return float(np.interp(hours_since, cls.CURVE_HOURS, cls.CURVE_PERCENT))

    def muscle_status(
        self,
        sets: Iterable[WorkoutSet],
        exercises: Iterable[Exercise],
        now: datetime.datetime,
        lookback: datetime.timedelta = datetime.timedelta(days=7),
    ) -> dict[str, MuscleRecoveryStatus]:
        """Return recovery for each standard muscle group.

        Only completed sets inside ``[now - lookback, now]`` count; a group
        without such sets is fully recovered.
        """
        categories = {e.id: e.primary_category for e in exercises}
        floor = now - lookback
        latest: dict[str, datetime.datetime] = {}
        counts: dict[str, int] = {}
        for s in sets:
            category = categories.get(s.exercise_id)
            if category is None or not s.is_completed or not floor <= s.date <= now:
                continue
            counts[category] = counts.get(category, 0) + 1
            if category not in latest or s.date > latest[category]:
                latest[category] = s.date

        result: dict[str, MuscleRecoveryStatus] = {}
        for group in MUSCLE_GROUPS:
            if group in latest:
                hours = (now - latest[group]).total_seconds() / 3600
                result[group] = MuscleRecoveryStatus(
                    group, hours, self.recovery_percent(hours), counts[group], latest[group]
                )
            else:
                result[group] = MuscleRecoveryStatus(group, None, 100.0, 0, None)
        return result

    @staticmethod
    def consolidate(
        statuses: dict[str, MuscleRecoveryStatus],
    ) -> dict[str, MuscleRecoveryStatus]:
        """Merge raw categories into display groups.

        A group takes the lowest recovery of its members and the sum of their
        set counts; hours and last-trained follow the least recovered member.
        """
        merged: dict[str, MuscleRecoveryStatus] = {}
        for group, members in DISPLAY_GROUPS.items():
            found = [statuses[m] for m in members if m in statuses]
            if not found:
                merged[group] = MuscleRecoveryStatus(group, None, 100.0, 0, None)
                continue
            worst = min(found, key=lambda s: s.recovery_percentage)
            merged[group] = MuscleRecoveryStatus(
                group,
                worst.hours_since_last_trained,
                worst.recovery_percentage,
                sum(s.sets_completed for s in found),
                worst.last_trained,
            )
        return merged


class RecoveryService:
    """Muscle recovery computed from recently logged sets."""

    def __init__(
        self,
        set_repo: SetRepository,
        exercise_repo: ExerciseRepository,
        calendar: LocalCalendar | None = None,
        lookback_days: int = 7,
    ) -> None:
        self.sets = set_repo
        self.exercises = exercise_repo
        self.calendar = calendar or set_repo.calendar
        self.lookback = datetime.timedelta(days=lookback_days)
        self.estimator = RecoveryEstimator()

    def muscle_recovery(
        self, now: Optional[datetime.datetime] = None
    ) -> dict[str, MuscleRecoveryStatus]:
        now = self.calendar.localize(now) if now is not None else self.calendar.now()
        rows = self.sets.fetch_sets(start=now - self.lookback)
        statuses = self.estimator.muscle_status(
            rows, self.exercises.fetch_exercises(), now, self.lookback
        )
        logger.debug("recovery computed", extra={"workout_sets": len(rows)})
        return statuses

    def display_recovery(
        self, now: Optional[datetime.datetime] = None
    ) -> dict[str, MuscleRecoveryStatus]:
        return self.estimator.consolidate(self.muscle_recovery(now))
