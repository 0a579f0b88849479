from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from algorithms import MathTools, WeightConverter
from db import SetRepository, ExerciseRepository
from models import WorkoutSet, Exercise
from tools import LocalCalendar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSummary:
    """Derived view of one exercise on one local day. Never persisted."""

    date: datetime.date
    sets: tuple[WorkoutSet, ...]
    working_sets: tuple[WorkoutSet, ...]
    top_weight: float
    total_volume: float
    estimated_one_rep_max: Optional[float]
    typical_reps: Optional[int]
    hit_target_reps: bool
    exercise_id: Optional[str] = None

    @property
    def set_count(self) -> int:
        return len(self.sets)


class SessionAggregator:
    """Group raw sets into daily sessions and derive per-session metrics."""

    def __init__(self, calendar: LocalCalendar | None = None) -> None:
        self.calendar = calendar or LocalCalendar()

    @staticmethod
    def working_sets(
        sets: Iterable[WorkoutSet],
        use_warmup_set: bool = False,
        progression_set_count: Optional[int] = None,
    ) -> list[WorkoutSet]:
        """Return the sets that count: warm-up dropped, then capped to N."""
        ordered = sorted(sets, key=lambda s: s.order)
        if use_warmup_set and ordered:
            ordered = ordered[1:]
        if progression_set_count is not None and progression_set_count > 0:
            ordered = ordered[:progression_set_count]
        return ordered

    def summarize(
        self,
        sets: Iterable[WorkoutSet],
        target_rep_min: Optional[int] = None,
        target_rep_max: Optional[int] = None,
        use_warmup_set: bool = False,
        progression_set_count: Optional[int] = None,
        day: Optional[datetime.date] = None,
    ) -> SessionSummary:
        ordered = sorted(sets, key=lambda s: s.order)
        counted = self.working_sets(ordered, use_warmup_set, progression_set_count)

        weights = [s.weight for s in counted if s.weight is not None]
        top_weight = max(weights) if weights else 0.0

        total_volume = MathTools.volume(
            (s.reps, WeightConverter.to_kg(s.weight, s.unit))
            for s in counted
            if s.has_volume
        )

        completed = [s for s in counted if s.is_completed]
        e1rm = None
        if completed and completed[0].has_volume:
            # estimate from the first working set only
            e1rm = MathTools.epley_1rm(completed[0].weight, completed[0].reps)

        typical = MathTools.mode(s.reps for s in completed if s.reps is not None)

        hit_target = False
        if target_rep_min is not None and target_rep_max is not None and counted:
            hit_target = all(
                s.is_completed and s.reps is not None and s.reps >= target_rep_min
                for s in counted
            )

        if day is None and ordered:
            day = self.calendar.day_of(ordered[0].date)
        return SessionSummary(
            date=day,
            sets=tuple(ordered),
            working_sets=tuple(counted),
            top_weight=top_weight,
            total_volume=total_volume,
            estimated_one_rep_max=e1rm,
            typical_reps=typical,
            hit_target_reps=hit_target,
            exercise_id=ordered[0].exercise_id if ordered else None,
        )

    def summarize_for(
        self,
        exercise: Exercise,
        sets: Iterable[WorkoutSet],
        day: Optional[datetime.date] = None,
    ) -> SessionSummary:
        return self.summarize(
            sets,
            target_rep_min=exercise.target_rep_min,
            target_rep_max=exercise.target_rep_max,
            use_warmup_set=exercise.use_warmup_set,
            progression_set_count=exercise.progression_set_count,
            day=day,
        )

    def group_by_day(
        self, sets: Iterable[WorkoutSet]
    ) -> dict[datetime.date, list[WorkoutSet]]:
        """Return sets keyed by local day, days ascending."""
        grouped: dict[datetime.date, list[WorkoutSet]] = {}
        for s in sets:
            grouped.setdefault(self.calendar.day_of(s.date), []).append(s)
        return {day: grouped[day] for day in sorted(grouped)}

    def build_sessions(
        self, exercise: Exercise, sets: Iterable[WorkoutSet]
    ) -> list[SessionSummary]:
        """Return one summary per day for ``exercise``, oldest first."""
        own = [s for s in sets if s.exercise_id == exercise.id]
        sessions = [
            self.summarize_for(exercise, day_sets, day)
            for day, day_sets in self.group_by_day(own).items()
        ]
        logger.debug(
            "built sessions",
            extra={"workout_exercise_id": exercise.id, "workout_sessions": len(sessions)},
        )
        return sessions

    def recent_sessions(
        self, exercise: Exercise, sets: Iterable[WorkoutSet], limit: int = 4
    ) -> list[SessionSummary]:
        """Return at most ``limit`` sessions, latest first."""
        sessions = self.build_sessions(exercise, sets)
        return list(reversed(sessions))[:limit]

    def last_session(
        self,
        exercise: Exercise,
        sets: Iterable[WorkoutSet],
        exclude_day: Optional[datetime.date] = None,
    ) -> Optional[SessionSummary]:
        sessions = [
            s for s in self.build_sessions(exercise, sets) if s.date != exclude_day
        ]
        return sessions[-1] if sessions else None


class SessionService:
    """Read completed sessions for an exercise from the store."""

    def __init__(
        self,
        set_repo: SetRepository,
        exercise_repo: ExerciseRepository,
        calendar: LocalCalendar | None = None,
    ) -> None:
        self.sets = set_repo
        self.exercises = exercise_repo
        self.calendar = calendar or set_repo.calendar
        self.aggregator = SessionAggregator(self.calendar)

    def sessions(
        self,
        exercise_id: str,
        start: Optional[datetime.datetime] = None,
        end: Optional[datetime.datetime] = None,
    ) -> list[SessionSummary]:
        exercise = self.exercises.fetch(exercise_id)
        rows = self.sets.fetch_sets(exercise_id=exercise_id, start=start, end=end)
        return self.aggregator.build_sessions(exercise, rows)

    def recent_sessions(self, exercise_id: str, limit: int = 4) -> list[SessionSummary]:
        exercise = self.exercises.fetch(exercise_id)
        rows = self.sets.fetch_sets(exercise_id=exercise_id)
        return self.aggregator.recent_sessions(exercise, rows, limit)

    def last_session(
        self, exercise_id: str, exclude_day: Optional[datetime.date] = None
    ) -> Optional[SessionSummary]:
        """Return the latest completed session, skipping ``exclude_day`` if given."""
        exercise = self.exercises.fetch(exercise_id)
        rows = self.sets.fetch_sets(exercise_id=exercise_id)
        return self.aggregator.last_session(exercise, rows, exclude_day)
