from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from algorithms import WeightConverter
from db import SetRepository, GoalRepository
from models import FitnessGoal, GoalType, WorkoutSet, KG
from stats_service import PeriodAggregator
from tools import LocalCalendar, format_weight, format_volume

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GoalProgress:
    goal: FitnessGoal
    current_value: float
    target_value: float
    display_current: str
    display_target: str

    @property
    def progress_percentage(self) -> float:
        if self.target_value <= 0:
            return 0.0
        return min(100.0, self.current_value / self.target_value * 100)

    @property
    def is_achieved(self) -> bool:
        return self.current_value >= self.target_value


class GoalEvaluator:
    """Progress of goals against this week's sets or an exercise's best lift."""

    def __init__(self, calendar: LocalCalendar | None = None) -> None:
        self.calendar = calendar or LocalCalendar()
        self.aggregator = PeriodAggregator(self.calendar)

    def week_bounds(self, today: Optional[datetime.date] = None) -> tuple[datetime.date, datetime.date]:
        start = self.calendar.week_start(today or self.calendar.today())
        return start, start + datetime.timedelta(days=7)

    def evaluate(
        self,
        goal: FitnessGoal,
        week_sets: Iterable[WorkoutSet],
        exercise_sets: Iterable[WorkoutSet] = (),
    ) -> Optional[GoalProgress]:
        """Return progress for ``goal``.

        ``week_sets`` are the completed sets of the current week and
        ``exercise_sets`` every completed set of the goal's exercise. A lift
        goal without an exercise has no progress (``None``).
        """
        target = goal.target_value
        if goal.goal_type is GoalType.WEEKLY_WORKOUTS:
            count = self.aggregator.workout_count(week_sets)
            return GoalProgress(goal, float(count), target, str(count), str(int(target)))
        if goal.goal_type is GoalType.WEEKLY_VOLUME:
            volume = self.aggregator.total_volume(week_sets)
            return GoalProgress(goal, volume, target, format_volume(volume), format_volume(target))
        if not goal.exercise_id:
            return None
        unit = goal.weight_unit or KG
        best_kg = max(
            (WeightConverter.to_kg(s.weight, s.unit) for s in exercise_sets if s.weight is not None),
            default=0.0,
        )
        best = round(WeightConverter.from_kg(best_kg, unit), 2)
        return GoalProgress(goal, best, target, format_weight(best, unit), format_weight(target, unit))


class GoalService:
    """Goal CRUD and progress over the store."""

    def __init__(
        self,
        goal_repo: GoalRepository,
        set_repo: SetRepository,
        calendar: LocalCalendar | None = None,
    ) -> None:
        self.goals = goal_repo
        self.sets = set_repo
        self.calendar = calendar or set_repo.calendar
        self.evaluator = GoalEvaluator(self.calendar)

    def create_goal(
        self,
        goal_type: GoalType | str,
        target_value: float,
        exercise_id: Optional[str] = None,
        exercise_name: Optional[str] = None,
        weight_unit: Optional[str] = None,
    ) -> FitnessGoal:
        """Create an active goal; a fourth active goal raises ``ValueError``."""
        goal = FitnessGoal(
            goal_type=GoalType(goal_type),
            target_value=float(target_value),
            exercise_id=exercise_id,
            exercise_name=exercise_name,
            weight_unit=weight_unit,
            created_at=self.calendar.now(),
        )
        goal_id = self.goals.save(goal)
        logger.info("created goal %s", goal_id, extra={"workout_goal_type": goal.goal_type.value})
        return self.goals.fetch(goal_id)

    def active_goals(self) -> list[FitnessGoal]:
        return self.goals.fetch_goals(active_only=True)

    def delete_goal(self, goal_id: int) -> None:
        self.goals.delete(goal_id)

    def deactivate_goal(self, goal_id: int) -> None:
        self.goals.deactivate(goal_id)

    def mark_goal_achieved(self, goal_id: int, when: Optional[datetime.datetime] = None) -> None:
        self.goals.mark_achieved(goal_id, when)

    def goal_progress(
        self,
        goals: Optional[Iterable[FitnessGoal]] = None,
        today: Optional[datetime.date] = None,
    ) -> list[GoalProgress]:
        """Progress for each active goal in ``goals`` (default: stored active goals)."""
        goals = [g for g in (goals if goals is not None else self.active_goals()) if g.is_active]
        if not goals:
            return []
        start, end = self.evaluator.week_bounds(today)
        week_sets = self.sets.fetch_sets(
            start=self.calendar.start_of_day(start), end=self.calendar.start_of_day(end)
        )
        result = []
        for goal in goals:
            exercise_sets = []
            if goal.goal_type is GoalType.SPECIFIC_LIFT and goal.exercise_id:
                exercise_sets = self.sets.fetch_sets(exercise_id=goal.exercise_id)
            progress = self.evaluator.evaluate(goal, week_sets, exercise_sets)
            if progress is not None:
                result.append(progress)
        return result
