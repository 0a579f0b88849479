"""Immutable value records shared by the storage layer and the analytics services."""

from __future__ import annotations

import datetime
import enum
from dataclasses import dataclass
from typing import Optional

KG = "kg"
LBS = "lbs"

UPPER_BODY_CATEGORIES = frozenset({"Chest", "Back", "Shoulders", "Biceps", "Triceps"})


class GoalType(str, enum.Enum):
    WEEKLY_WORKOUTS = "weekly_workouts"
    WEEKLY_VOLUME = "weekly_volume"
    SPECIFIC_LIFT = "specific_lift"

    @property
    def display_name(self) -> str:
        return {
            GoalType.WEEKLY_WORKOUTS: "Weekly Workouts",
            GoalType.WEEKLY_VOLUME: "Weekly Volume",
            GoalType.SPECIFIC_LIFT: "Lift Target",
        }[self]


@dataclass(frozen=True)
class WorkoutSet:
    """One logged set. ``date`` is a full instant; only its local day groups sessions."""

    exercise_id: str
    date: datetime.datetime
    order: int
    weight: Optional[float] = None
    reps: Optional[int] = None
    unit: str = KG
    is_completed: bool = True
    rpe: Optional[int] = None
    rir: Optional[int] = None
    completed_at: Optional[datetime.datetime] = None
    id: Optional[int] = None

    @property
    def has_volume(self) -> bool:
        return self.weight is not None and self.reps is not None


@dataclass(frozen=True)
class Exercise:
    id: str
    name: str
    primary_category: str
    unit: str = KG
    use_warmup_set: bool = False
    progression_set_count: Optional[int] = None
    target_rep_min: Optional[int] = None
    target_rep_max: Optional[int] = None
    increment_value: Optional[float] = None

    @property
    def has_target_range(self) -> bool:
        return self.target_rep_min is not None and self.target_rep_max is not None

    @property
    def is_upper_body(self) -> bool:
        return self.primary_category in UPPER_BODY_CATEGORIES


@dataclass(frozen=True)
class FitnessGoal:
    goal_type: GoalType
    target_value: float
    exercise_id: Optional[str] = None
    exercise_name: Optional[str] = None
    weight_unit: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime.datetime] = None
    achieved_at: Optional[datetime.datetime] = None
    id: Optional[int] = None
