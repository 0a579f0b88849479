from __future__ import annotations

import datetime
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from algorithms import MathTools, WeightConverter
from db import SetRepository, ExerciseRepository
from models import Exercise
from session_service import SessionAggregator, SessionSummary
from tools import LocalCalendar

logger = logging.getLogger(__name__)


class ProgressionState(str, enum.Enum):
    INSUFFICIENT_DATA = "insufficient_data"
    DECLINING_PERFORMANCE = "declining_performance"
    RECENTLY_REGRESSED = "recently_regressed"
    READY_TO_INCREASE_WEIGHT = "ready_to_increase_weight"
    READY_TO_INCREASE_REPS = "ready_to_increase_reps"
    PROGRESSING_TOWARD_TARGET = "progressing_toward_target"
    MAINTAINING_BELOW_TARGET = "maintaining_below_target"


_TITLES = {
    ProgressionState.INSUFFICIENT_DATA: "Insufficient Data",
    ProgressionState.DECLINING_PERFORMANCE: "Performance Declining",
    ProgressionState.RECENTLY_REGRESSED: "Building Confidence",
    ProgressionState.READY_TO_INCREASE_WEIGHT: "Ready to Progress!",
    ProgressionState.READY_TO_INCREASE_REPS: "Ready to Progress!",
    ProgressionState.PROGRESSING_TOWARD_TARGET: "Progressing Toward Target",
    ProgressionState.MAINTAINING_BELOW_TARGET: "Maintaining Below Target",
}

_COLORS = {
    ProgressionState.INSUFFICIENT_DATA: "gray",
    ProgressionState.DECLINING_PERFORMANCE: "orange",
    ProgressionState.RECENTLY_REGRESSED: "yellow",
    ProgressionState.READY_TO_INCREASE_WEIGHT: "green",
    ProgressionState.READY_TO_INCREASE_REPS: "green",
    ProgressionState.PROGRESSING_TOWARD_TARGET: "blue",
    ProgressionState.MAINTAINING_BELOW_TARGET: "gray",
}


@dataclass(frozen=True)
class ProgressionStatus:
    """Outcome of one progression evaluation. Recomputed on every read."""

    state: ProgressionState
    percent_drop: Optional[float] = None
    new_weight: Optional[float] = None
    reset_reps: Optional[int] = None
    new_reps: Optional[int] = None

    @property
    def title(self) -> str:
        return _TITLES[self.state]

    @property
    def color(self) -> str:
        return _COLORS[self.state]

    def message(self, unit: str = "kg") -> str:
        state = self.state
        if state is ProgressionState.READY_TO_INCREASE_WEIGHT:
            return (
                f"You've hit the top of your range! Increase weight to "
                f"{self.new_weight:.1f}{unit} and reset reps to {self.reset_reps}."
            )
        if state is ProgressionState.READY_TO_INCREASE_REPS:
            return f"Great work! Try {self.new_reps} reps at the same weight next session."
        if state is ProgressionState.DECLINING_PERFORMANCE:
            return (
                f"Volume dropped {abs(self.percent_drop or 0):.0f}%. Focus on recovery - "
                "sleep, nutrition, and stress management."
            )
        if state is ProgressionState.RECENTLY_REGRESSED:
            return "Keep building confidence at this weight for another week before progressing."
        if state is ProgressionState.PROGRESSING_TOWARD_TARGET:
            return "You're getting closer! Keep at this weight until you hit all target reps."
        if state is ProgressionState.MAINTAINING_BELOW_TARGET:
            return "Focus on hitting your target rep range consistently."
        return "Complete a few more sessions to get progression recommendations."


INSUFFICIENT = ProgressionStatus(ProgressionState.INSUFFICIENT_DATA)


class ProgressionAdvisor:
    """Classify an exercise's recent trajectory.

    Rules are checked in priority order and the first match wins:

    1. fewer than two sessions or no target range: insufficient data
    2. latest volume more than 10% under the previous: declining
    3. a session two to four back used a heavier top weight: recently regressed
    4. latest hit the target reps: ready for more weight (at the top of the
       range) or one more rep
    5. latest volume more than 10% over the previous: progressing
    6. otherwise: maintaining below target
    """

    VOLUME_TOLERANCE = 0.10
    E1RM_TOLERANCE = 0.05
    WEIGHT_TOLERANCE = 0.1
    SESSIONS_TO_ANALYZE = 4

    UPPER_BODY_INCREMENT = {"kg": 2.5, "lbs": 5.0}
    LOWER_BODY_INCREMENT = {"kg": 5.0, "lbs": 10.0}

    @classmethod
    def increment_for(cls, exercise: Exercise, unit: Optional[str] = None) -> float:
        """Return the weight step for ``exercise`` expressed in ``unit``.

        ``unit`` defaults to the exercise's unit. A configured
        ``increment_value`` is in the exercise's unit and is converted.
        """
        unit = unit or exercise.unit
        pounds = WeightConverter.is_pounds(unit)
        if exercise.increment_value:
            step = exercise.increment_value
            if pounds != WeightConverter.is_pounds(exercise.unit):
                step = WeightConverter.from_kg(WeightConverter.to_kg(step, exercise.unit), unit)
            return step
        table = cls.UPPER_BODY_INCREMENT if exercise.is_upper_body else cls.LOWER_BODY_INCREMENT
        return table["lbs" if pounds else "kg"]

    @classmethod
    def next_weight(
        cls, current_weight: float, exercise: Exercise, unit: Optional[str] = None
    ) -> float:
        return current_weight + cls.increment_for(exercise, unit)

    @staticmethod
    def session_unit(session: SessionSummary) -> Optional[str]:
        """Unit of the working set that carried the session's top weight."""
        for s in session.working_sets:
            if s.weight is not None and s.weight == session.top_weight:
                return s.unit
        return None

    @classmethod
    def is_volume_declined(cls, latest: SessionSummary, previous: SessionSummary) -> bool:
        return latest.total_volume < previous.total_volume * (1 - cls.VOLUME_TOLERANCE)

    @classmethod
    def is_volume_increased(cls, latest: SessionSummary, previous: SessionSummary) -> bool:
        return latest.total_volume > previous.total_volume * (1 + cls.VOLUME_TOLERANCE)

    @classmethod
    def is_e1rm_flat(cls, latest: SessionSummary, previous: SessionSummary) -> bool:
        """True when both estimates exist and differ by at most 5%."""
        if latest.estimated_one_rep_max is None or not previous.estimated_one_rep_max:
            return False
        ratio = latest.estimated_one_rep_max / previous.estimated_one_rep_max
        return abs(ratio - 1.0) <= cls.E1RM_TOLERANCE

    @classmethod
    def did_recently_regress(cls, sessions: Sequence[SessionSummary]) -> bool:
        if len(sessions) < 3:
            return False
        current = sessions[0].top_weight
        return any(s.top_weight > current + cls.WEIGHT_TOLERANCE for s in sessions[2:])

    @classmethod
    def _recommendation(
        cls, latest: SessionSummary, exercise: Exercise
    ) -> Optional[ProgressionStatus]:
        if not latest.hit_target_reps or latest.typical_reps is None:
            return None
        low, high = exercise.target_rep_min, exercise.target_rep_max
        typical = latest.typical_reps
        if typical >= high:
            return ProgressionStatus(
                ProgressionState.READY_TO_INCREASE_WEIGHT,
                new_weight=cls.next_weight(
                    latest.top_weight, exercise, cls.session_unit(latest)
                ),
                reset_reps=low,
            )
        if low <= typical < high:
            return ProgressionStatus(
                ProgressionState.READY_TO_INCREASE_REPS,
                new_reps=min(typical + 1, high),
            )
        return None

    def evaluate(
        self, sessions: Sequence[SessionSummary], exercise: Exercise
    ) -> ProgressionStatus:
        """Evaluate ``sessions`` (latest first) for ``exercise``."""
        sessions = list(sessions)[: self.SESSIONS_TO_ANALYZE]
        if len(sessions) < 2 or not exercise.has_target_range:
            return INSUFFICIENT

        latest, previous = sessions[0], sessions[1]
        if self.is_volume_declined(latest, previous):
            drop = MathTools.percent_change(latest.total_volume, previous.total_volume)
            return ProgressionStatus(
                ProgressionState.DECLINING_PERFORMANCE, percent_drop=drop
            )

        if self.did_recently_regress(sessions):
            return ProgressionStatus(ProgressionState.RECENTLY_REGRESSED)

        recommendation = self._recommendation(latest, exercise)
        if recommendation is not None:
            return recommendation

        if self.is_volume_increased(latest, previous):
            return ProgressionStatus(ProgressionState.PROGRESSING_TOWARD_TARGET)

        return ProgressionStatus(ProgressionState.MAINTAINING_BELOW_TARGET)

    def evaluate_live(
        self,
        exercise: Exercise,
        current_sets: Sequence[tuple[Optional[float], Optional[int]]],
        last_session: Optional[SessionSummary],
    ) -> ProgressionStatus:
        """Evaluate uncommitted ``(weight, reps)`` input against ``last_session``.

        ``last_session`` is the most recent completed session before today,
        or ``None`` for a first session. Uncommitted weights are taken to be
        in the exercise's unit.
        """
        if not exercise.has_target_range:
            return INSUFFICIENT
        low, high = exercise.target_rep_min, exercise.target_rep_max

        working = list(current_sets)
        if exercise.use_warmup_set and working:
            working = working[1:]
        if exercise.progression_set_count and exercise.progression_set_count > 0:
            working = working[: exercise.progression_set_count]

        with_data = [(w, r) for w, r in working if w is not None and r is not None]
        if not with_data:
            return INSUFFICIENT

        weight = max(w for w, _ in with_data)
        typical = MathTools.mode(r for _, r in with_data)
        all_hit_minimum = all(r >= low for _, r in with_data)

        if last_session is None:
            # at the top of the range on day one still needs history
            if all_hit_minimum and typical < high:
                return ProgressionStatus(ProgressionState.PROGRESSING_TOWARD_TARGET)
            return INSUFFICIENT

        last_weight = last_session.top_weight
        last_typical = last_session.typical_reps if last_session.typical_reps is not None else low

        if weight > last_weight + self.WEIGHT_TOLERANCE:
            if all_hit_minimum:
                return ProgressionStatus(ProgressionState.PROGRESSING_TOWARD_TARGET)
            return ProgressionStatus(ProgressionState.MAINTAINING_BELOW_TARGET)

        if abs(weight - last_weight) <= self.WEIGHT_TOLERANCE:
            if not all_hit_minimum:
                return ProgressionStatus(ProgressionState.MAINTAINING_BELOW_TARGET)
            if typical >= high:
                return ProgressionStatus(
                    ProgressionState.READY_TO_INCREASE_WEIGHT,
                    new_weight=self.next_weight(weight, exercise),
                    reset_reps=low,
                )
            if typical > last_typical:
                return ProgressionStatus(
                    ProgressionState.READY_TO_INCREASE_REPS, new_reps=typical + 1
                )
            return ProgressionStatus(ProgressionState.PROGRESSING_TOWARD_TARGET)

        return ProgressionStatus(ProgressionState.RECENTLY_REGRESSED)


class ProgressionService:
    """Evaluate progression for stored exercises."""

    def __init__(
        self,
        set_repo: SetRepository,
        exercise_repo: ExerciseRepository,
        calendar: LocalCalendar | None = None,
        advisor: ProgressionAdvisor | None = None,
    ) -> None:
        self.sets = set_repo
        self.exercises = exercise_repo
        self.calendar = calendar or set_repo.calendar
        self.aggregator = SessionAggregator(self.calendar)
        self.advisor = advisor or ProgressionAdvisor()

    def status(self, exercise_id: str) -> ProgressionStatus:
        exercise = self.exercises.fetch(exercise_id)
        rows = self.sets.fetch_sets(exercise_id=exercise_id)
        sessions = self.aggregator.recent_sessions(
            exercise, rows, ProgressionAdvisor.SESSIONS_TO_ANALYZE
        )
        result = self.advisor.evaluate(sessions, exercise)
        logger.debug(
            "progression %s",
            result.state.value,
            extra={"workout_exercise_id": exercise_id, "workout_sessions": len(sessions)},
        )
        return result

    def last_completed_session(
        self, exercise: Exercise, today: Optional[datetime.date] = None
    ) -> Optional[SessionSummary]:
        """Return the latest completed session strictly before ``today``."""
        today = today or self.calendar.today()
        rows = self.sets.fetch_sets(
            exercise_id=exercise.id, end=self.calendar.start_of_day(today)
        )
        return self.aggregator.last_session(exercise, rows)

    def live_status(
        self,
        exercise_id: str,
        current_sets: Sequence[tuple[Optional[float], Optional[int]]],
        today: Optional[datetime.date] = None,
    ) -> ProgressionStatus:
        exercise = self.exercises.fetch(exercise_id)
        last = self.last_completed_session(exercise, today)
        return self.advisor.evaluate_live(exercise, current_sets, last)
