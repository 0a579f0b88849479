from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from algorithms import MathTools, WeightConverter
from models import WorkoutSet, Exercise
from session_service import SessionSummary
from tools import LocalCalendar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PersonalRecord:
    exercise_id: str
    exercise_name: str
    weight: float
    reps: int
    unit: str
    date: datetime.datetime
    one_rep_max: Optional[float]
    volume: float


class RecordTracker:
    """Detect running-maximum volume records.

    A record is an entry whose volume strictly exceeds every volume before it
    for the same exercise; the running maximum starts at 0. Volumes are
    compared in kilograms.
    """

    def __init__(self, calendar: LocalCalendar | None = None) -> None:
        self.calendar = calendar or LocalCalendar()

    @staticmethod
    def _running_max_events(volumes: Iterable[float]) -> list[int]:
        events: list[int] = []
        best = 0.0
        for index, volume in enumerate(volumes):
            if volume > best:
                events.append(index)
                best = volume
        return events

    @staticmethod
    def _window_record(
        entries: Sequence[tuple[datetime.date, float]],
        window_start: Optional[datetime.date],
        window_end: Optional[datetime.date],
    ) -> bool:
        """Return True when the window's best beats everything before it."""
        inside = [
            v
            for day, v in entries
            if (window_start is None or day >= window_start)
            and (window_end is None or day < window_end)
        ]
        if not inside:
            return False
        before = [v for day, v in entries if window_start is not None and day < window_start]
        return max(inside) > max(before, default=0.0)

    def count_records(
        self,
        sessions: Sequence[SessionSummary],
        window_start: Optional[datetime.date] = None,
        window_end: Optional[datetime.date] = None,
    ) -> int:
        """Count records in one exercise's date-sorted ``sessions``.

        Without a window every running-maximum session counts. With a window
        the exercise contributes at most one record: 1 when the best session
        inside ``[window_start, window_end)`` beats the best session before it.
        """
        ordered = sorted(sessions, key=lambda s: s.date)
        if window_start is None and window_end is None:
            return len(self._running_max_events(s.total_volume for s in ordered))
        entries = [(s.date, s.total_volume) for s in ordered]
        return int(self._window_record(entries, window_start, window_end))

    def _set_volumes(
        self, sets: Iterable[WorkoutSet]
    ) -> dict[str, list[tuple[WorkoutSet, float]]]:
        by_exercise: dict[str, list[tuple[WorkoutSet, float]]] = {}
        for s in sets:
            if not s.is_completed or not s.has_volume:
                continue
            volume = WeightConverter.volume_in_kg(s.weight, s.reps, s.unit)
            by_exercise.setdefault(s.exercise_id, []).append((s, volume))
        for entries in by_exercise.values():
            entries.sort(key=lambda e: (e[0].date, e[0].order))
        return by_exercise

    def count_period_records(
        self,
        sets: Iterable[WorkoutSet],
        window_start: datetime.date,
        window_end: datetime.date,
    ) -> int:
        """Count exercises whose best set in the window beats their prior best."""
        count = 0
        for entries in self._set_volumes(sets).values():
            dated = [(self.calendar.day_of(s.date), v) for s, v in entries]
            if self._window_record(dated, window_start, window_end):
                count += 1
        return count

    def count_all_time_records(
        self, sets: Iterable[WorkoutSet], until: Optional[datetime.date] = None
    ) -> int:
        """Return the number of exercises with at least one completed set.

        All-time has no baseline to beat, so every trained exercise counts as
        one record regardless of its running maximum. This differs from
        ``count_period_records`` and is kept for compatibility.
        """
        count = 0
        for entries in self._set_volumes(sets).values():
            if until is None or any(self.calendar.day_of(s.date) < until for s, _ in entries):
                count += 1
        return count

    def count_set_records(self, sets: Iterable[WorkoutSet]) -> int:
        """Total running-maximum set records summed across exercises."""
        return sum(
            len(self._running_max_events(v for _, v in entries))
            for entries in self._set_volumes(sets).values()
        )

    def list_records(
        self,
        sets: Iterable[WorkoutSet],
        exercises: Iterable[Exercise],
        limit: int = 10,
    ) -> list[PersonalRecord]:
        """Return set-level record events, newest first."""
        names = {e.id: e.name for e in exercises}
        records: list[PersonalRecord] = []
        for exercise_id, entries in self._set_volumes(sets).items():
            if exercise_id not in names:
                continue
            for index in self._running_max_events(v for _, v in entries):
                s, volume = entries[index]
                records.append(
                    PersonalRecord(
                        exercise_id=exercise_id,
                        exercise_name=names[exercise_id],
                        weight=s.weight,
                        reps=s.reps,
                        unit=s.unit,
                        date=s.date,
                        one_rep_max=MathTools.epley_1rm(s.weight, s.reps),
                        volume=volume,
                    )
                )
        records.sort(key=lambda r: r.date, reverse=True)
        logger.debug("found %d personal records", len(records))
        return records[:limit]
