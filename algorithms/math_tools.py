from collections import Counter
from typing import Iterable, Hashable, Optional


class MathTools:
    """Provides essential mathematical utilities for workout calculations."""

    EPLEY_DIVISOR: float = 30.0
    EPLEY_MIN_REPS: int = 1
    EPLEY_MAX_REPS: int = 10

    @classmethod
    def epley_1rm(cls, weight: float, reps: int) -> Optional[float]:
        """Return the Epley estimated one-rep max, ``weight * (1 + reps / 30)``.

        The estimate is only meaningful for 1-10 reps; outside that range the
        result is ``None`` ("not applicable"), never zero.
        """
        if reps < cls.EPLEY_MIN_REPS or reps > cls.EPLEY_MAX_REPS:
            return None
        return weight * (1 + reps / cls.EPLEY_DIVISOR)

    @staticmethod
    def volume(sets: Iterable[tuple[int, float]]) -> float:
        """Compute training volume as the sum of reps times weight."""
        vol = 0.0
        for reps, weight in sets:
            vol += reps * weight
        return vol

    @staticmethod
    def mode(values: Iterable[Hashable]):
        """Return the most common value, ties going to the first encountered.

        Returns ``None`` for an empty input.
        """
        counts = Counter(values)
        if not counts:
            return None
        # most_common keeps insertion order among equal counts
        return counts.most_common(1)[0][0]

    @staticmethod
    def percent_change(current: float, previous: float) -> Optional[float]:
        """Return the relative change in percent, or ``None`` when ``previous`` is 0."""
        if previous == 0:
            return None
        return (current - previous) / previous * 100.0

    @staticmethod
    def percentage(part: float, total: float) -> float:
        """Return ``part`` as a percentage of ``total`` (0 for an empty total)."""
        if total == 0:
            return 0.0
        return part / total * 100.0
