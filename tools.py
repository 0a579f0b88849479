import datetime
from typing import Optional
from zoneinfo import ZoneInfo


class LocalCalendar:
    """Day and week boundaries under one time zone policy.

    Every day bucket and week bucket in the engine is computed here. With no
    ``timezone`` the device-local zone is used; naive datetimes are read as
    wall-clock time in that zone.
    """

    def __init__(self, timezone: Optional[str] = None, first_weekday: int = 0) -> None:
        if not 0 <= first_weekday <= 6:
            raise ValueError("first_weekday must be between 0 (Monday) and 6 (Sunday)")
        self.timezone = timezone
        self.tz = ZoneInfo(timezone) if timezone else None
        self.first_weekday = first_weekday

    def localize(self, moment: datetime.datetime) -> datetime.datetime:
        """Return ``moment`` as an aware datetime in the calendar's zone."""
        if moment.tzinfo is None:
            if self.tz is None:
                return moment.astimezone()
            return moment.replace(tzinfo=self.tz)
        return moment.astimezone(self.tz)

    def day_of(self, moment: datetime.date | datetime.datetime) -> datetime.date:
        if isinstance(moment, datetime.datetime):
            return self.localize(moment).date()
        return moment

    def start_of_day(self, day: datetime.date) -> datetime.datetime:
        return self.localize(datetime.datetime.combine(day, datetime.time.min))

    def week_start(self, moment: datetime.date | datetime.datetime) -> datetime.date:
        day = self.day_of(moment)
        return day - datetime.timedelta(days=(day.weekday() - self.first_weekday) % 7)

    @staticmethod
    def weeks_between(earlier: datetime.date, later: datetime.date) -> int:
        """Whole weeks between two week-start dates."""
        return (later - earlier).days // 7

    def now(self) -> datetime.datetime:
        if self.tz is None:
            return datetime.datetime.now().astimezone()
        return datetime.datetime.now(self.tz)

    def today(self) -> datetime.date:
        return self.now().date()

    def day_range(
        self, start_day: datetime.date, end_day: datetime.date
    ) -> tuple[datetime.datetime, datetime.datetime]:
        """Return the half-open instant range covering ``start_day`` up to ``end_day``."""
        return self.start_of_day(start_day), self.start_of_day(end_day)

    def to_storage(self, moment: datetime.datetime) -> str:
        """Serialise ``moment`` as UTC ISO-8601 text so stored values sort correctly."""
        return self.localize(moment).astimezone(datetime.timezone.utc).isoformat()

    @staticmethod
    def from_storage(text: str) -> datetime.datetime:
        """Return stored ``text`` as a timezone-aware datetime in UTC."""
        dt = datetime.datetime.fromisoformat(text)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=datetime.timezone.utc)
        return dt


def format_weight(weight: float, unit: str) -> str:
    """Return ``weight`` with its unit, dropping a zero fraction (``100 kg``, ``102.5 kg``)."""
    if float(weight).is_integer():
        return f"{int(weight)} {unit}"
    return f"{weight:.1f} {unit}"


def format_volume(volume: float) -> str:
    """Return a kilogram volume, abbreviating thousands (``12.5k kg``)."""
    if volume >= 1000:
        return f"{volume / 1000:.1f}k kg"
    return f"{int(volume)} kg"
