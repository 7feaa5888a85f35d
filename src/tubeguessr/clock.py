"""Time sources used by the game engine."""

from datetime import date, datetime, timedelta


class Clock:
    """Supplies the current time; subclass to control time in tests."""

    def now(self) -> datetime:
        raise NotImplementedError

    def today(self) -> date:
        return self.now().date()

    def is_today(self, moment: datetime) -> bool:
        """True if ``moment`` falls on the current calendar day."""
        return moment.date() == self.today()


class SystemClock(Clock):
    """Local wall-clock time."""

    def now(self) -> datetime:
        return datetime.now()


class ManualClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0.0, days: int = 0) -> datetime:
        self._now += timedelta(days=days, seconds=seconds)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment


def day_of_year(moment: date) -> int:
    """1-based ordinal of the day within its year."""
    return moment.timetuple().tm_yday
