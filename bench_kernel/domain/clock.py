"""
Injected time for the engagement lifecycle (``bench_kernel.domain.clock``).

Offer, agreement, approval and invoice timestamps, invoice years, due
dates and the overdue sweep all read the time from a ``Clock`` handed to
the service.  Nothing under ``bench_modules`` calls ``datetime.now()``.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current UTC time."""

    @abstractmethod
    def now(self) -> datetime:
        """Timezone-aware current time."""

    def today(self) -> date:
        """UTC calendar date; invoice issue and due dates use this."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves when the test moves it, so "sent before" and "due
    after" relations are exact.  Naive datetimes are taken as UTC.
    """

    DEFAULT_START = datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._current = self._as_utc(start or self.DEFAULT_START)

    @staticmethod
    def _as_utc(moment: datetime) -> datetime:
        if moment.tzinfo is None:
            return moment.replace(tzinfo=timezone.utc)
        return moment.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, moment: datetime) -> None:
        self._current = self._as_utc(moment)

    def advance(self, seconds: int = 1) -> datetime:
        """Move forward ``seconds`` and return the new time."""
        self._current += timedelta(seconds=seconds)
        return self._current

    def advance_days(self, days: int) -> datetime:
        return self.advance(days * 86400)
