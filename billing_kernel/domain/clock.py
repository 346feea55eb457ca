"""
Clock -- injectable source of "now" for billing code.

Services, the reconciliation workflow and the receipt dispatcher take a
``Clock`` in their constructor; nothing in the kernel calls
``datetime.now()`` or ``date.today()`` directly.  Tracking codes embed the
issue date, reminders count days to the due date and audit columns are
stamped from the same clock, so tests pin all three with one
``DeterministicClock``.

All datetimes are timezone-aware UTC.  The billing day is the UTC calendar
date.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Time source handed to services."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware."""

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        """The billing day: UTC calendar date of ``now_utc()``."""
        return self.now_utc().date()


class SystemClock(Clock):
    """Wall-clock time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Returns the same instant until moved with ``advance``, ``tick`` or
    ``set_time``.  Defaults to 2024-01-01 12:00 UTC.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move one second forward and return the new instant."""
        self.advance(1)
        return self._current
