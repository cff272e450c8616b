"""
Time sources.

Everything that stamps a record (lot and blend codes, ``blended_at``,
transfers, gravity readings, timeline events) asks a ``Clock`` for the time.
``SystemClock`` is the only reader of wall time in the kernel.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2026, 1, 15, 8, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """``now()`` always returns an aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime: ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or DEFAULT_TEST_TIME

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = time

    def advance(self, **delta: float) -> None:
        """Move forward by ``timedelta`` keywords (``days=1``); one second by default."""
        self._now += timedelta(**(delta or {"seconds": 1}))
