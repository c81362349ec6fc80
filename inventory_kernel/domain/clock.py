"""
Clock -- where the ledger gets "now" from.

Services stamp created_at / processed_at and default missing event
timestamps through an injected Clock, never through ``datetime.now()``.
Every value returned is timezone-aware UTC.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests and replays.

    ``now()`` keeps returning the same instant until ``advance()`` moves it.
    """

    def __init__(self, start: datetime | None = None):
        self._now = (start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)).astimezone(
            timezone.utc
        )

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 1) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now
