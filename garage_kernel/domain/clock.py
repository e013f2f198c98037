"""
Clock -- injectable source of "now".

Reports stamp ``generated_at`` from a Clock so that report output is
reproducible under test.  Engines never ask for the time; the live stock
they receive already *is* "now".
"""

from abc import ABC, abstractmethod
from datetime import UTC, datetime, timedelta


class Clock(ABC):
    """Returns timezone-aware datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(UTC)


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(UTC)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Time only moves through ``advance()`` or ``set_time()``.
    """

    DEFAULT = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or self.DEFAULT

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)
