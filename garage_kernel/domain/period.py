"""
ReportPeriod -- the immutable ``{from, to}`` window of every report.

Boundary convention (the most bug-prone seam of the system):

    an event at timestamp ``t`` belongs to the period iff  start < t <= end

``start`` is exclusive, ``end`` is inclusive.  Calendar-date periods are
mapped so that consecutive date periods partition the event log exactly:
the ``from`` date becomes the last instant of the previous day and the
``to`` date becomes the last instant of ``to``, both in the reporting
timezone.  An event stamped at midnight therefore belongs to the day it
starts, and no event can fall between two adjacent monthly reports.

Validation happens at construction, before any fetch is dispatched.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta, tzinfo

from garage_kernel.exceptions import InvalidRangeError

_ONE_TICK = timedelta(microseconds=1)


def _is_aware(value: datetime) -> bool:
    return value.tzinfo is not None and value.tzinfo.utcoffset(value) is not None


@dataclass(frozen=True)
class ReportPeriod:
    """
    Half-open reporting window ``(start, end]``.

    Guarantees:
        - Both bounds are timezone-aware datetimes.
        - start <= end.
    """

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        for bound in (self.start, self.end):
            if not isinstance(bound, datetime):
                raise InvalidRangeError(
                    self.start, self.end, "bounds must be datetimes"
                )
            if not _is_aware(bound):
                raise InvalidRangeError(
                    self.start, self.end, "bounds must be timezone-aware"
                )
        if self.start > self.end:
            raise InvalidRangeError(self.start, self.end)

    @classmethod
    def of(
        cls,
        from_: date | datetime,
        to: date | datetime,
        tz: tzinfo = UTC,
    ) -> "ReportPeriod":
        """
        Build a period from calendar dates or explicit timestamps.

        Dates are expanded to whole days in ``tz``; datetimes are used as
        given (naive datetimes are rejected).

        Raises:
            InvalidRangeError: If from_ > to or a bound is malformed.
        """
        if from_ is None or to is None:
            raise InvalidRangeError(from_, to, "both bounds are required")
        if not isinstance(from_, date) or not isinstance(to, date):
            raise InvalidRangeError(from_, to, "bounds must be dates or datetimes")
        if type(from_) is date and type(to) is date and from_ > to:
            raise InvalidRangeError(from_, to)
        return cls(
            start=_lower_bound(from_, tz),
            end=_upper_bound(to, tz),
        )

    def contains(self, moment: datetime) -> bool:
        """True if ``moment`` lies in ``(start, end]``."""
        return self.start < moment <= self.end

    def is_after(self, moment: datetime) -> bool:
        """True if ``moment`` happened after the period closed."""
        return moment > self.end

    def includes_date(self, day: date) -> bool:
        """True if the start of ``day`` lies in the period."""
        return self.contains(datetime.combine(day, time.min, tzinfo=self.end.tzinfo))

    def day_span(self) -> tuple[date, date]:
        """
        First and last calendar day accepted by ``includes_date``.

        ``first > last`` when no day starts inside the period.
        """
        tz = self.end.tzinfo
        first = self.start.astimezone(tz).date()
        if not self.includes_date(first):
            first += timedelta(days=1)
        return first, self.end.astimezone(tz).date()

    def describe(self) -> dict[str, str]:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


def _lower_bound(value: date | datetime, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=tz) - _ONE_TICK


def _upper_bound(value: date | datetime, tz: tzinfo) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max, tzinfo=tz)
