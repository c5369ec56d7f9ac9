"""Visible date window of the occupancy grid."""

from __future__ import annotations

import calendar
import dataclasses
from collections.abc import Iterator
from datetime import date, timedelta

from rentboard.exceptions import InvalidWindowError


@dataclasses.dataclass(frozen=True)
class DateWindow:
    """Closed range of calendar days ``[start, end]``.

    Raises :class:`InvalidWindowError` when ``end`` is before ``start``.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise InvalidWindowError(f"window ends ({self.end}) before it starts ({self.start})")

    @classmethod
    def month(cls, year: int, month: int) -> DateWindow:
        last_day = calendar.monthrange(year, month)[1]
        return cls(date(year, month, 1), date(year, month, last_day))

    @classmethod
    def containing(cls, day: date) -> DateWindow:
        """The calendar month window containing *day*."""
        return cls.month(day.year, day.month)

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def dates(self) -> Iterator[date]:
        for offset in range(self.days):
            yield self.start + timedelta(days=offset)

    def offset_of(self, day: date) -> int:
        return (day - self.start).days

    def date_at(self, offset: int) -> date:
        return self.start + timedelta(days=offset)

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    def intersects(self, start: date, end: date) -> bool:
        return start <= self.end and end >= self.start

    def clip(self, start: date, end: date) -> tuple[date, date]:
        return max(start, self.start), min(end, self.end)

    def shift_months(self, months: int) -> DateWindow:
        """Month window *months* away from the month of ``start``."""
        index = self.start.year * 12 + (self.start.month - 1) + months
        return DateWindow.month(index // 12, index % 12 + 1)
