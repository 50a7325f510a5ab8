"""
Growing weeks run Thursday to Wednesday.

Week 1 of a year is the week containing 2 January, so GW1 2025 starts on
Thursday 2 January 2025.
"""
from datetime import date, timedelta
from typing import List, NamedTuple

THURSDAY = 3  # date.weekday()


class GrowingWeek(NamedTuple):
    number: int
    year: int
    start: date
    end: date

    @property
    def label(self) -> str:
        return f"GW{self.number} · {self.year}"

    @property
    def days(self) -> List[date]:
        return [self.start + timedelta(days=offset) for offset in range(7)]


def week_start(day: date) -> date:
    """The Thursday on or before ``day``."""
    return day - timedelta(days=(day.weekday() - THURSDAY) % 7)


def week_end(day: date) -> date:
    return week_start(day) + timedelta(days=6)


def week_number(day: date) -> int:
    start = week_start(day)
    anchor = week_start(date(start.year, 1, 2))
    if start < anchor:
        anchor = week_start(date(start.year - 1, 1, 2))
    return (start - anchor).days // 7 + 1


def week_year(day: date) -> int:
    return week_start(day).year


def growing_week(day: date) -> GrowingWeek:
    start = week_start(day)
    return GrowingWeek(
        number=week_number(day),
        year=start.year,
        start=start,
        end=start + timedelta(days=6),
    )
