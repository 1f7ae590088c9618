"""Reporting period values and parsing."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass

MONTH_NAMES = (
    "",
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)

_PERIOD_FORMATS = (
    re.compile(r"^(?P<year>\d{4})-(?P<month>\d{1,2})$"),
    re.compile(r"^(?P<year>\d{4})(?P<month>\d{2})$"),
)


def month_name(month: int) -> str:
    """English month name, or ``Month n`` when out of range."""
    if 1 <= month <= 12:
        return MONTH_NAMES[month]
    return f"Month {month}"


@dataclass(frozen=True, order=True)
class ReportPeriod:
    """A calendar month requested by a report."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got {self.month}")

    @classmethod
    def parse(cls, value: str) -> ReportPeriod:
        """Parse ``YYYY-MM`` or ``YYYYMM``."""
        cleaned = value.strip()
        for pattern in _PERIOD_FORMATS:
            match = pattern.match(cleaned)
            if match:
                return cls(int(match.group("year")), int(match.group("month")))
        raise ValueError(f"Unrecognised period: {value!r} (expected YYYY-MM or YYYYMM)")

    def next(self) -> ReportPeriod:
        """The following calendar month."""
        if self.month == 12:
            return ReportPeriod(self.year + 1, 1)
        return ReportPeriod(self.year, self.month + 1)

    def label(self) -> str:
        return f"{month_name(self.month)} {self.year}"

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


@dataclass(frozen=True)
class PeriodRange:
    """Inclusive range of reporting months."""

    start: ReportPeriod
    end: ReportPeriod

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise ValueError(f"Period range ends before it starts: {self.start} > {self.end}")

    @classmethod
    def parse(cls, from_period: str, to_period: str) -> PeriodRange:
        """Build a range from a pair of period strings."""
        return cls(ReportPeriod.parse(from_period), ReportPeriod.parse(to_period))

    def months(self) -> Iterator[ReportPeriod]:
        current = self.start
        while current <= self.end:
            yield current
            current = current.next()

    def __len__(self) -> int:
        return (self.end.year - self.start.year) * 12 + self.end.month - self.start.month + 1
