"""Inclusive year ranges mapped to half-open UTC date windows."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from landchange._types import DateWindow
from landchange.exceptions import InvalidRangeError


def _jan_first(year: int) -> datetime:
    return datetime(year, 1, 1, tzinfo=timezone.utc)


def period_window(year_start: int, year_end: int) -> DateWindow:
    """Return the half-open window covering whole years ``year_start..year_end``.

    Args:
        year_start: First year of the period (inclusive).
        year_end: Last year of the period (inclusive).

    Returns:
        ``(start, end_exclusive)`` where ``start`` is Jan 1 of
        *year_start* and ``end_exclusive`` is Jan 1 of ``year_end + 1``,
        both at 00:00 UTC.

    Raises:
        InvalidRangeError: If *year_end* precedes *year_start*.

    Example:
        >>> start, end = period_window(1986, 1990)
        >>> start.isoformat(), end.isoformat()
        ('1986-01-01T00:00:00+00:00', '1991-01-01T00:00:00+00:00')
    """
    if year_end < year_start:
        raise InvalidRangeError(
            what=f"Invalid period {year_start}-{year_end}",
            cause=f"End year {year_end} precedes start year {year_start}",
            fix="Use an end year greater than or equal to the start year",
        )
    return _jan_first(year_start), _jan_first(year_end + 1)


def year_window(year: int) -> DateWindow:
    """Return the half-open window covering the single calendar *year*."""
    return period_window(year, year)


@dataclass(frozen=True)
class Period:
    """An inclusive year range.

    Validated on construction, so an invalid period never reaches a
    query.

    Args:
        start_year: First year (inclusive).
        end_year: Last year (inclusive).

    Raises:
        InvalidRangeError: If *end_year* precedes *start_year*.

    Example:
        >>> baseline = Period(1986, 1990)
        >>> baseline.label
        '1986_1990'
        >>> baseline.years
        (1986, 1987, 1988, 1989, 1990)
    """

    start_year: int
    end_year: int

    def __post_init__(self) -> None:
        # Validates eagerly; raises InvalidRangeError.
        period_window(self.start_year, self.end_year)

    @classmethod
    def single(cls, year: int) -> Period:
        """Return the one-year period for *year*."""
        return cls(year, year)

    @property
    def window(self) -> DateWindow:
        """Half-open UTC window ``[start, end_exclusive)``."""
        return period_window(self.start_year, self.end_year)

    @property
    def start(self) -> datetime:
        """Jan 1 of the start year, 00:00 UTC."""
        return self.window[0]

    @property
    def end_exclusive(self) -> datetime:
        """Jan 1 of the year after the end year, 00:00 UTC."""
        return self.window[1]

    @property
    def years(self) -> tuple[int, ...]:
        """Every calendar year in the period."""
        return tuple(range(self.start_year, self.end_year + 1))

    @property
    def label(self) -> str:
        """Underscore-joined year pair used in export descriptions."""
        return f"{self.start_year}_{self.end_year}"

    def contains(self, timestamp: datetime) -> bool:
        """Return whether *timestamp* falls inside the half-open window."""
        start, end = self.window
        return start <= timestamp < end

    def __str__(self) -> str:
        if self.start_year == self.end_year:
            return str(self.start_year)
        return f"{self.start_year}-{self.end_year}"


def as_utc(timestamp: datetime) -> datetime:
    """Return *timestamp* as an aware UTC datetime.

    Naive datetimes are taken to be UTC already.
    """
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)
