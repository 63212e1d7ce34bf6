"""
Civil-date arithmetic.

All dates are plain ``datetime.date`` values: no time of day, no offsets,
no DST handling. The persisted form is ``YYYY-MM-DD``. "Today" comes from an
injectable clock so tests can pin it.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from paycadence.errors import ValidationError

DATE_FORMAT = "%Y-%m-%d"

Clock = Callable[[], date]


def system_clock(timezone: str | None = None) -> Clock:
    """Return a clock reading the wall clock in ``timezone`` (host local time if None)."""
    if timezone is None:
        return date.today

    try:
        zone = ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone: {timezone}") from e

    def _now() -> date:
        return datetime.now(zone).date()

    return _now


def fixed_clock(value: date | str) -> Clock:
    """A clock that always answers ``value``."""
    pinned = parse_date(value)
    return lambda: pinned


def today(clock: Clock | None = None) -> date:
    return (clock or date.today)()


def parse_date(value: date | str) -> date:
    """Parse a ``YYYY-MM-DD`` string. ``date`` instances pass through.

    Raises:
        ValidationError: if the string is not a real calendar date in that exact form.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"Invalid date: {value!r}")
    try:
        parsed = datetime.strptime(value.strip(), DATE_FORMAT).date()
    except ValueError as e:
        raise ValidationError(f"Invalid date: {value!r}") from e
    # strptime accepts unpadded fields; the canonical form must round-trip
    if format_date(parsed) != value.strip():
        raise ValidationError(f"Invalid date: {value!r}")
    return parsed


def format_date(value: date) -> str:
    return value.strftime(DATE_FORMAT)


def is_valid_date(value: object) -> bool:
    try:
        parse_date(value)  # type: ignore[arg-type]
    except ValidationError:
        return False
    return True


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)


def add_months(value: date, months: int, anchor_day: int | None = None) -> date:
    """Shift by whole months, clamping to the last day of the target month.

    ``anchor_day`` is the day-of-month to aim for before clamping; it lets a
    series that started on the 31st return to the 31st after a short month.

    >>> add_months(date(2025, 1, 31), 1)
    datetime.date(2025, 2, 28)
    >>> add_months(date(2025, 2, 28), 1, anchor_day=31)
    datetime.date(2025, 3, 31)
    """
    index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(anchor_day or value.day, last_day))


def is_month_end(value: date) -> bool:
    return value.day == calendar.monthrange(value.year, value.month)[1]


def days_between(start: date, end: date) -> int:
    """Signed calendar-day count ``end - start``."""
    return (end - start).days


def is_today(value: date, clock: Clock | None = None) -> bool:
    return value == today(clock)


def is_past(value: date, clock: Clock | None = None) -> bool:
    return value < today(clock)


def month_label(value: date) -> str:
    """``January 2025`` style label."""
    return f"{calendar.month_name[value.month]} {value.year}"


def format_short_date(value: date) -> str:
    """``Jan 6, 2025`` style label."""
    return f"{calendar.month_abbr[value.month]} {value.day}, {value.year}"
