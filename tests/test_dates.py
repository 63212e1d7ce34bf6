"""Tests for civil-date arithmetic."""

from datetime import date, timedelta

import pytest

from paycadence.dates import (
    add_days,
    add_months,
    days_between,
    fixed_clock,
    format_date,
    format_short_date,
    is_month_end,
    is_past,
    is_today,
    is_valid_date,
    month_label,
    parse_date,
    system_clock,
)
from paycadence.errors import ValidationError


class TestParseFormat:
    def test_round_trip_over_several_years(self) -> None:
        current = date(2023, 12, 25)
        while current < date(2025, 3, 10):
            assert parse_date(format_date(current)) == current
            current += timedelta(days=1)

    def test_parse_passes_dates_through(self) -> None:
        assert parse_date(date(2025, 1, 3)) == date(2025, 1, 3)

    @pytest.mark.parametrize("value", ["2025-02-30", "2025-1-3", "01/03/2025", "", "tomorrow", None])
    def test_rejects_invalid(self, value: object) -> None:
        with pytest.raises(ValidationError):
            parse_date(value)  # type: ignore[arg-type]
        assert is_valid_date(value) is False

    def test_validation_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_date("not-a-date")


class TestArithmetic:
    def test_add_days_rolls_over_year(self) -> None:
        assert add_days(date(2024, 12, 25), 14) == date(2025, 1, 8)

    def test_add_days_leap_year(self) -> None:
        assert add_days(date(2024, 2, 28), 1) == date(2024, 2, 29)

    def test_add_months_clamps(self) -> None:
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2025, 3, 31), 1) == date(2025, 4, 30)

    def test_add_months_across_year(self) -> None:
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)
        assert add_months(date(2025, 1, 15), 12) == date(2026, 1, 15)

    def test_add_months_with_anchor(self) -> None:
        assert add_months(date(2025, 2, 28), 1, anchor_day=31) == date(2025, 3, 31)
        assert add_months(date(2025, 3, 31), 1, anchor_day=31) == date(2025, 4, 30)

    def test_days_between_is_signed(self) -> None:
        assert days_between(date(2025, 1, 10), date(2025, 1, 17)) == 7
        assert days_between(date(2025, 1, 17), date(2025, 1, 10)) == -7

    def test_is_month_end(self) -> None:
        assert is_month_end(date(2025, 2, 28))
        assert not is_month_end(date(2024, 2, 28))


class TestClock:
    def test_fixed_clock(self) -> None:
        clock = fixed_clock("2025-01-10")
        assert clock() == date(2025, 1, 10)
        assert is_today(date(2025, 1, 10), clock)
        assert is_past(date(2025, 1, 9), clock)
        assert not is_past(date(2025, 1, 10), clock)

    def test_system_clock_defaults_to_host_time(self) -> None:
        assert system_clock()() == date.today()

    def test_unknown_timezone(self) -> None:
        with pytest.raises(ValidationError):
            system_clock("Mars/Olympus_Mons")


class TestLabels:
    def test_month_label(self) -> None:
        assert month_label(date(2025, 1, 31)) == "January 2025"

    def test_short_date(self) -> None:
        assert format_short_date(date(2025, 1, 6)) == "Jan 6, 2025"
