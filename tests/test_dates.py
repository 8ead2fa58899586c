"""Tests for free-text date range resolution."""
from datetime import date

import pytest

from report_bot.dates import (
    month_range,
    parse_single_date,
    quarter_range,
    resolve_date_range,
    trailing_days,
    year_range,
)
from report_bot.models import DateRange


class TestRelativeRanges:
    def test_last_seven_days_includes_today(self):
        result = resolve_date_range("last 7 days", date(2024, 3, 10))
        assert result == DateRange(date(2024, 3, 4), date(2024, 3, 10))

    def test_this_month_covers_whole_calendar_month(self):
        result = resolve_date_range("this month", date(2024, 3, 15))
        assert result == DateRange(date(2024, 3, 1), date(2024, 3, 31))

    def test_last_month_crosses_year_boundary(self):
        result = resolve_date_range("last month", date(2024, 1, 15))
        assert result == DateRange(date(2023, 12, 1), date(2023, 12, 31))

    def test_this_week_runs_monday_to_sunday(self):
        # 2024-03-15 is a Friday
        result = resolve_date_range("this week", date(2024, 3, 15))
        assert result == DateRange(date(2024, 3, 11), date(2024, 3, 17))

    def test_last_week(self):
        result = resolve_date_range("visitors last week", date(2024, 3, 15))
        assert result == DateRange(date(2024, 3, 4), date(2024, 3, 10))

    def test_this_quarter(self):
        result = resolve_date_range("this quarter", date(2024, 3, 15))
        assert result == DateRange(date(2024, 1, 1), date(2024, 3, 31))

    def test_last_quarter_from_first_quarter_wraps_to_previous_year(self):
        result = resolve_date_range("last quarter", date(2024, 2, 10))
        assert result == DateRange(date(2023, 10, 1), date(2023, 12, 31))

    def test_today_and_yesterday(self):
        today = date(2024, 3, 15)
        assert resolve_date_range("today", today) == DateRange(today, today)
        assert resolve_date_range("yesterday", today) == DateRange(date(2024, 3, 14), date(2024, 3, 14))


class TestExplicitRanges:
    def test_named_quarter(self):
        result = resolve_date_range("Q2 2023", date(2024, 3, 15))
        assert result == DateRange(date(2023, 4, 1), date(2023, 6, 30))

    def test_month_name_with_year(self):
        result = resolve_date_range("donations in February 2023", date(2024, 3, 15))
        assert result == DateRange(date(2023, 2, 1), date(2023, 2, 28))

    def test_month_name_defaults_to_current_year(self):
        result = resolve_date_range("february", date(2024, 3, 15))
        assert result == DateRange(date(2024, 2, 1), date(2024, 2, 29))

    def test_from_to_range(self):
        result = resolve_date_range("from 2024-01-05 to 2024-01-20", date(2024, 3, 15))
        assert result == DateRange(date(2024, 1, 5), date(2024, 1, 20))

    def test_bare_range_is_not_read_as_a_month(self):
        result = resolve_date_range("March 3 2024 to March 9 2024", date(2024, 3, 15))
        assert result == DateRange(date(2024, 3, 3), date(2024, 3, 9))

    def test_single_iso_date(self):
        result = resolve_date_range("2024-02-10", date(2024, 3, 15))
        assert result == DateRange(date(2024, 2, 10), date(2024, 2, 10))

    def test_bare_year_is_whole_year(self):
        result = resolve_date_range("2022", date(2024, 3, 15))
        assert result == DateRange(date(2022, 1, 1), date(2022, 12, 31))

    def test_weekday_name_is_not_a_date(self):
        assert resolve_date_range("sunday", date(2024, 3, 15)) is None


class TestLooseRanges:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("2 weeks", DateRange(date(2024, 3, 2), date(2024, 3, 15))),
            ("for 10 days", DateRange(date(2024, 3, 6), date(2024, 3, 15))),
            ("weekly visitors", DateRange(date(2024, 3, 9), date(2024, 3, 15))),
            ("daily", DateRange(date(2024, 3, 15), date(2024, 3, 15))),
            ("ytd", DateRange(date(2024, 1, 1), date(2024, 3, 15))),
            ("last year", DateRange(date(2023, 1, 1), date(2023, 12, 31))),
        ],
    )
    def test_loose_phrases(self, text, expected):
        assert resolve_date_range(text, date(2024, 3, 15)) == expected


class TestUnrecognized:
    @pytest.mark.parametrize("text", ["", "   ", "hello there", "generate visitor report"])
    def test_returns_none(self, text):
        assert resolve_date_range(text, date(2024, 3, 15)) is None

    def test_resolution_is_pure(self):
        today = date(2024, 3, 15)
        assert resolve_date_range("last month", today) == resolve_date_range("last month", today)


class TestHelpers:
    def test_month_range_leap_february(self):
        assert month_range(2024, 2) == DateRange(date(2024, 2, 1), date(2024, 2, 29))

    def test_quarter_range(self):
        assert quarter_range(4, 2023) == DateRange(date(2023, 10, 1), date(2023, 12, 31))

    def test_year_range(self):
        assert year_range(2022) == DateRange(date(2022, 1, 1), date(2022, 12, 31))

    def test_trailing_days(self):
        assert trailing_days(1, date(2024, 3, 15)) == DateRange(date(2024, 3, 15), date(2024, 3, 15))

    def test_parse_single_date_fills_missing_year_from_today(self):
        assert parse_single_date("March 3", date(2024, 3, 15)) == date(2024, 3, 3)

    def test_parse_single_date_rejects_garbage(self):
        assert parse_single_date("not a date", date(2024, 3, 15)) is None

    def test_parse_single_date_bare_year_is_first_day(self):
        assert parse_single_date("2024", date(2024, 3, 15)) == date(2024, 1, 1)

    @pytest.mark.parametrize("raw", ["sunday", "next friday", "March"])
    def test_parse_single_date_needs_a_digit(self, raw):
        assert parse_single_date(raw, date(2024, 3, 15)) is None
