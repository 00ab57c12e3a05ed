"""Tests for amount and date normalization."""

from datetime import date
from decimal import Decimal

import pytest

from backend.parsers.normalizers import (
    DMY_DASH,
    ISO,
    add_months,
    expand_year,
    month_from_name,
    parse_amount,
    parse_date,
    parse_dd_mm_yy,
)
from backend.parsers.validation import FormatError


class TestParseAmount:
    """Test separator disambiguation."""

    @pytest.mark.parametrize(
        "argentine,us,expected",
        [
            ("1.234,56", "1,234.56", Decimal("1234.56")),
            ("63.000,00", "63,000.00", Decimal("63000.00")),
            ("1.234.567,89", "1,234,567.89", Decimal("1234567.89")),
            ("0,50", "0.50", Decimal("0.50")),
        ],
    )
    def test_both_conventions_agree(self, argentine, us, expected):
        """Swapping the thousands and decimal separators gives the same value."""
        assert parse_amount(argentine) == expected
        assert parse_amount(us) == expected

    def test_single_dot_three_digits_is_thousands(self):
        """7.000 is seven thousand."""
        assert parse_amount("7.000") == Decimal("7000")

    def test_single_dot_two_digits_is_decimal(self):
        """7.50 is seven and a half."""
        assert parse_amount("7.50") == Decimal("7.5")

    def test_multiple_dots_are_thousands(self):
        assert parse_amount("1.234.567") == Decimal("1234567")

    def test_multiple_commas_are_thousands(self):
        assert parse_amount("1,234,567") == Decimal("1234567")

    def test_single_comma_is_decimal(self):
        assert parse_amount("1,234") == Decimal("1.234")

    def test_returns_absolute_value(self):
        """The sign is carried by the transaction type."""
        assert parse_amount("-1.500,00") == Decimal("1500.00")

    def test_ignores_currency_symbols(self):
        assert parse_amount("$ 12.500,00") == Decimal("12500.00")
        assert parse_amount("US$ 10.50") == Decimal("10.50")

    def test_plain_integer(self):
        assert parse_amount("4299") == Decimal("4299")

    @pytest.mark.parametrize("raw", ["", "abc", ".", "12-34"])
    def test_rejects_unreadable(self, raw):
        with pytest.raises(FormatError):
            parse_amount(raw)


class TestParseDate:
    """Test date parsing."""

    def test_day_first_slash(self):
        assert parse_date("05/03/2025") == date(2025, 3, 5)

    def test_two_digit_year(self):
        assert parse_date("05/03/25") == date(2025, 3, 5)

    def test_iso(self):
        assert parse_date("2025-03-05") == date(2025, 3, 5)

    def test_day_first_dash(self):
        assert parse_date("05-03-2025") == date(2025, 3, 5)

    def test_first_matching_format_wins(self):
        """A structural match with an impossible date is an error, not a fallthrough."""
        with pytest.raises(FormatError):
            parse_date("31/02/2025")

    def test_custom_format_order(self):
        assert parse_date("2025-03-05", formats=(ISO, DMY_DASH)) == date(2025, 3, 5)

    def test_fallback_parser(self):
        """Anything else goes through the generic day-first parser."""
        assert parse_date("5 March 2025") == date(2025, 3, 5)

    @pytest.mark.parametrize("raw", ["", "not a date", "99/99/99/99"])
    def test_rejects_unparseable(self, raw):
        with pytest.raises(FormatError):
            parse_date(raw)


class TestDateHelpers:
    """Test the smaller date helpers."""

    def test_expand_year(self):
        assert expand_year("24") == 2024
        assert expand_year("2024") == 2024

    def test_parse_dd_mm_yy(self):
        assert parse_dd_mm_yy("24-08-24") == date(2024, 8, 24)

    def test_parse_dd_mm_yy_rejects_other_shapes(self):
        with pytest.raises(FormatError):
            parse_dd_mm_yy("24/08/24")

    def test_month_from_name(self):
        assert month_from_name("Agosto") == 8
        assert month_from_name("SETIEMBRE") == 9
        assert month_from_name("Septiembre") == 9
        assert month_from_name("August") is None

    def test_add_months_across_year(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)

    def test_add_months_clamps_day(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)

    def test_add_zero_months(self):
        assert add_months(date(2025, 6, 10), 0) == date(2025, 6, 10)
