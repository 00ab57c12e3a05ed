"""Fallback parser for American Express statements.

Amex cards are issued through several banks and the statements do not agree
on a date format, so each line is tried against both conventions:

    15/03/2025 RESTAURANT PALERMO 12.500,00
    15/03 UBER TRIP 3.200,00
    15-03-25 * NETFLIX.COM 4.299,00
"""

import re
from datetime import date

from backend.models import Bank
from backend.parsers.normalizers import expand_year, parse_dd_mm_yy
from backend.parsers.pdf_lines import BankLineParser, LineMatch, ScanState, build_candidate
from backend.parsers.validation import FormatError

SLASH_LINE = re.compile(r"^(\d{2}/\d{2}(?:/\d{2,4})?)\s+(.+?)\s+([\d.,]+)$")
DASH_LINE = re.compile(r"^(\d{2}-\d{2}-\d{2})\s*[*KQ]?\s*(.+?)\s+([\d.,]+)$")


def _parse_slash_date(raw: str, state: ScanState) -> date:
    """Parse DD/MM[/YY[YY]]; a missing year comes from the statement period."""
    parts = raw.split("/")
    day, month = int(parts[0]), int(parts[1])
    year = state.year
    if len(parts) == 3:
        if len(parts[2]) == 3:
            raise FormatError(f"Invalid year in date {raw!r}")
        year = expand_year(parts[2])
    try:
        return date(year, month, day)
    except ValueError as e:
        raise FormatError(f"Invalid date {raw!r}: {e}") from None


class AmexParser(BankLineParser):
    bank = Bank.AMEX
    name = "Amex PDF"
    markers = ("american express", "amex argentina", "tarjeta american express")

    def match_record(self, lines: list[str], index: int, state: ScanState) -> LineMatch | None:
        line = lines[index].strip()

        match = SLASH_LINE.match(line)
        if match:
            date_str, description, amount_str = match.groups()
            return LineMatch(
                transaction=build_candidate(_parse_slash_date(date_str, state), description, amount_str, index + 1)
            )

        match = DASH_LINE.match(line)
        if match:
            date_str, description, amount_str = match.groups()
            return LineMatch(
                transaction=build_candidate(parse_dd_mm_yy(date_str), description, amount_str, index + 1)
            )

        return None
