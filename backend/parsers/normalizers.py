"""Locale-ambiguous amount and date parsing shared by all statement parsers.

Statements mix Argentine (``1.234,56``) and US (``1,234.56``) conventions, so
the separator roles are inferred from their position and repetition.
"""

import calendar
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import NamedTuple

import pandas as pd

from backend.parsers.validation import FormatError

_NON_AMOUNT_CHARS = re.compile(r"[^\d.,-]")

SPANISH_MONTHS: dict[str, int] = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "setiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}

# Alternation for embedding in other patterns; longest names first so
# "septiembre" wins over "setiembre" prefixes.
MONTH_NAMES_RE = "|".join(sorted(SPANISH_MONTHS, key=len, reverse=True))


class DateFormat(NamedTuple):
    """A structural date pattern and the order of its day/month/year groups."""

    pattern: re.Pattern
    order: str  # "dmy" or "ymd"


DMY_SLASH = DateFormat(re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4}|\d{2})$"), "dmy")
ISO = DateFormat(re.compile(r"^(\d{4})-(\d{1,2})-(\d{1,2})$"), "ymd")
DMY_DASH = DateFormat(re.compile(r"^(\d{1,2})-(\d{1,2})-(\d{4}|\d{2})$"), "dmy")

CSV_DATE_FORMATS: tuple[DateFormat, ...] = (DMY_SLASH, ISO, DMY_DASH)


def parse_amount(raw: str) -> Decimal:
    """
    Parse an amount written with ambiguous regional separators.

    Rules, in order:
    - comma after the last dot: comma is the decimal separator
    - dot after the last comma: a lone dot followed by exactly three digits is
      a thousands separator (``7.000``), otherwise the dot is decimal
    - several dots and no comma: all dots are thousands separators
    - several commas and no dot: all commas are thousands separators

    Returns:
        The absolute value; sign semantics are handled by the caller.

    Raises:
        FormatError: If no number can be read
    """
    cleaned = _NON_AMOUNT_CHARS.sub("", raw or "")
    digits = cleaned.strip("-")
    if "-" in digits:
        raise FormatError(f"Invalid amount format: {raw!r}")

    last_comma = digits.rfind(",")
    last_dot = digits.rfind(".")
    dot_count = digits.count(".")
    comma_count = digits.count(",")

    if comma_count > 1 and dot_count == 0:
        normalized = digits.replace(",", "")
    elif last_comma > last_dot:
        # Comma is the decimal separator; any earlier commas are noise
        integer_part, _, fraction = digits.rpartition(",")
        normalized = integer_part.replace(".", "").replace(",", "") + "." + fraction
    elif last_dot > last_comma:
        trailing = digits[last_dot + 1 :]
        if dot_count == 1 and comma_count == 0 and len(trailing) == 3 and trailing.isdigit():
            normalized = digits.replace(".", "")
        elif dot_count > 1 and comma_count == 0:
            normalized = digits.replace(".", "")
        else:
            normalized = digits.replace(",", "")
    else:
        normalized = digits

    try:
        amount = Decimal(normalized)
    except InvalidOperation:
        raise FormatError(f"Invalid amount format: {raw!r}") from None

    if not amount.is_finite():
        raise FormatError(f"Invalid amount format: {raw!r}")

    return abs(amount)


def expand_year(raw: str) -> int:
    """Expand a 2-digit year to 20xx; 4-digit years pass through."""
    year = int(raw)
    if len(raw) == 2:
        return 2000 + year
    return year


def _build_date(year: int, month: int, day: int, raw: str) -> date:
    try:
        return date(year, month, day)
    except ValueError as e:
        raise FormatError(f"Invalid date {raw!r}: {e}") from None


def parse_date(raw: str, formats: tuple[DateFormat, ...] = CSV_DATE_FORMATS) -> date:
    """
    Parse a date trying each known format in order.

    The first structural match wins. If nothing matches, fall back to
    pandas' generic (day-first) parser.

    Raises:
        FormatError: If the date cannot be parsed
    """
    value = (raw or "").strip()

    for fmt in formats:
        match = fmt.pattern.match(value)
        if not match:
            continue
        if fmt.order == "dmy":
            day, month, year = match.groups()
        else:
            year, month, day = match.groups()
        return _build_date(expand_year(year), int(month), int(day), raw)

    if not value:
        raise FormatError("Invalid date format: empty value")

    try:
        parsed = pd.to_datetime(value, dayfirst=True)
    except (ValueError, TypeError, OverflowError):
        raise FormatError(f"Invalid date format: {raw!r}") from None

    if pd.isna(parsed):
        raise FormatError(f"Invalid date format: {raw!r}")
    return parsed.date()


def parse_dd_mm_yy(raw: str) -> date:
    """Parse the ``DD-MM-YY`` dates used by Galicia statements."""
    match = re.match(r"^(\d{2})-(\d{2})-(\d{2})$", raw.strip())
    if not match:
        raise FormatError(f"Invalid DD-MM-YY date format: {raw!r}")
    day, month, year = match.groups()
    return _build_date(expand_year(year), int(month), int(day), raw)


def month_from_name(name: str) -> int | None:
    """Map a Spanish month name (any case) to its number."""
    return SPANISH_MONTHS.get(name.strip().lower())


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping the day to the target month's end."""
    index = start.month - 1 + months
    year = start.year + index // 12
    month = index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
