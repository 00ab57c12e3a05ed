"""Parser for Santander (Visa and Amex) PDF statements.

Transactions are grouped under month headers, and the header sits at the
start of the first transaction of each month:

    25 Agosto  17 005903 *  SUR GAS                     63.000,00
               17 146455 *  MERPAGO*TIN                 18.000,00
     750064 * PAX ASSISTANCE 99999 C.01/12              18.939,43
    25 Abril   25 370216    TICKETMASTER CANADA  CAD  158,65   116,16

"25 Agosto" means August 2025. Lines without a day reuse the last day seen.
"""

import re

from backend.models import Bank, Currency
from backend.parsers.heuristics import FOREIGN_CURRENCY_RE
from backend.parsers.normalizers import MONTH_NAMES_RE, expand_year, month_from_name
from backend.parsers.pdf_lines import BankLineParser, LineMatch, ScanState, build_candidate, compose_date

MONTH_HEADER = re.compile(rf"^\s*(?:(\d{{4}}|\d{{2}})\s+)?({MONTH_NAMES_RE})\b", re.IGNORECASE)

_HEADER = rf"(?:(?:\d{{4}}|\d{{2}})\s+(?:{MONTH_NAMES_RE})\s+)?"

# Foreign purchase: the last column is the dollar amount
FOREIGN_LINE = re.compile(
    rf"^\s*{_HEADER}(?:(?P<day>\d{{1,2}})\s+)?(?P<ref>\d{{6}})\s+(?P<desc>.+?)\s+"
    rf"(?P<currency>{FOREIGN_CURRENCY_RE})\s+(?P<foreign>[\d.,]+)\s+(?P<amount>[\d.,]+)\s*$",
    re.IGNORECASE,
)

# [header] day reference marker description amount
DAY_LINE = re.compile(
    rf"^\s*{_HEADER}(?P<day>\d{{1,2}})\s+(?P<ref>\d+)\s+[*K]\s+(?P<desc>.+?)\s+(?P<amount>[\d.,]+)\s*$",
    re.IGNORECASE,
)

# reference [marker] description [USD] amount, same day as the previous line
CONTINUATION_LINE = re.compile(
    r"^\s*(?P<ref>\d{6})\s+[*K]?\s*(?P<desc>.+?)\s+(?:(?P<usd>USD)\s+)?(?P<amount>[\d.,]+)\s*$"
)


class SantanderParser(BankLineParser):
    """Santander Río statement layout."""

    bank = Bank.SANTANDER
    name = "Santander PDF"
    markers = ("banco santander", "santander río", "santander rio", "santander argentina")

    def match_record(self, lines: list[str], index: int, state: ScanState) -> LineMatch | None:
        line = lines[index]
        line_number = index + 1

        header = MONTH_HEADER.match(line)
        if header:
            year_str, month_name = header.groups()
            state.month = month_from_name(month_name) or state.month
            if year_str:
                state.year = expand_year(year_str)

        match = FOREIGN_LINE.match(line)
        if match:
            day = int(match.group("day")) if match.group("day") else state.last_day
            txn_date = compose_date(state, day)
            state.last_day = day
            return LineMatch(
                transaction=build_candidate(
                    txn_date, match.group("desc"), match.group("amount"), line_number, currency=Currency.USD
                )
            )

        match = DAY_LINE.match(line)
        if match:
            day = int(match.group("day"))
            txn_date = compose_date(state, day)
            state.last_day = day
            return LineMatch(
                transaction=build_candidate(txn_date, match.group("desc"), match.group("amount"), line_number)
            )

        match = CONTINUATION_LINE.match(line)
        if match:
            currency = Currency.USD if match.group("usd") else None
            return LineMatch(
                transaction=build_candidate(
                    compose_date(state, state.last_day),
                    match.group("desc"),
                    match.group("amount"),
                    line_number,
                    currency=currency,
                )
            )

        return None
