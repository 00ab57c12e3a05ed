"""Parser for Banco Galicia PDF statements.

Visa Galicia records come out of text extraction in three shapes:

    single line, spaced:        18-03-25 * MERPAGO*NIKEARGENTINA 01/06 061987 24.833,00
    single line, concatenated:  18-03-25*MERPAGO*NIKEARGENTINA 01/0606198724.833,00
    three lines:                24-08-24*SER BAZARES BERAZATEGUI 12/12
                                003495
                                1.249,16

Amex cards issued by Galicia use a different table, found under
"DETALLE DEL CONSUMO", where installment purchases carry the original
purchase date.
"""

import re

from backend.models import Bank, Currency
from backend.parsers.heuristics import FOREIGN_CURRENCY_RE, CSV_INSTALLMENT_PATTERNS, detect_installments
from backend.parsers.normalizers import add_months, parse_dd_mm_yy
from backend.parsers.pdf_lines import BankLineParser, LineMatch, ScanState, build_candidate

_AMOUNT = r"\d{1,3}(?:\.\d{3})*,\d{2}"

DATE_MARKER = re.compile(r"^(\d{2}-\d{2}-\d{2})\s*([*KQE]?)\s*")
REFERENCE_AND_AMOUNT = re.compile(rf"(\d{{6}})({_AMOUNT})\s*$")
LONG_REFERENCE_AND_AMOUNT = re.compile(rf"(\d{{7,8}})({_AMOUNT})\s*$")
PARTIAL_INSTALLMENT = re.compile(r"(\d+)/(\d*)$")
SPACED_LINE = re.compile(r"^(\d{2}-\d{2}-\d{2})\s*[*KQ]?\s*(.+?)\s+(\d+)\s+([\d.,]+)\s*$")
RECORD_START = re.compile(r"^(\d{2}-\d{2}-\d{2})\s*[*K](.+)$")
REFERENCE_LINE = re.compile(r"^\d+$")
BARE_AMOUNT = re.compile(r"^(?=.*\d)[\d.,]+$")

AMEX_SECTION_START = "DETALLE DEL CONSUMO"
AMEX_SECTION_END = "Total Consumos de"
AMEX_MARKERS = ("AMERICAN EXPRESS", "30-64140793-9")
AMEX_RECORD_START = re.compile(r"^(\d{2}-\d{2}-\d{2})\s*([*EKQ])(.+)$")
AMEX_REFERENCE_LINE = re.compile(r"^\d{6}$")
AMEX_SINGLE_LINE = re.compile(
    rf"^(\d{{2}}-\d{{2}}-\d{{2}})\s*([*EKQ]?)(.+?)(\d{{6}})({_AMOUNT})(?:\s+({_AMOUNT}))?\s*$"
)
FOREIGN_CURRENCY = re.compile(rf"\b(?:{FOREIGN_CURRENCY_RE})\b", re.IGNORECASE)
TRAILING_INSTALLMENT = re.compile(r"\s*\d+/\d+\s*$")


def is_amex_galicia(text: str) -> bool:
    """Check if a Galicia statement uses the American Express table layout."""
    return AMEX_SECTION_START in text and any(marker in text for marker in AMEX_MARKERS)


def _split_concatenated(rest: str) -> tuple[str, str, str] | None:
    """
    Split ``DESCRIPTION[n/n]REFERENCEAMOUNT`` into description, digit run and amount.

    A 7-8 digit run is only used when the description ends in a truncated
    installment (``01/``), since those digits also finish the installment.
    """
    tail = None
    long_tail = LONG_REFERENCE_AND_AMOUNT.search(rest)
    if long_tail and PARTIAL_INSTALLMENT.search(rest[: long_tail.start()].rstrip()):
        tail = long_tail
    if tail is None:
        tail = REFERENCE_AND_AMOUNT.search(rest)
    if tail is None:
        return None
    return rest[: tail.start()].strip(), tail.group(1), tail.group(2)


def _complete_installments(description: str, digits: str) -> tuple[str, str | None]:
    """Rebuild an installment split across the description and the reference digits."""
    partial = PARTIAL_INSTALLMENT.search(description)
    if not partial:
        return description, None

    first, second = partial.groups()
    if len(second) < 2:
        candidate = f"{first}/{second}{digits[: 2 - len(second)]}"
    else:
        candidate = partial.group(0)

    if not re.fullmatch(r"\d{1,2}/\d{1,2}", candidate):
        return description, None

    installments = detect_installments(candidate, CSV_INSTALLMENT_PATTERNS)
    if installments is None:
        return description, None
    return description[: partial.start()].strip(), installments


class GaliciaParser(BankLineParser):
    """Visa Galicia statement layout."""

    bank = Bank.GALICIA
    name = "Galicia PDF"
    markers = (
        "banco galicia",
        "banco de galicia",
        "galicia homebanking",
        "bancogalicia",
        "tarjetas galicia",
        "cuit banco: 30-50000173-5",
    )

    def match_record(self, lines: list[str], index: int, state: ScanState) -> LineMatch | None:
        line = lines[index].strip()
        line_number = index + 1
        spaced = SPACED_LINE.match(line)

        # A standalone 6-digit reference means the amount is its own token
        if spaced and len(spaced.group(3)) == 6:
            return self._spaced_match(spaced, line_number)

        match = self._match_concatenated(line, line_number)
        if match:
            return match

        if spaced:
            return self._spaced_match(spaced, line_number)

        return self._match_three_lines(lines, index)

    def _spaced_match(self, spaced: re.Match, line_number: int) -> LineMatch:
        date_str, description, _reference, amount_str = spaced.groups()
        return LineMatch(transaction=build_candidate(parse_dd_mm_yy(date_str), description, amount_str, line_number))

    def _match_concatenated(self, line: str, line_number: int) -> LineMatch | None:
        head = DATE_MARKER.match(line)
        if not head:
            return None

        parts = _split_concatenated(line[head.end() :])
        if parts is None:
            return None

        description, digits, amount_str = parts
        description, installments = _complete_installments(description, digits)
        return LineMatch(
            transaction=build_candidate(
                parse_dd_mm_yy(head.group(1)), description, amount_str, line_number, installments=installments
            )
        )

    def _match_three_lines(self, lines: list[str], index: int) -> LineMatch | None:
        """Match date+description, a bare reference and a bare amount on consecutive lines."""
        start = RECORD_START.match(lines[index].strip())
        if not start or index + 2 >= len(lines):
            return None

        reference_line = lines[index + 1].strip()
        amount_line = lines[index + 2].strip()
        if not REFERENCE_LINE.match(reference_line) or not BARE_AMOUNT.match(amount_line):
            return None

        date_str, description = start.groups()
        return LineMatch(
            consumed=3,
            transaction=build_candidate(parse_dd_mm_yy(date_str), description, amount_line, index + 1),
        )


class AmexGaliciaParser(GaliciaParser):
    """American Express cards issued by Galicia."""

    name = "Amex Galicia PDF"
    starts_in_section = False

    def match_record(self, lines: list[str], index: int, state: ScanState) -> LineMatch | None:
        line = lines[index].strip()

        if AMEX_SECTION_START in line:
            state.in_section = True
            return LineMatch()
        if AMEX_SECTION_END in line:
            state.finished = True
            return LineMatch()
        if not state.in_section or line.startswith("FECHA"):
            return None

        start = AMEX_RECORD_START.match(line)
        if start and index + 2 < len(lines):
            reference_line = lines[index + 1].strip()
            amount_line = lines[index + 2].strip()
            if AMEX_REFERENCE_LINE.match(reference_line) and BARE_AMOUNT.match(amount_line):
                date_str, _marker, description = start.groups()
                return LineMatch(
                    consumed=3,
                    transaction=self._installment_candidate(date_str, description, amount_line, index + 1),
                )

        single = AMEX_SINGLE_LINE.match(line)
        if single:
            date_str, marker, description, _reference, amount_str, usd_column = single.groups()
            currency = None
            # Foreign purchases show the dollar amount in the amount column
            if FOREIGN_CURRENCY.search(description) or marker == "E":
                currency = Currency.USD
            elif usd_column:
                amount_str, currency = usd_column, Currency.USD
            return LineMatch(
                transaction=self._installment_candidate(date_str, description, amount_str, index + 1, currency)
            )

        return None

    def _installment_candidate(
        self,
        date_str: str,
        description: str,
        amount_str: str,
        line_number: int,
        currency: Currency | None = None,
    ):
        """
        Installment rows carry the original purchase date; installment n of a
        plan is charged n - 1 months later.
        """
        txn_date = parse_dd_mm_yy(date_str)
        installments = detect_installments(description.strip(), CSV_INSTALLMENT_PATTERNS)
        if installments:
            current = int(installments.split("/")[0])
            txn_date = add_months(txn_date, current - 1)
            description = TRAILING_INSTALLMENT.sub("", description)
        return build_candidate(txn_date, description, amount_str, line_number, currency, installments)
