"""Bank credit-card PDF statements: text extraction, bank detection and dispatch.

Unlike CSV imports, PDF parsing is best effort. Text extraction loses layout,
so lines that don't parse become warnings and whatever could be read is
returned together with the raw text for manual entry.
"""

import re
from collections import Counter
from datetime import date
from decimal import Decimal
from io import BytesIO

import pdfplumber

from backend.config import settings
from backend.models import Bank, BankStatementParseResult, ParsedCandidateTransaction, StatementPeriod
from backend.parsers.amex_pdf import AmexParser
from backend.parsers.galicia_pdf import AmexGaliciaParser, GaliciaParser, is_amex_galicia
from backend.parsers.heuristics import detect_card_type
from backend.parsers.normalizers import MONTH_NAMES_RE, expand_year, month_from_name
from backend.parsers.pdf_lines import BankLineParser
from backend.parsers.santander_pdf import SantanderParser
from backend.parsers.validation import ExtractionError, logger, validate_file_contents

# Detection order matters: Santander and Galicia also issue Amex cards, so
# the generic Amex markers are only a fallback.
BANK_PARSERS: tuple[BankLineParser, ...] = (SantanderParser(), GaliciaParser(), AmexParser())

PERIOD_RANGE = re.compile(
    r"(?:resumen\s+)?del\s+\d{1,2}/\d{1,2}(?:/\d{2,4})?\s+al\s+\d{1,2}/(\d{1,2})(?:/(\d{4}|\d{2}))?",
    re.IGNORECASE,
)
PERIOD_MONTH_NAME = re.compile(rf"\b({MONTH_NAMES_RE})\s+(\d{{4}})\b", re.IGNORECASE)


def extract_text(contents: bytes) -> str:
    """
    Extract the text of every page, one page after another.

    Raises:
        ExtractionError: If the file is not a readable PDF
    """
    try:
        validate_file_contents(contents, min_size=100)
        with pdfplumber.open(BytesIO(contents)) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
    except Exception as e:
        logger.error(f"PDF text extraction failed: {e}")
        raise ExtractionError(f"Could not read PDF: {e}") from e

    return "\n".join(pages)


def detect_bank(text: str) -> Bank:
    """Identify the issuing bank from phrases in the statement text."""
    for parser in BANK_PARSERS:
        if parser.matches(text):
            return parser.bank
    return Bank.UNKNOWN


def parser_for(bank: Bank, text: str = "") -> BankLineParser | None:
    """Select the line parser for a bank, picking the Amex table layout for Galicia Amex cards."""
    if bank == Bank.GALICIA and is_amex_galicia(text):
        return AmexGaliciaParser()
    for parser in BANK_PARSERS:
        if parser.bank == bank:
            return parser
    return None


def detect_statement_payment_method(text: str, bank: Bank) -> str:
    """Name the card the statement belongs to, e.g. "Visa Santander"."""
    if bank == Bank.AMEX:
        return "Amex"
    if bank == Bank.UNKNOWN:
        return "Unknown"

    card_type = detect_card_type(text)
    if card_type is None:
        return "Unknown"
    return f"{card_type} {bank.value.title()}"


def find_textual_period(text: str, today: date | None = None) -> StatementPeriod | None:
    """Find the statement period printed in the text, if any."""
    today = today or date.today()

    match = PERIOD_RANGE.search(text)
    if match:
        month = int(match.group(1))
        year = expand_year(match.group(2)) if match.group(2) else today.year
        if 1 <= month <= 12:
            return StatementPeriod(month=month, year=year)

    match = PERIOD_MONTH_NAME.search(text)
    if match:
        month = month_from_name(match.group(1))
        year = int(match.group(2))
        if month and 2000 <= year <= 2100:
            return StatementPeriod(month=month, year=year)

    return None


def extract_statement_period(
    text: str,
    transactions: list[ParsedCandidateTransaction],
    today: date | None = None,
) -> StatementPeriod | None:
    """
    Determine the month/year the statement covers.

    Uses the printed period when there is one, otherwise the most common
    month among the transaction dates (ties go to the first seen).
    """
    period = find_textual_period(text, today)
    if period:
        return period

    if not transactions:
        return None

    counts = Counter((txn.date.year, txn.date.month) for txn in transactions)
    (year, month), _ = counts.most_common(1)[0]
    return StatementPeriod(month=month, year=year)


def generate_warnings(transactions: list[ParsedCandidateTransaction], today: date | None = None) -> list[str]:
    """Generate review warnings for parsed statement transactions."""
    today = today or date.today()
    warnings: list[str] = []

    if not transactions:
        warnings.append("No transactions found in PDF")

    threshold = Decimal(str(settings.negligible_amount))
    small_amounts = sum(1 for txn in transactions if txn.amount < threshold)
    if small_amounts > 0:
        warnings.append(f"{small_amounts} transactions with very small amounts - please review")

    future_dates = sum(1 for txn in transactions if txn.date > today)
    if future_dates > 0:
        warnings.append(f"{future_dates} transactions with future dates - please review")

    return warnings


def parse_statement_text(text: str, today: date | None = None) -> BankStatementParseResult:
    """Parse already-extracted statement text."""
    today = today or date.today()
    bank = detect_bank(text)

    if bank == Bank.UNKNOWN:
        return BankStatementParseResult(
            bank=bank,
            warnings=["Could not detect bank type. Supported banks: Santander, Galicia, Amex"],
            raw_text=text,
        )

    parser = parser_for(bank, text)
    start = find_textual_period(text, today) or StatementPeriod(month=today.month, year=today.year)

    try:
        scan = parser.parse_text(text, parser.new_state(start.month, start.year))
    except Exception as e:
        logger.error(f"{parser.name}: parsing failed: {e}")
        return BankStatementParseResult(
            bank=bank,
            detected_payment_method=detect_statement_payment_method(text, bank),
            warnings=[f"Error parsing {bank.value} transactions: {e}"],
            raw_text=text,
        )

    return BankStatementParseResult(
        bank=bank,
        detected_payment_method=detect_statement_payment_method(text, bank),
        transactions=scan.transactions,
        warnings=generate_warnings(scan.transactions, today) + scan.warnings,
        statement_period=extract_statement_period(text, scan.transactions, today),
        raw_text=text,
        lines_processed=scan.total_rows_processed,
        lines_skipped=scan.rows_skipped,
    )


def parse_statement_pdf(contents: bytes, today: date | None = None) -> BankStatementParseResult:
    """
    Parse a bank credit-card statement PDF.

    Raises:
        ExtractionError: If text cannot be extracted from the file
    """
    return parse_statement_text(extract_text(contents), today)
