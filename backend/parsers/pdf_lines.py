"""Shared line-scanning skeleton for bank PDF statement parsers.

Each bank parser only knows how to recognise one record starting at a given
line. The scan loop, month/year tracking and soft failure handling live here,
so a malformed line becomes a warning and the scan moves on.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date

from backend.models import Bank, Currency, ParsedCandidateTransaction, TransactionType
from backend.parsers.heuristics import STATEMENT_INSTALLMENT_PATTERNS, detect_currency, detect_installments
from backend.parsers.normalizers import parse_amount
from backend.parsers.validation import FormatError, ParseResult, clean_description


@dataclass
class ScanState:
    """Mutable state carried across the lines of one statement."""

    month: int
    year: int
    last_day: int = 1
    in_section: bool = True
    finished: bool = False


@dataclass
class LineMatch:
    """Outcome of matching a record at a line: how many lines it used and what it produced."""

    consumed: int = 1
    transaction: ParsedCandidateTransaction | None = None


def build_candidate(
    txn_date: date,
    description: str,
    amount_raw: str,
    line_number: int,
    currency: Currency | None = None,
    installments: str | None = None,
) -> ParsedCandidateTransaction:
    """
    Build a statement transaction from matched fields.

    Statement rows are always expenses. Installments and currency are detected
    from the description unless given.

    Raises:
        FormatError: If the amount is unreadable or zero, or the description is empty
    """
    description = clean_description(description)
    if not description:
        raise FormatError("empty description")

    amount = parse_amount(amount_raw)
    if amount == 0:
        raise FormatError(f"zero amount {amount_raw!r}")

    if installments is None:
        installments = detect_installments(description, STATEMENT_INSTALLMENT_PATTERNS)

    return ParsedCandidateTransaction(
        date=txn_date,
        type=TransactionType.EXPENSE,
        description=description,
        amount=amount,
        currency=currency or detect_currency(description),
        installments=installments,
        original_line=line_number,
    )


def compose_date(state: ScanState, day: int) -> date:
    """Combine a day-of-month with the tracked statement month and year."""
    try:
        return date(state.year, state.month, day)
    except ValueError as e:
        raise FormatError(f"invalid day {day} for {state.month:02d}/{state.year}: {e}") from None


class BankLineParser(ABC):
    """A bank-specific statement layout."""

    bank: Bank = Bank.UNKNOWN
    name: str = "PDF"
    markers: tuple[str, ...] = ()  # Lowercase phrases identifying the issuer
    starts_in_section: bool = True

    def matches(self, text: str) -> bool:
        """Check if the statement text belongs to this bank."""
        lower_text = text.lower()
        return any(marker in lower_text for marker in self.markers)

    def new_state(self, month: int, year: int) -> ScanState:
        return ScanState(month=month, year=year, in_section=self.starts_in_section)

    @abstractmethod
    def match_record(self, lines: list[str], index: int, state: ScanState) -> LineMatch | None:
        """
        Try to read one record starting at ``lines[index]``.

        Returns:
            None when the line is not a record; otherwise a LineMatch.

        Raises:
            FormatError: When the line looks like a record but its fields are invalid
        """

    def parse_lines(self, lines: list[str], state: ScanState) -> ParseResult:
        """Scan all lines, collecting transactions and per-line warnings."""
        result = ParseResult(transactions=[])
        index = 0

        while index < len(lines) and not state.finished:
            if not lines[index].strip():
                index += 1
                continue

            result.total_rows_processed += 1
            try:
                match = self.match_record(lines, index, state)
            except ValueError as e:  # FormatError or a model validation error
                result.rows_skipped += 1
                result.warnings.append(f"Line {index + 1}: skipped ({e})")
                index += 1
                continue

            if match is None or match.transaction is None:
                result.rows_skipped += 1
                index += max(match.consumed, 1) if match else 1
                continue

            result.transactions.append(match.transaction)
            index += max(match.consumed, 1)

        return result

    def parse_text(self, text: str, state: ScanState) -> ParseResult:
        return self.parse_lines(text.splitlines(), state)
