"""Parser for income/expense CSV exports.

Expected columns (extra columns are ignored):
    Fecha, Ingresos/Gastos, Categoría, Memorándum, Importe

Parsing is all-or-nothing: a bad header or any bad row rejects the file,
since a malformed export usually means every row is wrong.
"""

import csv
import unicodedata
from dataclasses import dataclass, field
from io import StringIO

from backend.models import CsvFilters, CsvStatementRow, TransactionType
from backend.parsers.heuristics import (
    FALLBACK_PAYMENT_METHOD,
    detect_installments,
    detect_payment_method,
    is_income_description,
    match_payment_method,
)
from backend.parsers.normalizers import parse_amount, parse_date
from backend.parsers.validation import (
    FormatError,
    ParseResult,
    clean_description,
    validate_csv_contents,
    validate_description,
)

REQUIRED_COLUMNS: dict[str, str] = {
    "date": "Fecha",
    "flow": "Ingresos/Gastos",
    "category": "Categoría",
    "memo": "Memorándum",
    "amount": "Importe",
}


@dataclass
class CsvParseOutcome:
    """Parsed rows after filtering, plus the counts shown in the preview."""

    rows: list[CsvStatementRow]
    total_records: int
    filtered_records: int
    warnings: list[str] = field(default_factory=list)
    parse_result: ParseResult | None = None


def _normalize_header(name: str) -> str:
    """Lowercase, strip accents and collapse whitespace."""
    decomposed = unicodedata.normalize("NFKD", name)
    without_accents = "".join(c for c in decomposed if not unicodedata.combining(c))
    return " ".join(without_accents.lower().split())


_HEADER_KEYS = {_normalize_header(column): key for key, column in REQUIRED_COLUMNS.items()}


def _build_header_map(fieldnames: list[str]) -> dict[str, str]:
    """Build a mapping from standard field names to actual CSV headers."""
    header_map: dict[str, str] = {}
    for field_name in fieldnames:
        if field_name is None:
            continue
        key = _HEADER_KEYS.get(_normalize_header(field_name))
        if key and key not in header_map:
            header_map[key] = field_name
    return header_map


def _detect_delimiter(text: str) -> str:
    first_line = text.lstrip().splitlines()[0]
    counts = {delimiter: first_line.count(delimiter) for delimiter in (",", ";", "\t")}
    return max(counts, key=counts.get)


def _is_blank_row(row: dict) -> bool:
    return all(not (value or "").strip() for value in row.values() if isinstance(value, str))


def _parse_row(row: dict, header_map: dict[str, str], row_number: int) -> CsvStatementRow:
    """Convert one data row. Any problem is fatal for the whole file."""
    values = {key: row.get(column) for key, column in header_map.items()}
    missing = [REQUIRED_COLUMNS[key] for key, value in values.items() if value is None]
    if missing:
        raise FormatError(f"Row {row_number}: missing value for {', '.join(missing)}")

    category = values["category"].strip()
    # Rows with an empty memo still carry their category name
    description = clean_description(values["memo"]) or category
    if not validate_description(description):
        raise FormatError(f"Row {row_number}: description is empty or too long")

    txn_type = (
        TransactionType.INCOME
        if "ingreso" in values["flow"].lower() or is_income_description(description)
        else TransactionType.EXPENSE
    )

    try:
        txn_date = parse_date(values["date"])
        amount = parse_amount(values["amount"])
    except FormatError as e:
        raise FormatError(f"Row {row_number}: {e}") from e

    if amount == 0:
        raise FormatError(f"Row {row_number}: amount must be greater than zero")

    defaulted = txn_type == TransactionType.EXPENSE and match_payment_method(description) is None

    return CsvStatementRow(
        date=txn_date,
        type=txn_type,
        description=description,
        amount=amount,
        category=category,
        detected_payment_method=detect_payment_method(description, txn_type),
        payment_method_defaulted=defaulted,
        installments=detect_installments(description),
        original_line=row_number,
    )


def _parse(contents: bytes) -> ParseResult:
    text = validate_csv_contents(contents)
    reader = csv.DictReader(StringIO(text), delimiter=_detect_delimiter(text))

    header_map = _build_header_map(reader.fieldnames or [])
    missing = [column for key, column in REQUIRED_COLUMNS.items() if key not in header_map]
    if missing:
        raise FormatError(f"Invalid CSV format: missing required columns: {', '.join(missing)}")

    result = ParseResult(transactions=[])
    for index, row in enumerate(reader):
        result.total_rows_processed += 1
        if _is_blank_row(row):
            result.rows_skipped += 1
            continue
        # +2: header row and 1-based numbering
        result.transactions.append(_parse_row(row, header_map, index + 2))

    return result


def parse_statement_csv(contents: bytes) -> list[CsvStatementRow]:
    """
    Parse a CSV export into candidate transactions.

    Raises:
        FormatError: If the header lacks a required column or any row is invalid
    """
    return _parse(contents).transactions


def apply_filters(rows: list[CsvStatementRow], filters: CsvFilters | None) -> list[CsvStatementRow]:
    """Keep rows inside the inclusive date range and payment-method set."""
    if filters is None:
        return list(rows)

    filtered = rows
    if filters.date_from:
        filtered = [row for row in filtered if row.date >= filters.date_from]
    if filters.date_to:
        filtered = [row for row in filtered if row.date <= filters.date_to]
    if filters.payment_methods:
        wanted = {name.lower() for name in filters.payment_methods}
        filtered = [
            row
            for row in filtered
            if row.detected_payment_method and row.detected_payment_method.lower() in wanted
        ]
    return list(filtered)


def generate_warnings(rows: list[CsvStatementRow]) -> list[str]:
    """Generate review warnings for the parsed rows."""
    warnings: list[str] = []

    defaulted = sum(1 for row in rows if row.payment_method_defaulted)
    if defaulted > 0:
        warnings.append(
            f"{defaulted} records without a recognizable payment method were "
            f"set to {FALLBACK_PAYMENT_METHOD} - please review"
        )

    without_category = sum(1 for row in rows if not row.category)
    if without_category > 0:
        warnings.append(f"{without_category} records without category")

    return warnings


def parse_with_filters(contents: bytes, filters: CsvFilters | None = None) -> CsvParseOutcome:
    """Full parse with filters and warnings."""
    result = _parse(contents)
    filtered = apply_filters(result.transactions, filters)
    return CsvParseOutcome(
        rows=filtered,
        total_records=len(result.transactions),
        filtered_records=len(filtered),
        warnings=generate_warnings(filtered),
        parse_result=result,
    )
