"""Two-phase statement import: preview parsed rows, then persist the reviewed ones.

Preview never writes. Confirm processes rows one at a time so that a bad row
is reported in the summary while the rest of the batch still goes in.
"""

import logging
import re
import unicodedata

from backend.config import settings
from backend.db.sqlite import ConstraintError, Database, db
from backend.models import (
    Category,
    ConfirmCsvRequest,
    ConfirmCsvTransaction,
    ConfirmPdfRequest,
    CsvFilters,
    CsvImportPreview,
    CsvPreviewRow,
    CsvPreviewSummary,
    Formato,
    ImportRowError,
    ImportSource,
    ImportSummary,
    PaymentMethod,
    PdfImportPreview,
    PdfPreviewRow,
    PdfPreviewSummary,
    StatementPeriod,
    TransactionCreate,
    TransactionType,
)
from backend.parsers.heuristics import is_valid_installments
from backend.parsers.statement_csv import parse_with_filters
from backend.parsers.statement_pdf import parse_statement_pdf
from backend.parsers.validation import ParseResult, log_parse_result

logger = logging.getLogger(__name__)

DETECTED_ID_PREFIX = "detected_"


class RowImportError(Exception):
    """Raised when a single confirm row cannot be imported."""

    pass


def _normalize_name(name: str) -> str:
    decomposed = unicodedata.normalize("NFKD", name)
    without_accents = "".join(c for c in decomposed if not unicodedata.combining(c))
    return re.sub(r"\s+", " ", without_accents.lower()).strip()


def suggest_payment_method_id(label: str | None, payment_methods: list[PaymentMethod]) -> str | None:
    """
    Match a detected payment-method label against the user's payment methods.

    Tries, in order: exact name, name ignoring case/accents/spacing, either
    name containing the other, and the user's name containing every word of
    the label.
    """
    if not label or not payment_methods:
        return None

    label_lower = label.lower().strip()
    for pm in payment_methods:
        if pm.name.lower().strip() == label_lower:
            return pm.id

    normalized = _normalize_name(label)
    for pm in payment_methods:
        if _normalize_name(pm.name) == normalized:
            return pm.id

    for pm in payment_methods:
        name = _normalize_name(pm.name)
        if name and (normalized in name or name in normalized):
            return pm.id

    words = normalized.split()
    if len(words) > 1:
        for pm in payment_methods:
            name = _normalize_name(pm.name)
            if all(word in name for word in words):
                return pm.id

    return None


def suggest_category_id(name: str | None, categories: list[Category]) -> str | None:
    """Find a category with exactly this name, ignoring case."""
    if not name or not categories:
        return None
    name_lower = name.lower().strip()
    for category in categories:
        if category.name.lower().strip() == name_lower:
            return category.id
    return None


def find_category_by_description(description: str, categories: list[Category]) -> str | None:
    """Find a category whose name appears in the description, or vice versa."""
    if not description or not categories:
        return None
    description_lower = description.lower()
    for category in categories:
        category_lower = category.name.lower()
        if category_lower and (category_lower in description_lower or description_lower in category_lower):
            return category.id
    return None


def _available_payment_methods(labels: list[str | None], payment_methods: list[PaymentMethod]) -> list[PaymentMethod]:
    """The user's payment methods plus placeholders for detected labels they don't have."""
    available = {pm.name.lower(): pm for pm in payment_methods}
    for label in labels:
        if label and label.lower() not in available:
            available[label.lower()] = PaymentMethod(id=f"{DETECTED_ID_PREFIX}{label}", name=label)
    return list(available.values())


def preview_csv(
    contents: bytes,
    filters: CsvFilters | None,
    user_id: str,
    database: Database | None = None,
) -> CsvImportPreview:
    """
    Parse and filter a CSV export, suggesting a payment method and category per row.

    Raises:
        FormatError: If the file is not a valid export
    """
    database = database or db
    outcome = parse_with_filters(contents, filters)
    log_parse_result(outcome.parse_result, "CSV import")

    payment_methods = database.find_payment_methods_by_user(user_id)
    categories = database.find_categories_by_user(user_id)

    preview = [
        CsvPreviewRow(
            date=row.date,
            type=row.type,
            description=row.description,
            amount=row.amount,
            category=row.category,
            detected_payment_method=row.detected_payment_method,
            installments=row.installments,
            original_row=row.original_line,
            suggested_payment_method_id=suggest_payment_method_id(row.detected_payment_method, payment_methods),
            suggested_category_id=suggest_category_id(row.category, categories),
        )
        for row in outcome.rows
    ]

    return CsvImportPreview(
        preview=preview,
        summary=CsvPreviewSummary(
            total_records=outcome.total_records,
            filtered_records=outcome.filtered_records,
            will_import=outcome.filtered_records,
        ),
        warnings=outcome.warnings,
        available_payment_methods=_available_payment_methods(
            [row.detected_payment_method for row in outcome.rows], payment_methods
        ),
        available_categories=categories,
    )


def preview_pdf(contents: bytes, user_id: str, database: Database | None = None) -> PdfImportPreview:
    """
    Parse a bank statement PDF and suggest the card and a category per row.

    Raises:
        ExtractionError: If the PDF cannot be read
    """
    database = database or db
    result = parse_statement_pdf(contents)
    log_parse_result(
        ParseResult(
            transactions=result.transactions,
            total_rows_processed=result.lines_processed,
            rows_skipped=result.lines_skipped,
            warnings=result.warnings,
        ),
        f"PDF import ({result.bank.value})",
    )

    payment_methods = database.find_payment_methods_by_user(user_id)
    categories = database.find_categories_by_user(user_id)

    detected_payment_method_id = None
    if result.detected_payment_method != "Unknown":
        detected_payment_method_id = next(
            (pm.id for pm in payment_methods if pm.name.lower() == result.detected_payment_method.lower()),
            None,
        )

    preview = [
        PdfPreviewRow(
            date=txn.date,
            description=txn.description,
            amount=txn.amount,
            currency=txn.currency,
            installments=txn.installments,
            original_line=txn.original_line,
            suggested_category_id=find_category_by_description(txn.description, categories),
        )
        for txn in result.transactions
    ]

    return PdfImportPreview(
        bank=result.bank,
        detected_payment_method=result.detected_payment_method,
        detected_payment_method_id=detected_payment_method_id,
        preview=preview,
        summary=PdfPreviewSummary(total_records=result.total_records, will_import=result.total_records),
        warnings=result.warnings,
        statement_period=result.statement_period,
        available_payment_methods=payment_methods,
        available_categories=categories,
    )


def _resolve_category(
    txn: ConfirmCsvTransaction,
    user_id: str,
    valid_category_ids: set[str],
    category_cache: dict[str, str],
    create_missing_categories: bool,
    group_id: str | None,
    database: Database,
    summary: ImportSummary,
) -> str:
    if txn.category_id:
        if txn.category_id not in valid_category_ids:
            raise RowImportError("Invalid category")
        return txn.category_id

    if not create_missing_categories:
        raise RowImportError("Category is required")

    name = txn.description[: settings.category_name_max_length].strip()
    cached = category_cache.get(name.lower())
    if cached:
        return cached

    try:
        category = database.create_category(user_id, name, group_id)
    except ConstraintError as e:
        raise RowImportError(str(e)) from e

    category_cache[name.lower()] = category.id
    valid_category_ids.add(category.id)
    summary.new_categories_created += 1
    return category.id


def confirm_rows(
    rows: list[ConfirmCsvTransaction],
    user_id: str,
    create_missing_categories: bool,
    source: ImportSource,
    database: Database,
) -> ImportSummary:
    """
    Persist reviewed rows one by one.

    A failing row is counted in ``failed`` and reported with its 1-based
    position; the remaining rows are still attempted.
    """
    summary = ImportSummary()

    valid_payment_method_ids = {pm.id for pm in database.find_payment_methods_by_user(user_id)}
    categories = database.find_categories_by_user(user_id)
    valid_category_ids = {category.id for category in categories}
    # Shared across rows so repeated descriptions reuse one new category
    category_cache = {category.name.lower(): category.id for category in categories}

    group_id = None
    if create_missing_categories:
        group_id = database.get_or_create_category_group(user_id, settings.import_category_group)

    for index, txn in enumerate(rows):
        try:
            if txn.payment_method_id not in valid_payment_method_ids:
                raise RowImportError("Invalid payment method")
            # Checked before any category is created for the row
            if txn.installments and not is_valid_installments(txn.installments):
                raise RowImportError("Invalid installments format. Expected: n1/n2")

            category_id = _resolve_category(
                txn,
                user_id,
                valid_category_ids,
                category_cache,
                create_missing_categories,
                group_id,
                database,
                summary,
            )

            database.create_transaction(
                TransactionCreate(
                    user_id=user_id,
                    date=txn.date,
                    type=txn.type,
                    description=txn.description,
                    amount=txn.amount,
                    currency=txn.currency,
                    category_id=category_id,
                    payment_method_id=txn.payment_method_id,
                    installments=txn.installments or None,
                    formato=Formato.CUOTAS if txn.installments else Formato.CONTADO,
                    source=source,
                    series_id=txn.recurring_series_id,
                )
            )
            summary.imported += 1
        except (RowImportError, ConstraintError) as e:
            summary.failed += 1
            summary.errors.append(ImportRowError(row=index + 1, message=str(e)))

    logger.info(
        f"{source.value} import for user {user_id}: imported {summary.imported}, "
        f"failed {summary.failed}, new categories {summary.new_categories_created}"
    )
    return summary


def confirm_csv_import(request: ConfirmCsvRequest, user_id: str, database: Database | None = None) -> ImportSummary:
    """Persist reviewed CSV rows."""
    return confirm_rows(
        request.transactions,
        user_id,
        request.create_missing_categories,
        ImportSource.CSV,
        database or db,
    )


def _count_unusual_dates(rows: list, period: StatementPeriod) -> int:
    """Count non-installment rows dated outside the statement month and the month before."""
    previous = (period.year, period.month - 1) if period.month > 1 else (period.year - 1, 12)
    expected = {(period.year, period.month), previous}
    return sum(1 for txn in rows if not txn.installments and (txn.date.year, txn.date.month) not in expected)


def confirm_pdf_import(request: ConfirmPdfRequest, user_id: str, database: Database | None = None) -> ImportSummary:
    """
    Persist reviewed statement rows as expenses on the statement's card.

    Dates outside the statement period are logged, never rejected: cards
    carry purchases from earlier months.
    """
    if request.statement_period:
        unusual = _count_unusual_dates(request.transactions, request.statement_period)
        if unusual > 0:
            logger.info(
                f"PDF import ({request.bank.value}): {unusual} transactions dated outside "
                f"{request.statement_period.month:02d}/{request.statement_period.year}"
            )

    rows = [
        ConfirmCsvTransaction(
            date=txn.date,
            type=TransactionType.EXPENSE,
            description=txn.description,
            amount=txn.amount,
            currency=txn.currency,
            category_id=txn.category_id,
            payment_method_id=request.payment_method_id,
            installments=txn.installments,
        )
        for txn in request.transactions
    ]
    return confirm_rows(rows, user_id, request.create_missing_categories, ImportSource.PDF, database or db)
