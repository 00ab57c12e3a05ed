"""Data models for Cuentas."""

from datetime import date
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

INSTALLMENTS_FORMAT = r"^\d+/\d+$"


class TransactionType(str, Enum):
    """Direction of a transaction. Amounts are always positive."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class Currency(str, Enum):
    """Currencies that appear on imported statements."""

    ARS = "ARS"
    USD = "USD"


class Bank(str, Enum):
    """Statement issuers with a dedicated PDF layout."""

    SANTANDER = "SANTANDER"
    GALICIA = "GALICIA"
    AMEX = "AMEX"
    UNKNOWN = "UNKNOWN"


class Formato(str, Enum):
    """Lump-sum vs. installment purchase, derived from the installments string."""

    CONTADO = "contado"
    CUOTAS = "cuotas"


class ImportSource(str, Enum):
    """Where a committed transaction came from."""

    CSV = "csv"
    PDF = "pdf"


def installments_parts(value: str) -> tuple[int, int] | None:
    """Split a ``current/total`` string, or None if it is not a valid plan."""
    current_str, sep, total_str = value.partition("/")
    if not sep or not current_str.isdigit() or not total_str.isdigit():
        return None
    current, total = int(current_str), int(total_str)
    if current <= 0 or total <= 0 or current > total:
        return None
    return current, total


class ParsedCandidateTransaction(BaseModel):
    """A parsed-but-not-yet-persisted transaction produced by a statement parser."""

    model_config = ConfigDict(frozen=True)

    date: date
    type: TransactionType = TransactionType.EXPENSE
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)  # Sign is carried by `type`
    currency: Currency = Currency.ARS
    detected_payment_method: str | None = None
    installments: str | None = Field(default=None, pattern=INSTALLMENTS_FORMAT)
    original_line: int = Field(ge=1)  # 1-based row/line in the source

    @field_validator("installments")
    @classmethod
    def _check_installments(cls, value: str | None) -> str | None:
        if value is not None and installments_parts(value) is None:
            raise ValueError(f"installments must be current/total with 0 < current <= total, got {value!r}")
        return value


class CsvStatementRow(ParsedCandidateTransaction):
    """A candidate transaction from the CSV export, with its category column."""

    category: str = ""
    payment_method_defaulted: bool = False  # No payment-method rule matched


class StatementPeriod(BaseModel):
    """Month/year a statement covers."""

    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)


class BankStatementParseResult(BaseModel):
    """Result of parsing a bank PDF statement."""

    bank: Bank
    detected_payment_method: str = "Unknown"
    transactions: list[ParsedCandidateTransaction] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    statement_period: StatementPeriod | None = None
    raw_text: str | None = None  # Kept so the caller can fall back to manual entry
    lines_processed: int = 0
    lines_skipped: int = 0

    @property
    def total_records(self) -> int:
        return len(self.transactions)


class CsvFilters(BaseModel):
    """Optional filters applied to a CSV preview. Accepts camelCase keys from the upload form."""

    model_config = ConfigDict(populate_by_name=True)

    date_from: date | None = Field(default=None, alias="dateFrom")
    date_to: date | None = Field(default=None, alias="dateTo")
    payment_methods: list[str] | None = Field(default=None, alias="paymentMethods")


class PaymentMethod(BaseModel):
    """A user's payment method (card, account, cash)."""

    id: str
    name: str


class Category(BaseModel):
    """A user's spending category."""

    id: str
    name: str
    group: str | None = None  # Name of the parent grouping


class CsvPreviewRow(BaseModel):
    """A CSV candidate enriched with suggested mappings."""

    date: date
    type: TransactionType
    description: str
    amount: Decimal
    category: str
    detected_payment_method: str | None
    installments: str | None
    original_row: int
    suggested_payment_method_id: str | None = None
    suggested_category_id: str | None = None


class PdfPreviewRow(BaseModel):
    """A PDF candidate enriched with a suggested category."""

    date: date
    description: str
    amount: Decimal
    currency: Currency
    installments: str | None
    original_line: int
    suggested_category_id: str | None = None


class CsvPreviewSummary(BaseModel):
    total_records: int
    filtered_records: int
    will_import: int


class PdfPreviewSummary(BaseModel):
    total_records: int
    will_import: int


class CsvImportPreview(BaseModel):
    """Response of the CSV preview phase."""

    preview: list[CsvPreviewRow]
    summary: CsvPreviewSummary
    warnings: list[str]
    available_payment_methods: list[PaymentMethod]
    available_categories: list[Category]


class PdfImportPreview(BaseModel):
    """Response of the PDF preview phase."""

    bank: Bank
    detected_payment_method: str
    detected_payment_method_id: str | None = None
    preview: list[PdfPreviewRow]
    summary: PdfPreviewSummary
    warnings: list[str]
    statement_period: StatementPeriod | None = None
    available_payment_methods: list[PaymentMethod]
    available_categories: list[Category]


class ConfirmCsvTransaction(BaseModel):
    """A reviewed CSV row the client asks to persist.

    Mapping fields are validated per row during confirm, not here, so one bad
    row cannot reject the whole request.
    """

    date: date
    type: TransactionType
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    currency: Currency = Currency.ARS
    category_id: str | None = None
    payment_method_id: str
    installments: str | None = None
    recurring_series_id: str | None = None


class ConfirmCsvRequest(BaseModel):
    transactions: list[ConfirmCsvTransaction]
    create_missing_categories: bool = False


class ConfirmPdfTransaction(BaseModel):
    """A reviewed PDF row. PDF rows are always expenses."""

    date: date
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    currency: Currency = Currency.ARS
    category_id: str | None = None
    installments: str | None = None


class ConfirmPdfRequest(BaseModel):
    bank: Bank = Bank.UNKNOWN
    payment_method_id: str
    statement_period: StatementPeriod | None = None
    transactions: list[ConfirmPdfTransaction]
    create_missing_categories: bool = False


class ImportRowError(BaseModel):
    row: int  # 1-based position in the confirm request
    message: str


class ImportSummary(BaseModel):
    """Result of the confirm phase."""

    imported: int = 0
    failed: int = 0
    new_categories_created: int = 0
    errors: list[ImportRowError] = Field(default_factory=list)


class TransactionCreate(BaseModel):
    """Transaction data for creation (before ID assignment)."""

    user_id: str
    date: date
    type: TransactionType
    description: str
    amount: Decimal
    currency: Currency = Currency.ARS
    category_id: str
    payment_method_id: str
    installments: str | None = None
    formato: Formato = Formato.CONTADO
    source: ImportSource
    series_id: str | None = None


class Transaction(TransactionCreate):
    """A committed transaction."""

    id: str

    model_config = ConfigDict(from_attributes=True)
