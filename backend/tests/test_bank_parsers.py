"""Tests for the bank-specific statement line parsers."""

from datetime import date
from decimal import Decimal

from backend.models import Currency, TransactionType
from backend.parsers.amex_pdf import AmexParser
from backend.parsers.galicia_pdf import AmexGaliciaParser, GaliciaParser, is_amex_galicia
from backend.parsers.santander_pdf import SantanderParser

SANTANDER_LINES = [
    "BANCO SANTANDER ARGENTINA",
    "VISA",
    "25 Agosto  17 005903 *  SUR GAS                 63.000,00",
    "           18 146455 *  MERPAGO*TIN             18.000,00",
    " 750064 * PAX ASSISTANCE C.01/12                18.939,43",
    "25 Septiembre 02 370216 TICKETMASTER CANADA  CAD  158,65  116,16",
]

AMEX_GALICIA_LINES = [
    "Banco de Galicia",
    "AMERICAN EXPRESS",
    "15-01-25*IGNORED BEFORE SECTION1234561.000,00",
    "DETALLE DEL CONSUMO",
    "FECHA REFERENCIA CUOTA COMPROBANTE PESOS DOLARES",
    "15-01-25*FRAVEGA 03/06630489133.333,35",
    "02-03-25 NETFLIX.COM1234564.299,00",
    "10-03-25 AMAZON PRIME1234560,00 15,99",
    "12-03-25 EUBER TRIP1234565,50",
    "20-03-25*SUPERMERCADO",
    "123456",
    "12.000,00",
    "Total Consumos de JUAN PEREZ 162.632,35",
    "05-04-25*AFTER TOTAL1234561.000,00",
]


class TestSantanderParser:
    """Test month-header tracking and the three line shapes."""

    def parse(self, lines, month=8, year=2025):
        parser = SantanderParser()
        return parser.parse_lines(lines, parser.new_state(month, year))

    def test_parses_all_transactions(self):
        result = self.parse(SANTANDER_LINES)
        assert len(result.transactions) == 4

    def test_month_header_line(self):
        txn = self.parse(SANTANDER_LINES).transactions[0]
        assert txn.date == date(2025, 8, 17)
        assert txn.description == "SUR GAS"
        assert txn.amount == Decimal("63000.00")
        assert txn.type == TransactionType.EXPENSE
        assert txn.currency == Currency.ARS
        assert txn.original_line == 3

    def test_day_line_keeps_tracked_month(self):
        txn = self.parse(SANTANDER_LINES).transactions[1]
        assert txn.date == date(2025, 8, 18)
        assert txn.description == "MERPAGO*TIN"

    def test_continuation_line_reuses_last_day(self):
        txn = self.parse(SANTANDER_LINES).transactions[2]
        assert txn.date == date(2025, 8, 18)
        assert txn.installments == "1/12"

    def test_foreign_currency_line_uses_dollar_column(self):
        txn = self.parse(SANTANDER_LINES).transactions[3]
        assert txn.date == date(2025, 9, 2)
        assert txn.description == "TICKETMASTER CANADA"
        assert txn.amount == Decimal("116.16")
        assert txn.currency == Currency.USD

    def test_header_year_overrides_initial_state(self):
        result = self.parse(["24 Diciembre  30 005903 *  REGALOS  5.000,00"], month=1, year=2025)
        assert result.transactions[0].date == date(2024, 12, 30)

    def test_invalid_day_is_a_warning(self):
        """A bad line is skipped and the scan keeps going."""
        lines = [
            "25 Febrero  30 005903 *  TIENDA  1.000,00",
            "           10 146455 *  KIOSCO  500,00",
        ]
        result = self.parse(lines)
        assert len(result.transactions) == 1
        assert result.transactions[0].date == date(2025, 2, 10)
        assert len(result.warnings) == 1
        assert result.warnings[0].startswith("Line 1: skipped")

    def test_non_transaction_lines_are_counted_as_skipped(self):
        result = self.parse(SANTANDER_LINES)
        assert result.total_rows_processed == 6
        assert result.rows_skipped == 2


class TestGaliciaParser:
    """Test the single-line and three-line Visa Galicia layouts."""

    def setup_method(self):
        self.parser = GaliciaParser()
        self.state = self.parser.new_state(8, 2024)

    def test_three_line_record(self):
        lines = ["24-08-24*STORE 12/12", "003495", "1.249,16"]
        match = self.parser.match_record(lines, 0, self.state)
        assert match.consumed == 3
        assert match.transaction.installments == "12/12"
        assert match.transaction.amount == Decimal("1249.16")
        assert match.transaction.date == date(2024, 8, 24)

    def test_three_line_record_advances_past_group(self):
        lines = ["24-08-24*STORE 12/12", "003495", "1.249,16", "25-08-24 * CAFE 000111 2.000,00"]
        result = self.parser.parse_lines(lines, self.state)
        assert [txn.original_line for txn in result.transactions] == [1, 4]
        assert result.total_rows_processed == 2

    def test_three_line_requires_numeric_reference(self):
        lines = ["24-08-24*STORE", "NOT A REFERENCE", "1.249,16"]
        assert self.parser.match_record(lines, 0, self.state) is None

    def test_three_line_needs_enough_lines(self):
        assert self.parser.match_record(["24-08-24*STORE", "003495"], 0, self.state) is None

    def test_spaced_single_line(self):
        line = "18-03-25 * MERPAGO*NIKEARGENTINA 01/06 061987 24.833,00"
        match = self.parser.match_record([line], 0, self.state)
        assert match.consumed == 1
        assert match.transaction.description == "MERPAGO*NIKEARGENTINA 01/06"
        assert match.transaction.installments == "1/6"
        assert match.transaction.amount == Decimal("24833.00")

    def test_spaced_line_with_ungrouped_amount(self):
        """A separate reference token keeps the amount digits together."""
        txn = self.parser.match_record(["18-03-25 * FOO 061987 1234567,00"], 0, self.state).transaction
        assert txn.description == "FOO"
        assert txn.amount == Decimal("1234567.00")

    def test_concatenated_line_borrows_installment_digits(self):
        line = "18-03-25*MERPAGO*NIKEARGENTINA 01/0606198724.833,00"
        txn = self.parser.match_record([line], 0, self.state).transaction
        assert txn.description == "MERPAGO*NIKEARGENTINA"
        assert txn.installments == "1/6"
        assert txn.amount == Decimal("24833.00")
        assert txn.date == date(2025, 3, 18)

    def test_concatenated_line_without_installments(self):
        txn = self.parser.match_record(["18-03-25*NETFLIX.COM0612344.299,00"], 0, self.state).transaction
        assert txn.description == "NETFLIX.COM"
        assert txn.amount == Decimal("4299.00")
        assert txn.installments is None

    def test_unrelated_line(self):
        assert self.parser.match_record(["TOTAL A PAGAR 123.456,00"], 0, self.state) is None


class TestAmexGaliciaParser:
    """Test the section-bounded Amex table used by Galicia."""

    def parse(self):
        parser = AmexGaliciaParser()
        return parser.parse_lines(AMEX_GALICIA_LINES, parser.new_state(3, 2025))

    def test_detects_layout(self):
        assert is_amex_galicia("\n".join(AMEX_GALICIA_LINES)) is True
        assert is_amex_galicia("Banco de Galicia\nVISA\nDETALLE DEL CONSUMO") is False

    def test_only_section_lines_are_parsed(self):
        descriptions = [txn.description for txn in self.parse().transactions]
        assert "IGNORED BEFORE SECTION" not in descriptions
        assert "AFTER TOTAL" not in descriptions
        assert len(descriptions) == 5

    def test_installment_date_is_shifted(self):
        """Installment 3 of a January purchase is charged in March."""
        txn = self.parse().transactions[0]
        assert txn.description == "FRAVEGA"
        assert txn.installments == "3/6"
        assert txn.date == date(2025, 3, 15)
        assert txn.amount == Decimal("133333.35")

    def test_plain_line(self):
        txn = self.parse().transactions[1]
        assert txn.description == "NETFLIX.COM"
        assert txn.amount == Decimal("4299.00")
        assert txn.currency == Currency.ARS

    def test_dollar_column(self):
        txn = self.parse().transactions[2]
        assert txn.description == "AMAZON PRIME"
        assert txn.amount == Decimal("15.99")
        assert txn.currency == Currency.USD

    def test_foreign_marker(self):
        txn = self.parse().transactions[3]
        assert txn.description == "UBER TRIP"
        assert txn.currency == Currency.USD

    def test_three_line_record(self):
        txn = self.parse().transactions[4]
        assert txn.description == "SUPERMERCADO"
        assert txn.amount == Decimal("12000.00")
        assert txn.date == date(2025, 3, 20)


class TestAmexParser:
    """Test both date conventions of the fallback parser."""

    def parse(self, lines):
        parser = AmexParser()
        return parser.parse_lines(lines, parser.new_state(3, 2025))

    def test_slash_date_with_year(self):
        txn = self.parse(["15/03/2025 RESTAURANT PALERMO 12.500,00"]).transactions[0]
        assert txn.date == date(2025, 3, 15)
        assert txn.description == "RESTAURANT PALERMO"
        assert txn.amount == Decimal("12500.00")

    def test_slash_date_without_year_uses_statement_year(self):
        txn = self.parse(["16/03 UBER TRIP 3.200,00"]).transactions[0]
        assert txn.date == date(2025, 3, 16)

    def test_dash_date(self):
        txn = self.parse(["17-03-25 * NETFLIX.COM 4.299,00"]).transactions[0]
        assert txn.date == date(2025, 3, 17)
        assert txn.description == "NETFLIX.COM"

    def test_usd_indicator_in_description(self):
        txn = self.parse(["18/03/25 SPOTIFY USD 10,99"]).transactions[0]
        assert txn.currency == Currency.USD

    def test_zero_amount_is_a_warning(self):
        result = self.parse(["18/03/25 AJUSTE 0,00", "19/03/25 CAFE 1.000,00"])
        assert len(result.transactions) == 1
        assert "zero amount" in result.warnings[0]

    def test_invalid_date_is_a_warning(self):
        result = self.parse(["31/02/2025 TIENDA 1.000,00"])
        assert result.transactions == []
        assert result.rows_skipped == 1
