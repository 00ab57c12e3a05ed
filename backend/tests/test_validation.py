"""Tests for the parser validation module."""

import logging

import pytest

from backend.parsers.validation import (
    FormatError,
    ParseResult,
    clean_description,
    log_parse_result,
    validate_csv_contents,
    validate_description,
    validate_file_contents,
)


class TestValidateFileContents:
    """Test file contents validation."""

    def test_rejects_empty_contents(self):
        """Should reject empty file contents."""
        with pytest.raises(FormatError, match="empty"):
            validate_file_contents(b"")

    def test_rejects_too_small_contents(self):
        """Should reject files smaller than minimum size."""
        with pytest.raises(FormatError, match="too small"):
            validate_file_contents(b"abc", min_size=10)

    def test_accepts_valid_contents(self):
        """Should accept valid file contents."""
        validate_file_contents(b"Valid file contents here", min_size=10)

    def test_format_error_is_value_error(self):
        """Callers catching ValueError also catch format errors."""
        assert issubclass(FormatError, ValueError)


class TestValidateCsvContents:
    """Test CSV contents validation."""

    def test_decodes_utf8(self):
        """Should decode UTF-8 content."""
        result = validate_csv_contents("Fecha,Categoría\n01/02/2025,Super".encode("utf-8"))
        assert "Categoría" in result

    def test_strips_utf8_bom(self):
        """A BOM must not end up glued to the first header."""
        result = validate_csv_contents(b"\xef\xbb\xbfFecha,Importe\n01/02/2025,100")
        assert result.startswith("Fecha")

    def test_decodes_latin1(self):
        """Should fall back to latin-1 for legacy exports."""
        result = validate_csv_contents("Fecha;Categoría\n01/02/2025;Super".encode("latin-1"))
        assert "Categoría" in result

    def test_accepts_semicolon_delimiter(self):
        """Spanish-locale exports use semicolons."""
        result = validate_csv_contents(b"Fecha;Importe\n01/02/2025;100")
        assert "Fecha;Importe" in result

    def test_rejects_invalid_csv(self):
        """Should reject files without delimiters."""
        with pytest.raises(FormatError, match="not.*valid CSV"):
            validate_csv_contents(b"This is not a CSV file")

    def test_rejects_empty_csv(self):
        """Should reject empty content."""
        with pytest.raises(FormatError, match="empty"):
            validate_csv_contents(b"")


class TestValidateDescription:
    """Test description validation."""

    def test_accepts_normal_descriptions(self):
        """Should accept normal transaction descriptions."""
        assert validate_description("SUPERMERCADO DIA") is True
        assert validate_description("MERPAGO*TIN") is True

    def test_rejects_empty_descriptions(self):
        """Should reject empty descriptions."""
        assert validate_description("") is False
        assert validate_description("   ") is False

    def test_rejects_too_long_descriptions(self):
        """Should reject overly long descriptions."""
        assert validate_description("A" * 600) is False


class TestCleanDescription:
    """Test description cleanup."""

    def test_collapses_whitespace(self):
        """Layout padding from PDFs is collapsed."""
        assert clean_description("  SUR   GAS \t 24 ") == "SUR GAS 24"

    def test_empty_stays_empty(self):
        assert clean_description("   ") == ""


class TestParseResult:
    """Test ParseResult dataclass."""

    def test_success_rate_calculation(self):
        """Should calculate success rate correctly."""
        result = ParseResult(transactions=[1, 2, 3], total_rows_processed=4)
        assert result.success_rate == 75.0

    def test_success_rate_zero_rows(self):
        """Should handle zero rows processed."""
        result = ParseResult(transactions=[], total_rows_processed=0)
        assert result.success_rate == 0.0

    def test_default_lists_are_independent(self):
        """Each result gets its own warnings list."""
        first = ParseResult(transactions=[])
        second = ParseResult(transactions=[])
        first.warnings.append("x")
        assert second.warnings == []

    def test_log_includes_success_rate(self, caplog):
        """The summary line reports the share of rows that became transactions."""
        result = ParseResult(transactions=[1, 2, 3], total_rows_processed=4, rows_skipped=1)
        with caplog.at_level(logging.INFO, logger="cuentas.parsers"):
            log_parse_result(result, "CSV import")
        assert "CSV import: Parsed 3 transactions (processed 4, skipped 1, 75.0% parsed)" in caplog.text
