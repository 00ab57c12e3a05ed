"""Shared validation utilities and error types for statement parsers."""

import logging
from dataclasses import dataclass, field
from typing import Any

# Configure logging for parsers
logger = logging.getLogger("cuentas.parsers")


@dataclass
class ParseResult:
    """Result of parsing a financial statement."""

    transactions: list[Any]
    total_rows_processed: int = 0
    rows_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        """Calculate the parsing success rate."""
        if self.total_rows_processed == 0:
            return 0.0
        parsed = len(self.transactions)
        return (parsed / self.total_rows_processed) * 100


class FormatError(ValueError):
    """Raised when a file or value cannot be parsed. Fatal for the whole file."""

    pass


class ExtractionError(Exception):
    """Raised when text cannot be extracted from a PDF."""

    pass


def validate_file_contents(contents: bytes, min_size: int = 10) -> None:
    """
    Validate file contents before parsing.

    Args:
        contents: Raw file bytes
        min_size: Minimum expected file size in bytes

    Raises:
        FormatError: If validation fails
    """
    if not contents:
        raise FormatError("File is empty")

    if len(contents) < min_size:
        raise FormatError(f"File too small ({len(contents)} bytes), minimum {min_size} bytes expected")


def validate_csv_contents(contents: bytes) -> str:
    """
    Validate and decode CSV contents.

    Args:
        contents: Raw CSV file bytes

    Returns:
        Decoded text content

    Raises:
        FormatError: If validation fails
    """
    validate_file_contents(contents)

    # utf-8-sig first so a BOM never ends up glued to the first header
    encodings = ["utf-8-sig", "latin-1", "cp1252"]
    text = None

    for encoding in encodings:
        try:
            text = contents.decode(encoding)
            break
        except UnicodeDecodeError:
            continue

    if text is None:
        raise FormatError("Could not decode file with any supported encoding (utf-8, latin-1, cp1252)")

    lines = text.strip().splitlines()
    if not lines:
        raise FormatError("CSV file has no content")

    first_line = lines[0]
    if "," not in first_line and ";" not in first_line and "\t" not in first_line:
        raise FormatError("File does not appear to be a valid CSV (no delimiters found)")

    return text


def validate_description(description: str, min_length: int = 1, max_length: int = 500) -> bool:
    """
    Validate a transaction description.

    Args:
        description: The description to validate
        min_length: Minimum length
        max_length: Maximum length

    Returns:
        True if valid, False otherwise
    """
    if not description:
        return False

    description = description.strip()
    length = len(description)

    return min_length <= length <= max_length


def clean_description(description: str) -> str:
    """Collapse runs of whitespace and trim."""
    return " ".join(description.split())


def log_parse_result(result: ParseResult, parser_name: str) -> None:
    """
    Log parsing results for debugging.

    Args:
        result: The parse result
        parser_name: Name of the parser
    """
    logger.info(
        f"{parser_name}: Parsed {len(result.transactions)} transactions "
        f"(processed {result.total_rows_processed}, "
        f"skipped {result.rows_skipped}, {result.success_rate:.1f}% parsed)"
    )

    if result.errors:
        for error in result.errors[:5]:  # Log first 5 errors
            logger.warning(f"{parser_name}: {error}")

    if result.warnings:
        for warning in result.warnings[:5]:  # Log first 5 warnings
            logger.debug(f"{parser_name}: {warning}")
