"""Ordered pattern tables for classifying statement descriptions.

Every table is evaluated top to bottom and the first match wins, so
specific patterns must sit above the generic ones they overlap with.
"""

import re
from dataclasses import dataclass

from backend.models import INSTALLMENTS_FORMAT, Currency, TransactionType, installments_parts


@dataclass(frozen=True)
class PatternRule:
    """A label and the pattern that selects it."""

    label: str
    pattern: re.Pattern

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rule(label: str, regex: str) -> PatternRule:
    return PatternRule(label, re.compile(regex, re.IGNORECASE))


INCOME_LABEL = "Ingreso"
FALLBACK_PAYMENT_METHOD = "Efectivo"

PAYMENT_METHOD_RULES: tuple[PatternRule, ...] = (
    # Brand followed by the issuing bank (or its initial): "visa g", "amex santander"
    _rule("Visa Galicia", r"\bvisa\s+(?:g|galicia)\b"),
    _rule("Visa Santander", r"\bvisa\s+(?:s|santander)\b"),
    _rule("Amex Galicia", r"\b(?:amex|american\s+express)\s+(?:g|galicia)\b"),
    _rule("Amex Santander", r"\b(?:amex|american\s+express)\s+(?:s|santander)\b"),
    # Brand alone maps to the default bank. Must precede "efectivo" so
    # "Efectivo Carla amex" is an Amex charge.
    _rule("Visa Galicia", r"\bvisa\b"),
    _rule("Amex Galicia", r"\bamex\b|\bamerican\s+express\b"),
    _rule("Mastercard", r"\bmaster(?:card)?\b"),
    _rule("Transferencia", r"\btransf(?:erencia)?\b|\btransfer\b"),
    _rule("Débito", r"\bd[eé]bito\b|\bdebit\b"),
    _rule("Mercado Pago", r"\bmercado\s*pago\b|\bmp\b"),
    _rule("Brubank", r"\bbrubank\b"),
    _rule("Ualá", r"\bual[aá]\b"),
    _rule("BBVA", r"\bbbva\b"),
    _rule("Santander", r"\bsantander\b"),
    _rule("Galicia", r"\bgalicia\b"),
    _rule("Efectivo", r"\befectivo\b|\bcash\b"),
)

# Exports label payroll deposits as expenses often enough that the
# description overrides the income/expense column.
INCOME_KEYWORD_PATTERNS: tuple[re.Pattern, ...] = tuple(
    re.compile(regex, re.IGNORECASE)
    for regex in (
        r"\bsueldo\b",
        r"\bsalario\b",
        r"\bhaberes\b",
        r"\baguinaldo\b",
        r"\bhonorarios\b",
        r"\bn[oó]mina\b",
        r"\bsalary\b",
        r"\bpayroll\b",
    )
)

CSV_INSTALLMENT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"(\d+)/(\d+)"),  # 3/12
    re.compile(r"cuota\s+(\d+)\s+de\s+(\d+)", re.IGNORECASE),  # cuota 3 de 12
    re.compile(r"installment\s+(\d+)\s+of\s+(\d+)", re.IGNORECASE),  # installment 3 of 12
)

# The generic n/m pattern would also match inside C.03/06, so the
# statement-specific notations come first.
STATEMENT_INSTALLMENT_PATTERNS: tuple[re.Pattern, ...] = (
    re.compile(r"C\.(\d+)/(\d+)", re.IGNORECASE),  # C.03/06 (Santander)
    re.compile(r"pago\s+(\d+)\s+de\s+(\d+)", re.IGNORECASE),  # pago 3 de 12
    *CSV_INSTALLMENT_PATTERNS,
)

USD_INDICATORS: tuple[str, ...] = ("usd", "us$", "dolar", "dollar", "nt_rrt", "nt_usd")

FOREIGN_CURRENCY_CODES: tuple[str, ...] = (
    "USD", "CAD", "EUR", "GBP", "CHF", "JPY", "AUD",
    "NZD", "BRL", "CLP", "MXN", "COP", "PEN", "UYU",
)
FOREIGN_CURRENCY_RE = "|".join(FOREIGN_CURRENCY_CODES)

CARD_TYPE_RULES: tuple[PatternRule, ...] = (
    _rule("Visa", r"visa"),
    _rule("Amex", r"american\s+express|amex"),
)


def match_payment_method(description: str) -> str | None:
    """Return the label of the first payment-method rule matching the description."""
    for rule in PAYMENT_METHOD_RULES:
        if rule.matches(description):
            return rule.label
    return None


def detect_payment_method(description: str, txn_type: TransactionType) -> str:
    """
    Guess the payment method of a CSV row.

    Income always maps to the income label. Expenses use the first matching
    rule, falling back to cash.
    """
    if txn_type == TransactionType.INCOME:
        return INCOME_LABEL
    return match_payment_method(description) or FALLBACK_PAYMENT_METHOD


def is_income_description(description: str) -> bool:
    """Check if a description names a salary/income deposit."""
    return any(pattern.search(description) for pattern in INCOME_KEYWORD_PATTERNS)


def detect_installments(
    description: str,
    patterns: tuple[re.Pattern, ...] = CSV_INSTALLMENT_PATTERNS,
) -> str | None:
    """
    Find an installment plan in a description.

    Returns:
        ``"current/total"`` with leading zeros dropped, or None. Matches where
        current exceeds total (dates such as ``24/08``) are ignored.
    """
    for pattern in patterns:
        for match in pattern.finditer(description):
            current, total = int(match.group(1)), int(match.group(2))
            if 0 < current <= total:
                return f"{current}/{total}"
    return None


def is_valid_installments(value: str) -> bool:
    """Check a client-supplied installments string."""
    return re.fullmatch(INSTALLMENTS_FORMAT, value) is not None and installments_parts(value) is not None


def detect_currency(description: str) -> Currency:
    """Detect USD charges from indicators in the description."""
    description_lower = description.lower()
    for indicator in USD_INDICATORS:
        if indicator in description_lower:
            return Currency.USD
    return Currency.ARS


def detect_card_type(text: str) -> str | None:
    """Detect the card brand a statement belongs to."""
    for rule in CARD_TYPE_RULES:
        if rule.matches(text):
            return rule.label
    return None
