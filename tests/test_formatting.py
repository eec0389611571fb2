"""Tests for the default currency formatter."""

from decimal import Decimal

import pytest

from upsell_checkout.formatting import SymbolCurrencyFormatter


@pytest.mark.parametrize(
    ("amount", "currency", "expected"),
    [
        ("18.0", "USD", "$18.00"),
        ("1234.5", "usd", "$1,234.50"),
        ("4.555", "GBP", "£4.56"),
        ("1234.5", "JPY", "¥1,235"),
        ("99.9", "CHF", "99.90 CHF"),
        ("-5", "EUR", "-€5.00"),
    ],
)
def test_format_currency(amount, currency, expected):
    assert SymbolCurrencyFormatter().format_currency(Decimal(amount), currency) == expected


def test_custom_symbol_table():
    formatter = SymbolCurrencyFormatter(symbols={"CHF": "CHF "})

    assert formatter.format_currency(Decimal("3"), "CHF") == "CHF 3.00"
    assert formatter.format_currency(Decimal("3"), "USD") == "3.00 USD"
