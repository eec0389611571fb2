"""Currency formatting used to turn storefront prices into display strings."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "CAD": "$",
    "AUD": "$",
    "NZD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "INR": "₹",
}

# ISO 4217 currencies without minor units
_ZERO_DECIMAL = frozenset({"JPY", "KRW", "VND", "CLP", "ISK"})


class CurrencyFormatter(Protocol):
    """Anything that can render an amount in a given currency."""

    def format_currency(self, amount: Decimal, currency: str) -> str: ...


class SymbolCurrencyFormatter:
    """Formats amounts with a leading currency symbol and grouped thousands.

    Currencies without a known symbol are rendered as ``"1,234.50 CHF"``.
    """

    def __init__(self, symbols: dict[str, str] | None = None) -> None:
        self._symbols = symbols if symbols is not None else dict(_SYMBOLS)

    def format_currency(self, amount: Decimal, currency: str) -> str:
        code = currency.upper()
        places = Decimal("1") if code in _ZERO_DECIMAL else Decimal("0.01")
        quantized = Decimal(amount).quantize(places, rounding=ROUND_HALF_UP)
        number = f"{quantized:,}"

        symbol = self._symbols.get(code)
        if symbol is None:
            return f"{number} {code}"
        if quantized < 0:
            return f"-{symbol}{number[1:]}"
        return f"{symbol}{number}"
