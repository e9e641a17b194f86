"""Helpers for rendering minor-unit (cent) amounts in answers and exports."""

from __future__ import annotations

from typing import Dict

DEFAULT_CURRENCY_CODE = "USD"

_CURRENCY_SYMBOLS: Dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "C$",
    "AUD": "A$",
    "NZD": "NZ$",
    "SGD": "S$",
    "HKD": "HK$",
    "INR": "₹",
    "BRL": "R$",
}


def currency_symbol_for(code: str | None) -> str | None:
    if not code:
        return None
    return _CURRENCY_SYMBOLS.get(code.strip().upper())


def minor_to_major(amount_minor: int) -> float:
    return round(int(amount_minor) / 100.0, 2)


def format_minor(amount_minor: int, currency: str | None = DEFAULT_CURRENCY_CODE) -> str:
    """Format ``123456`` as ``$1,234.56`` (or ``CHF 1,234.56`` for codes without a symbol)."""
    code = (currency or DEFAULT_CURRENCY_CODE).strip().upper()
    sign = "-" if amount_minor < 0 else ""
    body = f"{abs(int(amount_minor)) / 100.0:,.2f}"
    symbol = currency_symbol_for(code)
    if symbol:
        return f"{sign}{symbol}{body}"
    return f"{sign}{code} {body}"
