"""
Currency Reference Data

Display symbols for the credit types the billing API reports.
"""

from typing import Optional, Union

# Well-known credit type id for USD (cents)
USD_CREDIT_TYPE_ID = "2714e483-4ff1-48e4-9e25-ac732e8f24f2"
DEFAULT_CURRENCY_NAME = "USD"

COIN_SYMBOLS = {
    "USD (cents)": "$",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "KRW": "₩",
    "CAD": "$",
    "AUD": "$",
    "NZD": "$",
    "CHF": "₣",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "SGD": "$",
    "HKD": "$",
    "MXN": "$",
    "BRL": "R$",
    "INR": "₹",
    "CNY": "¥",
    "ZAR": "R",
    "RUB": "₽",
}

# Currencies whose amounts are reported in minor units
MINOR_UNIT_CURRENCIES = {"USD (cents)"}


def get_coin_symbol(currency_name: str, symbols: Optional[dict] = None) -> str:
    """Symbol for a currency, or the currency name itself when unknown."""
    table = COIN_SYMBOLS if symbols is None else symbols
    return table.get(currency_name, currency_name)


def format_currency(
    amount: Union[float, int, str],
    currency_name: str = "",
    symbols: Optional[dict] = None,
) -> str:
    """
    Format an amount for display.

    Args:
        amount: Numeric amount, or a string holding one
        currency_name: Credit type name as reported by the API
        symbols: Optional override of the symbol table

    Returns:
        "$1,234.50" for known currencies, "1,234.50 CREDITS" otherwise
    """
    table = COIN_SYMBOLS if symbols is None else symbols
    symbol = table.get(currency_name)

    try:
        value = float(amount)
    except (TypeError, ValueError):
        value = float("nan")

    if value != value:
        return f"{symbol}0.00" if symbol else f"0.00 {currency_name}"

    if currency_name in MINOR_UNIT_CURRENCIES:
        value = value / 100

    text = f"{value:,.2f}"
    return f"{symbol}{text}" if symbol else f"{text} {currency_name}"


def compact_number(num: float, digits: int = 1) -> str:
    """Abbreviate large numbers: 1500 -> "1.5K", 2000000 -> "2M"."""
    if not num:
        return "0"

    lookup = [
        (1e18, "E"),
        (1e15, "P"),
        (1e12, "T"),
        (1e9, "G"),
        (1e6, "M"),
        (1e3, "K"),
        (1, ""),
    ]
    for value, symbol in lookup:
        if num >= value:
            text = f"{num / value:.{digits}f}"
            if "." in text:
                text = text.rstrip("0").rstrip(".")
            return text + symbol
    return "0"
