"""
Configuration module for meterboard.
"""

from meterboard.config.currency import (
    COIN_SYMBOLS,
    USD_CREDIT_TYPE_ID,
    compact_number,
    format_currency,
    get_coin_symbol,
)
from meterboard.config.log import configure_logging
from meterboard.config.settings import Settings

__all__ = [
    "COIN_SYMBOLS",
    "USD_CREDIT_TYPE_ID",
    "Settings",
    "compact_number",
    "configure_logging",
    "format_currency",
    "get_coin_symbol",
]
