"""
Runtime settings for meterboard.

Values come from the environment, optionally seeded from a ``.env`` file.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import find_dotenv, load_dotenv

from meterboard.config.currency import COIN_SYMBOLS

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.metronome.com"
DEFAULT_TIMEOUT = 30.0
DEFAULT_WINDOW_DAYS = 30
DEFAULT_WINDOW_SIZE = "DAY"


def _env_number(name: str, default, cast):
    """Numeric environment value, or the default when unset or malformed."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %s", name, raw, default)
        return default


@dataclass
class Settings:
    """Configuration passed explicitly into connectors and aggregators."""
    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    timeout: float = DEFAULT_TIMEOUT
    window_days: int = DEFAULT_WINDOW_DAYS
    window_size: str = DEFAULT_WINDOW_SIZE
    log_level: str = "WARNING"
    currency_symbols: dict = field(default_factory=lambda: dict(COIN_SYMBOLS))

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        """Build settings from environment variables (and ``.env`` if present)."""
        if load_env_file:
            load_dotenv(find_dotenv(".env", usecwd=True))

        return cls(
            api_key=os.getenv("METRONOME_API_TOKEN") or None,
            base_url=os.getenv("METRONOME_BASE_URL", DEFAULT_BASE_URL),
            timeout=_env_number("METERBOARD_TIMEOUT", DEFAULT_TIMEOUT, float),
            window_days=_env_number("METERBOARD_WINDOW_DAYS", DEFAULT_WINDOW_DAYS, int),
            window_size=os.getenv("METERBOARD_WINDOW_SIZE", DEFAULT_WINDOW_SIZE).upper(),
            log_level=os.getenv("METERBOARD_LOG_LEVEL", "WARNING").upper(),
        )

    def with_api_key(self, api_key: Optional[str]) -> "Settings":
        """Copy of these settings with a per-call API key override."""
        if not api_key:
            return self
        return Settings(
            api_key=api_key,
            base_url=self.base_url,
            timeout=self.timeout,
            window_days=self.window_days,
            window_size=self.window_size,
            log_level=self.log_level,
            currency_symbols=dict(self.currency_symbols),
        )
