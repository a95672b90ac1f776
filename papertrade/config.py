"""
Application settings.

Values come from environment variables and are validated once at import,
so a misconfigured deployment fails on startup instead of mid-request.
Business constants that should never vary per deployment live here too.
"""

import os
from dataclasses import dataclass
from datetime import time
from decimal import Decimal, InvalidOperation


# Trading limits
MAX_BUY_QUANTITY = 10_000
MIN_BACKDATED_AMOUNT = Decimal("1")
MAX_BACKDATED_AMOUNT = Decimal("1000000")
MIN_HISTORICAL_PRICE = Decimal("0.01")
MIN_BACKDATED_SHARES = Decimal("0.0001")

# Backdated purchases and simulations may reach this far into the past
LOOKBACK_YEARS = 5

# Backdated transactions are stamped at the closing bell
MARKET_CLOSE = time(16, 0)

# Quote provider free tier: 8 requests per rolling minute
RATE_LIMIT_REQUESTS = 8
RATE_LIMIT_WINDOW_SECONDS = 60.0
MAX_RETRIES = 3
RETRY_BACKOFF_SECONDS = 1.0


@dataclass(frozen=True)
class Settings:
    """Deployment configuration."""

    database_url: str = "sqlite+aiosqlite:///./papertrade.db"
    sql_echo: bool = False
    twelvedata_api_key: str = ""
    twelvedata_base_url: str = "https://api.twelvedata.com"
    market_data_timeout: float = 10.0
    initial_balance: Decimal = Decimal("100000")

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables.

        Raises:
            ValueError: If a variable is present but malformed
        """
        raw_balance = os.getenv("INITIAL_BALANCE", "100000")
        try:
            initial_balance = Decimal(raw_balance)
        except InvalidOperation:
            raise ValueError("INITIAL_BALANCE must be a number")
        if not initial_balance.is_finite() or initial_balance < 0:
            raise ValueError("INITIAL_BALANCE must be a non-negative amount")

        timeout = os.getenv("MARKET_DATA_TIMEOUT", "10")
        try:
            market_data_timeout = float(timeout)
        except ValueError:
            raise ValueError("MARKET_DATA_TIMEOUT must be a number of seconds")

        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            sql_echo=os.getenv("SQLALCHEMY_ECHO") == "1",
            twelvedata_api_key=os.getenv("TWELVEDATA_API_KEY", ""),
            twelvedata_base_url=os.getenv(
                "TWELVEDATA_BASE_URL", cls.twelvedata_base_url
            ),
            market_data_timeout=market_data_timeout,
            initial_balance=initial_balance,
        )


settings = Settings.from_env()
