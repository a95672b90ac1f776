"""Time machine - "what if I had invested on date X" simulations.

Nothing here touches the ledger. To actually record such an investment the
caller passes the resolved price to ``ledger.execute_backdated_purchase``.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from papertrade import config
from papertrade.errors import NotFound, ValidationError
from papertrade.services.ledger import money, shares, validate_past_date
from papertrade.services.market_data import (
    HistoricalPrice,
    MarketDataClient,
    PriceBar,
    Quote,
    normalize_symbol,
)

logger = logging.getLogger(__name__)


@dataclass
class SimulationResult:
    symbol: str
    company_name: str
    investment_date: date
    actual_date: date
    investment_amount: Decimal
    historical_price: Decimal
    current_price: Decimal
    shares_bought: Decimal
    current_value: Decimal
    total_profit: Decimal
    total_profit_percent: Decimal
    historical: HistoricalPrice
    chart: list[PriceBar]


def _validate_amount(amount: Decimal) -> Decimal:
    amount = Decimal(str(amount))
    if not config.MIN_BACKDATED_AMOUNT <= amount <= config.MAX_BACKDATED_AMOUNT:
        raise ValidationError(
            f"Amount must be between ${config.MIN_BACKDATED_AMOUNT:,} "
            f"and ${config.MAX_BACKDATED_AMOUNT:,}"
        )
    return amount


async def fetch_historical_price(
    symbol: str, on: date, market: MarketDataClient
) -> HistoricalPrice:
    """Resolve the close for a past date, adjusted to the prior trading day.

    Raises:
        ValidationError: If the symbol is malformed
        DateOutOfRange: If the date is not in the past or is too old
        NotFound: If the provider has no data for the symbol
    """
    symbol = normalize_symbol(symbol)
    validate_past_date(on)

    historical = await market.get_historical_price(symbol, on)
    if historical is None:
        raise NotFound(
            f"Unable to fetch historical data for {symbol}. The stock may not "
            f"have existed on that date or data is unavailable."
        )
    return historical


async def fetch_current_price(symbol: str, market: MarketDataClient) -> Quote:
    """Get the live quote used to value a simulated investment.

    Raises:
        NotFound: If the symbol has no usable quote
    """
    symbol = normalize_symbol(symbol)
    quote = await market.get_quote(symbol)
    if quote is None or quote.price <= 0:
        raise NotFound(f"Unable to fetch current price for {symbol}.")
    return quote


async def simulate_investment(
    symbol: str, on: date, amount: Decimal, market: MarketDataClient
) -> SimulationResult:
    """Value an investment as if ``amount`` had been invested on ``on``.

    Args:
        symbol: Stock symbol
        on: Investment date (strictly past, within the lookback window)
        amount: Cash invested (1 to 1,000,000)
        market: Quote source

    Returns:
        Shares bought, current value, profit and a daily close series from
        the resolved trading day up to today (oldest first)

    Raises:
        ValidationError: If an input is malformed
        DateOutOfRange: If the date is outside the allowed window
        NotFound: If no historical or live price resolves
    """
    symbol = normalize_symbol(symbol)
    amount = _validate_amount(amount)
    validate_past_date(on)

    historical = await fetch_historical_price(symbol, on, market)
    if historical.price <= 0:
        raise NotFound(f"No valid historical price for {symbol} on {on.isoformat()}")
    quote = await fetch_current_price(symbol, market)

    shares_bought = shares(amount / historical.price)
    current_value = money(shares_bought * quote.price)
    total_profit = current_value - money(amount)
    total_profit_percent = (total_profit / amount * 100).quantize(Decimal("0.01"))

    chart = await market.get_time_series_range(symbol, historical.date)

    logger.info(
        "Simulated investment",
        extra={
            "symbol": symbol,
            "requested_date": on.isoformat(),
            "actual_date": historical.date.isoformat(),
            "amount": float(amount),
            "profit": float(total_profit),
        },
    )

    return SimulationResult(
        symbol=symbol,
        company_name=quote.name,
        investment_date=on,
        actual_date=historical.date,
        investment_amount=amount,
        historical_price=historical.price,
        current_price=quote.price,
        shares_bought=shares_bought,
        current_value=current_value,
        total_profit=total_profit,
        total_profit_percent=total_profit_percent,
        historical=historical,
        chart=chart,
    )
