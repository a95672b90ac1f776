"""Portfolio service - market value and unrealized gain/loss of holdings.

Read-only. A holding without a usable live quote is reported as unpriced
(``has_valid_quote=False``) rather than worth zero, and portfolio-wide
gain/loss is only reported once every holding is priced.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.errors import MarketDataError
from papertrade.models import Holding
from papertrade.services import ledger
from papertrade.services.market_data import MarketDataClient, Quote

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class HoldingValuation:
    """A holding with current value and profit/loss calculations."""

    symbol: str
    company_name: str
    quantity: Decimal
    average_cost: Decimal
    cost: Decimal
    has_valid_quote: bool
    current_price: Decimal | None = None
    current_value: Decimal | None = None
    gain_loss: Decimal | None = None
    gain_loss_percent: Decimal | None = None
    change: Decimal | None = None
    change_percent: Decimal | None = None
    allocation_percent: Decimal | None = None


@dataclass
class PortfolioValuation:
    """Valuation of an account's holdings.

    ``total_value`` covers priced holdings only; ``total_cost`` covers all
    of them. Totals that need every price are None while any is missing.
    """

    holdings: list[HoldingValuation]
    total_value: Decimal
    total_cost: Decimal
    all_prices_loaded: bool
    total_gain_loss: Decimal | None
    total_gain_loss_percent: Decimal | None
    cash_balance: Decimal | None = None
    net_worth: Decimal | None = None
    quote_error: str | None = None
    warnings: list[str] = field(default_factory=list)


def _percent(part: Decimal, whole: Decimal) -> Decimal | None:
    if whole <= 0:
        return None
    return (part / whole * 100).quantize(Decimal("0.01"))


def value_holding(holding: Holding, quote: Quote | None) -> HoldingValuation:
    """Value a single holding against its live quote (if any)."""
    cost = ledger.money(holding.quantity * holding.average_cost)
    valuation = HoldingValuation(
        symbol=holding.symbol,
        company_name=holding.company_name,
        quantity=holding.quantity,
        average_cost=holding.average_cost,
        cost=cost,
        has_valid_quote=quote is not None and quote.price > 0,
    )

    if valuation.has_valid_quote:
        current_value = ledger.money(holding.quantity * quote.price)
        valuation.current_price = quote.price
        valuation.current_value = current_value
        valuation.gain_loss = current_value - cost
        valuation.gain_loss_percent = _percent(current_value - cost, cost)
        valuation.change = quote.change
        valuation.change_percent = quote.change_percent

    return valuation


def value_portfolio(
    holdings: list[Holding],
    quotes: dict[str, Quote],
    cash_balance: Decimal | None = None,
    quote_error: str | None = None,
) -> PortfolioValuation:
    """Combine holdings with live quotes.

    Args:
        holdings: The account's holdings
        quotes: Live quotes by symbol; a missing symbol means "price unknown"
        cash_balance: Account cash, used for net worth (optional)
        quote_error: Warning from the quote source to pass through (optional)

    Returns:
        Portfolio valuation with per-holding breakdown
    """
    valuations = [value_holding(h, quotes.get(h.symbol)) for h in holdings]

    total_cost = sum((v.cost for v in valuations), ZERO)
    total_value = sum(
        (v.current_value for v in valuations if v.has_valid_quote), ZERO
    )
    all_prices_loaded = all(v.has_valid_quote for v in valuations)

    for v in valuations:
        if v.has_valid_quote:
            v.allocation_percent = _percent(v.current_value, total_value)

    # Priced holdings first, largest value first; unpriced ones by cost
    valuations.sort(
        key=lambda v: (
            not v.has_valid_quote,
            -(v.current_value if v.has_valid_quote else v.cost),
        )
    )

    if all_prices_loaded:
        total_gain_loss = total_value - total_cost
        total_gain_loss_percent = (
            _percent(total_gain_loss, total_cost) if total_cost > 0 else ZERO
        )
        net_worth = cash_balance + total_value if cash_balance is not None else None
    else:
        total_gain_loss = None
        total_gain_loss_percent = None
        net_worth = None

    warnings = []
    missing = [v.symbol for v in valuations if not v.has_valid_quote]
    if missing:
        warnings.append(f"Live prices unavailable for: {', '.join(missing)}")

    return PortfolioValuation(
        holdings=valuations,
        total_value=total_value,
        total_cost=total_cost,
        all_prices_loaded=all_prices_loaded,
        total_gain_loss=total_gain_loss,
        total_gain_loss_percent=total_gain_loss_percent,
        cash_balance=cash_balance,
        net_worth=net_worth,
        quote_error=quote_error,
        warnings=warnings,
    )


async def get_portfolio_value(
    session: AsyncSession, account_id: str, market: MarketDataClient
) -> PortfolioValuation:
    """Value an account's holdings at live prices.

    Quote failures never fail the call: when no quote at all can be fetched
    every holding is reported unpriced and ``quote_error`` says why.

    Raises:
        NotFound: If the account does not exist
    """
    account = await ledger.get_account(session, account_id)
    holdings = await ledger.get_holdings(session, account_id)

    quotes: dict[str, Quote] = {}
    quote_error = None
    if holdings:
        try:
            batch = await market.get_batch_quotes([h.symbol for h in holdings])
            quotes, quote_error = batch.quotes, batch.error
        except MarketDataError as e:
            logger.warning(
                "Could not price portfolio",
                extra={"account_id": account_id, "error": str(e)},
            )
            quote_error = f"Failed to fetch prices: {e}"

    return value_portfolio(
        holdings, quotes, cash_balance=account.cash_balance, quote_error=quote_error
    )
