"""Watchlist service - symbols an account follows, with live prices."""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, UTC
from decimal import Decimal

from sqlalchemy import and_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.errors import DuplicateEntry, MarketDataError, NotFound
from papertrade.models import WatchlistEntry
from papertrade.services.market_data import MarketDataClient, Quote, normalize_symbol

logger = logging.getLogger(__name__)


@dataclass
class WatchedSymbol:
    """A watchlist entry joined with its live quote, if one resolved."""

    symbol: str
    company_name: str
    added_at: datetime
    has_valid_quote: bool
    current_price: Decimal | None = None
    change: Decimal | None = None
    change_percent: Decimal | None = None
    volume: int | None = None


@dataclass
class Watchlist:
    items: list[WatchedSymbol]
    quote_error: str | None = None


async def _get_entry(
    session: AsyncSession, account_id: str, symbol: str
) -> WatchlistEntry | None:
    result = await session.execute(
        select(WatchlistEntry).where(
            and_(WatchlistEntry.account_id == account_id, WatchlistEntry.symbol == symbol)
        )
    )
    return result.scalar_one_or_none()


async def is_in_watchlist(session: AsyncSession, account_id: str, symbol: str) -> bool:
    return await _get_entry(session, account_id, normalize_symbol(symbol)) is not None


async def add_to_watchlist(
    session: AsyncSession,
    account_id: str,
    symbol: str,
    market: MarketDataClient,
    company_name: str | None = None,
) -> WatchlistEntry:
    """Follow a symbol.

    The symbol must resolve to a live quote; the provider's company name is
    preferred over the one supplied by the caller.

    Raises:
        ValidationError: If the symbol is malformed
        NotFound: If the provider does not know the symbol
        DuplicateEntry: If the symbol is already on the watchlist
    """
    symbol = normalize_symbol(symbol)

    if await _get_entry(session, account_id, symbol):
        raise DuplicateEntry("Stock is already in your watchlist")

    quote = await market.get_quote(symbol)
    if quote is None:
        raise NotFound("Invalid stock symbol.")

    entry = WatchlistEntry(
        id=str(uuid.uuid4()),
        account_id=account_id,
        symbol=symbol,
        company_name=quote.name or company_name or symbol,
        added_at=datetime.now(UTC).replace(tzinfo=None),
    )
    session.add(entry)
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent add of the same symbol
        await session.rollback()
        raise DuplicateEntry("Stock is already in your watchlist")

    logger.info("Added to watchlist", extra={"account_id": account_id, "symbol": symbol})
    return entry


async def remove_from_watchlist(
    session: AsyncSession, account_id: str, symbol: str
) -> None:
    """Stop following a symbol.

    Raises:
        NotFound: If the symbol is not on the watchlist
    """
    symbol = normalize_symbol(symbol)
    entry = await _get_entry(session, account_id, symbol)
    if entry is None:
        raise NotFound(f"{symbol} is not in your watchlist")

    await session.delete(entry)
    await session.commit()
    logger.info("Removed from watchlist", extra={"account_id": account_id, "symbol": symbol})


def _watched(entry: WatchlistEntry, quote: Quote | None) -> WatchedSymbol:
    item = WatchedSymbol(
        symbol=entry.symbol,
        company_name=entry.company_name,
        added_at=entry.added_at,
        has_valid_quote=quote is not None and quote.price > 0,
    )
    if item.has_valid_quote:
        item.current_price = quote.price
        item.change = quote.change
        item.change_percent = quote.change_percent
        item.volume = quote.volume
    return item


async def get_watchlist(
    session: AsyncSession, account_id: str, market: MarketDataClient
) -> Watchlist:
    """Get the watchlist, newest first, with best-effort live prices.

    A symbol whose quote did not resolve keeps ``None`` prices rather than
    zero.
    """
    result = await session.execute(
        select(WatchlistEntry)
        .where(WatchlistEntry.account_id == account_id)
        .order_by(WatchlistEntry.added_at.desc())
    )
    entries = list(result.scalars().all())
    if not entries:
        return Watchlist(items=[])

    quotes: dict[str, Quote] = {}
    quote_error = None
    try:
        batch = await market.get_batch_quotes([e.symbol for e in entries])
        quotes, quote_error = batch.quotes, batch.error
    except MarketDataError as e:
        logger.warning(
            "Could not price watchlist",
            extra={"account_id": account_id, "error": str(e)},
        )
        quote_error = f"Failed to fetch prices: {e}"

    return Watchlist(
        items=[_watched(e, quotes.get(e.symbol)) for e in entries],
        quote_error=quote_error,
    )
