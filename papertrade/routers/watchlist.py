"""Watchlist endpoints - requires authentication."""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from papertrade.auth import get_current_account
from papertrade.database import get_session
from papertrade.models import Account
from papertrade.schemas import (
    Envelope,
    MessageResponse,
    WatchlistAdd,
    WatchlistEntryResponse,
    WatchlistResponse,
    WatchlistStatusResponse,
)
from papertrade.services import watchlist as watchlist_service
from papertrade.services.market_data import MarketDataClient, get_market_data, normalize_symbol

router = APIRouter()


@router.get(
    "/watchlist",
    response_model=Envelope[WatchlistResponse],
    summary="Get my watchlist with live prices",
)
async def get_watchlist(
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[WatchlistResponse]:
    """Watched symbols, newest first. Prices are null when unavailable."""
    watchlist = await watchlist_service.get_watchlist(session, account.id, market)
    return Envelope[WatchlistResponse](data=WatchlistResponse.model_validate(watchlist))


@router.post(
    "/watchlist",
    response_model=Envelope[WatchlistEntryResponse],
    status_code=status.HTTP_201_CREATED,
    summary="Watch a symbol",
)
async def add_to_watchlist(
    data: WatchlistAdd,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[WatchlistEntryResponse]:
    entry = await watchlist_service.add_to_watchlist(
        session, account.id, data.symbol, market, company_name=data.company_name
    )
    return Envelope[WatchlistEntryResponse](data=WatchlistEntryResponse.model_validate(entry))


@router.get(
    "/watchlist/{symbol}",
    response_model=Envelope[WatchlistStatusResponse],
    summary="Check whether a symbol is watched",
)
async def is_in_watchlist(
    symbol: str,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> Envelope[WatchlistStatusResponse]:
    watched = await watchlist_service.is_in_watchlist(session, account.id, symbol)
    return Envelope[WatchlistStatusResponse](
        data=WatchlistStatusResponse(symbol=normalize_symbol(symbol), in_watchlist=watched)
    )


@router.delete(
    "/watchlist/{symbol}",
    response_model=Envelope[MessageResponse],
    summary="Stop watching a symbol",
)
async def remove_from_watchlist(
    symbol: str,
    account: Account = Depends(get_current_account),
    session: AsyncSession = Depends(get_session),
) -> Envelope[MessageResponse]:
    await watchlist_service.remove_from_watchlist(session, account.id, symbol)
    return Envelope[MessageResponse](
        data=MessageResponse(message=f"Removed {normalize_symbol(symbol)} from watchlist")
    )
