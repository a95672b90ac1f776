"""Market data endpoints - search, quotes and price history."""

from fastapi import APIRouter, Depends, Query

from papertrade.auth import get_current_account
from papertrade.errors import NotFound
from papertrade.models import Account
from papertrade.schemas import (
    Envelope,
    PriceBarResponse,
    QuoteResponse,
    SearchResponse,
    SymbolMatchResponse,
    TimeSeriesResponse,
)
from papertrade.services.market_data import MarketDataClient, get_market_data, normalize_symbol

router = APIRouter()


@router.get(
    "/stocks/search",
    response_model=Envelope[SearchResponse],
    summary="Search symbols",
)
async def search(
    q: str = Query(..., min_length=1, max_length=50, description="Symbol or company name"),
    account: Account = Depends(get_current_account),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[SearchResponse]:
    matches = await market.search(q)
    return Envelope[SearchResponse](
        data=SearchResponse(results=[SymbolMatchResponse.model_validate(m) for m in matches])
    )


@router.get(
    "/stocks/quote/{symbol}",
    response_model=Envelope[QuoteResponse],
    summary="Get a live quote",
)
async def get_quote(
    symbol: str,
    account: Account = Depends(get_current_account),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[QuoteResponse]:
    quote = await market.get_quote(symbol)
    if quote is None:
        raise NotFound("Invalid stock symbol or stock not found.")
    return Envelope[QuoteResponse](data=QuoteResponse.model_validate(quote))


@router.get(
    "/stocks/{symbol}/time-series",
    response_model=Envelope[TimeSeriesResponse],
    summary="Get recent price bars",
)
async def get_time_series(
    symbol: str,
    interval: str = Query(default="1day", pattern=r"^(1min|5min|15min|30min|1h|1day|1week|1month)$"),
    output_size: int = Query(default=30, ge=1, le=5000),
    account: Account = Depends(get_current_account),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[TimeSeriesResponse]:
    """Get the most recent bars for a symbol, newest first."""
    symbol = normalize_symbol(symbol)
    bars = await market.get_time_series(symbol, interval, output_size)
    return Envelope[TimeSeriesResponse](
        data=TimeSeriesResponse(
            symbol=symbol,
            interval=interval,
            bars=[PriceBarResponse.model_validate(b) for b in bars],
        )
    )
