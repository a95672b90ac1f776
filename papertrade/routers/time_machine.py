"""Time machine endpoints - what-if simulations and price lookups."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from papertrade.auth import get_current_account
from papertrade.models import Account
from papertrade.schemas import (
    OHLC,
    ChartPoint,
    CurrentPriceResponse,
    Envelope,
    HistoricalPriceResponse,
    SimulationRequest,
    SimulationResponse,
)
from papertrade.services import time_machine as time_machine_service
from papertrade.services.market_data import MarketDataClient, get_market_data, normalize_symbol

router = APIRouter()


@router.post(
    "/time-machine/simulate",
    response_model=Envelope[SimulationResponse],
    summary="Simulate a past investment",
)
async def simulate(
    data: SimulationRequest,
    account: Account = Depends(get_current_account),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[SimulationResponse]:
    """What would ``amount`` invested on ``date`` be worth today?

    Nothing is bought. If the market was closed on ``date`` the previous
    trading day is used and reported as ``actual_date``.
    """
    result = await time_machine_service.simulate_investment(
        data.symbol, data.date, data.amount, market
    )
    return Envelope[SimulationResponse](
        data=SimulationResponse(
            symbol=result.symbol,
            company_name=result.company_name,
            investment_date=result.investment_date,
            actual_date=result.actual_date,
            investment_amount=result.investment_amount,
            historical_price=result.historical_price,
            current_price=result.current_price,
            shares_bought=result.shares_bought,
            current_value=result.current_value,
            total_profit=result.total_profit,
            total_profit_percent=result.total_profit_percent,
            historical_data=OHLC.model_validate(result.historical),
            chart=[ChartPoint(date=bar.date, price=bar.close) for bar in result.chart],
        )
    )


@router.get(
    "/time-machine/historical-price",
    response_model=Envelope[HistoricalPriceResponse],
    summary="Look up a past closing price",
)
async def historical_price(
    symbol: str = Query(..., description="Stock symbol"),
    on: date = Query(..., alias="date", description="Date (YYYY-MM-DD)"),
    account: Account = Depends(get_current_account),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[HistoricalPriceResponse]:
    historical = await time_machine_service.fetch_historical_price(symbol, on, market)
    return Envelope[HistoricalPriceResponse](
        data=HistoricalPriceResponse(
            symbol=normalize_symbol(symbol),
            requested_date=historical.requested_date,
            actual_date=historical.date,
            historical_price=historical.price,
            adjusted=historical.adjusted,
            historical_data=OHLC.model_validate(historical),
        )
    )


@router.get(
    "/time-machine/current-price",
    response_model=Envelope[CurrentPriceResponse],
    summary="Look up the live price",
)
async def current_price(
    symbol: str = Query(..., description="Stock symbol"),
    account: Account = Depends(get_current_account),
    market: MarketDataClient = Depends(get_market_data),
) -> Envelope[CurrentPriceResponse]:
    quote = await time_machine_service.fetch_current_price(symbol, market)
    return Envelope[CurrentPriceResponse](
        data=CurrentPriceResponse(
            symbol=quote.symbol,
            current_price=quote.price,
            company_name=quote.name,
        )
    )
